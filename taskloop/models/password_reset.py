"""Single-use tokens for the forgot-password flow."""

import secrets
from datetime import datetime, timedelta
from taskloop import db

RESET_TOKEN_EXPIRES_HOURS = 1


class PasswordResetToken(db.Model):
    __tablename__ = 'password_reset_tokens'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    token = db.Column(db.String(100), unique=True, nullable=False, index=True)
    expires_at = db.Column(db.DateTime, nullable=False)
    used = db.Column(db.Boolean, default=False, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    user = db.relationship('User', backref=db.backref('reset_tokens', lazy=True, cascade='all, delete-orphan'))

    @classmethod
    def issue(cls, user_id, expires_in_hours=RESET_TOKEN_EXPIRES_HOURS):
        """Create a fresh token for the user, retiring any unused ones.

        The caller commits.
        """
        cls.query.filter_by(user_id=user_id, used=False).update({'used': True})

        reset_token = cls(
            user_id=user_id,
            token=secrets.token_urlsafe(48),
            expires_at=datetime.utcnow() + timedelta(hours=expires_in_hours)
        )
        db.session.add(reset_token)
        return reset_token

    @classmethod
    def find_valid(cls, token, now=None):
        """The unused, unexpired token row, or None."""
        if not isinstance(token, str) or not token:
            return None
        reset_token = cls.query.filter_by(token=token, used=False).first()
        if not reset_token or reset_token.expires_at < (now or datetime.utcnow()):
            return None
        return reset_token

    def __repr__(self):
        return f'<PasswordResetToken user_id={self.user_id} expires_at={self.expires_at}>'
