"""User model for authentication and profiles."""

from datetime import datetime
from werkzeug.security import generate_password_hash, check_password_hash
from taskloop import db


class User(db.Model):
    """A TaskLoop account. The username is the public, immutable handle."""

    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(30), unique=True, nullable=False, index=True)
    email = db.Column(db.String(254), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    full_name = db.Column(db.String(100), nullable=True)
    avatar_url = db.Column(db.String(500), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    created_tasks = db.relationship('Task', backref='creator', lazy=True, foreign_keys='Task.creator_id')
    assigned_tasks = db.relationship('Task', backref='doer', lazy=True, foreign_keys='Task.doer_id')
    rating_summary = db.relationship('UserRating', backref='user', uselist=False, lazy=True)

    def set_password(self, password):
        """Hash and set the user password."""
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        """Check if the provided password matches the hash."""
        return check_password_hash(self.password_hash, password)

    def ratings_dict(self):
        """Reputation for both roles; zeros until the first rating arrives."""
        if self.rating_summary:
            return self.rating_summary.to_dict()
        return {
            'creator_rating': 0.0,
            'doer_rating': 0.0,
            'rating_count_creator': 0,
            'rating_count_doer': 0,
        }

    def to_public_dict(self):
        """Fields any user may see."""
        return {
            'id': self.id,
            'username': self.username,
            'avatar_url': self.avatar_url,
            'ratings': self.ratings_dict(),
            'created_at': self.created_at.isoformat(),
        }

    def to_dict(self):
        """Convert user to dictionary (owner view)."""
        return {
            'id': self.id,
            'username': self.username,
            'email': self.email,
            'full_name': self.full_name,
            'avatar_url': self.avatar_url,
            'ratings': self.ratings_dict(),
            'created_at': self.created_at.isoformat(),
            'updated_at': self.updated_at.isoformat()
        }

    def __repr__(self):
        return f'<User {self.username}>'
