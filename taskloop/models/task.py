"""Task model: a short-lived job posted by a creator for a reward."""

from datetime import datetime
from taskloop import db
from taskloop.constants import TASK_STATUS_ACTIVE


class Task(db.Model):
    """Task posted by a creator and, once an application is approved, done by a doer.

    The boolean flags track the completion handshake: each side enters the
    other's verification code, then each side rates the other.
    """

    __tablename__ = 'tasks'

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.Text, nullable=False)
    description = db.Column(db.Text, nullable=False)
    location = db.Column(db.Text, nullable=False)
    reward = db.Column(db.Integer, nullable=False)
    deadline = db.Column(db.DateTime, nullable=False, index=True)
    task_type = db.Column(db.String(20), default='normal', nullable=False)  # 'normal', 'joint'
    status = db.Column(db.String(20), default=TASK_STATUS_ACTIVE, nullable=False, index=True)  # 'active', 'completed'
    closed_reason = db.Column(db.String(20), nullable=True)  # 'fulfilled', 'withdrawn'
    creator_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    doer_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True, index=True)

    requestor_verification_code = db.Column(db.String(6), nullable=True)
    doer_verification_code = db.Column(db.String(6), nullable=True)
    is_requestor_verified = db.Column(db.Boolean, default=False, nullable=False)
    is_doer_verified = db.Column(db.Boolean, default=False, nullable=False)
    is_requestor_rated = db.Column(db.Boolean, default=False, nullable=False)
    is_doer_rated = db.Column(db.Boolean, default=False, nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
    completed_at = db.Column(db.DateTime, nullable=True)

    @property
    def is_assigned(self):
        return self.doer_id is not None

    @property
    def is_fully_verified(self):
        return self.is_requestor_verified and self.is_doer_verified

    @property
    def is_fully_rated(self):
        return self.is_requestor_rated and self.is_doer_rated

    def role_of(self, user_id):
        """Return 'creator', 'doer' or None for the given user."""
        if user_id is None:
            return None
        if self.creator_id == user_id:
            return 'creator'
        if self.doer_id is not None and self.doer_id == user_id:
            return 'doer'
        return None

    def to_dict(self, viewer_id=None):
        """Convert task to dictionary.

        Each verification code is only shown to the party it belongs to:
        the creator holds the requestor code and hands it to the doer, and
        the other way round.
        """
        role = self.role_of(viewer_id)
        creator_ratings = self.creator.ratings_dict() if self.creator else None

        return {
            'id': self.id,
            'title': self.title,
            'description': self.description,
            'location': self.location,
            'reward': self.reward,
            'deadline': self.deadline.isoformat(),
            'task_type': self.task_type,
            'status': self.status,
            'closed_reason': self.closed_reason,
            'creator_id': self.creator_id,
            'creator_name': self.creator.username if self.creator else None,
            'creator_rating': creator_ratings['creator_rating'] if creator_ratings else 0.0,
            'doer_id': self.doer_id,
            'doer_name': self.doer.username if self.doer else None,
            'requestor_verification_code': self.requestor_verification_code if role == 'creator' else None,
            'doer_verification_code': self.doer_verification_code if role == 'doer' else None,
            'is_requestor_verified': self.is_requestor_verified,
            'is_doer_verified': self.is_doer_verified,
            'is_requestor_rated': self.is_requestor_rated,
            'is_doer_rated': self.is_doer_rated,
            'created_at': self.created_at.isoformat(),
            'updated_at': self.updated_at.isoformat(),
            'completed_at': self.completed_at.isoformat() if self.completed_at else None
        }

    def __repr__(self):
        return f'<Task {self.id}: {self.title}>'
