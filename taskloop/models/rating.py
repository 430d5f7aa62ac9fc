"""Rating records and per-user reputation aggregates."""

from datetime import datetime
from taskloop import db


class Rating(db.Model):
    """One party's 1-5 star rating of the other after a verified task.

    Immutable once written. ``is_for_creator`` is true when the doer rated
    the creator.
    """

    __tablename__ = 'ratings'

    __table_args__ = (
        db.UniqueConstraint('task_id', 'rater_id', 'is_for_creator', name='unique_task_rating'),
    )

    id = db.Column(db.Integer, primary_key=True)
    task_id = db.Column(db.Integer, db.ForeignKey('tasks.id'), nullable=False, index=True)
    rater_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    rated_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    rating = db.Column(db.Integer, nullable=False)
    is_for_creator = db.Column(db.Boolean, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    task = db.relationship('Task', backref=db.backref('ratings', cascade='all, delete-orphan'))
    rater = db.relationship('User', foreign_keys=[rater_id], backref='ratings_given')
    rated = db.relationship('User', foreign_keys=[rated_id], backref='ratings_received')

    def to_dict(self):
        return {
            'id': self.id,
            'task_id': self.task_id,
            'rater_id': self.rater_id,
            'rated_id': self.rated_id,
            'rating': self.rating,
            'is_for_creator': self.is_for_creator,
            'created_at': self.created_at.isoformat()
        }

    def __repr__(self):
        return f'<Rating {self.id}: {self.rating} stars for user {self.rated_id}>'


class UserRating(db.Model):
    """Running averages of the ratings a user received, split by role."""

    __tablename__ = 'user_ratings'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), unique=True, nullable=False)
    creator_rating = db.Column(db.Float, default=0.0, nullable=False)
    doer_rating = db.Column(db.Float, default=0.0, nullable=False)
    rating_count_creator = db.Column(db.Integer, default=0, nullable=False)
    rating_count_doer = db.Column(db.Integer, default=0, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def add_rating(self, score, as_creator):
        """Fold one more score into the average for the given role."""
        if as_creator:
            count = self.rating_count_creator or 0
            self.creator_rating = ((self.creator_rating or 0.0) * count + score) / (count + 1)
            self.rating_count_creator = count + 1
        else:
            count = self.rating_count_doer or 0
            self.doer_rating = ((self.doer_rating or 0.0) * count + score) / (count + 1)
            self.rating_count_doer = count + 1

    def to_dict(self):
        return {
            'creator_rating': self.creator_rating,
            'doer_rating': self.doer_rating,
            'rating_count_creator': self.rating_count_creator,
            'rating_count_doer': self.rating_count_doer,
        }

    def __repr__(self):
        return f'<UserRating user {self.user_id}>'
