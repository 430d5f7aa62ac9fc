from datetime import datetime
from taskloop import db
from taskloop.constants import APPLICATION_PENDING


class TaskApplication(db.Model):
    __tablename__ = 'task_applications'

    __table_args__ = (
        db.UniqueConstraint('task_id', 'applicant_id', name='unique_task_application'),
    )

    id = db.Column(db.Integer, primary_key=True)
    task_id = db.Column(db.Integer, db.ForeignKey('tasks.id'), nullable=False, index=True)
    applicant_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    message = db.Column(db.Text, nullable=False, default='')
    status = db.Column(db.String(20), default=APPLICATION_PENDING, nullable=False)  # pending, approved, rejected
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    task = db.relationship('Task', backref=db.backref('applications', cascade='all, delete-orphan'))
    applicant = db.relationship('User', backref='task_applications')

    def to_dict(self):
        """Convert to dictionary, with the applicant's doer reputation."""
        applicant_rating = 0.0
        if self.applicant:
            applicant_rating = self.applicant.ratings_dict()['doer_rating']

        return {
            'id': self.id,
            'task_id': self.task_id,
            'task_title': self.task.title if self.task else None,
            'applicant_id': self.applicant_id,
            'applicant_name': self.applicant.username if self.applicant else 'Unknown user',
            'applicant_rating': applicant_rating,
            'message': self.message,
            'status': self.status,
            'created_at': self.created_at.isoformat(),
            'updated_at': self.updated_at.isoformat()
        }

    def __repr__(self):
        return f'<TaskApplication {self.id}: task {self.task_id} by user {self.applicant_id}>'
