"""Chat and Message models for user-to-user communication."""

from datetime import datetime
from taskloop import db


def utc_isoformat(dt):
    """Convert datetime to ISO format with Z suffix to indicate UTC."""
    if dt is None:
        return None
    return dt.isoformat() + 'Z'


class Chat(db.Model):
    """A conversation between two users.

    The pair is stored ordered (user1_id < user2_id) so there is exactly one
    chat per pair no matter who starts it.
    """

    __tablename__ = 'chats'

    __table_args__ = (
        db.UniqueConstraint('user1_id', 'user2_id', name='unique_chat_pair'),
    )

    id = db.Column(db.Integer, primary_key=True)
    user1_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    user2_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)

    # Timestamps
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    user1 = db.relationship('User', foreign_keys=[user1_id])
    user2 = db.relationship('User', foreign_keys=[user2_id])
    messages = db.relationship('Message', backref='chat', lazy='dynamic', cascade='all, delete-orphan')

    def has_participant(self, user_id):
        return user_id in (self.user1_id, self.user2_id)

    def get_other_participant(self, user_id):
        """Get the other participant in the chat."""
        if self.user1_id == user_id:
            return self.user2
        return self.user1

    def get_last_message(self):
        """Get the most recent message in the chat."""
        return self.messages.order_by(Message.created_at.desc(), Message.id.desc()).first()

    def get_unread_count(self, user_id):
        """Get count of unread messages addressed to a user."""
        return self.messages.filter(
            Message.receiver_id == user_id,
            Message.read.is_(False)
        ).count()

    def to_dict(self, current_user_id=None):
        """Convert chat to dictionary, as seen by ``current_user_id``."""
        participant = None
        unread_count = 0

        if current_user_id:
            other_user = self.get_other_participant(current_user_id)
            if other_user:
                participant = {
                    'id': other_user.id,
                    'username': other_user.username,
                    'avatar_url': other_user.avatar_url
                }
            unread_count = self.get_unread_count(current_user_id)

        last_message = self.get_last_message()

        return {
            'id': self.id,
            'user1_id': self.user1_id,
            'user2_id': self.user2_id,
            'participant': participant,
            'last_message': last_message.to_dict() if last_message else None,
            'last_message_time': utc_isoformat(last_message.created_at) if last_message else None,
            'unread_count': unread_count,
            'created_at': utc_isoformat(self.created_at),
            'updated_at': utc_isoformat(self.updated_at)
        }

    def __repr__(self):
        return f'<Chat {self.id}: User {self.user1_id} <-> User {self.user2_id}>'


class Message(db.Model):
    """Message model for individual messages within a chat."""

    __tablename__ = 'messages'

    id = db.Column(db.Integer, primary_key=True)
    chat_id = db.Column(db.Integer, db.ForeignKey('chats.id'), nullable=False, index=True)
    sender_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    receiver_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    content = db.Column(db.Text, nullable=False, default='')
    read = db.Column(db.Boolean, default=False, nullable=False)

    # Single optional attachment
    attachment_name = db.Column(db.String(255), nullable=True)
    attachment_type = db.Column(db.String(100), nullable=True)
    attachment_url = db.Column(db.String(500), nullable=True)
    attachment_size = db.Column(db.Integer, nullable=True)

    # Timestamps
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    sender = db.relationship('User', foreign_keys=[sender_id])

    def to_dict(self):
        """Convert message to dictionary."""
        attachment = None
        if self.attachment_url:
            attachment = {
                'name': self.attachment_name,
                'type': self.attachment_type,
                'url': self.attachment_url,
                'size': self.attachment_size
            }

        return {
            'id': self.id,
            'chat_id': self.chat_id,
            'sender_id': self.sender_id,
            'sender_name': self.sender.username if self.sender else None,
            'sender_image': self.sender.avatar_url if self.sender else None,
            'receiver_id': self.receiver_id,
            'content': self.content,
            'read': self.read,
            'attachment': attachment,
            'created_at': utc_isoformat(self.created_at),
            'updated_at': utc_isoformat(self.updated_at)
        }

    def __repr__(self):
        return f'<Message {self.id} in Chat {self.chat_id}>'
