"""Chat helpers shared by the chat routes and the code-sharing workflow."""

from datetime import datetime
import logging

from sqlalchemy.exc import IntegrityError

from taskloop import db
from taskloop.constants import MESSAGE_MAX_LENGTH, ATTACHMENT_MAX_SIZE
from taskloop.models import User, Chat, Message
from taskloop.services import realtime
from taskloop.services.errors import ValidationFailed, PermissionDenied, NotFound

logger = logging.getLogger(__name__)


def _ordered_pair(user_id, other_user_id):
    return (user_id, other_user_id) if user_id < other_user_id else (other_user_id, user_id)


def get_chat_for_participant(session, chat_id):
    chat = db.session.get(Chat, chat_id)
    if not chat:
        raise NotFound('Chat not found')
    if not chat.has_participant(session.user_id):
        raise PermissionDenied('Access denied')
    return chat


def get_or_create_chat(user_id, other_user_id):
    """Return the single chat for this pair of users, creating it if needed.

    Returns ``(chat, created)``.
    """
    if user_id == other_user_id:
        raise ValidationFailed('Cannot start a chat with yourself')

    if not db.session.get(User, other_user_id):
        raise NotFound('User not found')

    existing = find_chat(user_id, other_user_id)
    if existing:
        return existing, False

    user1_id, user2_id = _ordered_pair(user_id, other_user_id)
    chat = Chat(user1_id=user1_id, user2_id=user2_id)
    db.session.add(chat)
    try:
        db.session.commit()
    except IntegrityError:
        # The other side created it at the same moment
        db.session.rollback()
        return find_chat(user_id, other_user_id), False

    logger.info(f'Chat {chat.id} created between users {user1_id} and {user2_id}')
    realtime.publish_change('chats', realtime.INSERT, chat.to_dict(), [
        realtime.user_room(user1_id),
        realtime.user_room(user2_id),
    ])
    return chat, True


def find_chat(user_id, other_user_id):
    user1_id, user2_id = _ordered_pair(user_id, other_user_id)
    return Chat.query.filter_by(user1_id=user1_id, user2_id=user2_id).first()


def list_chats(session):
    return Chat.query.filter(
        db.or_(Chat.user1_id == session.user_id, Chat.user2_id == session.user_id)
    ).order_by(Chat.updated_at.desc()).all()


def _clean_attachment(attachment):
    if attachment is None:
        return None
    if not isinstance(attachment, dict):
        raise ValidationFailed('attachment must be an object')

    url = attachment.get('url')
    if not url or not isinstance(url, str):
        raise ValidationFailed('attachment.url is required')

    size = attachment.get('size')
    if size is not None:
        if isinstance(size, bool) or not isinstance(size, int) or size < 0:
            raise ValidationFailed('attachment.size must be a non-negative integer')
        if size > ATTACHMENT_MAX_SIZE:
            raise ValidationFailed('File too large. Maximum size: 5MB')

    return {
        'attachment_name': attachment.get('name') or url.rsplit('/', 1)[-1],
        'attachment_type': attachment.get('type'),
        'attachment_url': url,
        'attachment_size': size,
    }


def send_message(session, chat, content='', attachment=None):
    """Store a message from the session user to the other participant."""
    if not chat.has_participant(session.user_id):
        raise PermissionDenied('Access denied')

    if content is None:
        content = ''
    if not isinstance(content, str):
        raise ValidationFailed('content must be a string')
    content = content.strip()

    attachment_fields = _clean_attachment(attachment)

    if not content and not attachment_fields:
        raise ValidationFailed('Message content is required')
    if len(content) > MESSAGE_MAX_LENGTH:
        raise ValidationFailed(f'Message too long (max {MESSAGE_MAX_LENGTH} characters)')

    receiver_id = chat.user2_id if chat.user1_id == session.user_id else chat.user1_id
    message = Message(
        chat_id=chat.id,
        sender_id=session.user_id,
        receiver_id=receiver_id,
        content=content,
        read=False,
        **(attachment_fields or {})
    )
    db.session.add(message)
    chat.updated_at = datetime.utcnow()
    db.session.commit()

    logger.info(f'Message {message.id} sent in chat {chat.id} by user {session.user_id}')
    realtime.publish_change('messages', realtime.INSERT, message.to_dict(), [
        realtime.chat_room(chat.id),
        realtime.user_room(receiver_id),
    ])
    return message


def get_messages(session, chat):
    """All messages oldest first; marks the ones addressed to the caller read."""
    if not chat.has_participant(session.user_id):
        raise PermissionDenied('Access denied')

    marked = Message.query.filter(
        Message.chat_id == chat.id,
        Message.receiver_id == session.user_id,
        Message.read.is_(False)
    ).update({'read': True, 'updated_at': datetime.utcnow()}, synchronize_session=False)
    db.session.commit()

    if marked:
        logger.debug(f'Marked {marked} message(s) read in chat {chat.id} for user {session.user_id}')

    return chat.messages.order_by(Message.created_at.asc(), Message.id.asc()).all()


def unread_count(session):
    return Message.query.filter(
        Message.receiver_id == session.user_id,
        Message.read.is_(False)
    ).count()
