"""Chat routes for user-to-user communication."""

from flask import Blueprint, request, jsonify
import logging

from taskloop import db
from taskloop.services import chat as chat_service
from taskloop.services import reputation
from taskloop.services import storage
from taskloop.services.errors import ValidationFailed
from taskloop.utils import token_required

chats_bp = Blueprint('chats', __name__)
logger = logging.getLogger(__name__)


@chats_bp.route('', methods=['GET'])
@token_required
def get_chats(session):
    """Get all chats for the current user, most recently active first."""
    chats = chat_service.list_chats(session)
    return jsonify({
        'chats': [chat.to_dict(session.user_id) for chat in chats],
        'total': len(chats)
    }), 200


@chats_bp.route('', methods=['POST'])
@token_required
def create_chat(session):
    """Create a chat with another user or return the existing one.

    Body: {"user_id": <other user>} or {"username": "<other user>"}
    """
    data = request.get_json(silent=True) or {}
    other_user_id = data.get('user_id')

    if other_user_id is None and data.get('username') is not None:
        other_user_id = reputation.get_user_by_username(data['username']).id

    if not isinstance(other_user_id, int) or isinstance(other_user_id, bool):
        raise ValidationFailed('user_id or username is required')

    try:
        chat, created = chat_service.get_or_create_chat(session.user_id, other_user_id)
    except Exception:
        db.session.rollback()
        raise

    return jsonify({
        'chat': chat.to_dict(session.user_id),
        'existing': not created
    }), 201 if created else 200


@chats_bp.route('/<int:chat_id>/messages', methods=['GET'])
@token_required
def get_messages(session, chat_id):
    """Get all messages in a chat and mark the caller's unread ones read."""
    try:
        chat = chat_service.get_chat_for_participant(session, chat_id)
        messages = chat_service.get_messages(session, chat)
    except Exception:
        db.session.rollback()
        raise

    return jsonify({
        'messages': [message.to_dict() for message in messages],
        'total': len(messages)
    }), 200


@chats_bp.route('/<int:chat_id>/messages', methods=['POST'])
@token_required
def send_message(session, chat_id):
    """Send a message in a chat.

    Body: {"content": "...", "attachment": {"name", "type", "url", "size"}}
    """
    data = request.get_json(silent=True) or {}
    try:
        chat = chat_service.get_chat_for_participant(session, chat_id)
        message = chat_service.send_message(
            session,
            chat,
            content=data.get('content', ''),
            attachment=data.get('attachment')
        )
    except Exception:
        db.session.rollback()
        raise

    return jsonify({'message': message.to_dict()}), 201


@chats_bp.route('/unread-count', methods=['GET'])
@token_required
def get_unread_count(session):
    """Get total unread message count for current user."""
    return jsonify({'unread_count': chat_service.unread_count(session)}), 200


@chats_bp.route('/attachments', methods=['POST'])
@token_required
def upload_attachment(session):
    """Upload a chat attachment (multipart field ``file``, max 5MB)."""
    if 'file' not in request.files:
        raise ValidationFailed('No file provided')

    file = request.files['file']
    if not file.filename:
        raise ValidationFailed('No file selected')

    attachment = storage.upload_attachment(
        session.user_id,
        file.read(),
        file.filename,
        file.mimetype
    )
    logger.info(f'User {session.user_id} uploaded attachment to {attachment["bucket"]}')

    return jsonify({
        'message': 'File uploaded successfully',
        'attachment': attachment
    }), 201


@chats_bp.route('/attachments', methods=['DELETE'])
@token_required
def delete_attachment(session):
    """Delete one of the caller's uploads. Body: {"url": "..."}"""
    data = request.get_json(silent=True) or {}
    bucket, path = storage.delete_attachment(session.user_id, data.get('url'))
    return jsonify({
        'message': 'File deleted successfully',
        'bucket': bucket,
        'path': path
    }), 200
