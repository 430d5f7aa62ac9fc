"""Socket.IO events: authenticated connections and room membership.

Each connection joins ``user_<id>`` for its own user; chat participants may
also join ``chat_<id>``. The server only pushes ``change`` events (see
``taskloop.services.realtime``); clients never write through the socket.
"""

from flask import request
from flask_socketio import emit, join_room, leave_room
import logging

from taskloop import db
from taskloop.models import Chat
from taskloop.services.realtime import user_room, chat_room
from taskloop.utils import session_from_token

logger = logging.getLogger(__name__)

# socket id -> user id for live connections
connected_users = {}


def register_socket_events(socketio):
    """Register all Socket.IO event handlers."""

    @socketio.on('connect')
    def handle_connect(auth=None):
        """Accept the connection only with a valid token (auth.token or ?token=)."""
        token = None
        if auth and isinstance(auth, dict):
            token = auth.get('token')
        if not token:
            token = request.args.get('token')

        if not token:
            logger.warning('Socket connection without token')
            return False

        session = session_from_token(token)
        if not session.is_authenticated:
            logger.warning(f'Socket connection with {session.state} token')
            return False

        connected_users[request.sid] = session.user_id
        join_room(user_room(session.user_id))

        logger.info(f'User {session.user_id} connected: {request.sid}')
        emit('connected', {'user_id': session.user_id})
        return True

    @socketio.on('disconnect')
    def handle_disconnect(*args):
        user_id = connected_users.pop(request.sid, None)
        if user_id:
            logger.info(f'User {user_id} disconnected: {request.sid}')

    @socketio.on('join_chat')
    def handle_join_chat(data):
        """Join a chat room after checking the user takes part in it."""
        user_id = connected_users.get(request.sid)
        chat_id = (data or {}).get('chat_id')

        if not user_id or not chat_id:
            emit('error', {'message': 'Missing chat_id or not authenticated'})
            return

        chat = db.session.get(Chat, chat_id)
        if not chat:
            emit('error', {'message': 'Chat not found'})
            return

        if not chat.has_participant(user_id):
            emit('error', {'message': 'Access denied'})
            return

        join_room(chat_room(chat_id))
        logger.info(f'User {user_id} joined chat {chat_id}')
        emit('joined_chat', {'chat_id': chat_id})

    @socketio.on('leave_chat')
    def handle_leave_chat(data):
        chat_id = (data or {}).get('chat_id')
        if not chat_id:
            return

        leave_room(chat_room(chat_id))
        logger.info(f'User {connected_users.get(request.sid)} left chat {chat_id}')
        emit('left_chat', {'chat_id': chat_id})
