"""Realtime change feed over Socket.IO.

Every write the clients care about is published as a ``change`` event:

    {'table': 'messages', 'type': 'INSERT', 'record': {...}, 'version': '...'}

``version`` is the record's ``updated_at``. Clients keep one cache keyed by
record id and apply events as upserts, keeping whichever copy has the newer
version, so duplicate or reordered events are harmless.

Publishing is best effort: failures are logged and never fail the request
that caused them.
"""

import logging
from taskloop import socketio

logger = logging.getLogger(__name__)

INSERT = 'INSERT'
UPDATE = 'UPDATE'
DELETE = 'DELETE'


def user_room(user_id):
    return f'user_{user_id}'


def chat_room(chat_id):
    return f'chat_{chat_id}'


def build_change(table, change_type, record):
    return {
        'table': table,
        'type': change_type,
        'record': record,
        'version': record.get('updated_at') or record.get('created_at'),
    }


def publish_change(table, change_type, record, rooms):
    """Emit one change event to each room. Returns the number of rooms reached."""
    payload = build_change(table, change_type, record)
    reached = 0
    for room in dict.fromkeys(rooms):  # de-duplicate, keep order
        try:
            socketio.emit('change', payload, to=room)
            reached += 1
        except Exception as e:
            logger.error(f'Realtime emit to {room} failed (non-critical): {e}')
    logger.debug(f'Published {change_type} on {table} to {reached} room(s)')
    return reached


def publish_task_change(task, change_type=UPDATE):
    """Tell both parties of a task that it changed.

    Each party gets its own serialization so codes only reach their owner.
    """
    publish_change('tasks', change_type, task.to_dict(viewer_id=task.creator_id),
                   [user_room(task.creator_id)])
    if task.doer_id:
        publish_change('tasks', change_type, task.to_dict(viewer_id=task.doer_id),
                       [user_room(task.doer_id)])
