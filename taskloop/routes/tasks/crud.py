"""Basic CRUD operations for tasks."""

from flask import request, jsonify
from sqlalchemy.orm import joinedload
import logging

from taskloop import db
from taskloop.constants import TASK_STATUS_ACTIVE
from taskloop.models import Task, TaskApplication
from taskloop.routes.tasks import tasks_bp
from taskloop.services import task_workflow
from taskloop.services.cleanup import delete_expired_tasks_safe
from taskloop.utils import token_required, token_optional

logger = logging.getLogger(__name__)

DEFAULT_PER_PAGE = 20
MAX_PER_PAGE = 100


def get_pagination_args():
    page = max(request.args.get('page', 1, type=int), 1)
    per_page = request.args.get('per_page', DEFAULT_PER_PAGE, type=int)
    per_page = min(max(per_page, 1), MAX_PER_PAGE)
    return page, per_page


@tasks_bp.route('', methods=['GET'])
@token_optional
def list_tasks(session):
    """Active tasks, newest first.

    Expired tasks are purged before listing. A signed-in caller does not see
    their own tasks or tasks they already applied to.

    Query params:
        search: case-insensitive match on title, description or location
        page, per_page: pagination
    """
    delete_expired_tasks_safe()

    page, per_page = get_pagination_args()
    search = (request.args.get('search') or '').strip()

    query = Task.query.options(
        joinedload(Task.creator)
    ).filter(Task.status == TASK_STATUS_ACTIVE)

    if session.is_authenticated:
        applied_task_ids = db.select(TaskApplication.task_id).where(
            TaskApplication.applicant_id == session.user_id
        )
        query = query.filter(
            Task.creator_id != session.user_id,
            Task.id.notin_(applied_task_ids)
        )

    if search:
        pattern = f'%{search}%'
        query = query.filter(db.or_(
            Task.title.ilike(pattern),
            Task.description.ilike(pattern),
            Task.location.ilike(pattern)
        ))

    tasks = query.order_by(Task.created_at.desc(), Task.id.desc()).paginate(
        page=page, per_page=per_page, error_out=False
    )

    return jsonify({
        'tasks': [task.to_dict(viewer_id=session.user_id) for task in tasks.items],
        'total': tasks.total,
        'page': page,
        'per_page': per_page,
        'has_more': tasks.has_next
    }), 200


@tasks_bp.route('/<int:task_id>', methods=['GET'])
@token_optional
def get_task(session, task_id):
    """Task detail. Verification codes are only included for their owner."""
    task = task_workflow.get_task(task_id)
    return jsonify({'task': task.to_dict(viewer_id=session.user_id)}), 200


@tasks_bp.route('', methods=['POST'])
@token_required
def create_task(session):
    """Create a new task.

    Body: title, description, location, reward, deadline (ISO), task_type
    """
    try:
        task = task_workflow.create_task(session, request.get_json(silent=True))
    except Exception:
        db.session.rollback()
        raise

    return jsonify({
        'message': 'Task created successfully',
        'task': task.to_dict(viewer_id=session.user_id)
    }), 201


@tasks_bp.route('/<int:task_id>', methods=['PUT'])
@token_required
def update_task(session, task_id):
    """Edit a task that nobody has been assigned to yet (creator only)."""
    try:
        task = task_workflow.update_task(session, task_id, request.get_json(silent=True))
    except Exception:
        db.session.rollback()
        raise

    return jsonify({
        'message': 'Task updated successfully',
        'task': task.to_dict(viewer_id=session.user_id)
    }), 200
