"""User-specific task query routes (my tasks, history)."""

from flask import jsonify
from sqlalchemy.orm import joinedload

from taskloop import db
from taskloop.constants import TASK_STATUS_COMPLETED, APPLICATION_PENDING
from taskloop.models import Task, TaskApplication
from taskloop.routes.tasks import tasks_bp
from taskloop.services.cleanup import delete_expired_tasks_safe
from taskloop.utils import token_required


@tasks_bp.route('/my', methods=['GET'])
@token_required
def get_my_tasks(session):
    """Tasks the caller created (with applications) and tasks they applied to."""
    delete_expired_tasks_safe()

    created_tasks = Task.query.options(
        joinedload(Task.doer)
    ).filter(
        Task.creator_id == session.user_id
    ).order_by(Task.created_at.desc(), Task.id.desc()).all()

    created = []
    for task in created_tasks:
        task_dict = task.to_dict(viewer_id=session.user_id)
        applications = sorted(task.applications, key=lambda a: a.created_at, reverse=True)
        task_dict['applications'] = [application.to_dict() for application in applications]
        task_dict['pending_applications_count'] = sum(
            1 for application in applications if application.status == APPLICATION_PENDING
        )
        created.append(task_dict)

    my_applications = TaskApplication.query.options(
        joinedload(TaskApplication.task)
    ).filter(
        TaskApplication.applicant_id == session.user_id
    ).order_by(TaskApplication.created_at.desc()).all()

    applied = []
    for application in my_applications:
        task_dict = application.task.to_dict(viewer_id=session.user_id)
        task_dict['application_id'] = application.id
        task_dict['application_status'] = application.status
        applied.append(task_dict)

    return jsonify({
        'created': created,
        'applied': applied
    }), 200


@tasks_bp.route('/history', methods=['GET'])
@token_required
def get_task_history(session):
    """Completed tasks where the caller was creator or doer."""
    tasks = Task.query.filter(
        Task.status == TASK_STATUS_COMPLETED,
        db.or_(Task.creator_id == session.user_id, Task.doer_id == session.user_id)
    ).order_by(Task.completed_at.desc(), Task.id.desc()).all()

    history = []
    for task in tasks:
        task_dict = task.to_dict(viewer_id=session.user_id)
        task_dict['role'] = task.role_of(session.user_id)
        history.append(task_dict)

    return jsonify({
        'tasks': history,
        'total': len(history)
    }), 200
