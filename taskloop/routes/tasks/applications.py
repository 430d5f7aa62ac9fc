"""Task application routes (apply, list, approve, reject, withdraw)."""

from flask import request, jsonify

from taskloop import db
from taskloop.models import TaskApplication
from taskloop.routes.tasks import tasks_bp
from taskloop.services import task_workflow
from taskloop.services.errors import PermissionDenied
from taskloop.utils import token_required


@tasks_bp.route('/<int:task_id>/apply', methods=['POST'])
@token_required
def apply_to_task(session, task_id):
    """Apply to a task (doer submits application)."""
    data = request.get_json(silent=True) or {}
    try:
        application = task_workflow.apply_to_task(session, task_id, data.get('message', ''))
    except Exception:
        db.session.rollback()
        raise

    return jsonify({
        'message': 'Application submitted successfully',
        'application': application.to_dict()
    }), 201


@tasks_bp.route('/<int:task_id>/applications', methods=['GET'])
@token_required
def get_task_applications(session, task_id):
    """Get all applications for a task (only task creator can view)."""
    task = task_workflow.get_task(task_id)
    if task.creator_id != session.user_id:
        raise PermissionDenied('Only the task creator can view applications')

    applications = TaskApplication.query.filter_by(task_id=task_id).order_by(
        TaskApplication.created_at.desc()
    ).all()

    return jsonify({
        'applications': [application.to_dict() for application in applications],
        'total': len(applications)
    }), 200


@tasks_bp.route('/applications/<int:application_id>/approve', methods=['POST'])
@token_required
def approve_application(session, application_id):
    """Approve an application: the applicant becomes the doer."""
    try:
        task, application = task_workflow.approve_application(session, application_id)
    except Exception:
        db.session.rollback()
        raise

    return jsonify({
        'message': 'Application approved',
        'task': task.to_dict(viewer_id=session.user_id),
        'application': application.to_dict()
    }), 200


@tasks_bp.route('/applications/<int:application_id>/reject', methods=['POST'])
@token_required
def reject_application(session, application_id):
    try:
        application = task_workflow.reject_application(session, application_id)
    except Exception:
        db.session.rollback()
        raise

    return jsonify({
        'message': 'Application rejected',
        'application': application.to_dict()
    }), 200


@tasks_bp.route('/applications/<int:application_id>', methods=['DELETE'])
@token_required
def withdraw_application(session, application_id):
    """Withdraw a pending application (applicant only)."""
    try:
        task_workflow.withdraw_application(session, application_id)
    except Exception:
        db.session.rollback()
        raise

    return jsonify({'message': 'Application withdrawn'}), 200
