"""Task lifecycle routes: cancel, verification codes, ratings."""

from flask import request, jsonify

from taskloop import db
from taskloop.routes.tasks import tasks_bp
from taskloop.services import task_workflow
from taskloop.utils import token_required


@tasks_bp.route('/<int:task_id>/cancel', methods=['POST'])
@token_required
def cancel_task(session, task_id):
    """Withdraw an unassigned task (creator only)."""
    try:
        task = task_workflow.cancel_task(session, task_id)
    except Exception:
        db.session.rollback()
        raise

    return jsonify({
        'message': 'Task cancelled',
        'task': task.to_dict(viewer_id=session.user_id)
    }), 200


@tasks_bp.route('/<int:task_id>/verify', methods=['POST'])
@token_required
def verify_task(session, task_id):
    """Submit the counterpart's verification code.

    Body: {"code": "123456"}

    A wrong code answers 200 with ``verified: false`` so the client can let
    the user try again.
    """
    data = request.get_json(silent=True) or {}
    try:
        task, verified = task_workflow.verify_code(session, task_id, data.get('code'))
    except Exception:
        db.session.rollback()
        raise

    return jsonify({
        'verified': verified,
        'message': 'Task verified' if verified else 'Invalid verification code',
        'task': task.to_dict(viewer_id=session.user_id)
    }), 200


@tasks_bp.route('/<int:task_id>/rate', methods=['POST'])
@token_required
def rate_task(session, task_id):
    """Rate the other party of a verified task.

    Body: {"rating": 1-5}
    """
    data = request.get_json(silent=True) or {}
    try:
        task, rating, created = task_workflow.submit_rating(session, task_id, data.get('rating'))
    except Exception:
        db.session.rollback()
        raise

    return jsonify({
        'message': 'Rating submitted' if created else 'You have already rated this task',
        'already_rated': not created,
        'rating': rating.to_dict(),
        'task': task.to_dict(viewer_id=session.user_id)
    }), 201 if created else 200


@tasks_bp.route('/<int:task_id>/share-code', methods=['POST'])
@token_required
def share_code(session, task_id):
    """Send the caller's own verification code to the other party by chat."""
    try:
        chat, message = task_workflow.share_verification_code(session, task_id)
    except Exception:
        db.session.rollback()
        raise

    return jsonify({
        'message': 'Verification code sent',
        'chat_id': chat.id,
        'chat_message': message.to_dict()
    }), 201


@tasks_bp.route('/pending-rating', methods=['GET'])
@token_required
def pending_rating(session):
    """The verified task the caller still has to rate, if any."""
    task = task_workflow.find_task_needing_rating(session)
    return jsonify({
        'task': task.to_dict(viewer_id=session.user_id) if task else None
    }), 200
