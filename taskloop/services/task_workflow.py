"""Task lifecycle: create, edit, cancel, apply, approve, verify, rate.

    active, no doer
      -> doer assigned (approve; codes generated, flags reset)
      -> each side enters the other's code (verified flags)
      -> each side rates the other (rated flags, reputation updated)
      -> completed (closed_reason='fulfilled')

    active, no doer -> completed (cancel; closed_reason='withdrawn')

Each operation is one database transaction and commits before returning.
Multi-row transitions (approve, rate) lock the rows they read so concurrent
requests cannot interleave between the check and the write.
"""

from datetime import datetime
import logging
import secrets

from sqlalchemy.exc import IntegrityError

from taskloop import db
from taskloop.constants import (
    MAX_ACTIVE_TASKS,
    VERIFICATION_CODE_LENGTH,
    TASK_STATUS_ACTIVE,
    TASK_STATUS_COMPLETED,
    CLOSED_FULFILLED,
    CLOSED_WITHDRAWN,
    APPLICATION_PENDING,
    APPLICATION_APPROVED,
    APPLICATION_REJECTED,
)
from taskloop.models import Task, TaskApplication, Rating, UserRating
from taskloop.services import realtime
from taskloop.services.errors import (
    ValidationFailed,
    PermissionDenied,
    NotFound,
    Conflict,
)
from taskloop.utils.validators import validate_task_data, validate_rating

logger = logging.getLogger(__name__)


def generate_verification_code():
    """Random 6-digit numeric code, never starting with 0."""
    low = 10 ** (VERIFICATION_CODE_LENGTH - 1)
    return str(low + secrets.randbelow(9 * low))


def get_task(task_id, lock=False):
    query = Task.query.filter_by(id=task_id)
    if lock:
        query = query.with_for_update()
    task = query.first()
    if not task:
        raise NotFound('Task not found')
    return task


def get_application(application_id, lock=False):
    query = TaskApplication.query.filter_by(id=application_id)
    if lock:
        query = query.with_for_update()
    application = query.first()
    if not application:
        raise NotFound('Application not found')
    return application


def _require_creator(task, session, action):
    if task.creator_id != session.user_id:
        raise PermissionDenied(f'Only the task creator can {action}')


def _require_open(task):
    """Active and nobody assigned yet."""
    if task.status != TASK_STATUS_ACTIVE or task.is_assigned:
        raise Conflict('Task is no longer open', reason='task_not_open')


def _publish_application(application, change_type=realtime.UPDATE):
    record = application.to_dict()
    realtime.publish_change('task_applications', change_type, record, [
        realtime.user_room(application.applicant_id),
        realtime.user_room(application.task.creator_id),
    ])


# ---------------------------------------------------------------------------
# Creator operations
# ---------------------------------------------------------------------------

def create_task(session, data, now=None):
    cleaned = validate_task_data(data, now=now)

    active_count = Task.query.filter_by(
        creator_id=session.user_id,
        status=TASK_STATUS_ACTIVE
    ).count()
    if active_count >= MAX_ACTIVE_TASKS:
        raise Conflict(
            f'You can only have {MAX_ACTIVE_TASKS} active tasks at a time',
            reason='task_limit_reached'
        )

    task = Task(
        creator_id=session.user_id,
        status=TASK_STATUS_ACTIVE,
        is_requestor_verified=False,
        is_doer_verified=False,
        is_requestor_rated=False,
        is_doer_rated=False,
        **cleaned
    )
    db.session.add(task)
    db.session.commit()

    logger.info(f'Task {task.id} created by user {session.user_id} (reward {task.reward})')
    realtime.publish_task_change(task, realtime.INSERT)
    return task


def update_task(session, task_id, data, now=None):
    task = get_task(task_id, lock=True)
    _require_creator(task, session, 'edit this task')
    if task.status != TASK_STATUS_ACTIVE or task.is_assigned:
        raise Conflict('Only active tasks without a doer can be edited', reason='task_not_open')

    cleaned = validate_task_data(data, partial=True, now=now)
    if not cleaned:
        raise ValidationFailed('No fields to update')

    for field, value in cleaned.items():
        setattr(task, field, value)
    db.session.commit()

    logger.info(f'Task {task.id} edited by creator: {sorted(cleaned)}')
    realtime.publish_task_change(task)
    return task


def cancel_task(session, task_id):
    """Withdraw a task before anyone is assigned.

    The task ends as ``completed`` with ``closed_reason='withdrawn'``, so it
    can never be mistaken for a fulfilled one. Pending applications are
    rejected.
    """
    task = get_task(task_id, lock=True)
    _require_creator(task, session, 'cancel this task')
    if task.status != TASK_STATUS_ACTIVE:
        raise Conflict('Task is not active', reason='task_not_active')
    if task.is_assigned:
        raise Conflict('Task already has a doer and cannot be cancelled', reason='task_assigned')

    pending = TaskApplication.query.filter_by(
        task_id=task.id,
        status=APPLICATION_PENDING
    ).all()
    for application in pending:
        application.status = APPLICATION_REJECTED

    task.status = TASK_STATUS_COMPLETED
    task.closed_reason = CLOSED_WITHDRAWN
    task.completed_at = datetime.utcnow()
    db.session.commit()

    logger.info(f'Task {task.id} cancelled by creator, {len(pending)} pending application(s) rejected')
    realtime.publish_task_change(task)
    for application in pending:
        _publish_application(application)
    return task


# ---------------------------------------------------------------------------
# Applications
# ---------------------------------------------------------------------------

def apply_to_task(session, task_id, message=''):
    task = get_task(task_id)
    _require_open(task)

    if task.creator_id == session.user_id:
        raise ValidationFailed('You cannot apply to your own task')

    if message is None:
        message = ''
    if not isinstance(message, str):
        raise ValidationFailed('message must be a string')

    existing_application = TaskApplication.query.filter_by(
        task_id=task_id,
        applicant_id=session.user_id
    ).first()
    if existing_application:
        raise Conflict('You have already applied to this task', reason='duplicate_application')

    application = TaskApplication(
        task_id=task_id,
        applicant_id=session.user_id,
        message=message.strip(),
        status=APPLICATION_PENDING
    )
    db.session.add(application)
    try:
        db.session.commit()
    except IntegrityError:
        # Lost a race with a concurrent apply from the same user
        db.session.rollback()
        raise Conflict('You have already applied to this task', reason='duplicate_application')

    logger.info(f'User {session.user_id} applied to task {task_id} (application {application.id})')
    _publish_application(application, realtime.INSERT)
    return application


def withdraw_application(session, application_id):
    application = get_application(application_id)

    if application.applicant_id != session.user_id:
        raise PermissionDenied('Only the applicant can withdraw this application')
    if application.status != APPLICATION_PENDING:
        raise Conflict('Only pending applications can be withdrawn', reason='application_processed')

    record = application.to_dict()
    rooms = [realtime.user_room(application.applicant_id), realtime.user_room(application.task.creator_id)]
    db.session.delete(application)
    db.session.commit()

    logger.info(f'Application {application_id} withdrawn by user {session.user_id}')
    realtime.publish_change('task_applications', realtime.DELETE, record, rooms)


def approve_application(session, application_id):
    """Assign the applicant as doer and reject every other pending application."""
    application = get_application(application_id, lock=True)
    task = get_task(application.task_id, lock=True)

    _require_creator(task, session, 'approve applications')
    if application.status != APPLICATION_PENDING:
        raise Conflict('Application has already been processed', reason='application_processed')
    _require_open(task)

    task.doer_id = application.applicant_id
    task.requestor_verification_code = generate_verification_code()
    task.doer_verification_code = generate_verification_code()
    task.is_requestor_verified = False
    task.is_doer_verified = False
    task.is_requestor_rated = False
    task.is_doer_rated = False

    application.status = APPLICATION_APPROVED

    siblings = TaskApplication.query.filter(
        TaskApplication.task_id == task.id,
        TaskApplication.id != application.id,
        TaskApplication.status == APPLICATION_PENDING
    ).all()
    for other in siblings:
        other.status = APPLICATION_REJECTED

    db.session.commit()

    logger.info(
        f'Task {task.id}: application {application.id} approved, doer {task.doer_id}, '
        f'{len(siblings)} other application(s) rejected'
    )
    realtime.publish_task_change(task)
    for changed in [application] + siblings:
        _publish_application(changed)
    return task, application


def reject_application(session, application_id):
    application = get_application(application_id, lock=True)
    task = application.task

    _require_creator(task, session, 'reject applications')
    if application.status != APPLICATION_PENDING:
        raise Conflict('Application has already been processed', reason='application_processed')

    application.status = APPLICATION_REJECTED
    db.session.commit()

    logger.info(f'Application {application.id} on task {task.id} rejected')
    _publish_application(application)
    return application


# ---------------------------------------------------------------------------
# Completion handshake
# ---------------------------------------------------------------------------

def _require_party(task, session):
    role = task.role_of(session.user_id)
    if role is None:
        raise PermissionDenied('You are not involved in this task')
    return role


def verify_code(session, task_id, code):
    """Check the code the counterpart handed over.

    The doer enters the creator's (requestor) code and the creator enters the
    doer's code. Returns ``(task, verified)``; a wrong code changes nothing.
    """
    # Codes never start with 0, so a numeric code converts losslessly
    if isinstance(code, int) and not isinstance(code, bool):
        code = str(code)
    if code is None or (isinstance(code, str) and not code.strip()):
        raise ValidationFailed('code is required')
    if not isinstance(code, str):
        raise ValidationFailed('code must be a string of digits')
    code = code.strip()

    task = get_task(task_id, lock=True)
    role = _require_party(task, session)
    if not task.is_assigned:
        raise Conflict('No doer has been assigned to this task yet', reason='task_not_assigned')
    if task.status != TASK_STATUS_ACTIVE:
        raise Conflict('Task is not active', reason='task_not_active')

    expected = task.requestor_verification_code if role == 'doer' else task.doer_verification_code
    if not expected or not secrets.compare_digest(code.encode(), expected.encode()):
        logger.info(f'Task {task.id}: wrong verification code from {role} {session.user_id}')
        return task, False

    if role == 'doer':
        task.is_doer_verified = True
    else:
        task.is_requestor_verified = True
    db.session.commit()

    logger.info(f'Task {task.id}: {role} verified')
    realtime.publish_task_change(task)
    return task, True


def submit_rating(session, task_id, score):
    """Rate the counterpart once both sides are verified.

    Returns ``(task, rating, created)``. A repeat submission for the same
    task and role returns the stored rating with ``created=False`` and
    changes nothing.
    """
    score = validate_rating(score)

    task = get_task(task_id, lock=True)
    role = _require_party(task, session)

    # doer rates the creator, creator rates the doer
    is_for_creator = role == 'doer'
    rated_id = task.creator_id if is_for_creator else task.doer_id

    existing = Rating.query.filter_by(
        task_id=task.id,
        rater_id=session.user_id,
        is_for_creator=is_for_creator
    ).first()
    if existing:
        logger.info(f'Task {task.id}: duplicate rating from {role} {session.user_id} ignored')
        return task, existing, False

    if task.status != TASK_STATUS_ACTIVE:
        raise Conflict('Task is not active', reason='task_not_active')
    if not task.is_fully_verified:
        raise Conflict('Both parties must verify the task before rating', reason='not_verified')

    # Lock the summary before adding the rating so no autoflush inserts it
    # ahead of the commit below
    summary = UserRating.query.filter_by(user_id=rated_id).with_for_update().first()
    if summary is None:
        summary = UserRating(user_id=rated_id)
        db.session.add(summary)

    rating = Rating(
        task_id=task.id,
        rater_id=session.user_id,
        rated_id=rated_id,
        rating=score,
        is_for_creator=is_for_creator
    )
    db.session.add(rating)
    summary.add_rating(score, as_creator=is_for_creator)

    if role == 'doer':
        task.is_doer_rated = True
    else:
        task.is_requestor_rated = True

    if task.is_fully_rated:
        task.status = TASK_STATUS_COMPLETED
        task.closed_reason = CLOSED_FULFILLED
        task.completed_at = datetime.utcnow()

    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        existing = Rating.query.filter_by(
            task_id=task_id,
            rater_id=session.user_id,
            is_for_creator=is_for_creator
        ).first()
        if existing:
            return get_task(task_id), existing, False
        raise Conflict('Rating could not be saved, please try again', reason='rating_conflict')

    logger.info(f'Task {task.id}: {role} {session.user_id} rated user {rated_id} {score} stars')
    if task.status == TASK_STATUS_COMPLETED:
        logger.info(f'Task {task.id} completed')
    realtime.publish_task_change(task)
    return task, rating, True


def find_task_needing_rating(session):
    """First verified task the caller still has to rate, or None."""
    return Task.query.filter(
        Task.status == TASK_STATUS_ACTIVE,
        Task.is_requestor_verified.is_(True),
        Task.is_doer_verified.is_(True),
        db.or_(
            db.and_(Task.doer_id == session.user_id, Task.is_doer_rated.is_(False)),
            db.and_(Task.creator_id == session.user_id, Task.is_requestor_rated.is_(False))
        )
    ).order_by(Task.updated_at.asc()).first()


def share_verification_code(session, task_id):
    """Send the caller's own code to the counterpart as a chat message."""
    from taskloop.services import chat as chat_service

    task = get_task(task_id)
    role = _require_party(task, session)
    if not task.is_assigned:
        raise Conflict('No doer has been assigned to this task yet', reason='task_not_assigned')

    if role == 'creator':
        code, partner_id = task.requestor_verification_code, task.doer_id
    else:
        code, partner_id = task.doer_verification_code, task.creator_id

    chat, _ = chat_service.get_or_create_chat(session.user_id, partner_id)
    message = chat_service.send_message(
        session,
        chat,
        content=f'My verification code for task "{task.title}" is: {code}'
    )
    logger.info(f'Task {task.id}: {role} shared verification code via chat {chat.id}')
    return chat, message
