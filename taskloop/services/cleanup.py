"""Removal of tasks whose deadline passed while still active."""

from datetime import datetime
import logging

from taskloop import db
from taskloop.constants import TASK_STATUS_ACTIVE
from taskloop.models import Task

logger = logging.getLogger(__name__)


def delete_expired_tasks(now=None):
    """Delete every active task past its deadline, with its applications.

    Returns the number of tasks deleted. Commits its own transaction so it can
    run before a listing query or from the CLI.
    """
    now = now or datetime.utcnow()

    expired = Task.query.filter(
        Task.status == TASK_STATUS_ACTIVE,
        Task.deadline < now
    ).all()

    if not expired:
        return 0

    expired_ids = [task.id for task in expired]

    try:
        for task in expired:
            # applications and ratings go with the task (delete-orphan cascade)
            db.session.delete(task)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    logger.info(f'Deleted {len(expired_ids)} expired task(s): {expired_ids}')
    return len(expired_ids)


def delete_expired_tasks_safe(now=None):
    """Opportunistic cleanup before listings; a failure must not break the listing."""
    try:
        return delete_expired_tasks(now)
    except Exception as e:
        logger.error(f'Expired task cleanup failed (non-critical): {e}', exc_info=True)
        return 0
