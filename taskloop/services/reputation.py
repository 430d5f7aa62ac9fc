"""User lookups and reputation reads: ratings, statistics and the leaderboard."""

import logging

from sqlalchemy import func

from taskloop import db
from taskloop.constants import (
    TASK_STATUS_ACTIVE,
    TASK_STATUS_COMPLETED,
    CLOSED_FULFILLED,
    LEADERBOARD_SIZE,
    LEADERBOARD_ROLES,
    USER_SEARCH_LIMIT,
    USER_LEVELS,
)
from taskloop.models import User, Task, UserRating
from taskloop.services.errors import ValidationFailed, NotFound
from taskloop.utils.user_helpers import mask_username

logger = logging.getLogger(__name__)


def get_user(user_id):
    user = db.session.get(User, user_id)
    if not user:
        raise NotFound('User not found')
    return user


def get_user_by_username(username):
    """Case-insensitive exact username match."""
    if not isinstance(username, str) or not username.strip():
        raise ValidationFailed('username is required')
    user = User.query.filter(func.lower(User.username) == username.strip().lower()).first()
    if not user:
        raise NotFound('No user found with that username')
    return user


def search_users(term, exclude_user_id=None, limit=USER_SEARCH_LIMIT):
    """Users whose username contains ``term``, case-insensitively."""
    term = (term or '').strip()
    if not term:
        raise ValidationFailed('Please enter a username to search')

    query = User.query.filter(User.username.ilike(f'%{term}%'))
    if exclude_user_id is not None:
        query = query.filter(User.id != exclude_user_id)
    return query.order_by(User.username.asc()).limit(limit).all()


def get_user_ratings(user_id):
    return get_user(user_id).ratings_dict()


def _fulfilled():
    return db.and_(Task.status == TASK_STATUS_COMPLETED, Task.closed_reason == CLOSED_FULFILLED)


def leaderboard(role, limit=LEADERBOARD_SIZE):
    """Top users for a role by total reward of fulfilled tasks.

    Ties are broken by the user's rating in that role. Users with no
    fulfilled task in the role are not listed.
    """
    if role not in LEADERBOARD_ROLES:
        raise ValidationFailed(f'role must be one of: {", ".join(LEADERBOARD_ROLES)}')

    if role == 'creator':
        user_column = Task.creator_id
        rating_column = UserRating.creator_rating
    else:
        user_column = Task.doer_id
        rating_column = UserRating.doer_rating

    total_reward = func.sum(Task.reward).label('total_reward')
    task_count = func.count(Task.id).label('task_count')
    rating = func.coalesce(rating_column, 0.0).label('rating')

    rows = db.session.query(
        User.id,
        User.username,
        total_reward,
        task_count,
        rating,
    ).join(
        Task, user_column == User.id
    ).outerjoin(
        UserRating, UserRating.user_id == User.id
    ).filter(
        _fulfilled()
    ).group_by(
        User.id, User.username, rating_column
    ).order_by(
        total_reward.desc(), rating.desc(), User.id.asc()
    ).limit(limit).all()

    return [
        {
            'rank': position,
            'user_id': row.id,
            'username': mask_username(row.username),
            'total_reward': int(row.total_reward or 0),
            'rating': round(float(row.rating or 0.0), 2),
            'completed_tasks': row.task_count,
        }
        for position, row in enumerate(rows, start=1)
    ]


def get_level(completed_tasks):
    """Return (level, badge, next_threshold) for a completed-task count."""
    completed_tasks = max(completed_tasks, 0)
    next_threshold = None
    for threshold, level, badge in USER_LEVELS:
        if completed_tasks >= threshold:
            return level, badge, next_threshold
        next_threshold = threshold


def level_progress(completed_tasks):
    """Percent of the way from the current level to the next one."""
    level, _, next_threshold = get_level(completed_tasks)
    if next_threshold is None:
        return 100
    current_threshold = next(t for t, name, _ in USER_LEVELS if name == level)
    span = next_threshold - current_threshold
    return round((completed_tasks - current_threshold) * 100 / span)


def user_statistics(user_id):
    user = get_user(user_id)

    tasks_created = Task.query.filter(Task.creator_id == user.id).count()
    tasks_closed_as_creator = Task.query.filter(Task.creator_id == user.id, _fulfilled()).count()
    tasks_completed_as_doer = Task.query.filter(Task.doer_id == user.id, _fulfilled()).count()
    tasks_in_progress = Task.query.filter(
        Task.doer_id == user.id,
        Task.status == TASK_STATUS_ACTIVE
    ).count()

    completion_rate = round(tasks_closed_as_creator * 100 / tasks_created) if tasks_created else 0
    level, badge, next_threshold = get_level(tasks_completed_as_doer)

    return {
        'user_id': user.id,
        'username': user.username,
        'tasks_created': tasks_created,
        'tasks_closed_as_creator': tasks_closed_as_creator,
        'tasks_completed_as_doer': tasks_completed_as_doer,
        'tasks_in_progress': tasks_in_progress,
        'completion_rate': completion_rate,
        'member_since': user.created_at.isoformat(),
        'ratings': user.ratings_dict(),
        'level': level,
        'badge': badge,
        'next_level_at': next_threshold,
        'level_progress': level_progress(tasks_completed_as_doer),
    }
