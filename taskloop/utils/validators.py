"""Input validation for request payloads.

Validators take the raw JSON body and return a cleaned dict of typed values
or raise ``ValidationFailed`` naming the first offending field. Nothing is
defaulted silently: a field that is present but malformed is an error.
"""

from datetime import datetime, timezone
import re

from taskloop.constants import (
    TITLE_MAX_WORDS,
    DESCRIPTION_MAX_WORDS,
    LOCATION_MAX_WORDS,
    REWARD_MIN,
    REWARD_MAX,
    TASK_TYPES,
    RATING_MIN,
    RATING_MAX,
)
from taskloop.services.errors import ValidationFailed

EMAIL_REGEX = re.compile(r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$')

# Username validation: 3-30 chars, alphanumeric + underscores
USERNAME_REGEX = re.compile(r'^[a-zA-Z0-9_]{3,30}$')

# field -> max words
TASK_TEXT_FIELDS = {
    'title': TITLE_MAX_WORDS,
    'description': DESCRIPTION_MAX_WORDS,
    'location': LOCATION_MAX_WORDS,
}

TASK_EDITABLE_FIELDS = set(TASK_TEXT_FIELDS) | {'reward', 'deadline'}
TASK_CREATE_FIELDS = TASK_EDITABLE_FIELDS | {'task_type'}


def count_words(text):
    return len(text.split())


def parse_datetime(value, field='deadline'):
    """Parse an ISO 8601 string into a naive UTC datetime."""
    if not isinstance(value, str) or not value.strip():
        raise ValidationFailed(f'{field} is required')
    value = value.strip()
    # JavaScript's toISOString() ends in 'Z', which fromisoformat only accepts from 3.11
    if value.endswith(('Z', 'z')):
        value = value[:-1] + '+00:00'
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        raise ValidationFailed(f'Invalid {field} format. Use ISO format (YYYY-MM-DDTHH:MM)')
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def _validate_text(field, value, max_words):
    if not isinstance(value, str):
        raise ValidationFailed(f'{field} must be a string')
    value = value.strip()
    if not value:
        raise ValidationFailed(f'{field} is required')
    if count_words(value) > max_words:
        raise ValidationFailed(f'{field} must be at most {max_words} words')
    return value


def _validate_reward(value):
    # bool is an int subclass; reject it explicitly
    if isinstance(value, bool) or not isinstance(value, int):
        if isinstance(value, float) and value.is_integer():
            value = int(value)
        else:
            raise ValidationFailed('reward must be a whole number')
    if value < REWARD_MIN or value > REWARD_MAX:
        raise ValidationFailed(f'reward must be between {REWARD_MIN} and {REWARD_MAX}')
    return value


def validate_task_data(data, partial=False, now=None):
    """Validate task create (``partial=False``) or edit (``partial=True``) payloads."""
    if not isinstance(data, dict):
        raise ValidationFailed('Request body must be a JSON object')

    allowed = TASK_EDITABLE_FIELDS if partial else TASK_CREATE_FIELDS
    unknown = set(data) - allowed
    if unknown:
        raise ValidationFailed(f"Unknown fields: {', '.join(sorted(unknown))}")

    if not partial:
        missing = [f for f in ('title', 'description', 'location', 'reward', 'deadline') if f not in data]
        if missing:
            raise ValidationFailed(f"Missing required fields: {', '.join(missing)}")

    cleaned = {}
    for field, max_words in TASK_TEXT_FIELDS.items():
        if field in data:
            cleaned[field] = _validate_text(field, data[field], max_words)

    if 'reward' in data:
        cleaned['reward'] = _validate_reward(data['reward'])

    if 'deadline' in data:
        deadline = parse_datetime(data['deadline'])
        if deadline <= (now or datetime.utcnow()):
            raise ValidationFailed('deadline must be in the future')
        cleaned['deadline'] = deadline

    if not partial:
        task_type = data.get('task_type', 'normal')
        if task_type not in TASK_TYPES:
            raise ValidationFailed(f"task_type must be one of: {', '.join(TASK_TYPES)}")
        cleaned['task_type'] = task_type

    return cleaned


def validate_rating(value):
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationFailed('rating must be a whole number')
    if value < RATING_MIN or value > RATING_MAX:
        raise ValidationFailed(f'rating must be between {RATING_MIN} and {RATING_MAX}')
    return value


def validate_password(password):
    if not isinstance(password, str) or len(password) < 6:
        raise ValidationFailed('Password must be at least 6 characters')

    if len(password) > 128:
        raise ValidationFailed('Password must be less than 128 characters')
    return password


def validate_registration(data):
    """Validate a registration payload. Returns cleaned fields."""
    if not data or not all(k in data for k in ['username', 'email', 'password']):
        raise ValidationFailed('Missing required fields')

    username = str(data['username']).strip()
    email = str(data['email']).strip().lower()
    password = data['password']
    full_name = data.get('full_name')

    if not USERNAME_REGEX.match(username):
        raise ValidationFailed('Username must be 3-30 characters and contain only letters, numbers, and underscores')

    if len(email) > 254 or not EMAIL_REGEX.match(email):
        raise ValidationFailed('Invalid email format')

    validate_password(password)

    if full_name is not None:
        if not isinstance(full_name, str):
            raise ValidationFailed('full_name must be a string')
        full_name = full_name.strip() or None
        if full_name and len(full_name) > 100:
            raise ValidationFailed('full_name must be less than 100 characters')

    return {
        'username': username,
        'email': email,
        'password': password,
        'full_name': full_name,
    }


# Allowed fields for profile update (prevent mass assignment)
PROFILE_ALLOWED_FIELDS = {'full_name', 'avatar_url'}


def validate_profile_update(data):
    if not isinstance(data, dict):
        raise ValidationFailed('Request body must be a JSON object')

    if 'username' in data:
        raise ValidationFailed('Username cannot be changed')

    unknown = set(data) - PROFILE_ALLOWED_FIELDS
    if unknown:
        raise ValidationFailed(f"Unknown fields: {', '.join(sorted(unknown))}")

    length_limits = {'full_name': 100, 'avatar_url': 500}
    cleaned = {}
    for field, max_len in length_limits.items():
        if field not in data:
            continue
        value = data[field]
        if value is not None:
            if not isinstance(value, str):
                raise ValidationFailed(f'{field} must be a string')
            if len(value) > max_len:
                raise ValidationFailed(f'{field} must be less than {max_len} characters')
            value = value.strip() or None
        cleaned[field] = value
    return cleaned
