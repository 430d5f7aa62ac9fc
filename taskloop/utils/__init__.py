"""Shared utilities for the TaskLoop backend."""

from taskloop.utils.auth import (
    Session,
    token_required,
    token_optional,
    issue_token,
    session_from_token,
)
from taskloop.utils.user_helpers import mask_username

__all__ = [
    'Session',
    'token_required',
    'token_optional',
    'issue_token',
    'session_from_token',
    'mask_username',
]
