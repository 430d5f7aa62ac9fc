"""Database models for the TaskLoop application."""

from .user import User
from .task import Task
from .task_application import TaskApplication
from .rating import Rating, UserRating
from .message import Chat, Message
from .password_reset import PasswordResetToken

__all__ = ['User', 'Task', 'TaskApplication', 'Rating', 'UserRating', 'Chat', 'Message', 'PasswordResetToken']
