"""Task routes package.

This package organizes task-related routes into logical submodules:
- crud: List, get, create and edit tasks
- applications: Apply, approve, reject, withdraw
- workflow: Cancel, verification codes, ratings
- queries: The caller's own tasks and history
"""

from flask import Blueprint

tasks_bp = Blueprint('tasks', __name__)

# Import and register all route modules
from taskloop.routes.tasks import crud  # noqa: E402,F401
from taskloop.routes.tasks import applications  # noqa: E402,F401
from taskloop.routes.tasks import workflow  # noqa: E402,F401
from taskloop.routes.tasks import queries  # noqa: E402,F401
