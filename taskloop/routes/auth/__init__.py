"""Auth routes package.

- core: Registration and login
- profile: The caller's own profile
- password: Forgot/reset password
"""

from flask import Blueprint

auth_bp = Blueprint('auth', __name__)

# Import all route modules (registers routes on auth_bp)
from taskloop.routes.auth import core  # noqa: E402,F401
from taskloop.routes.auth import profile  # noqa: E402,F401
from taskloop.routes.auth import password  # noqa: E402,F401
