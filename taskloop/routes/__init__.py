"""Routes package for the TaskLoop API."""


def register_routes(app):
    """Register all route blueprints with the application."""
    from .auth import auth_bp
    from .tasks import tasks_bp
    from .users import users_bp
    from .chats import chats_bp

    app.register_blueprint(auth_bp, url_prefix='/api/auth')
    app.register_blueprint(tasks_bp, url_prefix='/api/tasks')
    app.register_blueprint(users_bp, url_prefix='/api/users')
    app.register_blueprint(chats_bp, url_prefix='/api/chats')
