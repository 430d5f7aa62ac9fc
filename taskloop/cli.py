"""Flask CLI commands.

Usage:
    flask --app wsgi init-db
    flask --app wsgi cleanup-expired
"""

import click

from taskloop import db


def register_commands(app):
    """Attach the TaskLoop commands to ``app.cli``."""

    @app.cli.command('init-db')
    def init_db_command():
        """Create all database tables for the configured database."""
        click.echo(f"Database URI: {app.config['SQLALCHEMY_DATABASE_URI']}")
        db.create_all()
        click.echo('Database tables created successfully!')
        for table_name in sorted(db.metadata.tables):
            click.echo(f'  - {table_name}')

    @app.cli.command('cleanup-expired')
    def cleanup_expired_command():
        """Delete active tasks whose deadline has passed."""
        from taskloop.services.cleanup import delete_expired_tasks

        deleted = delete_expired_tasks()
        click.echo(f'Deleted {deleted} expired task(s)')
