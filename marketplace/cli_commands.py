"""
Flask CLI commands.

Commands:
- flask init-db: Create all tables
- flask create-user: Register a user identity (credentials live in the auth service)
"""

import click
from marketplace.database import create_all, get_session
from marketplace.exceptions import BusinessLogicError
from marketplace.services.user_service import create_user


def init_cli_commands(app):
    """Register CLI commands with Flask app."""

    @app.cli.command('init-db')
    def init_db_command():
        """Create every marketplace table that does not exist yet."""
        create_all()
        click.echo(click.style('Tables created.', fg='green'))

    @app.cli.command('create-user')
    @click.option('--email', prompt=True, help='User email address')
    @click.option('--first-name', prompt=True, help='First name')
    @click.option('--last-name', prompt=True, help='Last name')
    def create_user_command(email, first_name, last_name):
        """Register a marketplace user."""
        try:
            user = create_user(get_session(), first_name, last_name, email)
        except BusinessLogicError as e:
            get_session().rollback()
            click.echo(click.style(f'Error: {e.message}', fg='red'))
            return

        click.echo(click.style('User created.', fg='green', bold=True))
        click.echo(f'   Email: {user.email}')
        click.echo(f'   ID: {user.id}')
