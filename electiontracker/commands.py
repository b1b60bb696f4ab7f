# electiontracker/commands.py

import click
from flask import current_app

from electiontracker.authentication.users import UserService
from electiontracker.extensions import db


def register_commands(app):
    @app.cli.command('init-db')
    def init_db():
        """Create all tables (use `flask db upgrade` once migrations exist)."""
        db.create_all()
        click.echo("Database tables created.")

    @app.cli.command('seed-admin')
    @click.option('--username', default=None, help='Defaults to INITIAL_ADMIN_USERNAME.')
    def seed_admin(username):
        """Create the initial admin account if no admin exists yet."""
        username = username or current_app.config['INITIAL_ADMIN_USERNAME']
        user, generated = UserService(db.session).seed_initial_admin(
            username=username, password=current_app.config.get('INITIAL_ADMIN_PASSWORD'),
        )
        if user is None:
            click.echo("An admin user already exists; nothing to do.")
            return
        click.echo(f"Admin user created: {user.username}")
        if generated:
            click.echo(f"Generated password (change it after first login): {generated}")
