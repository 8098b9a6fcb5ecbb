"""User account CLI commands."""

import click
from flask.cli import with_appcontext

from braik.extensions import db
from braik.models import User


def _get_user_by_email(email: str) -> User | None:
    return db.session.query(User).filter_by(email=email.strip().lower()).first()


@click.group('user')
def user_commands():
    """User account commands."""
    pass


@user_commands.command('create')
@click.option('--email', required=True, help='User email')
@click.option('--password', required=True, help='User password')
@click.option('--name', help='Display name')
@with_appcontext
def create_user(email, password, name):
    """Create a user account."""
    if _get_user_by_email(email):
        click.echo(click.style(f'Error: User with email "{email}" already exists', fg='red'))
        return

    user = User(email=email.strip().lower(), name=name)
    user.set_password(password)
    db.session.add(user)
    db.session.commit()

    click.echo(click.style('User created successfully!', fg='green'))
    click.echo(f'  ID: {user.id}')
    click.echo(f'  Email: {user.email}')


@user_commands.command('set-password')
@click.option('--email', required=True, help='User email')
@click.option('--password', required=True, help='New password')
@with_appcontext
def set_password(email, password):
    """Set or reset a user's password."""
    user = _get_user_by_email(email)
    if not user:
        click.echo(click.style(f'Error: No user {email} found', fg='red'))
        return

    user.set_password(password)
    db.session.commit()
    click.echo(click.style('Password updated.', fg='green'))
