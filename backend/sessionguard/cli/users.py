"""Flask CLI commands for provisioning login identities."""

from __future__ import annotations

import logging

import click
from flask.cli import with_appcontext

from sessionguard.models import User
from sessionguard.uow import SQLAlchemyUnitOfWork

LOGGER = logging.getLogger(__name__)


@click.group("users")
def users_cli() -> None:
    """Manage users and their roles."""


@users_cli.command("create")
@click.argument("email")
@click.argument("username")
@click.password_option("--password", help="Password for the new user.")
@click.option("--role", "roles", multiple=True, help="Role to assign (repeatable).")
@with_appcontext
def create_command(email: str, username: str, password: str, roles: tuple[str, ...]) -> None:
    """Create a user that can log in with EMAIL or USERNAME."""
    with SQLAlchemyUnitOfWork() as uow:
        if uow.users.exists_by_email(email) or uow.users.exists(username=username):
            raise click.ClickException("A user with that email or username already exists.")
        user = User(email=email, username=username)
        user.password = password
        uow.users.add(user)
        uow.users.set_roles(user, roles)
        user_id = user.id
    LOGGER.info("User created", extra={"event": "users.created", "user_id": user_id})
    click.echo(f"Created user {user_id}")


@users_cli.command("set-roles")
@click.argument("login_identifier")
@click.option("--role", "roles", multiple=True, help="Role to assign (repeatable).")
@with_appcontext
def set_roles_command(login_identifier: str, roles: tuple[str, ...]) -> None:
    """Replace the role assignment of a user.

    New roles show up in access tokens from the next refresh onwards.
    """
    with SQLAlchemyUnitOfWork() as uow:
        user = uow.users.get_by_login(login_identifier)
        if user is None:
            raise click.ClickException(f"No user matches {login_identifier!r}.")
        uow.users.set_roles(user, roles)
    click.echo(f"Roles: {', '.join(sorted(set(roles))) or '(none)'}")
