"""Flask CLI commands for inspecting and revoking refresh-token sessions."""

from __future__ import annotations

import click
from flask import current_app
from flask.cli import with_appcontext

from sessionguard.api.deps import build_token_manager


@click.group("tokens")
def tokens_cli() -> None:
    """Inspect and revoke refresh-token sessions."""


@tokens_cli.command("sessions")
@click.argument("user_id")
@with_appcontext
def sessions_command(user_id: str) -> None:
    """List the active device sessions of USER_ID."""
    sessions = list(build_token_manager(current_app).get_user_device_sessions(user_id))
    if not sessions:
        click.echo("(no active sessions)")
        return
    for s in sessions:
        click.echo(
            f"{s.token[:12]}...  {s.device_name or '-'}  ip={s.ip_address or '-'}  "
            f"last_used={s.last_used_at.isoformat()}  expires={s.expires_at.isoformat()}"
        )


@tokens_cli.command("revoke-all")
@click.argument("user_id")
@click.option("--yes", is_flag=True, help="Skip the confirmation prompt.")
@with_appcontext
def revoke_all_command(user_id: str, yes: bool) -> None:
    """Revoke every active refresh token of USER_ID."""
    if not yes:
        click.confirm(f"Revoke all sessions of {user_id}?", abort=True)
    count = build_token_manager(current_app).revoke_all_user_refresh_tokens(user_id)
    click.echo(f"Revoked {count} session(s)")
