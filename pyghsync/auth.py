"""Credential lookup shared by CLI commands."""

from typing import Any, Optional

from .config import config
from .output import OutputFormatter
from .utils import full_repository_name


def require_token(ctx: Any, out: OutputFormatter) -> str:
    """Get the GitHub token for a command, exiting if none is configured.

    The ``--token`` option (or ``GITHUB_TOKEN``) wins over the config file.

    Args:
        ctx: Click context holding the global options
        out: Output formatter for error messages

    Returns:
        Access token
    """
    token: Optional[str] = ctx.obj.get("token") or config.token

    if not token:
        out.error("GitHub token not configured.")
        out.info("Run 'ghsync init' to configure your credentials")
        ctx.exit(1)

    return token  # type: ignore[return-value]


def get_user(ctx: Any) -> Optional[str]:
    """Get the GitHub user name from the options or the config file."""
    return ctx.obj.get("user") or config.user


def resolve_repository(ctx: Any, out: OutputFormatter, name: str) -> str:
    """Expand a bare repository name with the configured user.

    Exits with an error when the name has no owner and no user is known.
    """
    try:
        return full_repository_name(name, get_user(ctx))
    except ValueError as e:
        out.error(str(e))
        out.info("Use 'owner/name' or set GITHUB_USER")
        ctx.exit(1)
        raise
