"""CLI interface for pyghsync."""

import logging
from pathlib import Path
from typing import Any, Optional

import click

from .api import GitHubClient
from .auth import require_token, resolve_repository
from .config import config
from .exceptions import GhSyncError, RemoteApiError
from .output import OutputFormatter
from .sync import (
    ConflictStrategy,
    LocalDirectory,
    PromptDecisionProvider,
    RemoteCondition,
    SyncEngine,
    SyncResult,
)
from .utils import is_full_repository_name

logger = logging.getLogger(__name__)


def _strategy_option(func: Any) -> Any:
    """Add the -a/-l/-r conflict strategy flags to a command."""
    func = click.option(
        "--remote",
        "-r",
        "strategy",
        flag_value="remote",
        help="Overwrite local changes with the remote version on conflict",
    )(func)
    func = click.option(
        "--keep-local",
        "-l",
        "strategy",
        flag_value="local",
        help="Keep local changes on conflict",
    )(func)
    func = click.option(
        "--ask",
        "-a",
        "strategy",
        flag_value="ask",
        default=True,
        help="Ask what to do on each conflict (default)",
    )(func)
    return func


def _open_engine(
    ctx: Any, out: OutputFormatter, path: str = ".", max_workers: int = 1
) -> SyncEngine:
    """Open the linked working copy containing ``path``."""
    token = require_token(ctx, out)
    return SyncEngine.open(
        Path(path),
        lambda repository: GitHubClient(repository, token=token),
        output=out,
        decide=PromptDecisionProvider(),
        max_workers=max_workers,
    )


def _report_error(out: OutputFormatter, error: GhSyncError) -> None:
    """Print an error with the field errors the API returned, if any."""
    out.error(str(error))
    if isinstance(error, RemoteApiError) and error.errors:
        out.error_details(error.printable_errors)


def _report_result(out: OutputFormatter, result: SyncResult) -> None:
    if out.json_output:
        out.output_json(result.to_dict())
        return
    if result.downloaded:
        out.info(f"Downloaded {len(result.downloaded)} file(s)")
    if result.deleted:
        out.info(f"Deleted {len(result.deleted)} file(s)")
    if result.uploaded:
        out.info(f"Uploaded {len(result.uploaded)} file(s)")
    if result.skipped:
        out.info(f"Skipped {len(result.skipped)} file(s) already present")


@click.group()
@click.option("--user", "-u", envvar="GITHUB_USER", help="GitHub user name")
@click.option("--token", "-t", envvar="GITHUB_TOKEN", help="GitHub access token")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.option("--json", is_flag=True, help="Output in JSON format")
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose/debug logging output",
)
@click.version_option(package_name="pyghsync")
@click.pass_context
def main(
    ctx: Any,
    user: Optional[str],
    token: Optional[str],
    quiet: bool,
    json: bool,
    verbose: bool,
) -> None:
    """pyghsync - Mirror GitHub repositories without git."""
    ctx.ensure_object(dict)
    ctx.obj["user"] = user
    ctx.obj["token"] = token
    ctx.obj["out"] = OutputFormatter(json_output=json, quiet=quiet)
    ctx.obj["verbose"] = verbose

    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%H:%M:%S",
        )
        logging.getLogger("pyghsync").setLevel(logging.DEBUG)
    else:
        logging.basicConfig(level=logging.WARNING)


@main.command()
@click.option("--user", "-u", prompt="GitHub user name", help="GitHub user name")
@click.option(
    "--token",
    "-t",
    prompt="GitHub access token",
    hide_input=True,
    help="GitHub personal access token",
)
@click.option("--author-name", help="Author name for new commits")
@click.option("--author-email", help="Author email for new commits")
@click.pass_context
def init(
    ctx: Any,
    user: str,
    token: str,
    author_name: Optional[str],
    author_email: Optional[str],
) -> None:
    """Initialize pyghsync configuration.

    Stores your credentials in ~/.config/pyghsync/config for future use.
    """
    out: OutputFormatter = ctx.obj["out"]

    out.info("Validating token...")
    try:
        with GitHubClient(f"{user}/-", token=token) as client:
            login = client.get_authenticated_user()
        if login.lower() != user.lower():
            out.warning(f"The token belongs to '{login}', not to '{user}'")
        else:
            out.success("Token is valid")
    except RemoteApiError as e:
        out.error(f"Token validation failed: {e}")
        if e.errors:
            out.error_details(e.printable_errors)
        if not click.confirm("Save credentials anyway?", default=False):
            out.warning("Configuration cancelled.")
            ctx.exit(1)

    try:
        config.save_credentials(user, token, author_name, author_email)
    except OSError as e:
        out.error(f"Initialization failed: {e}")
        ctx.exit(1)

    out.print_summary(
        "Initialization Complete",
        [
            ("Status", "Configuration saved successfully"),
            ("Config file", str(config.get_config_path())),
        ],
    )


@main.command()
@click.argument("name")
@click.argument("description", nargs=-1)
@click.option("--private", "-p", is_flag=True, help="Create a private repository")
@click.pass_context
def new(ctx: Any, name: str, description: tuple[str, ...], private: bool) -> None:
    """Create a new repository in your GitHub account.

    NAME: Repository name, without owner

    DESCRIPTION: Optional repository description
    """
    out: OutputFormatter = ctx.obj["out"]

    if is_full_repository_name(name):
        out.error(
            "Please specify a repository name without owner "
            "(you can create repositories in your own account only)"
        )
        ctx.exit(1)

    repository = resolve_repository(ctx, out, name)
    token = require_token(ctx, out)

    try:
        with GitHubClient(repository, token=token) as client:
            info = client.create_repository(" ".join(description), private)
    except GhSyncError as e:
        _report_error(out, e)
        ctx.exit(1)

    if out.json_output:
        out.output_json(info.to_dict())
    else:
        out.success(f"Repository {info.full_name} created successfully")


@main.command()
@click.argument("name")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation prompt")
@click.pass_context
def destroy(ctx: Any, name: str, yes: bool) -> None:
    """Delete a repository from GitHub. This cannot be undone!

    NAME: [OWNER/]REPOSITORY
    """
    out: OutputFormatter = ctx.obj["out"]
    repository = resolve_repository(ctx, out, name)
    token = require_token(ctx, out)

    if not yes:
        out.warning(
            "WARNING! This action cannot be undone.\n"
            f"This will permanently delete the {repository} repository, wiki, "
            "issues, and comments, and remove all collaborator associations."
        )
        typed = click.prompt(
            "Please type in the full name of the repository to confirm",
            default="",
            show_default=False,
        )
        if typed.strip().lower() != repository.lower():
            out.warning("Operation cancelled")
            return

    try:
        with GitHubClient(repository, token=token) as client:
            client.delete_repository()
    except GhSyncError as e:
        _report_error(out, e)
        ctx.exit(1)

    out.success(f"Repository {repository} successfully deleted")


def _clone_or_link(ctx: Any, name: str, directory: str, link_only: bool) -> None:
    out: OutputFormatter = ctx.obj["out"]
    repository = resolve_repository(ctx, out, name)
    token = require_token(ctx, out)

    try:
        with GitHubClient(repository, token=token) as client:
            engine = SyncEngine(client, LocalDirectory(Path(directory)), output=out)
            if link_only:
                result = engine.link(repository)
            else:
                result = engine.clone(repository)
    except KeyboardInterrupt:
        out.warning("\nCancelled by user")
        ctx.exit(130)
    except GhSyncError as e:
        _report_error(out, e)
        ctx.exit(1)

    if out.json_output:
        out.output_json(result.to_dict())
        return
    _report_result(out, result)
    action = "linked to" if link_only else "cloned from"
    linked = engine.state.repository if engine.state else repository
    branch_name = engine.state.branch if engine.state else ""
    out.success(
        f"Local directory {Path(directory).resolve()} {action} "
        f"{linked} (branch {branch_name})"
    )


@main.command()
@click.argument("name")
@click.argument("directory", default=".", type=click.Path(file_okay=False))
@click.pass_context
def clone(ctx: Any, name: str, directory: str) -> None:
    """Clone a remote repository into a local directory.

    NAME: [OWNER/]REPOSITORY (default owner is the configured user)

    DIRECTORY: Local directory, must be empty (default: current directory)
    """
    _clone_or_link(ctx, name, directory, link_only=False)


@main.command()
@click.argument("name")
@click.argument("directory", default=".", type=click.Path(file_okay=False))
@click.pass_context
def link(ctx: Any, name: str, directory: str) -> None:
    """Link a local directory to a remote repository.

    Same as clone, but the directory doesn't need to be empty and no files
    are downloaded. All local files are considered modified.
    """
    _clone_or_link(ctx, name, directory, link_only=True)


@main.command()
@click.argument("directory", default=".", type=click.Path(file_okay=False))
@click.pass_context
def unlink(ctx: Any, directory: str) -> None:
    """Unlink a local directory from its remote repository.

    The metadata is deleted, the files are kept untouched.
    """
    out: OutputFormatter = ctx.obj["out"]

    try:
        engine = _open_engine(ctx, out, directory)
        repository = engine.state.repository if engine.state else ""
        engine.unlink()
    except GhSyncError as e:
        _report_error(out, e)
        ctx.exit(1)

    out.success(f"Local directory is no longer linked to {repository}")


@main.command()
@click.argument("directory", default=".", type=click.Path(file_okay=False))
@click.pass_context
def status(ctx: Any, directory: str) -> None:
    """Show local changes and the state of the remote repository."""
    out: OutputFormatter = ctx.obj["out"]

    try:
        engine = _open_engine(ctx, out, directory)
        repo_status = engine.status()
    except GhSyncError as e:
        _report_error(out, e)
        ctx.exit(1)

    if out.json_output:
        out.output_json(repo_status.to_dict())
        return

    out.print(f"Repository: {repo_status.repository}")
    out.print(f"Branch: {repo_status.branch}")
    out.print()

    if repo_status.remote_error:
        out.warning(
            f"When checking remote repository status: {repo_status.remote_error}"
        )
    elif repo_status.remote is RemoteCondition.MISSING:
        out.warning("The remote repository doesn't exist!")
    elif repo_status.remote is RemoteCondition.BRANCH_MISSING:
        out.info("Branch doesn't exist remotely, it will be created on commit.")
    elif repo_status.remote is RemoteCondition.UP_TO_DATE:
        out.info("Your local repository is up to date with the remote repository.")
    else:
        out.warning(
            "Your local repository is not up to date with the remote "
            "repository. You need to pull before you can commit."
        )
    out.print()

    changes = repo_status.changes
    if not changes.has_changes:
        out.info("No changes in the local repository.")
        return

    for title, paths in (
        ("Added files", changes.added),
        ("Modified files", changes.modified),
        ("Deleted files", changes.deleted),
    ):
        if paths:
            out.print(f"{title}:")
            for path in sorted(paths):
                out.print(f"  {path}")
            out.print()


@main.command()
@click.argument("message")
@click.option(
    "--workers",
    "-j",
    type=int,
    default=1,
    help="Number of parallel uploads (default: 1)",
)
@click.pass_context
def commit(ctx: Any, message: str, workers: int) -> None:
    """Commit and push local changes.

    MESSAGE: Commit message
    """
    out: OutputFormatter = ctx.obj["out"]

    if workers < 1:
        out.error("Workers must be at least 1")
        ctx.exit(1)

    try:
        engine = _open_engine(ctx, out, max_workers=workers)
        result = engine.commit(message, author=config.author())
    except KeyboardInterrupt:
        out.warning("\nCommit cancelled by user")
        ctx.exit(130)
    except GhSyncError as e:
        _report_error(out, e)
        ctx.exit(1)

    _report_result(out, result)
    if not out.json_output:
        out.success(f"Commit created: {result.commit}")


@main.command()
@_strategy_option
@click.pass_context
def pull(ctx: Any, strategy: str) -> None:
    """Pull changes from the remote repository.

    On conflict, -a asks what to do (default), -l keeps the local version
    and -r overwrites it with the remote version.
    """
    out: OutputFormatter = ctx.obj["out"]

    try:
        engine = _open_engine(ctx, out)
        result = engine.pull(ConflictStrategy.from_string(strategy))
    except KeyboardInterrupt:
        out.warning("\nPull cancelled by user")
        ctx.exit(130)
    except GhSyncError as e:
        _report_error(out, e)
        ctx.exit(1)

    if result.up_to_date and not out.json_output:
        out.info(
            "Your local repository is already up to date with the remote repository"
        )
        return
    _report_result(out, result)
    if not out.json_output:
        out.success(f"Local repository is now at commit {result.commit}")


@main.command()
@click.argument("pathspec")
@click.pass_context
def reset(ctx: Any, pathspec: str) -> None:
    """Discard local changes in files matched by PATHSPEC.

    '*' resets the entire local repository. Deleted files can be restored
    by naming one file exactly as 'ghsync status' lists it (case
    insensitive), or with '*'.
    """
    out: OutputFormatter = ctx.obj["out"]

    try:
        engine = _open_engine(ctx, out)
        paths = engine.reset(None if pathspec == "*" else pathspec)
    except GhSyncError as e:
        _report_error(out, e)
        ctx.exit(1)

    if out.json_output:
        out.output_json({"reset": paths})
    elif not paths:
        out.info("No changes to reset")
    else:
        out.success(f"Reset {len(paths)} file(s)")


@main.command()
@click.pass_context
def branches(ctx: Any) -> None:
    """List the branches of the remote repository."""
    out: OutputFormatter = ctx.obj["out"]

    try:
        engine = _open_engine(ctx, out)
        names = engine.list_branches()
    except GhSyncError as e:
        _report_error(out, e)
        ctx.exit(1)

    current = engine.state.branch if engine.state else None
    if out.json_output:
        out.output_json({"current": current, "branches": names})
        return
    if not names:
        out.info("The remote repository has no branches")
        return
    for name in names:
        marker = "*" if name == current else " "
        out.print(f"{marker} {name}")


@main.command()
@click.argument("name")
@click.argument("base", required=False)
@click.option("--new", "-n", "create", is_flag=True, help="Create a remote branch")
@click.option("--delete", "-d", is_flag=True, help="Delete a remote branch")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation prompt")
@_strategy_option
@click.pass_context
def branch(
    ctx: Any,
    name: str,
    base: Optional[str],
    create: bool,
    delete: bool,
    yes: bool,
    strategy: str,
) -> None:
    """Switch to, create or delete a remote branch.

    \b
    Examples:
        ghsync branch develop              # Switch to develop
        ghsync branch -r develop           # Switch, remote wins on conflict
        ghsync branch <sha>                # Move to a commit
        ghsync branch -n feature [base]    # Create from local commit or base
        ghsync branch -d feature           # Delete remote branch
    """
    out: OutputFormatter = ctx.obj["out"]

    if create and delete:
        out.error("Cannot use --new and --delete together")
        ctx.exit(1)
    if base and not create:
        out.error("A base branch can only be given with --new")
        ctx.exit(1)

    def confirm_current(branch_name: str) -> bool:
        if yes:
            return True
        return click.confirm(
            f"'{branch_name}' is the current local branch. Delete it anyway?",
            default=False,
        )

    try:
        engine = _open_engine(ctx, out)
        if create:
            commit_sha = engine.create_branch(name, base, author=config.author())
            if out.json_output:
                out.output_json({"branch": name, "commit": commit_sha})
            else:
                out.success(
                    f"Branch '{name}' has been created, you can switch to it "
                    f"locally with 'ghsync branch {name}'"
                )
        elif delete:
            if engine.delete_branch(name, confirm=confirm_current):
                out.success(f"Branch '{name}' has been deleted from the remote repository.")
            else:
                out.warning("Operation cancelled")
        else:
            result = engine.switch_branch(name, ConflictStrategy.from_string(strategy))
            _report_result(out, result)
            if not out.json_output:
                out.success(f"Current local branch is now '{engine.state.branch}'")
    except KeyboardInterrupt:
        out.warning("\nCancelled by user")
        ctx.exit(130)
    except GhSyncError as e:
        _report_error(out, e)
        ctx.exit(1)


@main.command()
@click.argument("source")
@click.argument("base")
@click.argument("message", nargs=-1)
@click.pass_context
def merge(ctx: Any, source: str, base: str, message: tuple[str, ...]) -> None:
    """Merge SOURCE branch into BASE branch.

    The merge is done in the remote repository, nothing is done locally.
    """
    out: OutputFormatter = ctx.obj["out"]

    try:
        engine = _open_engine(ctx, out)
        sha = engine.merge(source, base, " ".join(message) or None)
    except GhSyncError as e:
        _report_error(out, e)
        ctx.exit(1)

    if out.json_output:
        out.output_json({"merge_commit": sha})
    elif sha is None:
        out.info(f"Nothing to merge, '{base}' already contains '{source}'")
    else:
        out.success(f"Merge completed, new commit in '{base}': {sha}")
        if engine.state and engine.state.branch == base:
            out.info("Use 'ghsync pull' to get the merged files locally")


if __name__ == "__main__":
    main()
