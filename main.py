# main.py

from __future__ import annotations

import dataclasses
import subprocess
import sys
from pathlib import Path

import click
from dotenv import load_dotenv
from loguru import logger

from action_lock_guard.config import BACKENDS, GuardSettings, configure_logging, load_guard_settings
from action_lock_guard.core.action_guard import ActionGuard
from action_lock_guard.core.context import ActionContext
from action_lock_guard.db.client import SqlClient
from action_lock_guard.db.lock import AdvisoryLockBackend
from action_lock_guard.locks.file import FileLockBackend
from action_lock_guard.locks.memory import InMemoryLockBackend
from action_lock_guard.ports.lock import LockBackend
from action_lock_guard.utils.sinks import LoguruSink

# --- 1. Environment Setup ---
# Load .env from the same folder as main.py for local development
ENV_PATH = Path(__file__).resolve().parent / ".env"

# Allow system environment variables to override .env
load_dotenv(dotenv_path=ENV_PATH, override=False)

# Exit code when the guard refused to run the command
EXIT_LOCKED = 3


# --- 2. Dependency Injection Builders ---

def build_backend(settings: GuardSettings) -> LockBackend:
    """Initialize the lock backend selected by the settings."""
    if settings.backend == "memory":
        return InMemoryLockBackend()

    if settings.backend == "file":
        logger.debug(f"Lock directory: {settings.lock_dir}")
        return FileLockBackend(settings.lock_dir)

    if settings.backend == "database":
        if not settings.database_url:
            raise ValueError("ACTION_GUARD_DATABASE_URL is required for the database backend")
        return AdvisoryLockBackend(SqlClient.from_url(settings.database_url))

    raise ValueError(f"Unknown lock backend: {settings.backend!r}")


def close_backend(backend: LockBackend) -> None:
    """Return whatever the backend still holds (open files, connections)."""
    close = getattr(backend, "close", None)
    if close is not None:
        close()

    if isinstance(backend, AdvisoryLockBackend) and isinstance(backend.db, SqlClient):
        backend.db.dispose()


def build_guard(settings: GuardSettings, backend: LockBackend, key: str | None) -> ActionGuard:
    """Assemble the guard around the backend, forwarding its messages to loguru."""
    return ActionGuard(
        backend=backend,
        key=key,
        max_key_length=settings.max_key_length,
        console_output=settings.console_output,
        sink=LoguruSink(),
        log_category=settings.log_category,
    )


# --- 3. Main CLI Commands ---

CONTEXT_SETTINGS = dict(help_option_names=['-h', '--help'], max_content_width=120)


@click.group(context_settings=CONTEXT_SETTINGS)
def cli() -> None:
    """
    ACTION LOCK GUARD

    Runs a command only if no other run with the same lock key is in progress.
    The lock is tried once, without waiting: a second run exits immediately.

    \b
    USAGE EXAMPLES:
    1. Guard a cron job with a lock file:
       $ python main.py run --backend file --lock-dir /var/lock/jobs -- ./sync.sh

    2. Share the lock across hosts through PostgreSQL:
       $ export ACTION_GUARD_DATABASE_URL=postgresql+psycopg2://app:app@db/app
       $ python main.py run --backend database --key nightly-report -- ./report.sh
    """
    configure_logging()


@cli.command(
    "run",
    help="Run COMMAND under the lock. Exits with 3 if the lock is taken.",
    context_settings=dict(ignore_unknown_options=True, allow_interspersed_args=False),
)
@click.option("--key", default=None,
              help="Lock key (defaults to the command line itself).")
@click.option("--backend", type=click.Choice(BACKENDS, case_sensitive=False), default=None,
              help="Lock backend. [env: ACTION_GUARD_BACKEND, default: file]")
@click.option("--lock-dir", type=click.Path(file_okay=False, path_type=Path), default=None,
              help="Lock file directory for the file backend. [env: ACTION_GUARD_LOCK_DIR, default: .locks]")
@click.option("--database-url", default=None,
              help="SQLAlchemy URL for the database backend. [env: ACTION_GUARD_DATABASE_URL]")
@click.option("--max-key-length", type=click.IntRange(min=1), default=None,
              help="Longest accepted lock key. [env: ACTION_GUARD_MAX_KEY_LENGTH, default: 255]")
@click.option("--quiet", is_flag=True, default=False,
              help="Do not echo guard messages to stdout.")
@click.argument("command", nargs=-1, type=click.UNPROCESSED, required=True)
def run_cmd(
        key: str | None,
        backend: str | None,
        lock_dir: Path | None,
        database_url: str | None,
        max_key_length: int | None,
        quiet: bool,
        command: tuple[str, ...],
) -> None:
    """
    1. Builds settings from the environment, overridden by CLI flags.
    2. Takes the lock for the key (or the command line).
    3. Runs the command and exits with its return code.
    """
    try:
        settings = load_guard_settings()
        overrides = {
            "backend": backend.lower() if backend else None,
            "lock_dir": lock_dir,
            "database_url": database_url,
            "max_key_length": max_key_length,
        }
        settings = dataclasses.replace(settings, **{k: v for k, v in overrides.items() if v is not None})
        if quiet:
            settings = dataclasses.replace(settings, console_output=False)

        lock_backend = build_backend(settings)
    except Exception as error:
        logger.error(f"Invalid configuration: {error}")
        sys.exit(1)

    context = ActionContext(route=" ".join(command))
    return_code = EXIT_LOCKED

    try:
        with build_guard(settings, lock_backend, key) as guard:
            with guard.guarded(context) as allowed:
                if allowed:
                    logger.info(f"Lock acquired: {guard.held_key(context)}")
                    return_code = subprocess.run(list(command)).returncode
    except Exception as error:
        logger.exception(f"Guarded run failed: {error}")
        return_code = 1
    finally:
        close_backend(lock_backend)

    if not context.proceed:
        logger.warning(f"Command skipped by the guard: {context.route}")

    sys.exit(return_code)


if __name__ == "__main__":
    cli()
