# tests/test_cli.py

import sys

import pytest
from click.testing import CliRunner
from loguru import logger

from action_lock_guard.locks.file import FileLockBackend
from main import EXIT_LOCKED, cli


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    for name in ("ACTION_GUARD_BACKEND", "ACTION_GUARD_LOCK_DIR", "ACTION_GUARD_DATABASE_URL",
                 "ACTION_GUARD_MAX_KEY_LENGTH", "ACTION_GUARD_CONSOLE_OUTPUT", "LOG_DIR", "LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)
    # Default lock directory is relative to the working directory
    monkeypatch.chdir(tmp_path)
    yield
    # The CLI points loguru at the runner's stderr, which is closed afterwards
    logger.remove()


@pytest.fixture
def runner():
    return CliRunner()


def test_runs_command_and_returns_its_exit_code(runner, tmp_path):
    result = runner.invoke(cli, [
        "run", "--backend", "file", "--lock-dir", str(tmp_path),
        "--", sys.executable, "-c", "import sys; sys.exit(5)",
    ])

    assert result.exit_code == 5


def test_lock_is_released_after_run(runner, tmp_path):
    args = ["run", "--backend", "file", "--lock-dir", str(tmp_path), "--key", "job",
            "--", sys.executable, "-c", "pass"]

    assert runner.invoke(cli, args).exit_code == 0
    assert runner.invoke(cli, args).exit_code == 0


def test_held_lock_skips_command(runner, tmp_path):
    marker = tmp_path / "ran"
    holder = FileLockBackend(tmp_path / "locks")
    holder.acquire("nightly")
    try:
        result = runner.invoke(cli, [
            "run", "--backend", "file", "--lock-dir", str(tmp_path / "locks"), "--key", "nightly",
            "--", sys.executable, "-c", f"open({str(marker)!r}, 'w').close()",
        ])
    finally:
        holder.close()

    assert result.exit_code == EXIT_LOCKED
    assert "Key `nightly` already locked" in result.output
    assert not marker.exists()


def test_long_key_is_rejected(runner):
    result = runner.invoke(cli, [
        "run", "--max-key-length", "3", "--key", "too-long", "--", sys.executable, "-c", "pass",
    ])

    assert result.exit_code == EXIT_LOCKED
    assert "Key length must be smaller than 3 symbols" in result.output


def test_quiet_suppresses_console_messages(runner, monkeypatch):
    # Keep loguru's INFO copy of the message out of the mixed output
    monkeypatch.setenv("LOG_LEVEL", "WARNING")
    result = runner.invoke(cli, [
        "run", "--quiet", "--max-key-length", "3", "--key", "too-long", "--", sys.executable, "-c", "pass",
    ])

    assert result.exit_code == EXIT_LOCKED
    assert "Key length must be smaller" not in result.output


def test_database_backend_requires_url(runner):
    result = runner.invoke(cli, ["run", "--backend", "database", "--", sys.executable, "-c", "pass"])

    assert result.exit_code == 1


def test_default_settings_respect_a_lock_held_by_another_process(runner, tmp_path):
    marker = tmp_path / "ran"
    other_process = FileLockBackend(tmp_path / ".locks")
    other_process.acquire("nightly")
    try:
        result = runner.invoke(cli, [
            "run", "--key", "nightly",
            "--", sys.executable, "-c", f"open({str(marker)!r}, 'w').close()",
        ])
    finally:
        other_process.close()

    assert result.exit_code == EXIT_LOCKED
    assert "Key `nightly` already locked" in result.output
    assert not marker.exists()
