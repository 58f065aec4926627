# tests/test_file_lock.py

from action_lock_guard.core.action_guard import ActionGuard
from action_lock_guard.core.context import ActionContext
from action_lock_guard.locks.file import FileLockBackend
from action_lock_guard.utils.keys import lock_file_name


def test_lock_excludes_other_backend_instances(tmp_path):
    first = FileLockBackend(tmp_path)
    second = FileLockBackend(tmp_path)

    assert first.acquire("jobs/sync") is True
    assert second.acquire("jobs/sync") is False

    assert first.release("jobs/sync") is True
    assert second.acquire("jobs/sync") is True
    second.close()


def test_same_instance_does_not_reenter(tmp_path):
    lock = FileLockBackend(tmp_path)
    lock.acquire("k")

    assert lock.acquire("k") is False
    assert lock.release("k") is True
    assert lock.release("k") is False


def test_lock_file_created_in_lock_dir(tmp_path):
    lock = FileLockBackend(tmp_path / "nested" / "locks")
    lock.acquire("reports/daily")

    assert lock.path_for("reports/daily").exists()
    assert lock.path_for("reports/daily").parent == tmp_path / "nested" / "locks"
    lock.close()


def test_empty_key_is_refused(tmp_path):
    lock = FileLockBackend(tmp_path)

    assert lock.acquire("") is False
    assert list(tmp_path.iterdir()) == []


def test_guards_in_different_backends_exclude_each_other(tmp_path):
    guard_a = ActionGuard(backend=FileLockBackend(tmp_path), console_output=False)
    guard_b = ActionGuard(backend=FileLockBackend(tmp_path), console_output=False)
    ctx_a = ActionContext(route="exports/run")
    ctx_b = ActionContext(route="exports/run")

    assert guard_a.before_action(ctx_a) is True
    assert guard_b.before_action(ctx_b) is False
    assert guard_a.after_action(ctx_a) is True


def test_lock_file_name_is_stable_and_safe():
    name = lock_file_name("users/42 profile:update")

    assert name == lock_file_name("users/42 profile:update")
    assert "/" not in name and " " not in name
    assert name.endswith(".lock")
    assert lock_file_name("a/b") != lock_file_name("a_b")
    assert lock_file_name("...").endswith(".lock")
