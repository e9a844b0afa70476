from collections import deque
from datetime import datetime, timedelta

from portal.auth.login_guard import LoginGuard


def test_stale_failure_keys_are_dropped():
    guard = LoginGuard(max_failures=3, window_seconds=60, lock_seconds=60)
    long_ago = datetime.utcnow() - timedelta(minutes=10)
    guard._failures["gone@acme.com:10.0.0.1"] = deque([long_ago])
    guard._locked_until["old@acme.com:10.0.0.1"] = long_ago

    assert guard.register_failure("new@acme.com:10.0.0.2") is None

    assert list(guard._failures) == ["new@acme.com:10.0.0.2"]
    assert guard._locked_until == {}


def test_lock_releases_the_failure_queue():
    guard = LoginGuard(max_failures=2, window_seconds=60, lock_seconds=60)
    key = "a@acme.com:10.0.0.1"

    assert guard.register_failure(key) is None
    locked_until = guard.register_failure(key)

    assert locked_until is not None
    assert guard.is_locked(key) == locked_until
    assert key not in guard._failures

    guard.clear(key)
    assert guard.is_locked(key) is None
