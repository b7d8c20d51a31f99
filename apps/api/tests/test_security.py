"""Password hashing, token helpers and blocking-call timeouts."""

import time

import pytest

from helpdesk.core import security
from helpdesk.core.async_utils import run_blocking
from helpdesk.core.config import settings
from helpdesk.core.exceptions import OperationTimeoutError


def test_hash_and_verify_password():
    hashed = security.hash_password("correct-horse-battery")
    assert hashed != "correct-horse-battery"
    assert security.verify_password("correct-horse-battery", hashed)
    assert not security.verify_password("wrong-horse-battery", hashed)


def test_verify_rejects_oversized_and_malformed():
    hashed = security.hash_password("correct-horse-battery")
    assert not security.verify_password("x" * 100, hashed)
    assert not security.verify_password("correct-horse-battery", "not-a-bcrypt-hash")


def test_refresh_tokens_are_random_and_hashed():
    first, second = security.generate_refresh_token(), security.generate_refresh_token()
    assert first != second
    assert len(security.hash_token(first)) == 64
    assert security.hash_token(first) == security.hash_token(first)


def test_run_blocking_times_out():
    with pytest.raises(OperationTimeoutError):
        run_blocking(time.sleep, 1.0, timeout=0.05)


def test_password_hash_timeout(monkeypatch):
    monkeypatch.setattr(settings, "PASSWORD_HASH_TIMEOUT_SECONDS", 0.05)
    monkeypatch.setattr(security, "_hash_password_sync", lambda password: time.sleep(1.0))
    with pytest.raises(OperationTimeoutError):
        security.hash_password("correct-horse-battery")
