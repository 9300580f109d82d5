"""Tests for the per-question lock registry."""
from __future__ import annotations

import threading
from unittest.mock import MagicMock

import pytest

from choice_eliminator.exceptions import PoolLockTimeoutError
from choice_eliminator.locks import QuestionLockRegistry


def test_lock_can_be_taken_again_after_release():
    locks = QuestionLockRegistry(timeout=0.1, retries=0)
    with locks.hold("q1"):
        pass
    with locks.hold("q1"):
        pass


def test_different_keys_do_not_block_each_other():
    locks = QuestionLockRegistry(timeout=0.05, retries=0)
    with locks.hold("q1"):
        with locks.hold("q2"):
            pass


def test_busy_lock_retries_with_exponential_backoff_then_raises():
    sleep = MagicMock()
    locks = QuestionLockRegistry(timeout=0.01, retries=3, backoff=0.5, sleep=sleep)

    with locks.hold("q1"):
        with pytest.raises(PoolLockTimeoutError) as exc_info:
            with locks.hold("q1"):
                pass

    assert exc_info.value.attempts == 4
    assert [c.args[0] for c in sleep.call_args_list] == [0.5, 1.0, 2.0]


def test_lock_released_after_exception():
    locks = QuestionLockRegistry(timeout=0.05, retries=0)
    with pytest.raises(RuntimeError):
        with locks.hold("q1"):
            raise RuntimeError("boom")
    with locks.hold("q1"):
        pass


def test_waiter_acquires_once_holder_releases():
    locks = QuestionLockRegistry(timeout=1.0, retries=0)
    entered = threading.Event()
    release = threading.Event()
    acquired = threading.Event()

    def holder():
        with locks.hold("q1"):
            entered.set()
            release.wait(1.0)

    def waiter():
        with locks.hold("q1"):
            acquired.set()

    t1 = threading.Thread(target=holder)
    t1.start()
    assert entered.wait(1.0)
    t2 = threading.Thread(target=waiter)
    t2.start()
    assert not acquired.wait(0.05)
    release.set()
    t1.join()
    t2.join()
    assert acquired.is_set()


def test_negative_settings_rejected():
    with pytest.raises(ValueError):
        QuestionLockRegistry(timeout=-1)
