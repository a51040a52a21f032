"""Tests for the single-flight run token."""

import pytest

from pair_arbitrage.scheduling import SingleFlight


def test_acquire_and_release():
    guard = SingleFlight("scan")
    assert not guard.busy
    assert guard.try_acquire()
    assert guard.busy
    guard.release()
    assert not guard.busy


def test_second_acquire_is_dropped():
    guard = SingleFlight("scan")
    assert guard.try_acquire()
    assert not guard.try_acquire()
    assert not guard.try_acquire()
    assert guard.dropped == 2


def test_release_without_acquire_raises():
    with pytest.raises(RuntimeError):
        SingleFlight("scan").release()
