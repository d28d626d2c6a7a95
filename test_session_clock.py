# test_session_clock.py
from __future__ import annotations

import pytest

import session_clock
from conftest import FakeClock


def test_elapsed_is_zero_before_start():
    clock = session_clock.SessionClock(FakeClock(5.0))
    assert clock.elapsed_seconds() == 0.0


def test_lead_in_is_negative_elapsed():
    source = FakeClock(10.0)
    clock = session_clock.SessionClock(source)
    clock.start(3.0)

    assert clock.elapsed_seconds() == pytest.approx(-3.0)
    source.advance(4.5)
    assert clock.elapsed_seconds() == pytest.approx(1.5)


def test_pause_freezes_and_resume_is_continuous():
    source = FakeClock(0.0)
    clock = session_clock.SessionClock(source)
    clock.start(0.0)
    source.advance(2.0)

    clock.pause()
    source.advance(30.0)
    assert clock.elapsed_seconds() == pytest.approx(2.0)

    clock.resume()
    assert clock.elapsed_seconds() == pytest.approx(2.0)
    source.advance(0.25)
    assert clock.elapsed_seconds() == pytest.approx(2.25)


def test_double_pause_keeps_first_instant():
    source = FakeClock(0.0)
    clock = session_clock.SessionClock(source)
    clock.start(0.0)
    source.advance(1.0)
    clock.pause()
    source.advance(1.0)
    clock.pause()
    clock.resume()

    assert clock.elapsed_seconds() == pytest.approx(1.0)


def test_reset_clears_reference():
    source = FakeClock(0.0)
    clock = session_clock.SessionClock(source)
    clock.start(1.0)
    clock.reset()
    assert clock.elapsed_seconds() == 0.0


def test_module_self_check():
    session_clock._run_unit_tests()
