import pytest

from spectrascope.smoothing import SmoothReal


def test_default_is_idle_at_zero():
    s = SmoothReal()
    assert float(s) == 0.0
    assert s.is_changing is False


def test_idle_value_ignores_update():
    s = SmoothReal()
    s.update(1.0)
    assert s.value == 0.0
    assert s.target == 0.0


def test_update_moves_towards_target():
    s = SmoothReal(target=10.0, decay=1.0)
    s.update(0.5)
    assert 0.0 < s.value < 10.0
    previous = s.value
    s.update(0.5)
    assert previous < s.value < 10.0


def test_update_halves_distance_per_decay_period():
    s = SmoothReal(target=0.0, decay=1.0, value=8.0)
    s.update(1.0)
    assert s.value == pytest.approx(4.0)


def test_zero_decay_keeps_value():
    s = SmoothReal(target=5.0, decay=0.0, value=1.0)
    s.update(3.0)
    assert s.value == 1.0
    assert s.is_changing


def test_converges_and_stops():
    s = SmoothReal(target=3.0, decay=5.0)
    for _ in range(1000):
        s.update(0.1)
    assert s.value == 3.0
    assert s.is_changing is False


def test_snaps_when_close():
    s = SmoothReal(target=1.0005, decay=1.0, value=1.0)
    s.update(0.01)
    assert s.value == 1.0005
    assert not s.is_changing


def test_finish_jumps_to_target():
    s = SmoothReal(target=42.0, decay=0.5)
    s.finish()
    assert float(s) == 42.0
    assert not s.is_changing


def test_setting_target_restarts_motion():
    s = SmoothReal()
    s.target = 2.0
    assert s.is_changing
    s.finish()
    assert s.value == 2.0
    s.value = 7.0
    assert s.is_changing
    assert s.target == 2.0


def test_decay_setter_does_not_restart():
    s = SmoothReal()
    s.decay = 4.0
    assert s.decay == 4.0
    assert not s.is_changing