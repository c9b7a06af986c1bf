import pytest

from modules.filters import ExponentialDecayFilter


def test_first_sample_is_taken_exactly():
    f = ExponentialDecayFilter()
    assert f.update(42.5, dt=16) == 42.5
    assert f.value == 42.5


def test_first_sample_ignores_dt():
    f = ExponentialDecayFilter()
    assert f.update(30.0, dt=0) == 30.0


def test_decay_step_matches_formula():
    f = ExponentialDecayFilter(0.99)
    f.update(50.0, dt=0)
    value = f.update(40.0, dt=16)
    assert value == pytest.approx(50.0 + (40.0 - 50.0) * (1 - 0.99 ** 16))


def test_repeated_target_is_a_contraction():
    f = ExponentialDecayFilter()
    f.update(80.0, dt=0)
    target = 40.0

    gap = abs(target - f.value)
    for _ in range(80):
        f.update(target, dt=33)
        new_gap = abs(target - f.value)
        assert new_gap < gap
        gap = new_gap

    assert f.value == pytest.approx(target, abs=1e-6)


@pytest.mark.parametrize("dt", [0, -5, -1000])
def test_non_monotonic_clock_leaves_value_unchanged(dt):
    f = ExponentialDecayFilter()
    f.update(60.0, dt=0)
    assert f.decay_factor(dt) == 0.0
    assert f.update(10.0, dt=dt) == 60.0


def test_custom_base():
    slow = ExponentialDecayFilter(0.999)
    fast = ExponentialDecayFilter(0.9)
    for flt in (slow, fast):
        flt.update(0.0, dt=0)
        flt.update(100.0, dt=10)
    assert fast.value > slow.value
