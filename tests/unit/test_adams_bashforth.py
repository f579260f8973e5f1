import numpy as np
import pytest

from nrkit.errors import ConfigurationError, TimeStepError
from nrkit.time import AdamsBashforth, History, default_action_list, run_action_list
from nrkit.time.choosers import ErrorControl
from nrkit.time.slab import Slab, TimeStepId
from nrkit.time.steppers import _integration_weights


def test_order_must_be_supported():
    with pytest.raises(ConfigurationError):
        AdamsBashforth(0)
    with pytest.raises(ConfigurationError):
        AdamsBashforth(9)
    assert AdamsBashforth(3) == AdamsBashforth(3)
    assert AdamsBashforth(3) != AdamsBashforth(2)


def test_constant_step_weights_match_textbook_coefficients():
    np.testing.assert_allclose(_integration_weights(np.array([0.0])), [1.0])
    np.testing.assert_allclose(_integration_weights(np.array([-1.0, 0.0])), [-0.5, 1.5])
    np.testing.assert_allclose(
        _integration_weights(np.array([-2.0, -1.0, 0.0])), [5.0 / 12.0, -16.0 / 12.0, 23.0 / 12.0]
    )


def test_first_step_is_forward_euler_without_error_estimate():
    stepper = AdamsBashforth(3)
    slab = Slab(0.0, 1.0)
    history = History(stepper.order)
    start = TimeStepId(True, 0, slab.start_time())
    history.insert(start, np.array([1.0]), np.array([-1.0]))
    step = slab.duration() / 4
    u, error = stepper.update_u(np.array([1.0]), history, step)
    np.testing.assert_allclose(u, [0.75])
    assert error is None


def test_update_requires_history():
    stepper = AdamsBashforth(2)
    with pytest.raises(TimeStepError):
        stepper.update_u(np.array([1.0]), History(2), Slab(0.0, 1.0).duration())


def test_next_time_id_moves_to_next_slab():
    stepper = AdamsBashforth(2)
    slab = Slab(0.0, 1.0)
    half = slab.duration() / 2
    first = TimeStepId(True, 0, slab.start_time())
    second = stepper.next_time_id(first, half)
    assert second.slab_number == 0
    third = stepper.next_time_id(second, half)
    assert third.slab_number == 1
    assert third.step_time.slab == Slab(1.0, 2.0)
    assert third.step_time.fraction == 0


def test_can_change_step_size_rules():
    stepper = AdamsBashforth(2)
    slab = Slab(0.0, 1.0)
    now = TimeStepId(True, 0, slab.start_time() + slab.duration() / 2)
    history = History(2)
    assert stepper.can_change_step_size(now, history)
    assert not stepper.can_change_step_size(TimeStepId(True, -1, now.step_time), history)
    history.insert(TimeStepId(True, 0, slab.start_time()), np.zeros(1), np.zeros(1))
    history.insert(now, np.zeros(1), np.zeros(1))
    assert stepper.can_change_step_size(now, history)
    earlier = TimeStepId(True, 0, slab.start_time() + slab.duration() / 4)
    assert not stepper.can_change_step_size(earlier, history)


def _decay_error(make_state, ratio):
    state = make_state(order=3, initial_step=1.0 / ratio, fixed_lts_ratio=ratio)
    run_action_list(state, default_action_list(), 1.0)
    assert state.time == pytest.approx(1.0)
    return abs(state.variables["u"][0] - np.exp(-1.0))


def test_fixed_step_evolution_converges(make_state):
    coarse = _decay_error(make_state, 16)
    fine = _decay_error(make_state, 32)
    assert coarse < 5.0e-3
    assert fine < coarse / 3.0


def test_start_up_error_compares_euler_with_trapezoid():
    stepper = AdamsBashforth(4)
    slab = Slab(0.0, 1.0)
    history = History(stepper.order)
    history.insert(TimeStepId(True, 0, slab.start_time()), np.array([1.0]), np.array([-1.0]))
    error = stepper.start_up_error(history, slab.duration() / 2, np.array([-0.5]))
    np.testing.assert_allclose(error, [0.125])
    with pytest.raises(TimeStepError):
        stepper.start_up_error(History(4), slab.duration(), np.array([0.0]))


def test_error_control_limits_the_start_up_steps(make_state):
    state = make_state([ErrorControl(1.0e-10, 1.0e-10)], order=4, initial_step=0.5)
    assert state.uses_error_estimate
    completed = []
    run_action_list(state, default_action_list(), 1.0, on_step=lambda s: completed.append(s.time))
    assert state.time == pytest.approx(1.0)
    assert state.diagnostics.number_of_step_rejections >= 1
    assert completed[0] < 1.0e-3
    assert abs(state.variables["u"][0] - np.exp(-1.0)) < 1.0e-6


def test_fixed_ratio_skips_the_start_up_estimate(make_state):
    state = make_state([ErrorControl(1.0e-10, 0.0)], fixed_lts_ratio=4)
    assert not state.uses_error_estimate
    run_action_list(state, default_action_list(), 1.0)
    assert state.diagnostics.number_of_step_rejections == 0
    assert state.step_errors == {"u": None}
