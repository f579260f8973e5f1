import numpy as np
import pytest

from nrkit.errors import ConfigurationError
from nrkit.time import choosers
from nrkit.time.request import TimeStepRequest


def test_simple_choosers_produce_expected_requests(make_state):
    state = make_state()
    assert choosers.Constant(0.1).desired_step(0.25, state) == (TimeStepRequest(size_goal=0.1), True)
    assert choosers.Increase(2.0).desired_step(0.25, state) == (TimeStepRequest(size_goal=0.5), True)
    assert choosers.LimitIncrease(2.0).desired_step(0.25, state) == (TimeStepRequest(size=0.5), True)
    assert choosers.Maximum(0.2).desired_step(0.25, state) == (TimeStepRequest(size=0.2), True)


def test_invalid_chooser_parameters():
    with pytest.raises(ConfigurationError):
        choosers.Constant(0.0)
    with pytest.raises(ConfigurationError):
        choosers.Increase(-1.0)
    with pytest.raises(ConfigurationError):
        choosers.ErrorControl(1.0e-6, 0.0, min_factor=2.0)


def test_step_to_times_requests_next_time(make_state):
    state = make_state()
    chooser = choosers.StepToTimes([0.7, 0.3, 2.0])
    request, accepted = chooser.desired_step(0.25, state)
    assert accepted
    assert request.end == pytest.approx(0.3)
    assert choosers.StepToTimes([]).desired_step(0.25, state) == (TimeStepRequest(), True)


def test_error_control_accepts_and_rejects(make_state):
    state = make_state(order=2)
    chooser = choosers.ErrorControl(1.0e-3, 0.0, safety_factor=1.0, max_factor=10.0)
    assert chooser.desired_step(0.25, state) == (TimeStepRequest(), True)

    state.step_errors = {"u": np.array([2.5e-4])}
    request, accepted = chooser.desired_step(0.25, state)
    assert accepted
    assert request.size_goal == pytest.approx(0.25 * 2.0)

    state.step_errors = {"u": np.array([4.0e-3])}
    request, accepted = chooser.desired_step(0.25, state)
    assert not accepted
    assert request.size_goal == pytest.approx(0.25 * 0.5)


def test_filter_choosers_by_use_and_type():
    constant = choosers.Constant(0.1)
    times = choosers.StepToTimes([1.0])
    error = choosers.ErrorControl(1.0e-6, 0.0)
    everything = [constant, times, error]
    assert choosers.filter_choosers(everything) == everything
    assert choosers.filter_choosers(everything, use=choosers.SLAB) == [constant]
    assert choosers.filter_choosers(everything, [choosers.Constant, choosers.ErrorControl]) == [constant, error]
