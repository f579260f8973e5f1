from fractions import Fraction

import numpy as np
import pytest

from nrkit.errors import ConfigurationError, TimeStepError
from nrkit.time import (
    Action,
    ActionList,
    AdvanceTime,
    ChangeStepSize,
    RecordTimeDerivative,
    UpdateU,
    change_step_size,
    default_action_list,
    run_action_list,
    take_step,
)
from nrkit.time.choosers import Constant, StepChooser, StepToTimes
from nrkit.time.request import TimeStepRequest
from nrkit.time.slab import TimeStepId


class RejectFirst(StepChooser):
    """Reject the first step, asking for half of it, then accept everything."""

    def __init__(self):
        self.calls = 0

    def desired_step(self, last_step, state):
        self.calls += 1
        if self.calls == 1:
            return TimeStepRequest(size_goal=0.5 * last_step), False
        return TimeStepRequest(size_goal=last_step), True


class AlwaysReject(StepChooser):
    def desired_step(self, last_step, state):
        return TimeStepRequest(size_goal=last_step), False


class HardLimit(StepChooser):
    def desired_step(self, last_step, state):
        return TimeStepRequest(size_hard_limit=0.1), True


def test_accepted_step_sets_next_step(make_state):
    state = make_state([Constant(0.1)])
    take_step(state)
    assert state.time_step.fraction == Fraction(1, 4)
    assert state.next_time_step.fraction == Fraction(1, 16)
    assert state.diagnostics.number_of_step_rejections == 0
    np.testing.assert_allclose(state.variables["u"], [0.75])


def test_rejected_step_is_retried_from_the_saved_state(make_state):
    chooser = RejectFirst()
    state = make_state([chooser])
    take_step(state)
    assert chooser.calls == 2
    assert state.diagnostics.number_of_step_rejections == 1
    assert state.time_step.fraction == Fraction(1, 8)
    assert state.next_time_step_id.step_time.fraction == Fraction(1, 8)
    np.testing.assert_allclose(state.variables["u"], [0.875])


def test_rejection_without_change_is_an_error(make_state):
    state = make_state([AlwaysReject()])
    with pytest.raises(TimeStepError, match="rejected, but not changed"):
        take_step(state)


def test_minimum_time_step_is_enforced(make_state):
    state = make_state([Constant(1.0e-3)], minimum_time_step=1.0e-2)
    with pytest.raises(TimeStepError, match="minimum time step"):
        take_step(state)


def test_unrepresentable_step_is_an_error(make_state):
    state = make_state([Constant(1.0e-12)])
    with pytest.raises(TimeStepError, match="integer overflow"):
        take_step(state)


def test_fixed_ratio_ignores_choosers(make_state):
    state = make_state([AlwaysReject()], fixed_lts_ratio=8)
    take_step(state)
    assert state.next_time_step.fraction == Fraction(1, 8)
    assert state.diagnostics.number_of_step_rejections == 0


def test_fixed_ratio_must_be_power_of_two(make_state):
    state = make_state(fixed_lts_ratio=3)
    with pytest.raises(ConfigurationError):
        take_step(state)


def test_hard_limit_violation_is_reported(make_state):
    state = make_state([HardLimit()])
    with pytest.raises(TimeStepError, match="hard limit"):
        take_step(state)


def test_self_start_keeps_step_but_checks_hard_limits(make_state):
    state = make_state([Constant(0.1)])
    state.time_step_id = TimeStepId(True, -1, state.time_step_id.step_time)
    assert change_step_size(state)
    assert state.next_time_step.fraction == Fraction(1, 4)

    limited = make_state([HardLimit()])
    limited.time_step_id = TimeStepId(True, -1, limited.time_step_id.step_time)
    with pytest.raises(TimeStepError):
        change_step_size(limited)


def test_substeps_cannot_change_step_size(make_state):
    state = make_state([Constant(0.1)])
    state.time_step_id = TimeStepId(True, 0, state.time_step_id.step_time, substep=1)
    with pytest.raises(TimeStepError, match="substep"):
        change_step_size(state)


def test_choosers_to_use_restricts_consulted_choosers(make_state):
    state = make_state([Constant(0.1), AlwaysReject()])
    take_step(state, choosers_to_use=[Constant])
    assert state.next_time_step.fraction == Fraction(1, 16)


def test_change_step_size_requires_update_u():
    with pytest.raises(ConfigurationError, match="UpdateU"):
        ActionList([RecordTimeDerivative(), ChangeStepSize(), AdvanceTime()])
    actions = ActionList([RecordTimeDerivative(), UpdateU(), ChangeStepSize(), AdvanceTime()])
    assert actions.index_of(UpdateU) == 1
    assert actions.index_of(Constant) is None


def test_action_loop_unwinds_rejected_steps(make_state):
    chooser = RejectFirst()
    state = make_state([chooser], order=2)
    completed = []
    run_action_list(state, default_action_list(), 1.0, on_step=lambda s: completed.append(s.time))
    assert state.time == pytest.approx(1.0)
    assert state.time_step_id.slab_number == 1
    assert state.diagnostics.number_of_step_rejections == 1
    assert state.diagnostics.number_of_steps == len(completed) == 8
    assert completed == sorted(completed)
    assert abs(state.variables["u"][0] - np.exp(-1.0)) < 2.0e-2


def test_max_iterations_bounds_the_loop(make_state):
    state = make_state([Constant(1.0e-3)])
    with pytest.raises(TimeStepError, match="exceeded"):
        run_action_list(state, default_action_list(), 1.0, max_iterations=10)


def test_step_to_times_lands_on_every_listed_time(make_state):
    state = make_state([Constant(0.5), StepToTimes([0.75, 1.25])], initial_step=0.5, slab_size=1.0)
    completed = []
    run_action_list(state, default_action_list(), 2.0, on_step=lambda s: completed.append(s.time))
    assert completed == [0.5, 0.75, 1.0, 1.25, 1.5, 2.0]
    assert state.diagnostics.number_of_step_rejections == 0


def test_accepted_step_limits_next_step_from_its_end(make_state):
    state = make_state([Constant(0.5), StepToTimes([0.75])], initial_step=0.5)
    take_step(state)
    assert state.time_step.fraction == Fraction(1, 2)
    assert state.next_time_step.fraction == Fraction(1, 4)


def test_backward_evolution_crosses_slabs(make_state):
    state = make_state([Constant(1.0 / 16.0)], order=2, initial_step=1.0 / 16.0, time_runs_forward=False)
    assert state.time_step.fraction == Fraction(-1, 16)
    completed = []
    run_action_list(state, default_action_list(), -1.0, on_step=lambda s: completed.append(s.time))
    assert state.time == pytest.approx(-1.0)
    assert completed == sorted(completed, reverse=True)
    assert state.diagnostics.number_of_steps == 16
    assert state.diagnostics.number_of_slabs == 2
    assert state.time_step_id.slab_number == 1
    assert state.time_step.slab.end == pytest.approx(-1.0)
    assert abs(state.variables["u"][0] - np.exp(1.0)) < 2.0e-2


def test_backward_evolution_steps_to_times(make_state):
    state = make_state([Constant(0.25), StepToTimes([-0.375, 0.5])], order=2, time_runs_forward=False)
    completed = []
    run_action_list(state, default_action_list(), -1.0, on_step=lambda s: completed.append(s.time))
    assert completed == [-0.25, -0.375, -0.5, -0.75, -1.0]
    assert state.diagnostics.number_of_step_fraction_changes == 2


def test_action_base_class_is_abstract():
    with pytest.raises(TypeError):
        Action()
