"""Element state, step-size control and the action loop for LTS evolutions.

An element is advanced by repeatedly running an :class:`ActionList`, e.g.::

    RecordTimeDerivative -> UpdateU -> ChangeStepSize -> AdvanceTime

``ChangeStepSize`` may reject the step just taken.  It then shrinks the
current step and jumps back to ``UpdateU``, which restores the variables
saved before the failed attempt and retries.
"""
from __future__ import annotations

import abc
import enum
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterator, List, Optional, Sequence, Tuple, Type

import numpy as np

from .. import constants
from ..errors import ConfigurationError, TimeStepError
from .choose_lts import choose_lts_step_size
from .choosers import LTS_STEP, StepChooser, filter_choosers
from .diagnostics import AdaptiveSteppingDiagnostics
from .request import TimeStepRequest, TimeStepRequestProcessor
from .slab import Slab, Time, TimeDelta, TimeStepId
from .steppers import History, LtsTimeStepper

logger = logging.getLogger(__name__)

RhsFunction = Callable[[float, Dict[str, np.ndarray]], Dict[str, np.ndarray]]


class AlgorithmExecution(enum.Enum):
    CONTINUE = "continue"
    HALT = "halt"


ActionResult = Tuple[AlgorithmExecution, Optional[int]]


@dataclass
class _UnwindPoint:
    time_step_id: TimeStepId
    variables: Dict[str, np.ndarray]


@dataclass
class ElementState:
    """Everything the stepping actions read and modify for one element."""

    name: str
    time_stepper: LtsTimeStepper
    step_choosers: List[StepChooser]
    time_step_id: TimeStepId
    time_step: TimeDelta
    next_time_step: TimeDelta
    next_time_step_id: TimeStepId
    variables: Dict[str, np.ndarray]
    rhs: RhsFunction
    histories: Dict[str, History]
    minimum_time_step: float = 0.0
    fixed_lts_ratio: Optional[int] = None
    diagnostics: AdaptiveSteppingDiagnostics = field(default_factory=AdaptiveSteppingDiagnostics)
    step_errors: Dict[str, Optional[np.ndarray]] = field(default_factory=dict)
    unwind_point: Optional[_UnwindPoint] = None

    @classmethod
    def create(
        cls,
        name: str,
        time_stepper: LtsTimeStepper,
        step_choosers: Sequence[StepChooser],
        variables: Dict[str, np.ndarray],
        rhs: RhsFunction,
        *,
        initial_time: float,
        slab_size: float,
        initial_step: float,
        time_runs_forward: bool = True,
        minimum_time_step: float = 0.0,
        fixed_lts_ratio: Optional[int] = None,
    ) -> "ElementState":
        """Build the state at the start of the first slab."""

        if slab_size <= 0.0:
            raise ConfigurationError("slab_size must be positive")
        if initial_step <= 0.0:
            raise ConfigurationError("initial_step must be positive")
        if time_runs_forward:
            slab = Slab(initial_time, initial_time + slab_size)
            step_time = slab.start_time()
        else:
            slab = Slab(initial_time - slab_size, initial_time)
            step_time = slab.end_time()
        desired = initial_step if time_runs_forward else -initial_step
        time_step = choose_lts_step_size(step_time, desired)
        time_step_id = TimeStepId(time_runs_forward, 0, step_time)
        state = cls(
            name=name,
            time_stepper=time_stepper,
            step_choosers=list(step_choosers),
            time_step_id=time_step_id,
            time_step=time_step,
            next_time_step=time_step,
            next_time_step_id=time_stepper.next_time_id(time_step_id, time_step),
            variables={key: np.array(value, dtype=float, copy=True) for key, value in variables.items()},
            rhs=rhs,
            histories={key: History(time_stepper.order) for key in variables},
            minimum_time_step=float(minimum_time_step),
            fixed_lts_ratio=fixed_lts_ratio,
        )
        state.diagnostics.number_of_slabs = 1
        return state

    @property
    def time(self) -> float:
        return self.time_step_id.step_time.value()

    @property
    def uses_error_estimate(self) -> bool:
        """Whether a consulted step chooser reads ``step_errors``."""

        if self.fixed_lts_ratio is not None:
            return False
        return any(chooser.uses_error_estimate for chooser in self.step_choosers)


def _is_power_of_two(value: int) -> bool:
    return value > 0 and (value & (value - 1)) == 0


def _checked_lts_step(state: ElementState, start: Time, desired_step: float) -> TimeDelta:
    """Convert ``desired_step`` into an LTS step from ``start``, enforcing the limits."""

    # Checked on the desired value and again on the chosen one, which is
    # usually slightly smaller.
    if abs(desired_step) < state.minimum_time_step:
        raise TimeStepError(
            f"Chosen step size {desired_step} is smaller than the minimum time step of "
            f"{state.minimum_time_step}.\n\n"
            "This can indicate a flaw in the step chooser, the grid, or a simulation "
            "instability that an error-based stepper is naively attempting to resolve."
        )

    slab_length = state.time_step.slab.duration().value()
    if abs(desired_step / slab_length) < constants.SMALLEST_RELATIVE_STEP_SIZE:
        raise TimeStepError(
            f"Chosen step {desired_step} cannot be represented as a fraction of a slab of "
            f"size {slab_length} without integer overflow.  The smallest representable "
            f"step is {constants.SMALLEST_RELATIVE_STEP_SIZE * slab_length}."
        )

    step = choose_lts_step_size(start, desired_step)
    if abs(step.value()) < state.minimum_time_step:
        raise TimeStepError(
            f"Chosen step size after conversion to a fraction of a slab {step.value()} "
            f"is smaller than the minimum time step of {state.minimum_time_step}."
        )
    return step


def change_step_size(
    state: ElementState,
    choosers_to_use: Optional[Sequence[Type[StepChooser]]] = None,
) -> bool:
    """Adjust the step size for local time stepping.

    Returns ``True`` if the step just completed is accepted and ``False``
    if it is rejected.  On acceptance ``state.next_time_step`` is the step
    that starts where the accepted one ends, so ``end`` requests are measured
    from there.  On rejection ``state.time_step`` and
    ``state.next_time_step_id`` describe the retry of the current step,
    sized from the start of that step.

    If ``state.fixed_lts_ratio`` is set the step choosers are not called;
    the desired step is the slab size over that ratio and the step is never
    rejected.  ``choosers_to_use`` restricts the consulted choosers to the
    given classes.
    """

    time_stepper = state.time_stepper
    time_step_id = state.time_step_id
    if time_step_id.substep != 0:
        raise TimeStepError("Can't change step size on a substep.")

    can_change_step_size = all(
        time_stepper.can_change_step_size(time_step_id, history)
        for history in state.histories.values()
    )

    current_step = state.time_step
    slab_duration = current_step.slab.duration()

    step_requests = TimeStepRequestProcessor(time_step_id.time_runs_forward)
    step_accepted = True
    if state.fixed_lts_ratio is not None:
        ratio = int(state.fixed_lts_ratio)
        if not _is_power_of_two(ratio):
            raise ConfigurationError(f"fixed_lts_ratio must be a power of 2, not {ratio}")
        goal = (slab_duration / ratio).value()
        if not time_step_id.time_runs_forward:
            goal = -goal
        step_requests.process(TimeStepRequest(size_goal=goal))
    else:
        last_step_size = current_step.value()
        for step_chooser in filter_choosers(state.step_choosers, choosers_to_use, LTS_STEP):
            step_request, step_choice_accepted = step_chooser.desired_step(last_step_size, state)
            step_requests.process(step_request)
            step_accepted = step_accepted and step_choice_accepted

    step_end = time_step_id.step_time + current_step
    if not can_change_step_size:
        step_requests.error_on_hard_limit(current_step.value(), step_end.value())
        return True

    if step_accepted:
        desired_step = step_requests.step_size(step_end.value(), current_step.value())
        state.next_time_step = _checked_lts_step(state, step_end, desired_step)
        step_requests.error_on_hard_limit(current_step.value(), step_end.value())
        return True

    desired_step = step_requests.step_size(time_step_id.step_time.value(), current_step.value())
    retry_step = _checked_lts_step(state, time_step_id.step_time, desired_step)
    if retry_step == current_step:
        raise TimeStepError(
            "Step was rejected, but not changed."
            f"\ntime_step_id = {time_step_id}"
            f"\ndesired_step = {desired_step}"
            f"\ntime_step = {retry_step}"
        )
    logger.debug(
        "%s: rejected step %s at t=%.6e, retrying with %s",
        state.name,
        current_step.value(),
        time_step_id.step_time.value(),
        retry_step.value(),
    )
    state.time_step = retry_step
    state.next_time_step = retry_step
    state.next_time_step_id = time_stepper.next_time_id(time_step_id, retry_step)
    return False


class Action(abc.ABC):
    """Base class of the stepping actions."""

    @abc.abstractmethod
    def apply(self, state: ElementState, action_list: "ActionList") -> ActionResult:
        ...

    def check_action_list(self, action_list: "ActionList") -> None:
        """Hook to reject action lists this action cannot work in."""


class RecordTimeDerivative(Action):
    """Evaluate the right-hand side and append it to the stepper history."""

    def apply(self, state, action_list):
        derivatives = state.rhs(state.time, state.variables)
        for name, history in state.histories.items():
            state.time_stepper.clean_history(history)
            history.insert(state.time_step_id, state.variables[name], derivatives[name])
        return AlgorithmExecution.CONTINUE, None


class UpdateU(Action):
    """Take the step, first undoing a previous attempt at the same step."""

    def apply(self, state, action_list):
        unwind = state.unwind_point
        if unwind is not None and unwind.time_step_id == state.time_step_id:
            state.variables = {key: value.copy() for key, value in unwind.variables.items()}
        else:
            state.unwind_point = _UnwindPoint(
                time_step_id=state.time_step_id,
                variables={key: value.copy() for key, value in state.variables.items()},
            )
        errors: Dict[str, Optional[np.ndarray]] = {}
        for name, history in state.histories.items():
            state.variables[name], errors[name] = state.time_stepper.update_u(
                state.variables[name], history, state.time_step
            )
        missing = [name for name, error in errors.items() if error is None]
        if missing and state.uses_error_estimate:
            # A one-entry history gives no estimate; compare with the
            # trapezoid rule using the derivative at the end of the step.
            step_end = (state.time_step_id.step_time + state.time_step).value()
            derivatives = state.rhs(step_end, state.variables)
            for name in missing:
                errors[name] = state.time_stepper.start_up_error(
                    state.histories[name], state.time_step, derivatives[name]
                )
        state.step_errors = errors
        return AlgorithmExecution.CONTINUE, None


class ChangeStepSize(Action):
    """Adjust the step size, jumping back to :class:`UpdateU` on rejection."""

    def __init__(self, choosers_to_use: Optional[Sequence[Type[StepChooser]]] = None) -> None:
        self.choosers_to_use = None if choosers_to_use is None else tuple(choosers_to_use)

    def check_action_list(self, action_list):
        if action_list.index_of(UpdateU) is None:
            raise ConfigurationError(
                "The ChangeStepSize action requires that you also use the UpdateU action "
                "to permit step-unwinding.  If you are stepping outside of UpdateU, use "
                "take_step to handle both stepping and step-choosing instead."
            )

    def apply(self, state, action_list):
        if state.time_step_id.substep != 0:
            return AlgorithmExecution.CONTINUE, None
        if change_step_size(state, self.choosers_to_use):
            return AlgorithmExecution.CONTINUE, None
        state.diagnostics.number_of_step_rejections += 1
        return AlgorithmExecution.CONTINUE, action_list.index_of(UpdateU)


class AdvanceTime(Action):
    """Move to the next step, bookkeeping slab and fraction changes."""

    def apply(self, state, action_list):
        old_step = state.time_step
        state.time_step_id = state.next_time_step_id
        new_slab = state.time_step_id.step_time.slab
        new_step = state.next_time_step
        if new_step.slab != new_slab:
            new_step = new_step.with_slab(new_slab)
        if new_slab != old_step.slab:
            state.diagnostics.number_of_slabs += 1
        if new_step.fraction != old_step.fraction:
            state.diagnostics.number_of_step_fraction_changes += 1
        state.diagnostics.number_of_steps += 1
        state.time_step = new_step
        state.next_time_step = new_step
        state.next_time_step_id = state.time_stepper.next_time_id(state.time_step_id, new_step)
        state.unwind_point = None
        return AlgorithmExecution.CONTINUE, None


class ActionList:
    """An ordered, validated sequence of actions."""

    def __init__(self, actions: Sequence[Action]) -> None:
        self._actions: List[Action] = list(actions)
        if not self._actions:
            raise ConfigurationError("An action list needs at least one action")
        for action in self._actions:
            action.check_action_list(self)

    def index_of(self, action_type: Type[Action]) -> Optional[int]:
        for index, action in enumerate(self._actions):
            if isinstance(action, action_type):
                return index
        return None

    def __len__(self) -> int:
        return len(self._actions)

    def __getitem__(self, index: int) -> Action:
        return self._actions[index]

    def __iter__(self) -> Iterator[Action]:
        return iter(self._actions)


def default_action_list(
    choosers_to_use: Optional[Sequence[Type[StepChooser]]] = None,
) -> ActionList:
    return ActionList(
        [RecordTimeDerivative(), UpdateU(), ChangeStepSize(choosers_to_use), AdvanceTime()]
    )


def take_step(
    state: ElementState,
    choosers_to_use: Optional[Sequence[Type[StepChooser]]] = None,
) -> None:
    """Take one step and choose the next one without an action list.

    The step is retried with a smaller size until the step choosers accept
    it.  Time is not advanced.
    """

    RecordTimeDerivative().apply(state, None)
    update = UpdateU()
    while True:
        update.apply(state, None)
        if change_step_size(state, choosers_to_use):
            break
        state.diagnostics.number_of_step_rejections += 1


def _reached(state: ElementState, final_time: float) -> bool:
    # Slab boundaries accumulate rounding; no step is shorter than this.
    slack = abs(state.time_step.slab.duration().value()) * constants.SMALLEST_RELATIVE_STEP_SIZE
    if state.time_step_id.time_runs_forward:
        return state.time >= final_time - slack
    return state.time <= final_time + slack


def run_action_list(
    state: ElementState,
    action_list: ActionList,
    final_time: float,
    *,
    on_step: Optional[Callable[[ElementState], None]] = None,
    max_iterations: Optional[int] = None,
) -> ElementState:
    """Run ``action_list`` repeatedly until ``final_time`` is reached.

    ``on_step`` is invoked each time the list wraps around, i.e. once per
    completed step.  ``max_iterations`` bounds the number of action
    invocations.
    """

    index = 0
    iterations = 0
    while True:
        if index == 0 and _reached(state, final_time):
            break
        if max_iterations is not None and iterations >= max_iterations:
            raise TimeStepError(
                f"{state.name}: exceeded {max_iterations} action invocations before t={final_time}"
            )
        execution, jump = action_list[index].apply(state, action_list)
        iterations += 1
        if execution is AlgorithmExecution.HALT:
            break
        index = jump if jump is not None else index + 1
        if index >= len(action_list):
            index = 0
            if on_step is not None:
                on_step(state)
    return state


__all__ = [
    "AlgorithmExecution",
    "ElementState",
    "change_step_size",
    "Action",
    "RecordTimeDerivative",
    "UpdateU",
    "ChangeStepSize",
    "AdvanceTime",
    "ActionList",
    "default_action_list",
    "take_step",
    "run_action_list",
]
