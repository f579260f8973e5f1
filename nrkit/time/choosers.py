"""Step choosers: the sources of :class:`TimeStepRequest` objects.

A chooser inspects the element state after a step and answers with a
request for the next step and whether the step just taken is acceptable.
``uses`` lists where a chooser may be applied: ``"lts_step"`` for the
per-element step controller and ``"slab"`` for choosing slab sizes.
"""
from __future__ import annotations

import abc
import bisect
import logging
import math
import warnings
from typing import TYPE_CHECKING, FrozenSet, Iterable, List, Optional, Sequence, Tuple, Type

import numpy as np

from ..errors import ConfigurationError
from ..warnings import NumericalWarning
from .request import TimeStepRequest

if TYPE_CHECKING:  # pragma: no cover
    from .actions import ElementState

logger = logging.getLogger(__name__)

LTS_STEP = "lts_step"
SLAB = "slab"


class StepChooser(abc.ABC):
    """Base class of all step choosers."""

    uses: FrozenSet[str] = frozenset({LTS_STEP, SLAB})
    uses_error_estimate = False

    @abc.abstractmethod
    def desired_step(self, last_step: float, state: "ElementState") -> Tuple[TimeStepRequest, bool]:
        ...

    def can_be_used_for(self, use: str) -> bool:
        return use in self.uses


def _signed(magnitude: float, state: "ElementState") -> float:
    return magnitude if state.time_step_id.time_runs_forward else -magnitude


def _check_positive(name: str, value: float) -> float:
    value = float(value)
    if not math.isfinite(value) or value <= 0.0:
        raise ConfigurationError(f"{name} must be positive and finite, got {value}")
    return value


class Constant(StepChooser):
    """Request a fixed step size."""

    def __init__(self, value: float) -> None:
        self.value = _check_positive("Constant step", value)

    def desired_step(self, last_step, state):
        return TimeStepRequest(size_goal=_signed(self.value, state)), True


class Increase(StepChooser):
    """Grow the step by a constant factor each step."""

    def __init__(self, factor: float) -> None:
        self.factor = _check_positive("Increase factor", factor)

    def desired_step(self, last_step, state):
        return TimeStepRequest(size_goal=last_step * self.factor), True


class LimitIncrease(StepChooser):
    """Limit the coming step to ``factor`` times the previous one."""

    def __init__(self, factor: float) -> None:
        self.factor = _check_positive("LimitIncrease factor", factor)

    def desired_step(self, last_step, state):
        return TimeStepRequest(size=last_step * self.factor), True


class Maximum(StepChooser):
    """Limit the coming step to a fixed magnitude."""

    def __init__(self, value: float) -> None:
        self.value = _check_positive("Maximum step", value)

    def desired_step(self, last_step, state):
        return TimeStepRequest(size=_signed(self.value, state)), True


class StepToTimes(StepChooser):
    """Avoid stepping over any of a list of times.

    The request limits the step that starts where the current one ends.
    """

    uses = frozenset({LTS_STEP})

    def __init__(self, times: Iterable[float]) -> None:
        self.times: List[float] = sorted(float(t) for t in times)

    def desired_step(self, last_step, state):
        now = (state.time_step_id.step_time + state.time_step).value()
        if state.time_step_id.time_runs_forward:
            index = bisect.bisect_right(self.times, now)
            if index == len(self.times):
                return TimeStepRequest(), True
            return TimeStepRequest(end=self.times[index]), True
        index = bisect.bisect_left(self.times, now)
        if index == 0:
            return TimeStepRequest(), True
        return TimeStepRequest(end=self.times[index - 1]), True


class ErrorControl(StepChooser):
    """Choose steps from the stepper's local error estimate.

    The scaled error is ``max |err| / (atol + rtol * max |u|)`` over all
    evolved variables.  The step is rejected when it exceeds one; the next
    step is ``safety * err**(-1/order)`` times the last one, clipped to
    ``[min_factor, max_factor]``.
    """

    uses = frozenset({LTS_STEP})
    uses_error_estimate = True

    def __init__(
        self,
        absolute_tolerance: float,
        relative_tolerance: float,
        *,
        safety_factor: float = 0.9,
        min_factor: float = 0.1,
        max_factor: float = 2.0,
        variables: Optional[Sequence[str]] = None,
    ) -> None:
        self.absolute_tolerance = _check_positive("absolute_tolerance", absolute_tolerance)
        self.relative_tolerance = float(relative_tolerance)
        if self.relative_tolerance < 0.0:
            raise ConfigurationError("relative_tolerance must be non-negative")
        self.safety_factor = _check_positive("safety_factor", safety_factor)
        self.min_factor = _check_positive("min_factor", min_factor)
        self.max_factor = _check_positive("max_factor", max_factor)
        if self.min_factor > 1.0 or self.max_factor < 1.0:
            raise ConfigurationError("ErrorControl requires min_factor <= 1 <= max_factor")
        self.variables = None if variables is None else tuple(variables)

    def scaled_error(self, state: "ElementState") -> Optional[float]:
        names = self.variables if self.variables is not None else tuple(state.step_errors)
        worst: Optional[float] = None
        for name in names:
            error = state.step_errors.get(name)
            if error is None:
                continue
            scale = self.absolute_tolerance + self.relative_tolerance * float(
                np.max(np.abs(state.variables[name]))
            )
            value = float(np.max(np.abs(error))) / scale
            if not math.isfinite(value):
                return value
            worst = value if worst is None else max(worst, value)
        return worst

    def desired_step(self, last_step, state):
        error = self.scaled_error(state)
        if error is None:
            return TimeStepRequest(), True
        order = state.time_stepper.order
        if not math.isfinite(error):
            warnings.warn(
                f"{state.name}: non-finite local error estimate at t={state.time}; shrinking the step",
                NumericalWarning,
                stacklevel=2,
            )
            return TimeStepRequest(size_goal=last_step * self.min_factor), False
        if error == 0.0:
            factor = self.max_factor
        else:
            factor = self.safety_factor * error ** (-1.0 / order)
            factor = min(max(factor, self.min_factor), self.max_factor)
        accepted = error <= 1.0
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                "ErrorControl: error=%.3e factor=%.3f accepted=%s", error, factor, accepted
            )
        return TimeStepRequest(size_goal=last_step * factor), accepted


def filter_choosers(
    choosers: Iterable[StepChooser],
    allowed: Optional[Sequence[Type[StepChooser]]] = None,
    use: str = LTS_STEP,
) -> List[StepChooser]:
    """Return the choosers applicable to ``use`` and, optionally, of ``allowed`` types."""

    selected = []
    for chooser in choosers:
        if not chooser.can_be_used_for(use):
            continue
        if allowed is not None and not isinstance(chooser, tuple(allowed)):
            continue
        selected.append(chooser)
    return selected


__all__ = [
    "LTS_STEP",
    "SLAB",
    "StepChooser",
    "Constant",
    "Increase",
    "LimitIncrease",
    "Maximum",
    "StepToTimes",
    "ErrorControl",
    "filter_choosers",
]
