"""Step-size requests and their combination."""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Optional

from ..errors import TimeStepError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TimeStepRequest:
    """Constraints a step chooser places on the next step.

    Attributes
    ----------
    size_goal:
        Step size the chooser would like to use from now on.
    size:
        Limit on the size of the coming step only.
    end:
        Time the coming step should not extend past.
    size_hard_limit, end_hard_limit:
        As ``size`` and ``end``, but a step that cannot be adjusted to
        satisfy them is an error.
    """

    size_goal: Optional[float] = None
    size: Optional[float] = None
    end: Optional[float] = None
    size_hard_limit: Optional[float] = None
    end_hard_limit: Optional[float] = None


class TimeStepRequestProcessor:
    """Accumulate :class:`TimeStepRequest` objects into a single step size.

    All comparisons respect the direction of time: when evolving backwards
    the "most restrictive" step is the one closest to zero from below and
    the "earliest" end is the largest time.
    """

    def __init__(self, time_runs_forward: bool) -> None:
        self.time_runs_forward = bool(time_runs_forward)
        self._size_goal: Optional[float] = None
        self._size: Optional[float] = None
        self._end: Optional[float] = None
        self._size_hard_limit: Optional[float] = None
        self._end_hard_limit: Optional[float] = None

    def _earlier(self, current: Optional[float], candidate: Optional[float]) -> Optional[float]:
        if candidate is None:
            return current
        if current is None:
            return float(candidate)
        if self.time_runs_forward:
            return min(current, float(candidate))
        return max(current, float(candidate))

    def _check_direction(self, name: str, value: Optional[float]) -> None:
        if value is None:
            return
        if not math.isfinite(value) or value == 0.0:
            raise TimeStepError(f"Requested {name} must be finite and nonzero, got {value}")
        if (value > 0.0) != self.time_runs_forward:
            raise TimeStepError(
                f"Requested {name} {value} points against the direction of time"
            )

    def process(self, request: TimeStepRequest) -> None:
        self._check_direction("size_goal", request.size_goal)
        self._check_direction("size", request.size)
        self._check_direction("size_hard_limit", request.size_hard_limit)
        self._size_goal = self._earlier(self._size_goal, request.size_goal)
        self._size = self._earlier(self._size, request.size)
        self._end = self._earlier(self._end, request.end)
        self._size_hard_limit = self._earlier(self._size_hard_limit, request.size_hard_limit)
        self._end_hard_limit = self._earlier(self._end_hard_limit, request.end_hard_limit)

    def new_step_size_goal(self) -> Optional[float]:
        return self._size_goal

    def _after(self, end: float, start: float) -> bool:
        return end > start if self.time_runs_forward else end < start

    def step_size(self, step_start: float, step_size: float) -> float:
        """Return the desired step starting at ``step_start``.

        ``step_size`` is the previous step and is used when no chooser
        supplied a goal.
        """

        result = self._size_goal if self._size_goal is not None else float(step_size)
        result = self._earlier(result, self._size)
        if self._end is not None and self._after(self._end, step_start):
            result = self._earlier(result, self._end - step_start)
        result = self._earlier(result, self._size_hard_limit)
        if self._end_hard_limit is not None and self._after(self._end_hard_limit, step_start):
            result = self._earlier(result, self._end_hard_limit - step_start)
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                "step_size: start=%.6e previous=%.6e goal=%s size=%s end=%s -> %.6e",
                step_start,
                step_size,
                self._size_goal,
                self._size,
                self._end,
                result,
            )
        return float(result)

    def error_on_hard_limit(self, size: float, end: float) -> None:
        """Raise if a step of ``size`` ending at ``end`` violates a hard limit."""

        if self._size_hard_limit is not None and abs(size) > abs(self._size_hard_limit):
            raise TimeStepError(
                f"Could not adjust step below {self._size_hard_limit} to avoid exceeding "
                f"a hard limit; the step taken was {size}."
            )
        if self._end_hard_limit is not None and self._after(end, self._end_hard_limit):
            raise TimeStepError(
                f"Could not adjust step to avoid passing the hard end limit "
                f"{self._end_hard_limit}; the step ends at {end}."
            )


__all__ = ["TimeStepRequest", "TimeStepRequestProcessor"]
