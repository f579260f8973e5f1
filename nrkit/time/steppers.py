"""Multistep time steppers usable with local time stepping.

The only concrete stepper is a variable-step Adams-Bashforth method.  Its
coefficients are recomputed every step from the actual history times, so
step-size changes (including the power-of-two changes produced by the
LTS controller) need no special treatment.
"""
from __future__ import annotations

import abc
import logging
from dataclasses import dataclass
from typing import Iterator, List, Optional, Tuple

import numpy as np

from .. import constants
from ..errors import ConfigurationError, TimeStepError
from .slab import Time, TimeDelta, TimeStepId, evolution_less

logger = logging.getLogger(__name__)


@dataclass
class HistoryRecord:
    time_step_id: TimeStepId
    value: np.ndarray
    derivative: np.ndarray


class History:
    """Time-ordered stepper history for one set of evolved variables."""

    def __init__(self, integration_order: int = 1) -> None:
        self.integration_order = int(integration_order)
        self._records: List[HistoryRecord] = []

    def insert(self, time_step_id: TimeStepId, value: np.ndarray, derivative: np.ndarray) -> None:
        self._records.append(
            HistoryRecord(
                time_step_id=time_step_id,
                value=np.array(value, copy=True),
                derivative=np.array(derivative, copy=True),
            )
        )

    def discard_before(self, keep: int) -> None:
        """Keep only the ``keep`` most recent records."""

        if keep <= 0:
            self._records.clear()
        elif len(self._records) > keep:
            del self._records[: len(self._records) - keep]

    def back(self) -> HistoryRecord:
        if not self._records:
            raise IndexError("History is empty")
        return self._records[-1]

    def clear(self) -> None:
        self._records.clear()

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[HistoryRecord]:
        return iter(self._records)

    def __getitem__(self, index: int) -> HistoryRecord:
        return self._records[index]


class LtsTimeStepper(abc.ABC):
    """Interface of a time stepper supporting local time stepping."""

    @property
    @abc.abstractmethod
    def order(self) -> int:
        ...

    @abc.abstractmethod
    def number_of_substeps(self) -> int:
        ...

    @abc.abstractmethod
    def can_change_step_size(self, time_step_id: TimeStepId, history: History) -> bool:
        ...

    @abc.abstractmethod
    def next_time_id(self, time_step_id: TimeStepId, time_step: TimeDelta) -> TimeStepId:
        ...

    @abc.abstractmethod
    def update_u(
        self, u: np.ndarray, history: History, time_step: TimeDelta
    ) -> Tuple[np.ndarray, Optional[np.ndarray]]:
        ...

    @abc.abstractmethod
    def start_up_error(
        self, history: History, time_step: TimeDelta, end_derivative: np.ndarray
    ) -> np.ndarray:
        ...

    @abc.abstractmethod
    def clean_history(self, history: History) -> None:
        ...


def _integration_weights(nodes: np.ndarray) -> np.ndarray:
    """Weights ``w`` with ``sum w_j p(x_j) == int_0^1 p`` for deg(p) < len(nodes)."""

    count = nodes.size
    vandermonde = np.vander(nodes, N=count, increasing=True).T
    moments = 1.0 / np.arange(1, count + 1, dtype=float)
    return np.linalg.solve(vandermonde, moments)


class AdamsBashforth(LtsTimeStepper):
    """Variable-step Adams-Bashforth method of order 1 to 8."""

    def __init__(self, order: int) -> None:
        order = int(order)
        if order < 1 or order > constants.MAXIMUM_ADAMS_BASHFORTH_ORDER:
            raise ConfigurationError(
                f"AdamsBashforth order must lie in [1, {constants.MAXIMUM_ADAMS_BASHFORTH_ORDER}], got {order}"
            )
        self._order = order

    @property
    def order(self) -> int:
        return self._order

    def number_of_substeps(self) -> int:
        return 1

    def can_change_step_size(self, time_step_id: TimeStepId, history: History) -> bool:
        if time_step_id.is_self_starting():
            return False
        if len(history) == 0:
            return True
        less = evolution_less(time_step_id.time_runs_forward)
        times: List[Time] = [record.time_step_id.step_time for record in history]
        if less(time_step_id.step_time, times[-1]):
            return False
        return all(less(a, b) for a, b in zip(times, times[1:]))

    def next_time_id(self, time_step_id: TimeStepId, time_step: TimeDelta) -> TimeStepId:
        if time_step_id.substep != 0:
            raise TimeStepError(f"AdamsBashforth has no substeps, got {time_step_id}")
        next_time = time_step_id.step_time + time_step
        slab_number = time_step_id.slab_number
        at_end = next_time.fraction == 1 if time_step.is_positive() else next_time.fraction == 0
        if at_end:
            next_time = next_time.with_slab(next_time.slab.advance_towards(time_step))
            slab_number += 1
        return TimeStepId(
            time_runs_forward=time_step_id.time_runs_forward,
            slab_number=slab_number,
            step_time=next_time,
        )

    def _step(self, history: History, order: int, dt: float) -> np.ndarray:
        records = history[len(history) - order :]
        start = records[-1].time_step_id.step_time.value()
        nodes = np.array(
            [(record.time_step_id.step_time.value() - start) / dt for record in records],
            dtype=float,
        )
        weights = _integration_weights(nodes)
        increment = np.zeros_like(records[-1].derivative)
        for weight, record in zip(weights, records):
            increment = increment + weight * record.derivative
        return dt * increment

    def update_u(
        self, u: np.ndarray, history: History, time_step: TimeDelta
    ) -> Tuple[np.ndarray, Optional[np.ndarray]]:
        """Advance ``u`` by ``time_step`` and return ``(u_new, error_estimate)``.

        The error estimate is the difference between the updates of the
        current and the next-lower order; it is ``None`` while only a single
        history entry is available (see :meth:`start_up_error`).
        """

        if len(history) == 0:
            raise TimeStepError("Cannot take an Adams-Bashforth step with an empty history")
        order = min(self._order, len(history))
        dt = time_step.value()
        increment = self._step(history, order, dt)
        error = None
        if order > 1:
            error = increment - self._step(history, order - 1, dt)
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("update_u: order=%d dt=%.6e history=%d", order, dt, len(history))
        return np.asarray(u) + increment, error

    def start_up_error(
        self, history: History, time_step: TimeDelta, end_derivative: np.ndarray
    ) -> np.ndarray:
        """Error of a forward Euler step taken from a one-entry history.

        The step is compared with the trapezoid rule, which also uses
        ``end_derivative``, the right-hand side at the end of the step.
        """

        if len(history) == 0:
            raise TimeStepError("Cannot estimate a start-up error with an empty history")
        start_derivative = history.back().derivative
        return 0.5 * time_step.value() * (np.asarray(end_derivative) - start_derivative)

    def clean_history(self, history: History) -> None:
        """Drop entries that the next step will no longer use."""

        history.discard_before(self._order - 1)

    def __eq__(self, other: object) -> bool:
        return isinstance(other, AdamsBashforth) and other._order == self._order

    def __hash__(self) -> int:
        return hash(("AdamsBashforth", self._order))

    def __repr__(self) -> str:
        return f"AdamsBashforth(order={self._order})"


__all__ = ["HistoryRecord", "History", "LtsTimeStepper", "AdamsBashforth"]
