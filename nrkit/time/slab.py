"""Exact time bookkeeping for local time stepping.

Times are stored as a rational fraction of a *slab*, a fixed global
interval.  Steps are power-of-two fractions of the slab duration so that
elements with different step sizes meet exactly at slab boundaries.
Floating point values are only produced on request via ``value()``.
"""
from __future__ import annotations

from dataclasses import dataclass
from fractions import Fraction
from typing import Union

from ..errors import TimeStepError

Rational = Union[int, Fraction]


@dataclass(frozen=True)
class Slab:
    """A time interval ``[start, end]`` with ``start < end``."""

    start: float
    end: float

    def __post_init__(self) -> None:
        if not self.start < self.end:
            raise TimeStepError(f"Slab must have start < end, got [{self.start}, {self.end}]")

    def start_time(self) -> "Time":
        return Time(self, Fraction(0))

    def end_time(self) -> "Time":
        return Time(self, Fraction(1))

    def duration(self) -> "TimeDelta":
        return TimeDelta(self, Fraction(1))

    def advance(self) -> "Slab":
        """Return the following slab of the same length."""
        return Slab(self.end, self.end + (self.end - self.start))

    def retreat(self) -> "Slab":
        """Return the preceding slab of the same length."""
        return Slab(self.start - (self.end - self.start), self.start)

    def advance_towards(self, delta: "TimeDelta") -> "Slab":
        return self.advance() if delta.is_positive() else self.retreat()

    def __str__(self) -> str:
        return f"Slab[{self.start},{self.end}]"


@dataclass(frozen=True, eq=False)
class Time:
    """A point in time expressed as ``slab.start + fraction * duration``."""

    slab: Slab
    fraction: Fraction

    def __post_init__(self) -> None:
        fraction = Fraction(self.fraction)
        if fraction < 0 or fraction > 1:
            raise TimeStepError(f"Time fraction {fraction} is outside of {self.slab}")
        object.__setattr__(self, "fraction", fraction)

    def value(self) -> float:
        if self.fraction == 1:
            return self.slab.end
        length = self.slab.end - self.slab.start
        return self.slab.start + length * float(self.fraction)

    def is_at_slab_boundary(self) -> bool:
        return self.fraction == 0 or self.fraction == 1

    def with_slab(self, slab: Slab) -> "Time":
        """Re-express a slab-boundary time relative to an adjacent slab."""

        if slab == self.slab:
            return self
        if self.fraction == 1 and slab.start == self.slab.end:
            return Time(slab, Fraction(0))
        if self.fraction == 0 and slab.end == self.slab.start:
            return Time(slab, Fraction(1))
        raise TimeStepError(f"Cannot move {self} to unrelated {slab}")

    def _key(self) -> tuple:
        if self.fraction == 1:
            return (self.slab.end, Fraction(0))
        return (self.slab.start, self.fraction)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Time):
            return NotImplemented
        return self._key() == other._key()

    def __hash__(self) -> int:
        return hash(self._key())

    def __lt__(self, other: "Time") -> bool:
        return self._key() < other._key()

    def __le__(self, other: "Time") -> bool:
        return self._key() <= other._key()

    def __gt__(self, other: "Time") -> bool:
        return self._key() > other._key()

    def __ge__(self, other: "Time") -> bool:
        return self._key() >= other._key()

    def __add__(self, delta: "TimeDelta") -> "Time":
        if not isinstance(delta, TimeDelta):
            return NotImplemented
        base = self.with_slab(delta.slab)
        fraction = base.fraction + delta.fraction
        if fraction < 0 or fraction > 1:
            raise TimeStepError(
                f"Adding {delta} to {self} would leave the slab {delta.slab}"
            )
        return Time(delta.slab, fraction)

    def __sub__(self, other: Union["Time", "TimeDelta"]) -> Union["Time", "TimeDelta"]:
        if isinstance(other, TimeDelta):
            return self + (-other)
        if isinstance(other, Time):
            lhs, rhs = self, other
            if other.slab != self.slab:
                if self.is_at_slab_boundary() and not other.is_at_slab_boundary():
                    lhs = self.with_slab(other.slab)
                else:
                    rhs = other.with_slab(self.slab)
            return TimeDelta(lhs.slab, lhs.fraction - rhs.fraction)
        return NotImplemented

    def __str__(self) -> str:
        return f"{self.value()}:{self.slab}:{self.fraction}"


@dataclass(frozen=True)
class TimeDelta:
    """A signed step length expressed as a fraction of a slab duration."""

    slab: Slab
    fraction: Fraction

    def __post_init__(self) -> None:
        object.__setattr__(self, "fraction", Fraction(self.fraction))

    def value(self) -> float:
        return (self.slab.end - self.slab.start) * float(self.fraction)

    def is_positive(self) -> bool:
        return self.fraction > 0

    def with_slab(self, slab: Slab) -> "TimeDelta":
        return TimeDelta(slab, self.fraction)

    def __neg__(self) -> "TimeDelta":
        return TimeDelta(self.slab, -self.fraction)

    def __abs__(self) -> "TimeDelta":
        return TimeDelta(self.slab, abs(self.fraction))

    def __mul__(self, factor: Rational) -> "TimeDelta":
        if isinstance(factor, (int, Fraction)):
            return TimeDelta(self.slab, self.fraction * factor)
        return NotImplemented

    __rmul__ = __mul__

    def __truediv__(self, divisor: Rational) -> "TimeDelta":
        if isinstance(divisor, (int, Fraction)):
            return TimeDelta(self.slab, self.fraction / divisor)
        return NotImplemented

    def _check_slab(self, other: "TimeDelta") -> None:
        if self.slab != other.slab:
            raise TimeStepError(f"Cannot compare steps in {self.slab} and {other.slab}")

    def __lt__(self, other: "TimeDelta") -> bool:
        self._check_slab(other)
        return self.fraction < other.fraction

    def __le__(self, other: "TimeDelta") -> bool:
        self._check_slab(other)
        return self.fraction <= other.fraction

    def __gt__(self, other: "TimeDelta") -> bool:
        self._check_slab(other)
        return self.fraction > other.fraction

    def __ge__(self, other: "TimeDelta") -> bool:
        self._check_slab(other)
        return self.fraction >= other.fraction

    def __str__(self) -> str:
        return f"{self.value()}:{self.slab}:{self.fraction}"


@dataclass(frozen=True)
class TimeStepId:
    """Identifier of a (sub)step of an evolution.

    ``slab_number`` counts slabs from the start of the evolution; negative
    values are reserved for self-start steps.
    """

    time_runs_forward: bool
    slab_number: int
    step_time: Time
    substep: int = 0

    def is_at_slab_boundary(self) -> bool:
        return self.substep == 0 and self.step_time.is_at_slab_boundary()

    def is_self_starting(self) -> bool:
        return self.slab_number < 0

    def __str__(self) -> str:
        return f"{self.slab_number}:{self.step_time}:{self.substep}"


def evolution_less(time_runs_forward: bool):
    """Return an ordering predicate that follows the direction of time."""

    if time_runs_forward:
        return lambda a, b: a < b
    return lambda a, b: b < a


__all__ = ["Slab", "Time", "TimeDelta", "TimeStepId", "evolution_less"]
