"""Conversion of a desired step size into a power-of-two slab fraction."""
from __future__ import annotations

import math
from fractions import Fraction

from ..errors import TimeStepError
from .slab import Time, TimeDelta


def choose_lts_step_size(time: Time, desired_step: float) -> TimeDelta:
    """Return the largest admissible LTS step not exceeding ``desired_step``.

    Admissible steps are ``slab_duration / 2**n``.  The step count is at
    least the denominator of ``time``'s slab fraction so that repeating the
    step from ``time`` reaches the slab boundary exactly.
    """

    if desired_step == 0.0 or not math.isfinite(desired_step):
        raise TimeStepError(f"Desired step must be finite and nonzero, got {desired_step}")

    forward = desired_step > 0.0
    slab = time.slab
    fraction = time.fraction
    if forward and fraction == 1:
        slab = slab.advance()
        fraction = Fraction(0)
    elif not forward and fraction == 0:
        slab = slab.retreat()
        fraction = Fraction(1)

    slab_length = slab.end - slab.start
    desired_step_count = abs(slab_length / desired_step)
    if desired_step_count <= 1.0:
        desired_power = 0
    else:
        desired_power = int(math.ceil(math.log2(desired_step_count)))
    step_count = max(fraction.denominator, 1 << desired_power)
    step = Fraction(1, step_count)
    return TimeDelta(slab, step if forward else -step)


__all__ = ["choose_lts_step_size"]
