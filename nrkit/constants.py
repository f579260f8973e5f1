"""Numerical constants and defaults shared across nrkit.

Values that are fixed by data-file formats (dataset names, legends) live
next to the readers and writers; this module only holds quantities that
several subsystems agree on.
"""
from __future__ import annotations

from dataclasses import dataclass

# Smallest step that can be expressed as a power-of-two slab fraction
# without overflowing a 32 bit denominator.
SMALLEST_RELATIVE_STEP_SIZE: float = 1.0 / (1 << 31)

# Highest Adams-Bashforth order provided by the steppers.
MAXIMUM_ADAMS_BASHFORTH_ORDER: int = 8

# Adiabatic index of the Sod explosion test problem.
SOD_ADIABATIC_INDEX: float = 1.4

# Version attribute written to every HDF5 ``.dat`` dataset.
H5_DAT_VERSION: int = 0


@dataclass(frozen=True)
class SodDefaults:
    """Canonical Sod explosion states (Toro 2009)."""

    initial_radius: float = 0.5
    inner_mass_density: float = 1.0
    inner_pressure: float = 1.0
    outer_mass_density: float = 0.125
    outer_pressure: float = 0.1
