"""Cylindrical and spherical Sod explosion initial data.

The initial state is a discontinuity at ``initial_radius`` in the
cylindrical (2d) or spherical (3d) radius::

    (rho, v, p) = (rho_in, 0, p_in)    if r <= initial_radius
                  (rho_out, 0, p_out)  otherwise

with an ideal gas of adiabatic index 1.4 (Toro 2009; Sod 1978).  The
common choice ``(1, 0, 1)`` inside and ``(0.125, 0, 0.1)`` outside a
radius of 0.5 is the default.
"""
from __future__ import annotations

import logging
from typing import Dict, Iterable

import numpy as np

from ..constants import SOD_ADIABATIC_INDEX, SodDefaults
from ..errors import ConfigurationError, PhysicsError
from .eos import IdealFluid

logger = logging.getLogger(__name__)

_DEFAULTS = SodDefaults()

VARIABLE_NAMES = (
    "rest_mass_density",
    "spatial_velocity",
    "pressure",
    "specific_internal_energy",
)


class SodExplosion:
    """Analytic initial data for the Sod explosion in ``dim`` = 2 or 3."""

    def __init__(
        self,
        dim: int,
        initial_radius: float = _DEFAULTS.initial_radius,
        inner_mass_density: float = _DEFAULTS.inner_mass_density,
        inner_pressure: float = _DEFAULTS.inner_pressure,
        outer_mass_density: float = _DEFAULTS.outer_mass_density,
        outer_pressure: float = _DEFAULTS.outer_pressure,
    ) -> None:
        if dim not in (2, 3):
            raise ConfigurationError(f"Sod explosion is a 2d and 3d problem, got dim={dim}")
        values = {
            "initial_radius": initial_radius,
            "inner_mass_density": inner_mass_density,
            "inner_pressure": inner_pressure,
            "outer_mass_density": outer_mass_density,
            "outer_pressure": outer_pressure,
        }
        for name, value in values.items():
            if not np.isfinite(value) or value <= 0.0:
                raise PhysicsError(f"{name} must be positive and finite, got {value}")
        if inner_mass_density <= outer_mass_density:
            raise PhysicsError(
                f"The inner mass density ({inner_mass_density}) must be greater than the "
                f"outer mass density ({outer_mass_density})"
            )
        if inner_pressure <= outer_pressure:
            raise PhysicsError(
                f"The inner pressure ({inner_pressure}) must be greater than the "
                f"outer pressure ({outer_pressure})"
            )
        self.dim = int(dim)
        self.initial_radius = float(initial_radius)
        self.inner_mass_density = float(inner_mass_density)
        self.inner_pressure = float(inner_pressure)
        self.outer_mass_density = float(outer_mass_density)
        self.outer_pressure = float(outer_pressure)
        self.equation_of_state = IdealFluid(SOD_ADIABATIC_INDEX)

    def _inside(self, x) -> np.ndarray:
        coords = np.asarray(x, dtype=float)
        if coords.shape[0] != self.dim:
            raise ConfigurationError(
                f"Expected coordinates with leading dimension {self.dim}, got {coords.shape}"
            )
        radius = np.sqrt(np.sum(coords * coords, axis=0))
        return radius <= self.initial_radius

    def variables(self, x, names: Iterable[str] = VARIABLE_NAMES) -> Dict[str, np.ndarray]:
        """Evaluate the requested primitive variables at coordinates ``x``.

        Parameters
        ----------
        x:
            Coordinates of shape ``(dim,)`` or ``(dim, N)``.
        names:
            Any of :data:`VARIABLE_NAMES`.

        Returns
        -------
        dict
            Scalars have the trailing shape of ``x``; ``spatial_velocity``
            has the shape of ``x``.
        """

        inside = self._inside(x)
        density = np.where(inside, self.inner_mass_density, self.outer_mass_density)
        pressure = np.where(inside, self.inner_pressure, self.outer_pressure)
        result: Dict[str, np.ndarray] = {}
        for name in names:
            if name == "rest_mass_density":
                result[name] = density
            elif name == "pressure":
                result[name] = pressure
            elif name == "spatial_velocity":
                result[name] = np.zeros(np.shape(x))
            elif name == "specific_internal_energy":
                result[name] = self.equation_of_state.specific_internal_energy_from_density_and_pressure(
                    density, pressure
                )
            else:
                raise ConfigurationError(
                    f"Unknown Sod explosion variable '{name}'; expected one of {VARIABLE_NAMES}"
                )
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("SodExplosion.variables: %d of %d points inside", int(np.sum(inside)), inside.size)
        return result

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SodExplosion):
            return False
        return (
            self.dim,
            self.initial_radius,
            self.inner_mass_density,
            self.inner_pressure,
            self.outer_mass_density,
            self.outer_pressure,
        ) == (
            other.dim,
            other.initial_radius,
            other.inner_mass_density,
            other.inner_pressure,
            other.outer_mass_density,
            other.outer_pressure,
        )

    __hash__ = None  # type: ignore[assignment]


__all__ = ["SodExplosion", "VARIABLE_NAMES"]
