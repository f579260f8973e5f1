"""Equations of state."""
from __future__ import annotations

import logging

import numpy as np

from ..errors import ConfigurationError

logger = logging.getLogger(__name__)


class IdealFluid:
    """Newtonian ideal gas ``p = (gamma - 1) rho epsilon``."""

    def __init__(self, adiabatic_index: float) -> None:
        adiabatic_index = float(adiabatic_index)
        if adiabatic_index <= 1.0:
            raise ConfigurationError(f"adiabatic_index must exceed 1, got {adiabatic_index}")
        self.adiabatic_index = adiabatic_index

    def pressure_from_density_and_energy(self, rest_mass_density, specific_internal_energy):
        return (self.adiabatic_index - 1.0) * np.asarray(rest_mass_density) * np.asarray(
            specific_internal_energy
        )

    def specific_internal_energy_from_density_and_pressure(self, rest_mass_density, pressure):
        return np.asarray(pressure) / ((self.adiabatic_index - 1.0) * np.asarray(rest_mass_density))

    def sound_speed_squared(self, rest_mass_density, specific_internal_energy):
        """Return ``gamma p / rho`` for the Newtonian gas."""

        _, energy = np.broadcast_arrays(np.asarray(rest_mass_density, dtype=float), specific_internal_energy)
        return self.adiabatic_index * (self.adiabatic_index - 1.0) * energy

    def __eq__(self, other: object) -> bool:
        return isinstance(other, IdealFluid) and other.adiabatic_index == self.adiabatic_index

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"IdealFluid(adiabatic_index={self.adiabatic_index})"


__all__ = ["IdealFluid"]
