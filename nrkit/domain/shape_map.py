"""Angle-preserving radial distortion map driven by a transition function."""
from __future__ import annotations

from typing import Optional

import numpy as np

from ..errors import ConfigurationError
from ..spectral import swsh
from .transition import ShapeMapTransitionFunction


class ShapeMap:
    """Map ``x -> c + (x - c) (1 - f(x - c) Sigma / r)``.

    ``coefficients`` are Goldberg modes of the real, spin-0 distortion
    ``Sigma``; only the real part of the mode sum is used.
    """

    def __init__(
        self,
        center,
        l_max: int,
        coefficients,
        transition: ShapeMapTransitionFunction,
    ) -> None:
        self.center = np.asarray(center, dtype=float).reshape(3)
        self.l_max = int(l_max)
        self.coefficients = np.asarray(coefficients, dtype=complex).reshape(-1)
        if self.coefficients.size != swsh.number_of_modes(self.l_max):
            raise ConfigurationError(
                f"Shape map needs {swsh.number_of_modes(self.l_max)} coefficients for "
                f"l_max={self.l_max}, got {self.coefficients.size}"
            )
        self.transition = transition

    def _centered(self, coords) -> np.ndarray:
        coords = np.asarray(coords, dtype=float)
        center = self.center if coords.ndim == 1 else self.center[:, None]
        return coords - center

    def radial_distortion(self, centered_coords) -> np.ndarray:
        x, y, z = centered_coords
        radius = np.sqrt(x * x + y * y + z * z)
        theta = np.arccos(np.clip(z / np.where(radius > 0.0, radius, 1.0), -1.0, 1.0))
        phi = np.arctan2(y, x)
        return np.real(swsh.evaluate_modes(self.l_max, 0, self.coefficients, theta, phi))

    def forward(self, source_coords) -> np.ndarray:
        centered = self._centered(source_coords)
        radius = np.sqrt(np.sum(centered * centered, axis=0))
        distortion = self.radial_distortion(centered)
        falloff = self.transition(centered)
        safe_radius = np.where(radius > 0.0, radius, 1.0)
        factor = np.where(radius > 0.0, 1.0 - falloff * distortion / safe_radius, 1.0)
        result = centered * factor
        center = self.center if result.ndim == 1 else self.center[:, None]
        return result + center

    def inverse(self, target_coords) -> Optional[np.ndarray]:
        """Invert a single point; ``None`` when it has no preimage."""

        centered = self._centered(target_coords)
        if centered.ndim != 1:
            raise ConfigurationError("ShapeMap.inverse works on one point at a time")
        distortion = float(self.radial_distortion(centered))
        ratio = self.transition.original_radius_over_radius(centered, distortion)
        if ratio is None:
            return None
        return centered * ratio + self.center


__all__ = ["ShapeMap"]
