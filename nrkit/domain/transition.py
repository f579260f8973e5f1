r"""Transition functions for the time-dependent shape map.

The shape map distorts spheres by a spherical-harmonic expansion
:math:`\Sigma(t, \theta, \phi) = \sum_{lm} \lambda_{lm}(t) Y_{lm}` and
moves each point only radially:

.. math::

    \tilde r = r \left(1 - \frac{f(r, \theta, \phi)}{r} \Sigma\right)

A transition function :math:`f \in [0, 1]` controls how the distortion
falls off towards the boundary of the deformed region.  Because angles are
preserved, inverting the map reduces to finding :math:`r` from
:math:`\tilde r`, which each transition function provides through
:meth:`ShapeMapTransitionFunction.original_radius_over_radius`.

All evaluation methods accept coordinates of shape ``(3,)`` or
``(3, N)`` and return scalars or arrays accordingly.  Coordinates are
relative to the centre of the map.
"""
from __future__ import annotations

import abc
import copy
import logging
from typing import Optional

import numpy as np

from ..errors import ConfigurationError

logger = logging.getLogger(__name__)

# Relative tolerance used when deciding which piece of a piecewise
# transition a candidate radius belongs to.
_REGION_EPS = 1.0e-12


def _radius(coords) -> np.ndarray:
    coords = np.asarray(coords, dtype=float)
    if coords.shape[0] != 3:
        raise ConfigurationError(f"Expected Cartesian coordinates with leading dimension 3, got {coords.shape}")
    return np.sqrt(np.sum(coords * coords, axis=0))


def _as_output(value: np.ndarray):
    if np.ndim(value) == 0:
        return float(value)
    return value


class ShapeMapTransitionFunction(abc.ABC):
    """Interface for the transition functions used by :class:`ShapeMap`."""

    @abc.abstractmethod
    def __call__(self, source_coords):
        """Evaluate :math:`f(r, \\theta, \\phi) \\in [0, 1]` at ``source_coords``."""

    @abc.abstractmethod
    def original_radius_over_radius(self, target_coords, radial_distortion: float) -> Optional[float]:
        """Return :math:`r / \\tilde r` for mapped coordinates ``target_coords``.

        ``radial_distortion`` is :math:`\\Sigma` evaluated at the angles of
        ``target_coords``.  Returns ``None`` when the point has no preimage.
        """

    @abc.abstractmethod
    def gradient(self, source_coords) -> np.ndarray:
        """Cartesian gradient of the transition function at ``source_coords``."""

    def clone(self) -> "ShapeMapTransitionFunction":
        return copy.deepcopy(self)

    @abc.abstractmethod
    def __eq__(self, other: object) -> bool:
        ...

    def __ne__(self, other: object) -> bool:
        return not self == other


class SphereTransition(ShapeMapTransitionFunction):
    """Linear fall-off between two spheres.

    ``f`` is 1 for ``r <= r_min``, 0 for ``r >= r_max`` and linear in ``r``
    in between.  With ``reverse=True`` the roles of the spheres swap so
    that the distortion grows outward.
    """

    def __init__(self, r_min: float, r_max: float, reverse: bool = False) -> None:
        r_min = float(r_min)
        r_max = float(r_max)
        if r_min <= 0.0:
            raise ConfigurationError(f"r_min must be positive, got {r_min}")
        if r_max <= r_min:
            raise ConfigurationError(f"r_max ({r_max}) must be larger than r_min ({r_min})")
        self.r_min = r_min
        self.r_max = r_max
        self.reverse = bool(reverse)

    @property
    def _width(self) -> float:
        return self.r_max - self.r_min

    def _profile(self, radius: np.ndarray) -> np.ndarray:
        falloff = np.clip((self.r_max - radius) / self._width, 0.0, 1.0)
        return 1.0 - falloff if self.reverse else falloff

    def __call__(self, source_coords):
        return _as_output(self._profile(_radius(source_coords)))

    def gradient(self, source_coords) -> np.ndarray:
        coords = np.asarray(source_coords, dtype=float)
        radius = _radius(coords)
        inside = (radius > self.r_min) & (radius < self.r_max)
        slope = (1.0 if self.reverse else -1.0) / self._width
        safe_radius = np.where(radius > 0.0, radius, 1.0)
        return np.where(inside, slope * coords / safe_radius, 0.0)

    def _candidates(self, mapped_radius: float, distortion: float):
        width = self._width
        if self.reverse:
            yield mapped_radius, (0.0, self.r_min)
            denominator = width - distortion
            if denominator != 0.0:
                yield (mapped_radius * width - distortion * self.r_min) / denominator, (self.r_min, self.r_max)
            yield mapped_radius + distortion, (self.r_max, np.inf)
        else:
            yield mapped_radius + distortion, (0.0, self.r_min)
            denominator = width + distortion
            if denominator != 0.0:
                yield (mapped_radius * width + distortion * self.r_max) / denominator, (self.r_min, self.r_max)
            yield mapped_radius, (self.r_max, np.inf)

    def original_radius_over_radius(self, target_coords, radial_distortion: float) -> Optional[float]:
        mapped_radius = float(_radius(target_coords))
        if mapped_radius == 0.0:
            return None
        distortion = float(radial_distortion)
        for radius, (low, high) in self._candidates(mapped_radius, distortion):
            tolerance = _REGION_EPS * max(1.0, abs(radius))
            if radius > 0.0 and low - tolerance <= radius <= high + tolerance:
                return radius / mapped_radius
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                "SphereTransition: no preimage for r~=%.6e with distortion %.6e", mapped_radius, distortion
            )
        return None

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SphereTransition):
            return False
        return (self.r_min, self.r_max, self.reverse) == (other.r_min, other.r_max, other.reverse)

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"SphereTransition(r_min={self.r_min}, r_max={self.r_max}, reverse={self.reverse})"


__all__ = ["ShapeMapTransitionFunction", "SphereTransition"]
