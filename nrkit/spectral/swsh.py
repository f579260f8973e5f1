r"""Spin-weighted spherical harmonics on a Gauss-Legendre collocation grid.

Modes are stored in Goldberg order, ``index = l**2 + l + m`` for
``0 <= l <= l_max`` and ``-l <= m <= l``.  Nodal data live on a grid with
``l_max + 1`` Gauss-Legendre points in :math:`\cos\theta` and
``2 l_max + 1`` equally spaced :math:`\phi`; arrays are shaped
``(n_theta, n_phi)`` and may be passed flattened in that order.

The harmonics follow Goldberg et al. (1967)::

    sYlm = (-1)^m sqrt[(l+m)!(l-m)!(2l+1) / (4 pi (l+s)!(l-s)!)]
           * sum_r C(l-s, r) C(l+s, r+s-m) (-1)^(l-r-s) e^{i m phi}
             sin^(2l-2r-s+m)(theta/2) cos^(2r+s-m)(theta/2)

which is the usual ``cot(theta/2)`` form with the powers combined so that
no negative exponents appear.
"""
from __future__ import annotations

import math
from functools import lru_cache
from typing import Tuple

import numpy as np
from scipy.special import roots_legendre

from ..errors import ConfigurationError


def goldberg_mode_index(l_max: int, ell: int, m: int) -> int:
    """Index of mode ``(ell, m)`` in a Goldberg-ordered array."""

    if ell < 0 or ell > l_max or abs(m) > ell:
        raise ConfigurationError(f"Mode (l={ell}, m={m}) is not available for l_max={l_max}")
    return ell * ell + ell + m


def number_of_modes(l_max: int) -> int:
    return (int(l_max) + 1) ** 2


def goldberg_modes(l_max: int):
    """Yield ``(l, m)`` pairs in Goldberg order."""

    for ell in range(int(l_max) + 1):
        for m in range(-ell, ell + 1):
            yield ell, m


def number_of_collocation_points(l_max: int) -> int:
    return (int(l_max) + 1) * (2 * int(l_max) + 1)


@lru_cache(maxsize=32)
def _collocation(l_max: int) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    if l_max < 0:
        raise ConfigurationError("l_max must be non-negative")
    cos_theta, weights = roots_legendre(l_max + 1)
    theta = np.arccos(cos_theta)
    n_phi = 2 * l_max + 1
    phi = 2.0 * np.pi * np.arange(n_phi) / n_phi
    return theta, phi, weights


def collocation_grid(l_max: int) -> Tuple[np.ndarray, np.ndarray]:
    """Return ``(theta, phi)`` meshes of shape ``(l_max + 1, 2 l_max + 1)``."""

    theta, phi, _ = _collocation(int(l_max))
    return np.meshgrid(theta, phi, indexing="ij")


def spin_weighted_harmonic(spin: int, ell: int, m: int, theta, phi) -> np.ndarray:
    """Evaluate :math:`{}_sY_{lm}(\\theta, \\phi)`; zero when ``l < |s|``."""

    theta = np.asarray(theta, dtype=float)
    phi = np.asarray(phi, dtype=float)
    if ell < abs(spin) or abs(m) > ell:
        return np.zeros(np.broadcast(theta, phi).shape, dtype=complex)
    prefactor = (-1.0) ** m * math.sqrt(
        math.factorial(ell + m)
        * math.factorial(ell - m)
        * (2 * ell + 1)
        / (4.0 * math.pi * math.factorial(ell + spin) * math.factorial(ell - spin))
    )
    sin_half = np.sin(0.5 * theta)
    cos_half = np.cos(0.5 * theta)
    total = np.zeros(theta.shape, dtype=float)
    for r in range(ell - spin + 1):
        k = r + spin - m
        if k < 0 or k > ell + spin:
            continue
        coefficient = math.comb(ell - spin, r) * math.comb(ell + spin, k) * (-1.0) ** (ell - r - spin)
        total = total + coefficient * sin_half ** (2 * ell - 2 * r - spin + m) * cos_half ** (2 * r + spin - m)
    return prefactor * total * np.exp(1j * m * phi)


@lru_cache(maxsize=32)
def _harmonic_matrix(l_max: int, spin: int) -> np.ndarray:
    theta, phi = collocation_grid(l_max)
    flat_theta = theta.reshape(-1)
    flat_phi = phi.reshape(-1)
    matrix = np.zeros((number_of_modes(l_max), flat_theta.size), dtype=complex)
    for ell, m in goldberg_modes(l_max):
        matrix[goldberg_mode_index(l_max, ell, m)] = spin_weighted_harmonic(
            spin, ell, m, flat_theta, flat_phi
        )
    matrix.setflags(write=False)
    return matrix


def _quadrature_weights(l_max: int) -> np.ndarray:
    _, phi, weights = _collocation(l_max)
    return np.repeat(weights, phi.size) * (2.0 * np.pi / phi.size)


def swsh_transform(l_max: int, spin: int, nodal_data) -> np.ndarray:
    """Return the Goldberg modes of ``nodal_data`` with spin weight ``spin``."""

    l_max = int(l_max)
    data = np.asarray(nodal_data, dtype=complex).reshape(-1)
    expected = number_of_collocation_points(l_max)
    if data.size != expected:
        raise ConfigurationError(
            f"Nodal data has {data.size} points, expected {expected} for l_max={l_max}"
        )
    matrix = _harmonic_matrix(l_max, int(spin))
    return np.conj(matrix) @ (data * _quadrature_weights(l_max))


def inverse_swsh_transform(l_max: int, spin: int, modes) -> np.ndarray:
    """Evaluate Goldberg ``modes`` on the collocation grid, shape ``(n_theta, n_phi)``."""

    l_max = int(l_max)
    coefficients = np.asarray(modes, dtype=complex).reshape(-1)
    if coefficients.size != number_of_modes(l_max):
        raise ConfigurationError(
            f"Expected {number_of_modes(l_max)} modes for l_max={l_max}, got {coefficients.size}"
        )
    nodal = coefficients @ _harmonic_matrix(l_max, int(spin))
    return nodal.reshape(l_max + 1, 2 * l_max + 1)


def evaluate_modes(l_max: int, spin: int, modes, theta, phi) -> np.ndarray:
    """Evaluate Goldberg ``modes`` at arbitrary angles."""

    coefficients = np.asarray(modes, dtype=complex).reshape(-1)
    theta = np.asarray(theta, dtype=float)
    phi = np.asarray(phi, dtype=float)
    result = np.zeros(np.broadcast(theta, phi).shape, dtype=complex)
    for ell, m in goldberg_modes(l_max):
        value = coefficients[goldberg_mode_index(l_max, ell, m)]
        if value != 0.0:
            result = result + value * spin_weighted_harmonic(spin, ell, m, theta, phi)
    return result


__all__ = [
    "goldberg_mode_index",
    "number_of_modes",
    "goldberg_modes",
    "number_of_collocation_points",
    "collocation_grid",
    "spin_weighted_harmonic",
    "swsh_transform",
    "inverse_swsh_transform",
    "evaluate_modes",
]
