r"""Fluxes of the Valencia formulation of GRMHD with divergence cleaning.

Conserved variables are the densitized :math:`\tilde D, \tilde Y_e,
\tilde\tau, \tilde S_i, \tilde B^i, \tilde\Phi`.  With the transport
velocity :math:`\alpha v^i - \beta^i` and the magnetic pressure

.. math::

    p^* = p + \frac{1}{2}\left(\frac{B^2}{W^2} + (B^k v_k)^2\right)

the fluxes in direction :math:`i` are

.. math::

    F^i(\tilde D) &= \tilde D (\alpha v^i - \beta^i) \\
    F^i(\tilde Y_e) &= \tilde Y_e (\alpha v^i - \beta^i) \\
    F^i(\tilde\tau) &= \sqrt{\gamma}\,\alpha p^* v^i
        + \tilde\tau (\alpha v^i - \beta^i) - \alpha (B^k v_k) \tilde B^i \\
    F^i(\tilde S_j) &= \tilde S_j (\alpha v^i - \beta^i)
        + \sqrt{\gamma}\,\alpha p^* \delta^i_j
        - \alpha \tilde B^i \left(\frac{B_j}{W^2} + v_j B^k v_k\right) \\
    F^i(\tilde B^j) &= \tilde B^j (\alpha v^i - \beta^i)
        - \alpha v^j \tilde B^i + \alpha \gamma^{ij} \tilde\Phi \\
    F^i(\tilde\Phi) &= \alpha \tilde B^i - \tilde\Phi \beta^i

Vectors have shape ``(3, ...)`` and rank-2 tensors ``(3, 3, ...)``; the
trailing axes index grid points.
"""
from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from ..errors import PhysicsError


@dataclass(frozen=True)
class ValenciaFluxes:
    """Fluxes of the conserved variables.

    ``tilde_s_flux[i, j]`` is the flux in direction ``i`` of ``tilde_s[j]``
    and ``tilde_b_flux[i, j]`` the flux in direction ``i`` of
    ``tilde_b[j]``.
    """

    tilde_d_flux: np.ndarray
    tilde_ye_flux: np.ndarray
    tilde_tau_flux: np.ndarray
    tilde_s_flux: np.ndarray
    tilde_b_flux: np.ndarray
    tilde_phi_flux: np.ndarray


def magnetic_pressure_terms(spatial_metric, spatial_velocity, lorentz_factor, magnetic_field):
    """Return ``(B^k v_k, p* - p)``."""

    spatial_velocity = np.asarray(spatial_velocity, dtype=float)
    magnetic_field = np.asarray(magnetic_field, dtype=float)
    spatial_metric = np.asarray(spatial_metric, dtype=float)
    lorentz_factor = np.asarray(lorentz_factor, dtype=float)
    magnetic_field_dot_velocity = np.einsum("ij...,i...,j...->...", spatial_metric, magnetic_field, spatial_velocity)
    magnetic_field_squared = np.einsum("ij...,i...,j...->...", spatial_metric, magnetic_field, magnetic_field)
    extra_pressure = 0.5 * (
        magnetic_field_squared / lorentz_factor**2 + magnetic_field_dot_velocity**2
    )
    return magnetic_field_dot_velocity, extra_pressure


def compute_fluxes(
    tilde_d,
    tilde_ye,
    tilde_tau,
    tilde_s,
    tilde_b,
    tilde_phi,
    lapse,
    shift,
    sqrt_det_spatial_metric,
    spatial_metric,
    inv_spatial_metric,
    pressure,
    spatial_velocity,
    lorentz_factor,
    magnetic_field,
) -> ValenciaFluxes:
    """Evaluate the Valencia GRMHD fluxes pointwise."""

    tilde_d = np.asarray(tilde_d, dtype=float)
    tilde_ye = np.asarray(tilde_ye, dtype=float)
    tilde_tau = np.asarray(tilde_tau, dtype=float)
    tilde_s = np.asarray(tilde_s, dtype=float)
    tilde_b = np.asarray(tilde_b, dtype=float)
    tilde_phi = np.asarray(tilde_phi, dtype=float)
    lapse = np.asarray(lapse, dtype=float)
    shift = np.asarray(shift, dtype=float)
    sqrt_det_spatial_metric = np.asarray(sqrt_det_spatial_metric, dtype=float)
    spatial_metric = np.asarray(spatial_metric, dtype=float)
    inv_spatial_metric = np.asarray(inv_spatial_metric, dtype=float)
    pressure = np.asarray(pressure, dtype=float)
    spatial_velocity = np.asarray(spatial_velocity, dtype=float)
    lorentz_factor = np.asarray(lorentz_factor, dtype=float)
    magnetic_field = np.asarray(magnetic_field, dtype=float)

    if np.any(lapse <= 0.0):
        raise PhysicsError("lapse must be positive")
    if np.any(lorentz_factor < 1.0):
        raise PhysicsError("lorentz_factor must be at least 1")

    magnetic_field_dot_velocity, extra_pressure = magnetic_pressure_terms(
        spatial_metric, spatial_velocity, lorentz_factor, magnetic_field
    )
    pressure_star = pressure + extra_pressure
    transport_velocity = lapse * spatial_velocity - shift
    lapse_p_star = sqrt_det_spatial_metric * lapse * pressure_star

    velocity_one_form = np.einsum("ij...,j...->i...", spatial_metric, spatial_velocity)
    magnetic_field_one_form = np.einsum("ij...,j...->i...", spatial_metric, magnetic_field)
    comoving_one_form = (
        magnetic_field_one_form / lorentz_factor**2 + velocity_one_form * magnetic_field_dot_velocity
    )

    tilde_d_flux = tilde_d * transport_velocity
    tilde_ye_flux = tilde_ye * transport_velocity
    tilde_tau_flux = (
        lapse_p_star * spatial_velocity
        + tilde_tau * transport_velocity
        - lapse * magnetic_field_dot_velocity * tilde_b
    )

    identity = np.eye(3).reshape((3, 3) + (1,) * (tilde_s.ndim - 1))
    tilde_s_flux = (
        np.einsum("i...,j...->ij...", transport_velocity, tilde_s)
        + lapse_p_star * identity
        - lapse * np.einsum("i...,j...->ij...", tilde_b, comoving_one_form)
    )
    tilde_b_flux = (
        np.einsum("i...,j...->ij...", transport_velocity, tilde_b)
        - lapse * np.einsum("i...,j...->ij...", tilde_b, spatial_velocity)
        + lapse * tilde_phi * inv_spatial_metric
    )
    tilde_phi_flux = lapse * tilde_b - tilde_phi * shift

    return ValenciaFluxes(
        tilde_d_flux=tilde_d_flux,
        tilde_ye_flux=tilde_ye_flux,
        tilde_tau_flux=tilde_tau_flux,
        tilde_s_flux=tilde_s_flux,
        tilde_b_flux=tilde_b_flux,
        tilde_phi_flux=tilde_phi_flux,
    )


__all__ = ["ValenciaFluxes", "magnetic_pressure_terms", "compute_fluxes"]
