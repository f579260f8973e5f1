"""Hydrodynamics: equations of state, analytic data and GRMHD fluxes."""
from .eos import IdealFluid
from .sod_explosion import SodExplosion
from .valencia_fluxes import ValenciaFluxes, compute_fluxes

__all__ = ["IdealFluid", "SodExplosion", "ValenciaFluxes", "compute_fluxes"]
