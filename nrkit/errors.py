"""Custom exceptions for the :mod:`nrkit` package."""
from __future__ import annotations


class NrKitError(Exception):
    """Base exception for nrkit errors."""


class ConfigurationError(NrKitError, ValueError):
    """Invalid configuration file entries or constructor options."""


class PhysicsError(NrKitError, ValueError):
    """Unphysical input such as negative densities or pressures."""


class NumericalError(NrKitError, RuntimeError):
    """Failure of a numerical procedure (convergence, representability)."""


class TimeStepError(NumericalError):
    """The step-size controller could not produce an admissible step."""


class DataFileError(NrKitError, RuntimeError):
    """A worldtube or other input data file is unusable."""


__all__ = [
    "NrKitError",
    "ConfigurationError",
    "PhysicsError",
    "NumericalError",
    "TimeStepError",
    "DataFileError",
]
