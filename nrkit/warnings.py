"""Structured warning classes for the :mod:`nrkit` package."""
from __future__ import annotations


class NrKitWarning(UserWarning):
    """Base warning class for nrkit."""


class NumericalWarning(NrKitWarning):
    """Numerical stability or accuracy warnings."""


class DataFileWarning(NrKitWarning):
    """Input data that is usable but incomplete or in a legacy layout."""


__all__ = [
    "NrKitWarning",
    "NumericalWarning",
    "DataFileWarning",
]
