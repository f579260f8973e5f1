"""Numerical-relativity building blocks: LTS step control, worldtube data and analytic hydro data."""
from . import constants, errors
from .errors import NrKitError

__all__ = ["constants", "errors", "NrKitError"]
