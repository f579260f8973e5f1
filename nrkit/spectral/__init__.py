"""Spectral transforms."""
from . import swsh

__all__ = ["swsh"]
