"""Runtime containers shared by the command-line drivers."""
from .history import ColumnarBuffer, EvolutionHistory

__all__ = ["ColumnarBuffer", "EvolutionHistory"]
