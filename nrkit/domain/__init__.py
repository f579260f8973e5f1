"""Coordinate maps of the computational domain."""
from .transition import ShapeMapTransitionFunction, SphereTransition
from .shape_map import ShapeMap

__all__ = ["ShapeMapTransitionFunction", "SphereTransition", "ShapeMap"]
