"""Counters describing the behaviour of adaptive stepping."""
from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Dict


@dataclass
class AdaptiveSteppingDiagnostics:
    number_of_slabs: int = 0
    number_of_slab_size_changes: int = 0
    number_of_steps: int = 0
    number_of_step_fraction_changes: int = 0
    number_of_step_rejections: int = 0

    def merge(self, other: "AdaptiveSteppingDiagnostics") -> "AdaptiveSteppingDiagnostics":
        """Combine the counters of two elements; slab counters are global."""

        return AdaptiveSteppingDiagnostics(
            number_of_slabs=max(self.number_of_slabs, other.number_of_slabs),
            number_of_slab_size_changes=max(
                self.number_of_slab_size_changes, other.number_of_slab_size_changes
            ),
            number_of_steps=self.number_of_steps + other.number_of_steps,
            number_of_step_fraction_changes=self.number_of_step_fraction_changes
            + other.number_of_step_fraction_changes,
            number_of_step_rejections=self.number_of_step_rejections
            + other.number_of_step_rejections,
        )

    def as_dict(self) -> Dict[str, int]:
        return asdict(self)


__all__ = ["AdaptiveSteppingDiagnostics"]
