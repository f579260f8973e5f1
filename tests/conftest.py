from __future__ import annotations

import sys
from pathlib import Path

import numpy as np
import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from nrkit.time import AdamsBashforth, ElementState  # noqa: E402


def decay_rhs(t, variables):
    return {"u": -variables["u"]}


@pytest.fixture
def make_state():
    """Factory for a single-variable element decaying as ``du/dt = -u``."""

    def _make(choosers=(), *, order=1, initial_step=0.25, slab_size=1.0, **kwargs):
        return ElementState.create(
            "element",
            AdamsBashforth(order),
            list(choosers),
            {"u": np.array([1.0])},
            decay_rhs,
            initial_time=0.0,
            slab_size=slab_size,
            initial_step=initial_step,
            **kwargs,
        )

    return _make
