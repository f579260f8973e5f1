"""Output helper utilities.

The routines in this module provide thin wrappers around :mod:`pandas`
functionality to serialise run results.  Parquet is used for per-step and
per-point tables, JSON for run summaries and configurations and CSV for the
adaptive-stepping diagnostics.  All functions ensure that destination
directories are created when necessary.
"""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Iterable, Mapping

import pandas as pd
import pyarrow as pa
import pyarrow.parquet as pq

UNITS = {
    "element": "category",
    "step": "count",
    "slab": "count",
    "time": "code",
    "dt": "code",
    "step_fraction": "dimensionless",
    "u0": "code",
    "u1": "code",
    "error_estimate": "code",
    "exact_u0": "code",
    "exact_u1": "code",
    "x": "code",
    "y": "code",
    "z": "code",
    "radius": "code",
    "rest_mass_density": "code",
    "pressure": "code",
    "specific_internal_energy": "code",
    "sound_speed": "code",
}

DEFINITIONS = {
    "element": "Name of the evolved element.",
    "step": "Number of completed steps of the element.",
    "slab": "Slab number of the step time.",
    "time": "Time at the start of the next step.",
    "dt": "Size of the next step.",
    "step_fraction": "Next step as a fraction of the slab duration.",
    "u0": "First component of the evolved oscillator state.",
    "u1": "Second component of the evolved oscillator state.",
    "error_estimate": "Largest local error estimate of the last step.",
    "exact_u0": "Analytic solution for u0 at the same time.",
    "exact_u1": "Analytic solution for u1 at the same time.",
    "x": "First Cartesian coordinate of the sample point.",
    "y": "Second Cartesian coordinate of the sample point.",
    "z": "Third Cartesian coordinate of the sample point (3d only).",
    "radius": "Distance of the sample point from the origin.",
    "rest_mass_density": "Initial rest-mass density.",
    "pressure": "Initial pressure.",
    "specific_internal_energy": "Initial specific internal energy p / ((gamma - 1) rho).",
    "sound_speed": "Initial adiabatic sound speed sqrt(gamma p / rho).",
}


def _ensure_parent(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def write_parquet(df: pd.DataFrame, path: Path, *, compression: str = "snappy") -> None:
    """Write a DataFrame to a Parquet file using ``pyarrow``.

    Units and column definitions of the known columns are attached to the
    schema metadata.

    Parameters
    ----------
    df:
        Table to serialise.
    path:
        Destination file path.
    """
    _ensure_parent(path)
    columns = set(df.columns)
    units = {name: unit for name, unit in UNITS.items() if name in columns}
    definitions = {name: text for name, text in DEFINITIONS.items() if name in columns}
    table = pa.Table.from_pandas(df, preserve_index=False)
    metadata = dict(table.schema.metadata or {})
    metadata.update(
        {
            b"units": json.dumps(units, sort_keys=True).encode("utf-8"),
            b"definitions": json.dumps(definitions, sort_keys=True).encode("utf-8"),
        }
    )
    table = table.replace_schema_metadata(metadata)
    compression_arg = None if compression == "none" else compression
    pq.write_table(table, path, compression=compression_arg)


def write_table(table: pa.Table, path: Path, *, compression: str = "snappy") -> None:
    """Write an Arrow table (e.g. from :class:`ColumnarBuffer`) to Parquet."""

    write_parquet(table.to_pandas(), path, compression=compression)


def write_summary(summary: Mapping[str, Any], path: Path) -> None:
    """Write a summary dictionary to ``summary.json``.

    The JSON file is formatted with a small indentation for human
    readability.
    """
    _ensure_parent(path)
    with path.open("w", encoding="utf-8") as fh:
        json.dump(summary, fh, indent=2, sort_keys=True, default=str)


def write_run_config(config: Mapping[str, Any], path: Path) -> None:
    """Persist the deterministic run configuration metadata."""

    _ensure_parent(path)
    with path.open("w", encoding="utf-8") as fh:
        json.dump(config, fh, indent=2, sort_keys=True, default=str)


def write_stepping_diagnostics(records: Iterable[Mapping[str, Any]], path: Path) -> None:
    """Write per-element adaptive-stepping counters to a CSV file."""

    _ensure_parent(path)
    df = pd.DataFrame(list(records))
    df.to_csv(path, index=False)


__all__ = [
    "UNITS",
    "DEFINITIONS",
    "write_parquet",
    "write_table",
    "write_summary",
    "write_run_config",
    "write_stepping_diagnostics",
]
