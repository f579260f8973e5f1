"""Command line entry point: ``nrkit evolve|sod|worldtube``."""
from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import numpy as np
import pandas as pd

from . import config_utils
from .cce import WorldtubeDataManager, WorldtubeModeRecorder, make_buffer_updater
from .config_utils import configure_logging, load_config
from .errors import ConfigurationError, DataFileError
from .evolve import run_evolution
from .hydro import SodExplosion
from .io import writer
from .provenance import gather_runtime_provenance
from .schema import Config

logger = logging.getLogger(__name__)


def sod_sample_points(dim: int, extent: float, points_per_dim: int) -> np.ndarray:
    """Return a uniform ``(dim, points_per_dim**dim)`` grid on ``[-extent, extent]^dim``."""

    axis = np.linspace(-extent, extent, points_per_dim)
    mesh = np.meshgrid(*([axis] * dim), indexing="ij")
    return np.stack([component.reshape(-1) for component in mesh])


def run_sod(cfg: Config, *, write_outputs: bool = True) -> pd.DataFrame:
    """Sample the Sod explosion initial data on a uniform grid."""

    sod_cfg = cfg.sod_explosion
    sod = SodExplosion(
        sod_cfg.dim,
        sod_cfg.initial_radius,
        sod_cfg.inner_mass_density,
        sod_cfg.inner_pressure,
        sod_cfg.outer_mass_density,
        sod_cfg.outer_pressure,
    )
    coords = sod_sample_points(sod_cfg.dim, sod_cfg.extent, sod_cfg.points_per_dim)
    variables = sod.variables(coords)
    eos = sod.equation_of_state
    data: Dict[str, Any] = {name: coords[index] for index, name in enumerate("xyz"[: sod_cfg.dim])}
    data["radius"] = np.sqrt(np.sum(coords * coords, axis=0))
    for name in ("rest_mass_density", "pressure", "specific_internal_energy"):
        data[name] = variables[name]
    data["sound_speed"] = np.sqrt(
        eos.sound_speed_squared(variables["rest_mass_density"], variables["specific_internal_energy"])
    )
    df = pd.DataFrame(data)
    inside = int(np.count_nonzero(data["radius"] <= sod_cfg.initial_radius))
    logger.info("Sampled Sod explosion on %d points (%d inside r=%.3f)", len(df), inside, sod_cfg.initial_radius)
    if write_outputs:
        outdir = Path(cfg.io.outdir)
        writer.write_parquet(df, outdir / "series" / "sod_explosion.parquet")
        writer.write_summary(
            {
                "dim": sod_cfg.dim,
                "points": len(df),
                "points_inside": inside,
                "adiabatic_index": eos.adiabatic_index,
            },
            outdir / "summary.json",
        )
    return df


def resample_times(cfg: Config, time_range) -> np.ndarray:
    wt = cfg.worldtube
    low, high = time_range
    start = low if wt.start_time is None else wt.start_time
    end = high if wt.end_time is None else wt.end_time
    if start < low or end > high:
        raise DataFileError(
            f"Requested window [{start}, {end}] is outside the worldtube data range [{low}, {high}]"
        )
    return np.linspace(start, end, wt.number_of_times)


def run_worldtube(cfg: Config) -> Path:
    """Resample a worldtube file onto uniform times and record the modes."""

    wt = cfg.worldtube
    if wt.input_file is None:
        raise ConfigurationError("worldtube.input_file must be set for the worldtube command")
    updater = make_buffer_updater(wt.format, wt.input_file, wt.extraction_radius)
    manager = WorldtubeDataManager(updater, wt.l_max, wt.interpolator_length, wt.buffer_depth)
    times = resample_times(cfg, manager.time_range)
    outdir = Path(cfg.io.outdir)
    output_path = outdir / wt.output_file
    with WorldtubeModeRecorder(wt.l_max, output_path) as recorder:
        for t in times:
            for name, modes in manager.populate(float(t)).items():
                recorder.append_modal_data(name, float(t), modes, updater.spin_weight(name))
    logger.info(
        "Resampled %s (l_max=%d) onto %d times in %s", wt.input_file, updater.l_max, times.size, output_path
    )
    writer.write_summary(
        {
            "input_file": str(wt.input_file),
            "output_file": str(output_path),
            "format": wt.format,
            "file_l_max": updater.l_max,
            "l_max": wt.l_max,
            "times": [float(t) for t in times],
            "provenance": gather_runtime_provenance(external_files=[wt.input_file]),
        },
        outdir / "summary.json",
    )
    return output_path


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="nrkit", description="Numerical-relativity toolkit drivers")
    parser.add_argument("command", choices=["evolve", "sod", "worldtube"], help="Driver to run")
    parser.add_argument("--config", type=Path, help="Path to YAML configuration")
    parser.add_argument(
        "--quiet",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Suppress INFO logs and Python warnings (overrides io.quiet).",
    )
    parser.add_argument(
        "--override",
        action="append",
        nargs="+",
        metavar="PATH=VALUE",
        help=(
            "Apply configuration overrides using dotted paths; e.g. "
            "--override time_stepping.final_time=2.0"
        ),
    )
    parser.add_argument(
        "--overrides-file",
        action="append",
        type=Path,
        help="Load overrides from a file (one PATH=VALUE per line).",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """Command line entry point."""

    args = _build_parser().parse_args(argv)
    override_list: List[str] = []
    for override_path in args.overrides_file or ():
        override_list.extend(config_utils.read_overrides_file(override_path))
    for group in args.override or ():
        override_list.extend(group)
    cfg = load_config(args.config, overrides=override_list)
    if args.quiet is not None:
        cfg.io.quiet = bool(args.quiet)
    configure_logging(
        logging.WARNING if cfg.io.quiet else logging.INFO,
        suppress_warnings=cfg.io.quiet,
    )
    if args.command == "evolve":
        run_evolution(cfg)
    elif args.command == "sod":
        run_sod(cfg)
    else:
        run_worldtube(cfg)


__all__ = ["sod_sample_points", "run_sod", "resample_times", "run_worldtube", "main"]


if __name__ == "__main__":  # pragma: no cover - standard CLI entrypoint
    main()
