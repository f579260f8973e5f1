"""Append spherical-harmonic modes of worldtube quantities to HDF5 files.

Each quantity is stored as a two-dimensional ``<subfile>.dat`` dataset with
one row per time: ``Time`` followed by the real and imaginary parts of the
Goldberg modes.  Real (spin-0) quantities only store ``m >= 0`` and drop the
identically zero ``Im(l,0)`` columns.  Each dataset carries ``Legend`` and
``Version`` attributes.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List, Tuple

import h5py
import numpy as np

from .. import constants
from ..errors import ConfigurationError
from ..spectral import swsh

logger = logging.getLogger(__name__)

# Bondi quantities and their (dataset label, spin weight).
BONDI_DATASETS: Dict[str, Tuple[str, int]] = {
    "BondiBeta": ("Beta", 0),
    "BondiU": ("U", 1),
    "BondiQ": ("Q", 1),
    "BondiW": ("W", 0),
    "BondiJ": ("J", 2),
    "Dr(BondiJ)": ("DrJ", 2),
    "Du(BondiJ)": ("H", 2),
    "BondiR": ("R", 0),
    "Du(BondiR)": ("DuR", 0),
}


def dataset_label_for_tag(tag: str) -> str:
    """Return the dataset label used for the Bondi quantity ``tag``."""

    try:
        return BONDI_DATASETS[tag][0]
    except KeyError as exc:
        raise ConfigurationError(f"No worldtube dataset label for quantity '{tag}'") from exc


def build_legend(l_max: int, is_real: bool) -> List[str]:
    legend = ["Time"]
    for ell in range(l_max + 1):
        for m in range(0 if is_real else -ell, ell + 1):
            legend.append(f"Re({ell},{m})")
            if not is_real or m != 0:
                legend.append(f"Im({ell},{m})")
    return legend


def dat_path(subfile_path: str) -> str:
    path = subfile_path if subfile_path.startswith("/") else "/" + subfile_path
    return path if path.endswith(".dat") else path + ".dat"


class WorldtubeModeRecorder:
    """Write Goldberg modes of worldtube data, one row per call."""

    def __init__(self, l_max: int, h5_filename) -> None:
        self.l_max = int(l_max)
        if self.l_max < 0:
            raise ConfigurationError("l_max must be non-negative")
        self.filename = Path(h5_filename)
        self.filename.parent.mkdir(parents=True, exist_ok=True)
        self._all_legend = build_legend(self.l_max, False)
        self._real_legend = build_legend(self.l_max, True)
        self._file = h5py.File(self.filename, "a")

    def all_legend(self) -> List[str]:
        return self._all_legend

    def real_legend(self) -> List[str]:
        return self._real_legend

    def data_to_write_size(self, is_real: bool) -> int:
        return 1 + swsh.number_of_modes(self.l_max) * (1 if is_real else 2)

    def _row(self, time: float, modal_data: np.ndarray, is_real: bool) -> np.ndarray:
        row = [float(time)]
        for ell in range(self.l_max + 1):
            for m in range(0 if is_real else -ell, ell + 1):
                value = modal_data[swsh.goldberg_mode_index(self.l_max, ell, m)]
                row.append(float(np.real(value)))
                if not is_real or m != 0:
                    row.append(float(np.imag(value)))
        if len(row) != self.data_to_write_size(is_real):
            raise ConfigurationError(
                f"Row has {len(row)} entries, expected {self.data_to_write_size(is_real)}"
            )
        return np.asarray(row, dtype=float)

    def _dataset(self, subfile_path: str, legend: List[str]) -> h5py.Dataset:
        path = dat_path(subfile_path)
        if path in self._file:
            dataset = self._file[path]
            if dataset.shape[1] != len(legend):
                raise ConfigurationError(
                    f"Dataset {path} has {dataset.shape[1]} columns, expected {len(legend)}"
                )
            return dataset
        dataset = self._file.create_dataset(
            path,
            shape=(0, len(legend)),
            maxshape=(None, len(legend)),
            dtype="f8",
            chunks=True,
        )
        dataset.attrs["Legend"] = np.array(legend, dtype=h5py.string_dtype())
        dataset.attrs["Version"] = constants.H5_DAT_VERSION
        logger.debug("Created worldtube dataset %s in %s", path, self.filename)
        return dataset

    def append_modal_data(self, subfile_path: str, time: float, modal_data, spin: int) -> None:
        """Append Goldberg ``modal_data`` at ``time``; spin 0 is stored as real."""

        modes = np.asarray(modal_data, dtype=complex).reshape(-1)
        if modes.size != swsh.number_of_modes(self.l_max):
            raise ConfigurationError(
                f"Expected {swsh.number_of_modes(self.l_max)} modes, got {modes.size}"
            )
        is_real = int(spin) == 0
        legend = self._real_legend if is_real else self._all_legend
        dataset = self._dataset(subfile_path, legend)
        row = self._row(time, modes, is_real)
        rows = dataset.shape[0]
        dataset.resize(rows + 1, axis=0)
        dataset[rows, :] = row

    def append_nodal_data(self, subfile_path: str, time: float, nodal_data, spin: int) -> None:
        """Transform collocation-grid data to modes and append them."""

        modes = swsh.swsh_transform(self.l_max, spin, nodal_data)
        self.append_modal_data(subfile_path, time, modes, spin)

    def flush(self) -> None:
        self._file.flush()

    def close(self) -> None:
        if self._file.id.valid:
            self._file.close()

    def __enter__(self) -> "WorldtubeModeRecorder":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


__all__ = [
    "BONDI_DATASETS",
    "dataset_label_for_tag",
    "build_legend",
    "dat_path",
    "WorldtubeModeRecorder",
]
