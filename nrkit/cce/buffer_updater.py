"""Buffered readers of worldtube boundary data for Cauchy-characteristic extraction.

A buffer updater owns the time column of an HDF5 worldtube file and fills
caller-provided buffers with a window of Goldberg modes around a requested
time.  Buffers are dictionaries mapping dataset names to complex arrays of
shape ``(number_of_modes(computation_l_max), span)``; the time index varies
fastest.  The window ``[time_span_start, time_span_end)`` is stored on the
updater and reused until the requested time moves too close to its edge.

Three file layouts are supported:

* Cartesian metric data (``gxx``, ``Drgxx``, ``Dtgxx``, ..., ``Lapse``),
  all columns complex.
* Reduced Bondi data as written by :class:`WorldtubeModeRecorder`; spin-0
  quantities are stored in the compact real layout.
* Klein-Gordon scalar data (``KGPsi``, ``dtKGPsi``), real.
"""
from __future__ import annotations

import abc
import copy
import logging
import math
import re
from pathlib import Path
from typing import Dict, Optional, Tuple

import h5py
import numpy as np

from ..errors import ConfigurationError, DataFileError
from ..spectral import swsh
from .mode_recorder import BONDI_DATASETS, dat_path

logger = logging.getLogger(__name__)

Buffers = Dict[str, np.ndarray]

_EXTRACTION_RADIUS_PATTERN = re.compile(r"CceR(\d+)")
VERSION_HISTORY_DATASET = "VersionHist.ver"


def dataset_name_for_component(base_name: str, *indices: int) -> str:
    """Append one of ``x``, ``y``, ``z`` per index, e.g. ``("/g", 0, 1) -> "/gxy"``."""

    name = base_name
    for index in indices:
        if index < 0 or index >= 3:
            raise ConfigurationError("The character-arithmetic index must be less than 3.")
        name += "xyz"[index]
    return name


def create_span_for_time_value(
    time: float,
    pad: int,
    interpolator_length: int,
    lower_bound: int,
    upper_bound: int,
    time_buffer: np.ndarray,
) -> Tuple[int, int]:
    """Return ``(start, end)`` indices of a window around ``time``.

    The window has ``2 * interpolator_length + pad`` entries and is centred
    on the interval of ``time_buffer`` that brackets ``time``.  Near the
    bounds it is shifted to fit; if the bounds are narrower than the window
    it starts at ``lower_bound`` and extends past ``upper_bound``.
    """

    size = 2 * interpolator_length + pad
    range_start = lower_bound
    range_end = upper_bound
    while range_end - range_start > 1:
        midpoint = (range_start + range_end) // 2
        if time_buffer[midpoint] <= time:
            range_start = midpoint
        else:
            range_end = midpoint

    span_start = range_start + 1 - interpolator_length - pad // 2
    if span_start < lower_bound:
        span_start = lower_bound
    span_end = span_start + size
    if span_end > upper_bound:
        span_end = upper_bound
        span_start = span_end - size
        if span_start < lower_bound:
            span_start = lower_bound
            span_end = lower_bound + size
    return span_start, span_end


def l_max_from_columns(column_count: int, is_real: bool) -> int:
    modes = column_count - 1 if is_real else (column_count - 1) / 2
    l_max = math.isqrt(int(modes)) - 1
    if (l_max + 1) ** 2 != modes:
        raise DataFileError(f"{column_count} columns do not describe a full set of modes")
    return l_max


def read_modal_data(
    dataset: h5py.Dataset,
    computation_l_max: int,
    l_max: int,
    time_span_start: int,
    time_span_end: int,
    is_real: bool,
) -> np.ndarray:
    """Read Goldberg modes for rows ``[time_span_start, time_span_end)``.

    Rows beyond the end of the file are left zero.  Modes above ``l_max``
    are zero-filled and modes above ``computation_l_max`` are dropped.  For
    real data the negative-``m`` modes follow from
    ``a(l,-m) = (-1)**m conj(a(l,m))``.
    """

    span = time_span_end - time_span_start
    result = np.zeros((swsh.number_of_modes(computation_l_max), span), dtype=complex)
    available_end = min(time_span_end, dataset.shape[0])
    if available_end <= time_span_start:
        return result
    rows = np.asarray(dataset[time_span_start:available_end, :], dtype=float)
    count = rows.shape[0]
    common_l_max = min(l_max, computation_l_max)
    column = 1
    for ell in range(l_max + 1):
        for m in range(0 if is_real else -ell, ell + 1):
            real_part = rows[:, column]
            column += 1
            if is_real and m == 0:
                imag_part = np.zeros(count)
            else:
                imag_part = rows[:, column]
                column += 1
            if ell > common_l_max:
                continue
            value = real_part + 1j * imag_part
            result[swsh.goldberg_mode_index(computation_l_max, ell, m), :count] = value
            if is_real and m != 0:
                result[swsh.goldberg_mode_index(computation_l_max, ell, -m), :count] = (
                    (-1.0) ** m * np.conj(value)
                )
    return result


def _extraction_radius_from_filename(filename: Path) -> Optional[float]:
    match = _EXTRACTION_RADIUS_PATTERN.search(filename.name)
    if match is None:
        return None
    return float(int(match.group(1)))


class WorldtubeBufferUpdater(abc.ABC):
    """Base class of the worldtube file readers.

    Subclasses define :attr:`dataset_names` (buffer key to dataset path)
    and :attr:`real_datasets`; the time column and ``l_max`` are read from
    :attr:`reference_dataset` at construction.
    """

    reference_dataset: str = ""

    def __init__(self, cce_data_filename, extraction_radius: Optional[float] = None) -> None:
        self.filename = Path(cce_data_filename)
        if not self.filename.exists():
            raise DataFileError(f"Worldtube file {self.filename} does not exist")
        self._extraction_radius = (
            float(extraction_radius)
            if extraction_radius is not None
            else _extraction_radius_from_filename(self.filename)
        )
        self.time_span_start = 0
        self.time_span_end = 0
        self._buffered_l_max: Optional[int] = None
        with h5py.File(self.filename, "r") as handle:
            missing = [path for path in self.dataset_names.values() if path not in handle]
            if missing:
                raise DataFileError(
                    f"Worldtube file {self.filename} is missing datasets: {', '.join(sorted(missing))}"
                )
            reference = handle[self.dataset_names[self.reference_dataset]]
            if reference.ndim != 2 or reference.shape[0] == 0:
                raise DataFileError(f"Dataset {self.reference_dataset} in {self.filename} is empty")
            self._time_buffer = np.asarray(reference[:, 0], dtype=float)
            self._l_max = l_max_from_columns(
                reference.shape[1], self.reference_dataset in self.real_datasets
            )
            self._has_version_history = VERSION_HISTORY_DATASET in handle
        if np.any(np.diff(self._time_buffer) <= 0.0):
            raise DataFileError(f"Times in {self.filename} are not strictly increasing")
        logger.info(
            "Opened worldtube file %s: l_max=%d, %d times in [%.6e, %.6e]",
            self.filename,
            self._l_max,
            self._time_buffer.size,
            self._time_buffer[0],
            self._time_buffer[-1],
        )

    @property
    @abc.abstractmethod
    def dataset_names(self) -> Dict[str, str]:
        ...

    @property
    def real_datasets(self) -> frozenset:
        return frozenset()

    def spin_weight(self, name: str) -> int:
        """Spin weight used when re-recording ``name``; 0 selects the real layout."""

        return 0 if name in self.real_datasets else 1

    @property
    def l_max(self) -> int:
        return self._l_max

    @property
    def time_buffer(self) -> np.ndarray:
        return self._time_buffer

    @property
    def has_version_history(self) -> bool:
        return self._has_version_history

    @property
    def extraction_radius(self) -> float:
        if self._extraction_radius is None:
            raise DataFileError(
                "Extraction radius has not been set, and was not successfully parsed from "
                "the filename.  Set it explicitly or name the file CceR<radius>.h5."
            )
        return self._extraction_radius

    def time_is_outside_range(self, time: float) -> bool:
        return time < self._time_buffer[0] or time > self._time_buffer[-1]

    def clone(self) -> "WorldtubeBufferUpdater":
        duplicate = copy.copy(self)
        duplicate.time_span_start = 0
        duplicate.time_span_end = 0
        duplicate._buffered_l_max = None
        return duplicate

    def allocate_buffers(self, computation_l_max: int, interpolator_length: int, buffer_depth: int) -> Buffers:
        span = 2 * interpolator_length + buffer_depth
        return {
            name: np.zeros((swsh.number_of_modes(computation_l_max), span), dtype=complex)
            for name in self.dataset_names
        }

    def update_buffers_for_time(
        self,
        buffers: Buffers,
        time: float,
        computation_l_max: int,
        interpolator_length: int,
        buffer_depth: int,
    ) -> float:
        """Refill ``buffers`` for ``time`` and return the next time needing an update.

        If the current window still covers ``time`` the buffers are left
        untouched.  Returns ``inf`` once the window reaches the end of the
        file.
        """

        time_buffer = self._time_buffer
        if self._buffered_l_max == computation_l_max and self._window_covers(time, interpolator_length):
            return self._next_update_time(interpolator_length)

        self.time_span_start, self.time_span_end = create_span_for_time_value(
            time, buffer_depth, interpolator_length, 0, time_buffer.size, time_buffer
        )
        with h5py.File(self.filename, "r") as handle:
            for name, path in self.dataset_names.items():
                buffers[name] = read_modal_data(
                    handle[path],
                    computation_l_max,
                    self._l_max,
                    self.time_span_start,
                    self.time_span_end,
                    name in self.real_datasets,
                )
        self._buffered_l_max = computation_l_max
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                "update_buffers_for_time: t=%.6e span=[%d, %d)", time, self.time_span_start, self.time_span_end
            )
        return self._next_update_time(interpolator_length)

    def _window_covers(self, time: float, interpolator_length: int) -> bool:
        time_buffer = self._time_buffer
        if self.time_span_end <= self.time_span_start:
            return False
        if self.time_span_start > 0:
            first = min(self.time_span_start + interpolator_length - 1, time_buffer.size - 1)
            if time_buffer[first] > time:
                return False
        if self.time_span_end < time_buffer.size:
            return time < time_buffer[self.time_span_end - interpolator_length]
        return True

    def _next_update_time(self, interpolator_length: int) -> float:
        if self.time_span_end >= self._time_buffer.size:
            return math.inf
        return float(self._time_buffer[self.time_span_end - interpolator_length])


def _metric_dataset_names() -> Dict[str, str]:
    names: Dict[str, str] = {}
    for i in range(3):
        for j in range(i, 3):
            for prefix in ("", "Dr", "Dt"):
                key = dataset_name_for_component(prefix + "g", i, j)
                names[key] = dat_path(key)
    for i in range(3):
        for prefix in ("", "Dr", "Dt"):
            key = dataset_name_for_component(prefix + "Shift", i)
            names[key] = dat_path(key)
    for prefix in ("", "Dr", "Dt"):
        key = prefix + "Lapse"
        names[key] = dat_path(key)
    return names


class MetricWorldtubeH5BufferUpdater(WorldtubeBufferUpdater):
    """Reader of Cartesian metric worldtube data (spatial metric, shift, lapse)."""

    reference_dataset = "gxx"
    _DATASETS = _metric_dataset_names()

    def __init__(self, cce_data_filename, extraction_radius: Optional[float] = None) -> None:
        super().__init__(cce_data_filename, extraction_radius)
        if self._extraction_radius is None:
            raise DataFileError(
                f"The extraction radius could not be determined from {self.filename}; "
                "pass it explicitly or name the file CceR<radius>.h5."
            )

    @property
    def dataset_names(self) -> Dict[str, str]:
        return self._DATASETS


_BONDI_SPINS = {label: spin for label, spin in BONDI_DATASETS.values()}


class BondiWorldtubeH5BufferUpdater(WorldtubeBufferUpdater):
    """Reader of reduced Bondi worldtube data."""

    reference_dataset = "J"
    _DATASETS = {label: dat_path(label) for label, _ in BONDI_DATASETS.values()}
    _REAL = frozenset(label for label, spin in BONDI_DATASETS.values() if spin == 0)

    @property
    def dataset_names(self) -> Dict[str, str]:
        return self._DATASETS

    @property
    def real_datasets(self) -> frozenset:
        return self._REAL

    def spin_weight(self, name: str) -> int:
        return _BONDI_SPINS[name]

    @property
    def has_version_history(self) -> bool:
        return True


class KleinGordonWorldtubeH5BufferUpdater(WorldtubeBufferUpdater):
    """Reader of real Klein-Gordon scalar worldtube data."""

    reference_dataset = "KGPsi"
    _DATASETS = {"KGPsi": "/KGPsi.dat", "dtKGPsi": "/dtKGPsi.dat"}

    @property
    def dataset_names(self) -> Dict[str, str]:
        return self._DATASETS

    @property
    def real_datasets(self) -> frozenset:
        return frozenset({"KGPsi", "dtKGPsi"})

    @property
    def has_version_history(self) -> bool:
        return True


UPDATERS = {
    "metric": MetricWorldtubeH5BufferUpdater,
    "bondi": BondiWorldtubeH5BufferUpdater,
    "klein_gordon": KleinGordonWorldtubeH5BufferUpdater,
}


def make_buffer_updater(kind: str, filename, extraction_radius: Optional[float] = None) -> WorldtubeBufferUpdater:
    try:
        updater_type = UPDATERS[kind]
    except KeyError as exc:
        raise ConfigurationError(
            f"Unknown worldtube format '{kind}'; expected one of {sorted(UPDATERS)}"
        ) from exc
    return updater_type(filename, extraction_radius)


__all__ = [
    "Buffers",
    "dataset_name_for_component",
    "create_span_for_time_value",
    "l_max_from_columns",
    "read_modal_data",
    "WorldtubeBufferUpdater",
    "MetricWorldtubeH5BufferUpdater",
    "BondiWorldtubeH5BufferUpdater",
    "KleinGordonWorldtubeH5BufferUpdater",
    "UPDATERS",
    "make_buffer_updater",
]
