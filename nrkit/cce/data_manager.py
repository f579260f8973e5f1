"""Time interpolation of buffered worldtube modes."""
from __future__ import annotations

import logging
import warnings
from typing import Dict, Optional

import numpy as np
from scipy.interpolate import BarycentricInterpolator

from ..errors import ConfigurationError, DataFileError
from ..warnings import DataFileWarning
from .buffer_updater import Buffers, WorldtubeBufferUpdater

logger = logging.getLogger(__name__)


class WorldtubeDataManager:
    """Serve worldtube modes at arbitrary times from a buffer updater.

    Parameters
    ----------
    buffer_updater:
        Reader of the worldtube file.  The manager owns it and refills its
        buffers whenever the requested time leaves the current window.
    l_max:
        Spherical-harmonic resolution of the returned modes.
    interpolator_length:
        Half the number of file times used by each interpolation.
    buffer_depth:
        Extra rows read beyond the interpolation stencil.
    """

    def __init__(
        self,
        buffer_updater: WorldtubeBufferUpdater,
        l_max: int,
        interpolator_length: int = 5,
        buffer_depth: int = 4,
    ) -> None:
        if interpolator_length < 1:
            raise ConfigurationError("interpolator_length must be at least 1")
        if buffer_depth < 0:
            raise ConfigurationError("buffer_depth must be non-negative")
        self.buffer_updater = buffer_updater
        self.l_max = int(l_max)
        self.interpolator_length = int(interpolator_length)
        self.buffer_depth = int(buffer_depth)
        if self.l_max > buffer_updater.l_max:
            warnings.warn(
                f"Worldtube data only has modes up to l={buffer_updater.l_max}; "
                f"modes up to l={self.l_max} are zero-filled",
                DataFileWarning,
                stacklevel=2,
            )
        self._buffers: Buffers = buffer_updater.allocate_buffers(
            self.l_max, self.interpolator_length, self.buffer_depth
        )
        self.next_update_time: Optional[float] = None

    @property
    def time_range(self):
        times = self.buffer_updater.time_buffer
        return float(times[0]), float(times[-1])

    def _stencil(self, time: float) -> slice:
        """Indices of the buffered rows used to interpolate at ``time``."""

        updater = self.buffer_updater
        start = updater.time_span_start
        end = min(updater.time_span_end, updater.time_buffer.size)
        times = updater.time_buffer
        bracket = int(np.searchsorted(times[start:end], time, side="right")) - 1 + start
        width = min(2 * self.interpolator_length, end - start)
        first = bracket + 1 - self.interpolator_length
        first = max(start, min(first, end - width))
        return slice(first, first + width)

    def populate(self, time: float) -> Dict[str, np.ndarray]:
        """Return interpolated Goldberg modes of every dataset at ``time``."""

        updater = self.buffer_updater
        if updater.time_is_outside_range(time):
            low, high = self.time_range
            raise DataFileError(
                f"Requested time {time} is outside the worldtube data range [{low}, {high}]"
            )
        self.next_update_time = updater.update_buffers_for_time(
            self._buffers, time, self.l_max, self.interpolator_length, self.buffer_depth
        )

        rows = self._stencil(time)
        times = updater.time_buffer[rows]
        columns = slice(rows.start - updater.time_span_start, rows.stop - updater.time_span_start)
        result: Dict[str, np.ndarray] = {}
        for name, buffer in self._buffers.items():
            values = buffer[:, columns]
            if times.size == 1:
                result[name] = values[:, 0].copy()
                continue
            real = BarycentricInterpolator(times, values.real, axis=1)(time)
            imag = BarycentricInterpolator(times, values.imag, axis=1)(time)
            result[name] = np.asarray(real) + 1j * np.asarray(imag)
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                "populate: t=%.6e from %d points in [%.6e, %.6e]",
                time,
                times.size,
                times[0],
                times[-1],
            )
        return result


__all__ = ["WorldtubeDataManager"]
