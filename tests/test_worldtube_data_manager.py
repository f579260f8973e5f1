import numpy as np
import pytest

from nrkit.cce import BondiWorldtubeH5BufferUpdater, WorldtubeDataManager, WorldtubeModeRecorder
from nrkit.cce.mode_recorder import BONDI_DATASETS
from nrkit.errors import ConfigurationError, DataFileError
from nrkit.spectral import swsh
from nrkit.warnings import DataFileWarning


@pytest.fixture
def bondi_file(tmp_path):
    """Bondi worldtube data whose modes are linear in time, ``(1 + t) * base``."""

    l_max = 2
    size = swsh.number_of_modes(l_max)
    base = np.zeros(size, dtype=complex)
    base[swsh.goldberg_mode_index(l_max, 0, 0)] = 1.0
    base[swsh.goldberg_mode_index(l_max, 1, 0)] = -0.5
    base[swsh.goldberg_mode_index(l_max, 2, 1)] = 0.25 + 0.5j
    base[swsh.goldberg_mode_index(l_max, 2, -1)] = -0.25 + 0.5j
    path = tmp_path / "BondiCceR0100.h5"
    with WorldtubeModeRecorder(l_max, path) as recorder:
        for t in np.arange(10.0):
            for label, spin in BONDI_DATASETS.values():
                recorder.append_modal_data(label, t, (1.0 + t) * base, spin)
    return path, base


def test_populate_interpolates_in_time(bondi_file):
    path, base = bondi_file
    manager = WorldtubeDataManager(BondiWorldtubeH5BufferUpdater(path), 2, interpolator_length=2, buffer_depth=1)
    assert manager.time_range == (0.0, 9.0)
    for time in (0.0, 4.5, 7.25, 9.0):
        modes = manager.populate(time)
        assert set(modes) == {label for label, _ in BONDI_DATASETS.values()}
        for name, values in modes.items():
            np.testing.assert_allclose(values, (1.0 + time) * base, atol=1e-11, err_msg=name)
    assert manager.next_update_time == np.inf


def test_populate_reuses_buffers_until_next_update(bondi_file):
    path, _ = bondi_file
    updater = BondiWorldtubeH5BufferUpdater(path)
    manager = WorldtubeDataManager(updater, 2, interpolator_length=2, buffer_depth=1)
    manager.populate(4.5)
    assert (updater.time_span_start, updater.time_span_end) == (3, 8)
    assert manager.next_update_time == 6.0
    manager.populate(5.5)
    assert (updater.time_span_start, updater.time_span_end) == (3, 8)
    manager.populate(7.5)
    assert (updater.time_span_start, updater.time_span_end) == (5, 10)


def test_resolution_mismatch(bondi_file):
    path, base = bondi_file
    with pytest.warns(DataFileWarning):
        manager = WorldtubeDataManager(BondiWorldtubeH5BufferUpdater(path), 3)
    modes = manager.populate(2.0)["J"]
    assert modes.size == swsh.number_of_modes(3)
    np.testing.assert_allclose(modes[: base.size], 3.0 * base, atol=1e-10)
    np.testing.assert_allclose(modes[base.size :], 0.0)

    coarse = WorldtubeDataManager(BondiWorldtubeH5BufferUpdater(path), 1)
    np.testing.assert_allclose(coarse.populate(2.0)["Q"], 3.0 * base[:4], atol=1e-10)


def test_populate_outside_range(bondi_file):
    path, _ = bondi_file
    manager = WorldtubeDataManager(BondiWorldtubeH5BufferUpdater(path), 2)
    with pytest.raises(DataFileError, match="outside"):
        manager.populate(9.5)
    with pytest.raises(DataFileError):
        manager.populate(-0.1)


def test_manager_validates_arguments(bondi_file):
    path, _ = bondi_file
    updater = BondiWorldtubeH5BufferUpdater(path)
    with pytest.raises(ConfigurationError):
        WorldtubeDataManager(updater, 2, interpolator_length=0)
    with pytest.raises(ConfigurationError):
        WorldtubeDataManager(updater, 2, buffer_depth=-1)
