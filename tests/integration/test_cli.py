import json

import h5py
import numpy as np
import pandas as pd
import pytest

from nrkit import run
from nrkit.cce import WorldtubeModeRecorder
from nrkit.cce.mode_recorder import BONDI_DATASETS
from nrkit.errors import ConfigurationError, DataFileError
from nrkit.schema import Config
from nrkit.spectral import swsh


def test_sod_command(tmp_path):
    outdir = tmp_path / "sod"
    run.main(
        [
            "sod",
            "--quiet",
            "--override",
            f"io.outdir={outdir}",
            "sod_explosion.dim=2",
            "sod_explosion.points_per_dim=5",
        ]
    )
    frame = pd.read_parquet(outdir / "series" / "sod_explosion.parquet")
    assert len(frame) == 25
    assert list(frame.columns[:3]) == ["x", "y", "radius"]
    inside = frame["radius"] <= 0.5
    assert (frame.loc[inside, "pressure"] == 1.0).all()
    assert (frame.loc[~inside, "rest_mass_density"] == 0.125).all()
    np.testing.assert_allclose(
        frame["sound_speed"] ** 2, 1.4 * frame["pressure"] / frame["rest_mass_density"]
    )
    summary = json.loads((outdir / "summary.json").read_text())
    assert summary["points"] == 25
    assert summary["points_inside"] == int(inside.sum())


def test_sod_sample_points_cover_the_box():
    points = run.sod_sample_points(3, 2.0, 3)
    assert points.shape == (3, 27)
    assert points.min() == -2.0 and points.max() == 2.0


def test_evolve_command_with_config_and_overrides_file(tmp_path):
    config_path = tmp_path / "run.yml"
    config_path.write_text(
        "time_stepping:\n  final_time: 0.5\nelements:\n  - name: a\n  - name: b\n    omega: 2.0\n",
        encoding="utf-8",
    )
    overrides = tmp_path / "overrides.txt"
    overrides.write_text(f"# output\nio.outdir={tmp_path / 'evolve'}\n", encoding="utf-8")
    run.main(["evolve", "--config", str(config_path), "--overrides-file", str(overrides), "--no-quiet"])
    outdir = tmp_path / "evolve"
    summary = json.loads((outdir / "summary.json").read_text())
    assert set(summary["elements"]) == {"a", "b"}
    assert summary["elements"]["b"]["time"] == pytest.approx(0.5)
    assert (outdir / "series" / "evolution.parquet").exists()
    assert (outdir / "run_config.json").exists()


def test_unknown_command_exits():
    with pytest.raises(SystemExit):
        run.main(["characteristic"])


@pytest.fixture
def bondi_worldtube(tmp_path):
    l_max = 2
    base = np.zeros(swsh.number_of_modes(l_max), dtype=complex)
    base[swsh.goldberg_mode_index(l_max, 0, 0)] = 2.0
    base[swsh.goldberg_mode_index(l_max, 2, 2)] = 0.5 - 0.5j
    base[swsh.goldberg_mode_index(l_max, 2, -2)] = 0.5 + 0.5j
    path = tmp_path / "BondiCceR0100.h5"
    with WorldtubeModeRecorder(l_max, path) as recorder:
        for t in np.linspace(0.0, 4.5, 10):
            for label, spin in BONDI_DATASETS.values():
                recorder.append_modal_data(label, float(t), (1.0 + t) * base, spin)
    return path, base


def test_worldtube_command(tmp_path, bondi_worldtube):
    path, base = bondi_worldtube
    outdir = tmp_path / "resampled"
    run.main(
        [
            "worldtube",
            "--override",
            f"worldtube.input_file={path}",
            f"io.outdir={outdir}",
            "worldtube.l_max=2",
            "worldtube.start_time=1.0",
            "worldtube.end_time=4.0",
            "worldtube.number_of_times=4",
        ]
    )
    with h5py.File(outdir / "worldtube_resampled.h5", "r") as handle:
        j_data = handle["/J.dat"][:]
        beta_data = handle["/Beta.dat"][:]
    assert j_data.shape == (4, 1 + 2 * swsh.number_of_modes(2))
    assert beta_data.shape == (4, 1 + swsh.number_of_modes(2))
    np.testing.assert_allclose(j_data[:, 0], [1.0, 2.0, 3.0, 4.0])
    np.testing.assert_allclose(j_data[1, 1], 3.0 * 2.0, atol=1e-10)
    np.testing.assert_allclose(beta_data[:, 1], 2.0 * (1.0 + j_data[:, 0]), atol=1e-10)
    summary = json.loads((outdir / "summary.json").read_text())
    assert summary["file_l_max"] == 2
    assert summary["times"] == [1.0, 2.0, 3.0, 4.0]


def test_worldtube_requires_input(tmp_path, bondi_worldtube):
    path, _ = bondi_worldtube
    with pytest.raises(ConfigurationError):
        run.run_worldtube(Config(io={"outdir": tmp_path}))
    cfg = Config(io={"outdir": tmp_path}, worldtube={"input_file": path, "l_max": 2, "end_time": 5.0})
    with pytest.raises(DataFileError):
        run.run_worldtube(cfg)
