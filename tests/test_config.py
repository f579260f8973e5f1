from pathlib import Path

import pytest
from pydantic import ValidationError

from nrkit import schema
from nrkit.config_utils import apply_overrides_dict, load_config, parse_override_value, read_overrides_file
from nrkit.errors import ConfigurationError
from nrkit.evolve import make_step_chooser
from nrkit.time import choosers

CONFIG_TEXT = """\
time_stepping:
  stepper_order: 2
  final_time: 2.0
  slab_size: 0.5
step_choosers:
  - kind: constant
    value: 0.1
  - kind: error_control
    absolute_tolerance: 1.0e-6
elements:
  - name: slow
    omega: 0.5
  - name: fast
    omega: 4.0
    damping: 0.1
io:
  outdir: results
"""


def _write(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "config.yml"
    path.write_text(text, encoding="utf-8")
    return path


def test_defaults_without_file():
    cfg = load_config(None)
    assert cfg.time_stepping.stepper_order == 3
    assert cfg.time_stepping.number_of_slabs == 4
    assert cfg.time_stepping.time_runs_forward
    assert [element.name for element in cfg.elements] == ["element0"]
    assert cfg.step_choosers == []
    assert cfg.sod_explosion.dim == 3
    assert cfg.worldtube.format == "bondi"


def test_load_yaml_with_overrides(tmp_path):
    path = _write(tmp_path, CONFIG_TEXT)
    cfg = load_config(path, overrides=["elements.1.omega=3", "step_choosers.0.value=0.2", "io.quiet=true"])
    assert cfg.time_stepping.number_of_slabs == 4
    assert isinstance(cfg.step_choosers[0], schema.ConstantChooser)
    assert cfg.step_choosers[0].value == pytest.approx(0.2)
    assert isinstance(cfg.step_choosers[1], schema.ErrorControlChooser)
    assert cfg.elements[1].omega == 3.0
    assert cfg.elements[1].damping == pytest.approx(0.1)
    assert cfg.io.quiet is True
    assert cfg.io.outdir == Path("results")


def test_missing_and_malformed_files(tmp_path):
    with pytest.raises(ConfigurationError, match="does not exist"):
        load_config(tmp_path / "absent.yml")
    with pytest.raises(ConfigurationError, match="mapping"):
        load_config(_write(tmp_path, "- 1\n- 2\n"))
    assert load_config(_write(tmp_path, "")).io.outdir == Path("out")


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("true", True),
        ("None", None),
        ("3", 3),
        ("2.5e-3", 2.5e-3),
        ("-inf", float("-inf")),
        ("[1, 2.5]", [1, 2.5]),
        ("[]", []),
        ("'quoted'", "quoted"),
        ("bondi", "bondi"),
    ],
)
def test_parse_override_value(raw, expected):
    assert parse_override_value(raw) == expected


def test_apply_overrides_dict_paths():
    payload = {"elements": [{"name": "a"}]}
    apply_overrides_dict(payload, ["time_stepping.final_time=2", "elements.0.omega=1.5"])
    assert payload == {"elements": [{"name": "a", "omega": 1.5}], "time_stepping": {"final_time": 2}}
    with pytest.raises(ConfigurationError):
        apply_overrides_dict(payload, ["time_stepping.final_time"])
    with pytest.raises(ConfigurationError):
        apply_overrides_dict(payload, ["elements.3.omega=1"])
    with pytest.raises(ConfigurationError):
        apply_overrides_dict(payload, ["time_stepping.final_time.x=1"])


def test_read_overrides_file(tmp_path):
    path = tmp_path / "overrides.txt"
    path.write_text("# comment\n\ntime_stepping.final_time=2.0\n  io.quiet=true  \n", encoding="utf-8")
    assert read_overrides_file(path) == ["time_stepping.final_time=2.0", "io.quiet=true"]


@pytest.mark.parametrize(
    "payload",
    [
        {"time_stepping": {"final_time": 1.1}},
        {"time_stepping": {"final_time": 0.0}},
        {"time_stepping": {"fixed_lts_ratio": 3}},
        {"time_stepping": {"stepper_order": 9}},
        {"elements": [{"name": "a"}, {"name": "a"}]},
        {"elements": []},
        {"elements": [{"name": "a", "initial_value": [1.0]}]},
        {"step_choosers": [{"kind": "unknown"}]},
        {"step_choosers": [{"kind": "error_control", "absolute_tolerance": 1e-6, "max_factor": 0.5}]},
        {"sod_explosion": {"outer_pressure": 2.0}},
        {"worldtube": {"start_time": 2.0, "end_time": 1.0}},
        {"unknown_section": {}},
    ],
)
def test_invalid_configurations(payload):
    with pytest.raises(ValidationError):
        schema.Config(**payload)


def test_backward_runs_are_allowed():
    stepping = schema.TimeStepping(initial_time=1.0, final_time=0.0, slab_size=0.5)
    assert not stepping.time_runs_forward
    assert stepping.number_of_slabs == 2


def test_make_step_chooser_types():
    cfg = schema.Config(
        step_choosers=[
            {"kind": "constant", "value": 0.1},
            {"kind": "increase", "factor": 2.0},
            {"kind": "limit_increase", "factor": 2.0},
            {"kind": "maximum", "value": 0.5},
            {"kind": "step_to_times", "times": [0.3, 0.7]},
            {"kind": "error_control", "absolute_tolerance": 1.0e-6, "variables": ["u"]},
        ]
    )
    built = [make_step_chooser(entry) for entry in cfg.step_choosers]
    assert [type(chooser) for chooser in built] == [
        choosers.Constant,
        choosers.Increase,
        choosers.LimitIncrease,
        choosers.Maximum,
        choosers.StepToTimes,
        choosers.ErrorControl,
    ]
    with pytest.raises(ConfigurationError):
        make_step_chooser(object())
