"""Configuration schema for nrkit runs.

This module defines Pydantic models that mirror the structure of the YAML
configuration files read by :mod:`nrkit.run`.  Each sub-command only uses
the sections it needs; all sections carry defaults so that a minimal file
(or none at all) describes a valid run.
"""
from __future__ import annotations

import math
from pathlib import Path
from typing import Annotated, Any, List, Literal, Optional, Union

from pydantic import BaseModel, Field, field_validator, model_validator

from . import constants
from .errors import ConfigurationError

_SOD = constants.SodDefaults()

# Relative tolerance when checking that the run length is a whole number of slabs.
_SLAB_COUNT_TOLERANCE = 1.0e-9


class TimeStepping(BaseModel):
    """Slabs, initial step and Adams-Bashforth order of an LTS evolution."""

    stepper_order: int = Field(3, ge=1, le=constants.MAXIMUM_ADAMS_BASHFORTH_ORDER)
    initial_time: float = 0.0
    final_time: float = Field(1.0, description="End of the evolution; must lie on a slab boundary.")
    slab_size: float = Field(0.25, gt=0.0, description="Duration of every slab.")
    initial_step: float = Field(0.05, gt=0.0, description="Magnitude of the first step.")
    minimum_time_step: float = Field(0.0, ge=0.0)
    fixed_lts_ratio: Optional[int] = Field(
        None,
        description="Use slab_size / fixed_lts_ratio as the step and ignore the step choosers.",
    )
    max_iterations: Optional[int] = Field(None, gt=0)

    @field_validator("fixed_lts_ratio")
    def _check_ratio(cls, value: Optional[int]) -> Optional[int]:
        if value is None:
            return value
        if value <= 0 or value & (value - 1):
            raise ConfigurationError(f"time_stepping.fixed_lts_ratio must be a power of 2, not {value}")
        return value

    @model_validator(mode="after")
    def _check_slab_alignment(self) -> "TimeStepping":
        duration = self.final_time - self.initial_time
        if duration == 0.0:
            raise ConfigurationError("time_stepping.final_time must differ from initial_time")
        slabs = abs(duration) / self.slab_size
        if abs(slabs - round(slabs)) > _SLAB_COUNT_TOLERANCE * max(1.0, slabs):
            raise ConfigurationError(
                f"time_stepping: the run length {duration} is not a whole number of slabs of size {self.slab_size}"
            )
        return self

    @property
    def time_runs_forward(self) -> bool:
        return self.final_time > self.initial_time

    @property
    def number_of_slabs(self) -> int:
        return int(round(abs(self.final_time - self.initial_time) / self.slab_size))


class ConstantChooser(BaseModel):
    kind: Literal["constant"] = "constant"
    value: float = Field(..., gt=0.0)


class IncreaseChooser(BaseModel):
    kind: Literal["increase"] = "increase"
    factor: float = Field(..., gt=0.0)


class LimitIncreaseChooser(BaseModel):
    kind: Literal["limit_increase"] = "limit_increase"
    factor: float = Field(..., gt=0.0)


class MaximumChooser(BaseModel):
    kind: Literal["maximum"] = "maximum"
    value: float = Field(..., gt=0.0)


class StepToTimesChooser(BaseModel):
    kind: Literal["step_to_times"] = "step_to_times"
    times: List[float] = Field(default_factory=list)


class ErrorControlChooser(BaseModel):
    """Local-error based step control."""

    kind: Literal["error_control"] = "error_control"
    absolute_tolerance: float = Field(..., gt=0.0)
    relative_tolerance: float = Field(0.0, ge=0.0)
    safety_factor: float = Field(0.9, gt=0.0)
    min_factor: float = Field(0.1, gt=0.0, le=1.0)
    max_factor: float = Field(2.0, ge=1.0)
    variables: Optional[List[str]] = None


StepChooserConfig = Annotated[
    Union[
        ConstantChooser,
        IncreaseChooser,
        LimitIncreaseChooser,
        MaximumChooser,
        StepToTimesChooser,
        ErrorControlChooser,
    ],
    Field(discriminator="kind"),
]


class Element(BaseModel):
    """A damped oscillator ``du/dt = [[-gamma, omega], [-omega, -gamma]] u``."""

    name: str
    omega: float = 1.0
    damping: float = Field(0.0, ge=0.0)
    initial_value: List[float] = Field(default_factory=lambda: [1.0, 0.0])

    @field_validator("initial_value")
    def _check_initial_value(cls, value: List[float]) -> List[float]:
        if len(value) != 2:
            raise ConfigurationError("elements[].initial_value must have two entries")
        if not all(math.isfinite(entry) for entry in value):
            raise ConfigurationError("elements[].initial_value must be finite")
        return value


def _default_elements() -> List[Element]:
    return [Element(name="element0")]


class SodExplosionConfig(BaseModel):
    """Sod explosion parameters and the sampling grid of ``nrkit sod``."""

    dim: Literal[2, 3] = 3
    initial_radius: float = Field(_SOD.initial_radius, gt=0.0)
    inner_mass_density: float = Field(_SOD.inner_mass_density, gt=0.0)
    inner_pressure: float = Field(_SOD.inner_pressure, gt=0.0)
    outer_mass_density: float = Field(_SOD.outer_mass_density, gt=0.0)
    outer_pressure: float = Field(_SOD.outer_pressure, gt=0.0)
    extent: float = Field(1.0, gt=0.0, description="Half-width of the sampling box.")
    points_per_dim: int = Field(16, ge=2)

    @model_validator(mode="after")
    def _check_states(self) -> "SodExplosionConfig":
        if self.inner_mass_density <= self.outer_mass_density:
            raise ConfigurationError("sod_explosion.inner_mass_density must exceed outer_mass_density")
        if self.inner_pressure <= self.outer_pressure:
            raise ConfigurationError("sod_explosion.inner_pressure must exceed outer_pressure")
        return self


class WorldtubeConfig(BaseModel):
    """Resampling of a worldtube file onto a uniform set of times."""

    input_file: Optional[Path] = None
    format: Literal["metric", "bondi", "klein_gordon"] = "bondi"
    extraction_radius: Optional[float] = Field(None, gt=0.0)
    l_max: int = Field(8, ge=0)
    interpolator_length: int = Field(5, ge=1)
    buffer_depth: int = Field(4, ge=0)
    output_file: str = "worldtube_resampled.h5"
    start_time: Optional[float] = None
    end_time: Optional[float] = None
    number_of_times: int = Field(11, ge=1)

    @model_validator(mode="after")
    def _check_window(self) -> "WorldtubeConfig":
        if (
            self.start_time is not None
            and self.end_time is not None
            and self.end_time < self.start_time
        ):
            raise ConfigurationError("worldtube.end_time must not precede start_time")
        return self


class IO(BaseModel):
    """Output directories."""

    outdir: Path = Path("out")
    quiet: bool = Field(
        False,
        description="Suppress INFO logging and Python warnings for cleaner CLI output.",
    )
    record_every: int = Field(1, ge=1, description="Record every n-th completed step.")


class Config(BaseModel):
    """Top-level configuration object."""

    time_stepping: TimeStepping = Field(default_factory=TimeStepping)
    step_choosers: List[StepChooserConfig] = Field(default_factory=list)
    elements: List[Element] = Field(default_factory=_default_elements)
    sod_explosion: SodExplosionConfig = Field(default_factory=SodExplosionConfig)
    worldtube: WorldtubeConfig = Field(default_factory=WorldtubeConfig)
    io: IO = Field(default_factory=IO)

    @model_validator(mode="before")
    def _forbid_unknown_sections(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        unknown = sorted(set(data) - set(cls.model_fields))
        if unknown:
            raise ConfigurationError(f"Unknown configuration sections: {', '.join(unknown)}")
        return data

    @field_validator("elements")
    def _unique_names(cls, value: List[Element]) -> List[Element]:
        names = [element.name for element in value]
        if not names:
            raise ConfigurationError("At least one element is required")
        if len(set(names)) != len(names):
            raise ConfigurationError("Element names must be unique")
        return value


__all__ = [
    "TimeStepping",
    "ConstantChooser",
    "IncreaseChooser",
    "LimitIncreaseChooser",
    "MaximumChooser",
    "StepToTimesChooser",
    "ErrorControlChooser",
    "StepChooserConfig",
    "Element",
    "SodExplosionConfig",
    "WorldtubeConfig",
    "IO",
    "Config",
]
