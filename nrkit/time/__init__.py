"""Time bookkeeping, steppers and the local-time-stepping step controller."""
from .slab import Slab, Time, TimeDelta, TimeStepId
from .request import TimeStepRequest, TimeStepRequestProcessor
from .choose_lts import choose_lts_step_size
from .steppers import AdamsBashforth, History, LtsTimeStepper
from .diagnostics import AdaptiveSteppingDiagnostics
from .actions import (
    Action,
    ActionList,
    AdvanceTime,
    ChangeStepSize,
    ElementState,
    RecordTimeDerivative,
    UpdateU,
    change_step_size,
    default_action_list,
    run_action_list,
    take_step,
)

__all__ = [
    "Slab",
    "Time",
    "TimeDelta",
    "TimeStepId",
    "TimeStepRequest",
    "TimeStepRequestProcessor",
    "choose_lts_step_size",
    "AdamsBashforth",
    "History",
    "LtsTimeStepper",
    "AdaptiveSteppingDiagnostics",
    "Action",
    "ActionList",
    "AdvanceTime",
    "ChangeStepSize",
    "ElementState",
    "RecordTimeDerivative",
    "UpdateU",
    "change_step_size",
    "default_action_list",
    "run_action_list",
    "take_step",
]
