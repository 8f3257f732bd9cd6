from .local_supervisor import SubprocessSupervisor
from .supervisor import ProcessSupervisor
from .types import (
    ExecutionOutcome,
    ExecutionRequest,
    Failure,
    FailureKind,
    SpawnRequest,
    SpawnResult,
    Success,
)

__all__ = [
    "ExecutionOutcome",
    "ExecutionRequest",
    "Failure",
    "FailureKind",
    "ProcessSupervisor",
    "SpawnRequest",
    "SpawnResult",
    "SubprocessSupervisor",
    "Success",
]
