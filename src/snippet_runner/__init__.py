from .execution.local_supervisor import SubprocessSupervisor
from .execution.types import ExecutionOutcome, Failure, FailureKind, Success
from .runner import execute
from .settings import RunnerSettings
from .tool import TOOL_SCHEMA, build_tool_schema, execute_code, outcome_to_payload

__all__ = [
    "ExecutionOutcome",
    "Failure",
    "FailureKind",
    "RunnerSettings",
    "SubprocessSupervisor",
    "Success",
    "TOOL_SCHEMA",
    "build_tool_schema",
    "execute",
    "execute_code",
    "outcome_to_payload",
]
