from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import TypeAlias


class FailureKind(StrEnum):
    """Closed set of reasons a snippet run can fail.

    Example:
        ```python
        if outcome.kind is FailureKind.TIMEOUT:
            ...
        ```
    """

    EMPTY_INPUT = "empty_input"
    INTERPRETER_NOT_FOUND = "interpreter_not_found"
    TIMEOUT = "timeout"
    PROCESS_ERROR = "process_error"
    NON_ZERO_EXIT = "non_zero_exit"
    UNEXPECTED = "unexpected"


@dataclass(frozen=True, slots=True)
class ExecutionRequest:
    """Code plus the wall-clock budget it may use.

    Example:
        ```python
        req = ExecutionRequest(code="print(1 + 1)", timeout_seconds=5)
        ```
    """

    code: str
    timeout_seconds: int


@dataclass(frozen=True, slots=True)
class Success:
    """Outcome of a snippet that exited with status 0.

    Example:
        ```python
        out = Success(stdout="2", stderr="", elapsed_ms=31)
        ```
    """

    stdout: str
    stderr: str
    elapsed_ms: int
    exit_code: int = 0
    truncated: bool = False

    @property
    def ok(self) -> bool:
        """Always true for a successful outcome.

        Example:
            ```python
            assert Success(stdout="", stderr="", elapsed_ms=0).ok
            ```
        """
        return True


@dataclass(frozen=True, slots=True)
class Failure:
    """Outcome of a snippet that did not complete successfully.

    Example:
        ```python
        out = Failure(kind=FailureKind.TIMEOUT, message="Execution timed out after 5s")
        ```
    """

    kind: FailureKind
    message: str
    stdout: str = ""
    stderr: str = ""
    exit_code: int = -1
    elapsed_ms: int = 0
    truncated: bool = False
    help: str | None = None

    @property
    def ok(self) -> bool:
        """Always false for a failed outcome.

        Example:
            ```python
            assert not Failure(kind=FailureKind.EMPTY_INPUT, message="No code provided").ok
            ```
        """
        return False


ExecutionOutcome: TypeAlias = Success | Failure


@dataclass(frozen=True, slots=True)
class SpawnRequest:
    """Command handed to a process supervisor.

    `stdin_data` of `None` means the child gets no standard input at all.

    Example:
        ```python
        req = SpawnRequest(argv=["python3", "-c", "print(1)"], timeout_seconds=5, max_output_bytes=1024)
        ```
    """

    argv: list[str]
    timeout_seconds: int
    max_output_bytes: int
    stdin_data: str | None = None


@dataclass(slots=True)
class SpawnResult:
    """Raw report from a process supervisor, before classification.

    `returncode` follows the `subprocess` convention: negative values mean the
    child was terminated by that signal number.

    Example:
        ```python
        res = SpawnResult(stdout="2\\n", stderr="", returncode=0)
        ```
    """

    stdout: str = ""
    stderr: str = ""
    returncode: int | None = None
    timed_out: bool = False
    not_found: bool = False
    error: str | None = None
    truncated: bool = False
