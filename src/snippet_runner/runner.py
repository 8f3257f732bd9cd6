from __future__ import annotations

import logging
import signal
import time

from .execution.local_supervisor import SubprocessSupervisor
from .execution.supervisor import ProcessSupervisor
from .execution.types import (
    ExecutionOutcome,
    ExecutionRequest,
    Failure,
    FailureKind,
    SpawnRequest,
    SpawnResult,
    Success,
)
from .settings import RunnerSettings

logger = logging.getLogger(__name__)


def _elapsed_ms(started: float) -> int:
    """Return whole milliseconds since the monotonic timestamp `started`.

    Example:
        ```python
        ms = _elapsed_ms(time.monotonic())
        ```
    """
    return int((time.monotonic() - started) * 1000)


def _signal_name(signum: int) -> str:
    """Return a readable name for a signal number.

    Example:
        ```python
        _signal_name(9)  # "SIGKILL"
        ```
    """
    try:
        return signal.Signals(signum).name
    except ValueError:
        return f"signal {signum}"


def _build_spawn_request(request: ExecutionRequest, settings: RunnerSettings) -> SpawnRequest:
    """Turn an execution request into the interpreter command for the supervisor.

    Example:
        ```python
        spawn = _build_spawn_request(ExecutionRequest("print(1)", 5), RunnerSettings())
        ```
    """
    if settings.delivery == "stdin":
        return SpawnRequest(
            argv=[settings.interpreter, "-"],
            timeout_seconds=request.timeout_seconds,
            max_output_bytes=settings.max_output_bytes,
            stdin_data=request.code,
        )
    return SpawnRequest(
        argv=[settings.interpreter, "-c", request.code],
        timeout_seconds=request.timeout_seconds,
        max_output_bytes=settings.max_output_bytes,
    )


def _classify(
    result: SpawnResult,
    request: ExecutionRequest,
    settings: RunnerSettings,
    elapsed_ms: int,
) -> ExecutionOutcome:
    """Map a raw supervisor report onto exactly one outcome.

    Example:
        ```python
        outcome = _classify(SpawnResult(stdout="2\\n", returncode=0), ExecutionRequest("print(2)", 5), RunnerSettings(), 12)
        ```
    """
    if result.not_found:
        return Failure(
            kind=FailureKind.INTERPRETER_NOT_FOUND,
            message=f"Interpreter '{settings.interpreter}' is not installed or not found in PATH",
            stdout=result.stdout,
            stderr=result.stderr or f"{settings.interpreter} not found",
            elapsed_ms=elapsed_ms,
            help=settings.install_hint,
        )
    if result.timed_out:
        return Failure(
            kind=FailureKind.TIMEOUT,
            message=f"Execution timed out after {request.timeout_seconds}s",
            stdout=result.stdout.rstrip(),
            stderr=result.stderr.rstrip(),
            elapsed_ms=elapsed_ms,
            truncated=result.truncated,
        )
    if result.error is not None or result.returncode is None:
        detail = result.error or "process finished without an exit status"
        return Failure(
            kind=FailureKind.PROCESS_ERROR,
            message=f"Failed to start or run interpreter process: {detail}",
            stdout=result.stdout,
            stderr=result.stderr or detail,
            elapsed_ms=elapsed_ms,
            truncated=result.truncated,
        )

    stdout = result.stdout.rstrip()
    stderr = result.stderr.rstrip()
    if result.returncode == 0:
        return Success(
            stdout=stdout,
            stderr=stderr,
            elapsed_ms=elapsed_ms,
            truncated=result.truncated,
        )
    if result.returncode < 0:
        message = f"Code execution was terminated by {_signal_name(-result.returncode)}"
        exit_code = -1
    else:
        message = f"Code execution failed with exit code {result.returncode}"
        exit_code = result.returncode
    return Failure(
        kind=FailureKind.NON_ZERO_EXIT,
        message=message,
        stdout=stdout,
        stderr=stderr,
        exit_code=exit_code,
        elapsed_ms=elapsed_ms,
        truncated=result.truncated,
    )


def execute(
    code: str,
    timeout_seconds: int,
    *,
    supervisor: ProcessSupervisor | None = None,
    settings: RunnerSettings | None = None,
) -> ExecutionOutcome:
    """Run `code` in a fresh interpreter process and classify what happened.

    `timeout_seconds` is trusted as already validated. This function never
    raises: every failure, including bugs in the orchestration itself, comes
    back as a `Failure`.

    Example:
        ```python
        from snippet_runner import execute
        outcome = execute("print(2 + 2)", timeout_seconds=5)
        ```
    """
    if not isinstance(code, str):
        return Failure(
            kind=FailureKind.UNEXPECTED,
            message=f"Unexpected error during code execution: code must be a string, not {type(code).__name__}",
        )
    if not code.strip():
        return Failure(kind=FailureKind.EMPTY_INPUT, message="No code provided")

    started = time.monotonic()
    try:
        resolved_settings = settings if settings is not None else RunnerSettings()
        resolved_supervisor = supervisor if supervisor is not None else SubprocessSupervisor()
        request = ExecutionRequest(code=code, timeout_seconds=timeout_seconds)
        result = resolved_supervisor.run(_build_spawn_request(request, resolved_settings))
        outcome = _classify(result, request, resolved_settings, _elapsed_ms(started))
    except Exception as exc:
        logger.exception("Unexpected error while executing code")
        return Failure(
            kind=FailureKind.UNEXPECTED,
            message=f"Unexpected error during code execution: {exc}",
            elapsed_ms=_elapsed_ms(started),
        )

    if isinstance(outcome, Failure):
        logger.debug("Execution failed (%s) after %sms", outcome.kind, outcome.elapsed_ms)
    else:
        logger.debug("Execution succeeded after %sms", outcome.elapsed_ms)
    return outcome
