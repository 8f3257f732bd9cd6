from __future__ import annotations

import logging
from typing import Any

from .execution.supervisor import ProcessSupervisor
from .execution.types import ExecutionOutcome, Failure, FailureKind
from .runner import execute
from .settings import RunnerSettings, resolve_settings

logger = logging.getLogger(__name__)

TOOL_NAME = "execute_code"


def build_tool_schema(settings: RunnerSettings | None = None) -> dict[str, Any]:
    """Describe `execute_code` for registration with an agent framework.

    Example:
        ```python
        schema = build_tool_schema(RunnerSettings(max_timeout_seconds=60))
        ```
    """
    resolved = settings if settings is not None else RunnerSettings()
    low = resolved.min_timeout_seconds
    high = resolved.max_timeout_seconds
    default = resolved.default_timeout_seconds
    return {
        "name": TOOL_NAME,
        "description": (
            "Execute Python code for data analysis, calculations, or processing. "
            "Write complete, self-contained Python 3 code and print() the values you need; "
            "the tool returns the captured stdout and stderr."
        ),
        "parameters": {
            "type": "object",
            "properties": {
                "code": {
                    "type": "string",
                    "minLength": 1,
                    "description": (
                        "Complete Python 3 code to execute. Should include all necessary "
                        "imports and be self-contained."
                    ),
                },
                "timeout_seconds": {
                    "type": "integer",
                    "minimum": low,
                    "maximum": high,
                    "default": default,
                    "description": (
                        f"Maximum execution time in seconds ({low}-{high}, default {default})"
                    ),
                },
            },
            "required": ["code"],
        },
    }


TOOL_SCHEMA = build_tool_schema()


def outcome_to_payload(outcome: ExecutionOutcome) -> dict[str, Any]:
    """Render an outcome as the JSON-ready dict returned to the calling agent.

    Example:
        ```python
        payload = outcome_to_payload(execute("print(1)", timeout_seconds=5))
        ```
    """
    payload: dict[str, Any] = {
        "success": outcome.ok,
        "stdout": outcome.stdout,
        "stderr": outcome.stderr,
        "exit_code": outcome.exit_code,
        "execution_time_ms": outcome.elapsed_ms,
    }
    if isinstance(outcome, Failure):
        payload["error"] = outcome.message
        payload["error_kind"] = outcome.kind.value
        if outcome.help is not None:
            payload["help"] = outcome.help
    if outcome.truncated:
        payload["output_truncated"] = True
    return payload


def execute_code(
    code: str,
    timeout_seconds: int | None = None,
    *,
    supervisor: ProcessSupervisor | None = None,
    settings: RunnerSettings | None = None,
    settings_file: str | None = None,
) -> dict[str, Any]:
    """Tool entry point: run `code` and return the structured payload.

    A missing timeout uses the configured default; out-of-range values are
    clamped into the configured bounds. Never raises.

    Example:
        ```python
        from snippet_runner import execute_code
        payload = execute_code("print(sum(range(10)))", timeout_seconds=5)
        ```
    """
    try:
        resolved_settings = resolve_settings(settings, settings_file)
        requested = (
            resolved_settings.default_timeout_seconds
            if timeout_seconds is None
            else int(timeout_seconds)
        )
        effective = resolved_settings.clamp_timeout(requested)
    except Exception as exc:
        # Unreadable settings files and non-finite or non-numeric timeouts land here.
        logger.error("Rejected execute_code call: %s", exc)
        return outcome_to_payload(
            Failure(
                kind=FailureKind.UNEXPECTED,
                message=f"Unexpected error during code execution: {exc}",
            )
        )

    if effective != requested:
        logger.warning(
            "timeout_seconds=%s outside [%s, %s], using %s",
            requested,
            resolved_settings.min_timeout_seconds,
            resolved_settings.max_timeout_seconds,
            effective,
        )
    outcome = execute(
        code,
        effective,
        supervisor=supervisor,
        settings=resolved_settings,
    )
    return outcome_to_payload(outcome)
