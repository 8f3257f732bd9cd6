import os
import signal
import sys
import time

import pytest

from snippet_runner import Failure, FailureKind, RunnerSettings, Success, execute

SETTINGS = RunnerSettings(interpreter=sys.executable)


def run(code: str, timeout_seconds: int = 10, settings: RunnerSettings = SETTINGS):
    return execute(code, timeout_seconds, settings=settings)


def test_stdout_capture() -> None:
    """Verify print output is captured and trailing newlines trimmed."""
    code = """
print("Hello")
print("World")
"""
    outcome = run(code)
    assert isinstance(outcome, Success)
    assert outcome.stdout == "Hello\nWorld"
    assert outcome.exit_code == 0


def test_stderr_capture_on_success() -> None:
    outcome = run("import sys\nsys.stderr.write('careful\\n')")
    assert isinstance(outcome, Success)
    assert outcome.stderr == "careful"


def test_syntax_error() -> None:
    """Verify syntax errors in user code surface as a non-zero exit."""
    outcome = run("def incomplete_function(")
    assert isinstance(outcome, Failure)
    assert outcome.kind is FailureKind.NON_ZERO_EXIT
    assert outcome.exit_code == 1
    assert "SyntaxError" in outcome.stderr


def test_runtime_error() -> None:
    """Verify runtime exceptions are reported with the traceback."""
    outcome = run("print('before')\nx = 1 / 0")
    assert isinstance(outcome, Failure)
    assert outcome.kind is FailureKind.NON_ZERO_EXIT
    assert outcome.stdout == "before"
    assert "ZeroDivisionError" in outcome.stderr


def test_sys_exit_code() -> None:
    """Verify that sys.exit() statuses are reported as-is."""
    assert run("import sys\nsys.exit(0)").ok is True

    outcome = run("import sys\nsys.exit(3)")
    assert isinstance(outcome, Failure)
    assert outcome.exit_code == 3


def test_sys_exit_string_message() -> None:
    outcome = run("import sys\nsys.exit('stop now')")
    assert isinstance(outcome, Failure)
    assert outcome.exit_code == 1
    assert "stop now" in outcome.stderr


def test_stdin_delivery() -> None:
    settings = RunnerSettings(interpreter=sys.executable, delivery="stdin")
    outcome = run("import math\nprint(math.sqrt(81))", settings=settings)
    assert isinstance(outcome, Success)
    assert outcome.stdout == "9.0"


def test_argv_delivery_leaves_stdin_empty() -> None:
    """input() must hit EOF rather than hang waiting for a terminal."""
    outcome = run("input()", timeout_seconds=5)
    assert isinstance(outcome, Failure)
    assert outcome.kind is FailureKind.NON_ZERO_EXIT
    assert "EOFError" in outcome.stderr


def test_missing_interpreter_regardless_of_code() -> None:
    settings = RunnerSettings(interpreter="definitely-not-an-interpreter-4f2a")
    for code in ("print(1)", "raise SystemExit(5)"):
        outcome = run(code, settings=settings)
        assert isinstance(outcome, Failure)
        assert outcome.kind is FailureKind.INTERPRETER_NOT_FOUND
        assert outcome.help


def test_output_over_cap_is_truncated() -> None:
    settings = RunnerSettings(interpreter=sys.executable, max_output_kb=1)
    outcome = run("print('x' * 50_000)\nprint('done')", settings=settings)
    assert isinstance(outcome, Success)
    assert outcome.truncated is True
    assert 0 < len(outcome.stdout) <= 1024
    assert set(outcome.stdout) == {"x"}


def test_cap_is_shared_between_streams() -> None:
    settings = RunnerSettings(interpreter=sys.executable, max_output_kb=1)
    code = "import sys\nsys.stdout.write('o' * 800)\nsys.stdout.flush()\nsys.stderr.write('e' * 800)"
    outcome = run(code, settings=settings)
    assert outcome.truncated is True
    assert len(outcome.stdout) + len(outcome.stderr) == 1024


@pytest.mark.skipif(os.name != "posix", reason="process liveness check uses POSIX signals")
def test_timeout_kills_and_reaps_child() -> None:
    code = "import os, time\nprint(os.getpid(), flush=True)\ntime.sleep(60)"
    started = time.monotonic()
    outcome = run(code, timeout_seconds=1)
    elapsed = time.monotonic() - started

    assert isinstance(outcome, Failure)
    assert outcome.kind is FailureKind.TIMEOUT
    assert outcome.message == "Execution timed out after 1s"
    assert elapsed < 6
    child_pid = int(outcome.stdout)
    with pytest.raises(ProcessLookupError):
        os.kill(child_pid, 0)


def test_repeated_runs_classify_the_same() -> None:
    first = run("import sys\nprint('x')\nsys.exit(4)")
    second = run("import sys\nprint('x')\nsys.exit(4)")
    assert (first.ok, first.exit_code) == (second.ok, second.exit_code) == (False, 4)


@pytest.mark.skipif(not hasattr(os, "setsid"), reason="needs fork and setsid")
def test_timeout_returns_while_detached_descendant_holds_stdout() -> None:
    code = (
        "import os, time\n"
        "if os.fork() == 0:\n"
        "    os.setsid()\n"
        "    print(os.getpid(), flush=True)\n"
        "    time.sleep(60)\n"
        "    os._exit(0)\n"
        "time.sleep(0.2)\n"
        "print('parent done', flush=True)\n"
    )
    started = time.monotonic()
    outcome = run(code, timeout_seconds=1)
    elapsed = time.monotonic() - started

    descendant_pids = [int(line) for line in outcome.stdout.splitlines() if line.strip().isdigit()]
    try:
        assert isinstance(outcome, Failure)
        assert outcome.kind is FailureKind.TIMEOUT
        assert "parent done" in outcome.stdout
        assert elapsed < 8
    finally:
        for pid in descendant_pids:
            try:
                os.kill(pid, signal.SIGKILL)
            except ProcessLookupError:
                pass
