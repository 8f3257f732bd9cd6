from __future__ import annotations

import logging
import os
import shutil
import signal
import subprocess
import threading
import time
from functools import partial
from typing import IO, Any

from .types import SpawnRequest, SpawnResult

logger = logging.getLogger(__name__)

_READ_CHUNK_BYTES = 64 * 1024
# How long to wait for pipe workers once the child has been reaped.
_REAP_GRACE_SECONDS = 2.0


class _OutputBudget:
    """Byte allowance shared by the stdout and stderr readers of one run.

    Buffers are only touched under the budget lock, so a snapshot can be taken
    while a reader is still running.

    Example:
        ```python
        budget = _OutputBudget(1024)
        budget.absorb(b"hello", buffer)
        ```
    """

    def __init__(self, limit_bytes: int) -> None:
        """Start with `limit_bytes` available.

        Example:
            ```python
            budget = _OutputBudget(limit_bytes=1024 * 1024)
            ```
        """
        self._remaining = max(0, limit_bytes)
        self._lock = threading.Lock()
        self.truncated = False

    def absorb(self, chunk: bytes, sink: bytearray) -> None:
        """Append the part of `chunk` that still fits to `sink` and charge it to the budget.

        Example:
            ```python
            budget.absorb(b"x" * 10, buffer)
            ```
        """
        with self._lock:
            if len(chunk) <= self._remaining:
                self._remaining -= len(chunk)
                sink.extend(chunk)
                return
            sink.extend(chunk[: self._remaining])
            self._remaining = 0
            self.truncated = True

    def snapshot(self, sink: bytearray) -> str:
        """Decode what `sink` holds right now.

        Example:
            ```python
            text = budget.snapshot(buffer)
            ```
        """
        with self._lock:
            data = bytes(sink)
        return data.decode("utf-8", errors="replace")


def _drain(stream: IO[bytes], sink: bytearray, budget: _OutputBudget) -> None:
    """Read `stream` to EOF, keeping only what the budget allows, then close it.

    Bytes past the budget are still read so the child never blocks on a full pipe.
    The reader owns the stream: nothing else closes it while a read may be pending.

    Example:
        ```python
        _drain(proc.stdout, buffer, budget)
        ```
    """
    try:
        for chunk in iter(partial(stream.read, _READ_CHUNK_BYTES), b""):
            budget.absorb(chunk, sink)
    except OSError as exc:
        logger.debug("Output reader stopped early: %s", exc)
    finally:
        try:
            stream.close()
        except OSError as exc:
            logger.debug("Closing child output pipe failed: %s", exc)


def _feed(stream: IO[bytes], data: bytes) -> None:
    """Write `data` to the child's stdin and close it.

    Example:
        ```python
        _feed(proc.stdin, b"print(1)\\n")
        ```
    """
    try:
        stream.write(data)
    except OSError as exc:
        # The child exited or was killed before consuming all of its input.
        logger.debug("Stdin writer stopped early: %s", exc)
    finally:
        try:
            stream.close()
        except OSError as exc:
            logger.debug("Closing child stdin failed: %s", exc)


def _remaining(deadline: float) -> float:
    """Return seconds left until `deadline`, never negative.

    Example:
        ```python
        left = _remaining(time.monotonic() + 5)
        ```
    """
    return max(0.0, deadline - time.monotonic())


def _terminate(proc: subprocess.Popen[bytes]) -> None:
    """Force-kill the child and, on POSIX, every process in its session.

    Example:
        ```python
        _terminate(proc)
        ```
    """
    if os.name == "posix":
        try:
            os.killpg(proc.pid, signal.SIGKILL)
            return
        except ProcessLookupError:
            return
        except PermissionError:
            logger.debug("killpg(%s) not permitted, killing the direct child only", proc.pid)
    proc.kill()


def _close_idle_pipes(workers: list[tuple[threading.Thread, IO[bytes]]]) -> int:
    """Close pipes whose worker never started or already finished; return how many are still busy.

    A pipe with a live worker is left alone: closing a buffered stream blocks
    until a pending read returns, which may be never if a descendant that
    escaped the kill still holds the other end.

    Example:
        ```python
        busy = _close_idle_pipes([(reader_thread, proc.stdout)])
        ```
    """
    busy = 0
    for thread, stream in workers:
        if thread.is_alive():
            busy += 1
        elif not stream.closed:
            stream.close()
    return busy


class SubprocessSupervisor:
    """Run commands as local child processes with a hard wall-clock bound.

    The command is resolved on `PATH` on every call, so environment changes
    between calls are honoured.

    Example:
        ```python
        supervisor = SubprocessSupervisor()
        result = supervisor.run(SpawnRequest(argv=["python3", "-c", "print(1)"], timeout_seconds=5, max_output_bytes=1024))
        ```
    """

    def run(self, request: SpawnRequest) -> SpawnResult:
        """Spawn `request.argv`, wait for it within the timeout and capture its output.

        Returns at most about `_REAP_GRACE_SECONDS` after the deadline, even when
        a descendant outside the child's process group keeps the pipes open.

        Example:
            ```python
            result = SubprocessSupervisor().run(SpawnRequest(argv=["python3", "-c", "print(1)"], timeout_seconds=5, max_output_bytes=1024))
            ```
        """
        command = request.argv[0]
        executable = shutil.which(command)
        if executable is None:
            logger.warning("Interpreter %r not found on PATH", command)
            return SpawnResult(not_found=True, error=f"{command} not found")

        argv = [executable, *request.argv[1:]]
        popen_kwargs: dict[str, Any] = {}
        if os.name == "posix":
            popen_kwargs["start_new_session"] = True

        logger.debug("Spawning %s (timeout=%ss)", executable, request.timeout_seconds)
        try:
            proc = subprocess.Popen(
                argv,
                stdin=subprocess.PIPE if request.stdin_data is not None else subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                **popen_kwargs,
            )
        except FileNotFoundError:
            logger.warning("Interpreter %r disappeared before it could be spawned", command)
            return SpawnResult(not_found=True, error=f"{command} not found")
        except OSError as exc:
            logger.warning("Failed to spawn %s: %s", executable, exc)
            return SpawnResult(error=str(exc))

        if proc.stdout is None or proc.stderr is None:
            _terminate(proc)
            proc.wait()
            raise RuntimeError("Child process was spawned without output pipes")

        budget = _OutputBudget(request.max_output_bytes)
        stdout_buffer = bytearray()
        stderr_buffer = bytearray()
        workers: list[tuple[threading.Thread, IO[bytes]]] = [
            (
                threading.Thread(target=_drain, args=(proc.stdout, stdout_buffer, budget), daemon=True),
                proc.stdout,
            ),
            (
                threading.Thread(target=_drain, args=(proc.stderr, stderr_buffer, budget), daemon=True),
                proc.stderr,
            ),
        ]
        if request.stdin_data is not None and proc.stdin is not None:
            workers.append(
                (
                    threading.Thread(
                        target=_feed,
                        args=(proc.stdin, request.stdin_data.encode("utf-8")),
                        daemon=True,
                    ),
                    proc.stdin,
                )
            )

        deadline = time.monotonic() + request.timeout_seconds
        timed_out = False
        try:
            for thread, _ in workers:
                thread.start()
            for thread, _ in workers:
                thread.join(_remaining(deadline))
            timed_out = any(thread.is_alive() for thread, _ in workers)
            if not timed_out:
                try:
                    proc.wait(timeout=_remaining(deadline))
                except subprocess.TimeoutExpired:
                    timed_out = True
        finally:
            if timed_out or proc.poll() is None:
                _terminate(proc)
            proc.wait()
            grace_deadline = time.monotonic() + _REAP_GRACE_SECONDS
            for thread, _ in workers:
                if thread.is_alive():
                    thread.join(_remaining(grace_deadline))
            busy = _close_idle_pipes(workers)

        if timed_out:
            logger.warning("Killed %s after %ss timeout", executable, request.timeout_seconds)
        else:
            logger.debug("%s exited with status %s", executable, proc.returncode)
        if busy:
            logger.warning(
                "%s pipe(s) of %s still held open by an escaped descendant, leaving them to their readers",
                busy,
                executable,
            )
        if budget.truncated:
            logger.warning("Output of %s truncated at %s bytes", executable, request.max_output_bytes)

        return SpawnResult(
            stdout=budget.snapshot(stdout_buffer),
            stderr=budget.snapshot(stderr_buffer),
            returncode=proc.returncode,
            timed_out=timed_out,
            truncated=budget.truncated,
        )
