from __future__ import annotations

from typing import Protocol

from .types import SpawnRequest, SpawnResult


class ProcessSupervisor(Protocol):
    """Capability to spawn an external command with a timeout, capture and reap it.

    Example:
        ```python
        class FakeSupervisor:
            def run(self, request: SpawnRequest) -> SpawnResult:
                return SpawnResult(stdout="ok", returncode=0)
        ```
    """

    def run(self, request: SpawnRequest) -> SpawnResult:
        """Spawn one command, bound it by the request timeout and report what happened.

        Implementations report spawn problems through `SpawnResult` fields
        rather than raising.

        Example:
            ```python
            result = supervisor.run(SpawnRequest(argv=["python3", "-c", "print(1)"], timeout_seconds=5, max_output_bytes=1024))
            ```
        """
        ...
