from __future__ import annotations

import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any

DELIVERY_MODES = frozenset({"argv", "stdin"})


def _default_settings_path() -> Path:
    """Return bundled default settings TOML path.

    Example:
        ```python
        path = _default_settings_path()
        ```
    """
    return Path(__file__).with_name("default_settings.toml")


def _read_settings_toml(path: Path) -> dict[str, Any]:
    """Read settings TOML and return the `[runner]` table (or the whole document).

    Example:
        ```python
        raw = _read_settings_toml(Path("/tmp/runner.toml"))
        ```
    """
    if not path.exists():
        return {
            "interpreter": "python3",
            "delivery": "argv",
            "default_timeout_seconds": 10,
            "min_timeout_seconds": 1,
            "max_timeout_seconds": 30,
            "max_output_kb": 1024,
            "install_hint": "Install Python from https://www.python.org/downloads/",
        }
    raw = tomllib.loads(path.read_text(encoding="utf-8"))
    settings_obj = raw.get("runner", raw)
    if not isinstance(settings_obj, dict):
        raise ValueError("Runner settings must be a TOML table")
    return settings_obj


_DEFAULT_SETTINGS_RAW = _read_settings_toml(_default_settings_path())
DEFAULT_INTERPRETER = str(_DEFAULT_SETTINGS_RAW.get("interpreter", "python3"))
DEFAULT_DELIVERY = str(_DEFAULT_SETTINGS_RAW.get("delivery", "argv"))
DEFAULT_TIMEOUT_SECONDS = int(_DEFAULT_SETTINGS_RAW.get("default_timeout_seconds", 10))
DEFAULT_MIN_TIMEOUT_SECONDS = int(_DEFAULT_SETTINGS_RAW.get("min_timeout_seconds", 1))
DEFAULT_MAX_TIMEOUT_SECONDS = int(_DEFAULT_SETTINGS_RAW.get("max_timeout_seconds", 30))
DEFAULT_MAX_OUTPUT_KB = int(_DEFAULT_SETTINGS_RAW.get("max_output_kb", 1024))
DEFAULT_INSTALL_HINT = str(
    _DEFAULT_SETTINGS_RAW.get(
        "install_hint", "Install Python from https://www.python.org/downloads/"
    )
)


@dataclass(slots=True)
class RunnerSettings:
    """Interpreter, bounds and limits used when running snippets.

    Example:
        ```python
        settings = RunnerSettings(interpreter="python3.12", max_timeout_seconds=60)
        ```
    """

    interpreter: str = DEFAULT_INTERPRETER
    delivery: str = DEFAULT_DELIVERY
    default_timeout_seconds: int = DEFAULT_TIMEOUT_SECONDS
    min_timeout_seconds: int = DEFAULT_MIN_TIMEOUT_SECONDS
    max_timeout_seconds: int = DEFAULT_MAX_TIMEOUT_SECONDS
    max_output_kb: int = DEFAULT_MAX_OUTPUT_KB
    install_hint: str = DEFAULT_INSTALL_HINT
    config_path: str | None = None

    def __post_init__(self) -> None:
        """Validate fields after dataclass initialization.

        Example:
            ```python
            RunnerSettings(delivery="stdin")
            ```
        """
        if not self.interpreter.strip():
            raise ValueError("interpreter must be a non-empty command name")
        if self.delivery not in DELIVERY_MODES:
            raise ValueError("delivery must be 'argv' or 'stdin'")
        if self.min_timeout_seconds < 1:
            raise ValueError("min_timeout_seconds must be at least 1")
        if self.max_timeout_seconds < self.min_timeout_seconds:
            raise ValueError("max_timeout_seconds must not be below min_timeout_seconds")
        if not self.min_timeout_seconds <= self.default_timeout_seconds <= self.max_timeout_seconds:
            raise ValueError(
                "default_timeout_seconds must lie within "
                f"[{self.min_timeout_seconds}, {self.max_timeout_seconds}]"
            )
        if self.max_output_kb < 1:
            raise ValueError("max_output_kb must be at least 1")

    @property
    def max_output_bytes(self) -> int:
        """Combined stdout+stderr cap in bytes.

        Example:
            ```python
            assert RunnerSettings(max_output_kb=1).max_output_bytes == 1024
            ```
        """
        return self.max_output_kb * 1024

    def clamp_timeout(self, timeout_seconds: int) -> int:
        """Clamp a requested timeout into the configured range.

        Example:
            ```python
            RunnerSettings().clamp_timeout(120)  # -> 30
            ```
        """
        return max(self.min_timeout_seconds, min(self.max_timeout_seconds, int(timeout_seconds)))

    @classmethod
    def from_file(cls, config_path: str) -> "RunnerSettings":
        """Create a settings instance from a TOML file.

        Example:
            ```python
            settings = RunnerSettings.from_file("/tmp/runner.toml")
            ```
        """
        path = Path(config_path)
        if not path.exists():
            raise ValueError(f"Settings file not found: {config_path}")
        raw = _read_settings_toml(path)
        return cls(
            interpreter=str(raw.get("interpreter", DEFAULT_INTERPRETER)),
            delivery=str(raw.get("delivery", DEFAULT_DELIVERY)),
            default_timeout_seconds=int(
                raw.get("default_timeout_seconds", DEFAULT_TIMEOUT_SECONDS)
            ),
            min_timeout_seconds=int(raw.get("min_timeout_seconds", DEFAULT_MIN_TIMEOUT_SECONDS)),
            max_timeout_seconds=int(raw.get("max_timeout_seconds", DEFAULT_MAX_TIMEOUT_SECONDS)),
            max_output_kb=int(raw.get("max_output_kb", DEFAULT_MAX_OUTPUT_KB)),
            install_hint=str(raw.get("install_hint", DEFAULT_INSTALL_HINT)),
            config_path=config_path,
        )


def resolve_settings(
    settings: RunnerSettings | None, settings_file: str | None
) -> RunnerSettings:
    """Resolve the effective settings object for a run.

    Example:
        ```python
        settings = resolve_settings(None, "/tmp/runner.toml")
        ```
    """
    if settings is not None and settings_file is not None:
        raise ValueError("Provide either 'settings' or 'settings_file', not both")
    if settings is None and settings_file is not None:
        return RunnerSettings.from_file(settings_file)
    if settings is None:
        return RunnerSettings()
    return settings
