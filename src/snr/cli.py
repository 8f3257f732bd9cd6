from __future__ import annotations

import argparse
import logging
import sys
from functools import partial
from pathlib import Path
from typing import Any, Never, Sequence

from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table
from rich.text import Text
from rich_argparse import RawTextRichHelpFormatter
from snippet_runner import RunnerSettings, SubprocessSupervisor, build_tool_schema, execute_code
from snippet_runner.settings import resolve_settings

_CONSOLE = Console(no_color=False)

_VERSION_PROBE = "import sys\nprint(sys.executable)\nprint(sys.version.split()[0])"


class _CLIHelpFormatter(RawTextRichHelpFormatter):
    """Rich formatter with explicit high-contrast CLI styles.

    Example:
        ```python
        parser = argparse.ArgumentParser(formatter_class=_CLIHelpFormatter)
        ```
    """

    styles = {
        "argparse.args": "bold cyan",
        "argparse.groups": "bold magenta",
        "argparse.help": "white",
        "argparse.metavar": "bold yellow",
        "argparse.prog": "bold bright_blue",
        "argparse.syntax": "bold bright_white",
        "argparse.text": "bright_white",
    }


_HELP_FORMATTER = partial(
    _CLIHelpFormatter,
    max_help_position=34,
    width=120,
)


class _RichArgumentParser(argparse.ArgumentParser):
    """ArgumentParser that renders errors via Rich.

    Example:
        ```python
        parser = _RichArgumentParser(prog="python -m snr")
        ```
    """

    def error(self, message: str) -> Never:
        """Render parse errors with Rich and exit.

        Example:
            ```python
            # parser.error("invalid usage")
            ```
        """
        _CONSOLE.print(Panel.fit(f"[bold red]Error:[/bold red] {message}", border_style="red"))
        self.print_help()
        raise SystemExit(2)


def build_parser() -> argparse.ArgumentParser:
    """Build CLI parser for snippet-runner operations.

    Example:
        ```python
        parser = build_parser()
        ```
    """
    parser = _RichArgumentParser(
        prog="python -m snr",
        description=(
            "snippet-runner CLI\n"
            "Run short code snippets in a fresh interpreter process with a hard timeout.\n"
            "There is no filesystem or network isolation: only run code you are willing to run locally."
        ),
        epilog=(
            "Quick Examples:\n"
            "  python -m snr run \"print(2 + 2)\"\n"
            "  python -m snr run --file script.py --timeout-seconds 20\n"
            "  echo 'print(1)' | python -m snr run -\n"
            "  python -m snr check\n"
            "  python -m snr schema"
        ),
        formatter_class=_HELP_FORMATTER,
    )
    parser.add_argument(
        "--settings-file",
        help=(
            "Load runner settings from a TOML file.\n"
            "Keys live under a [runner] table: interpreter, delivery, timeouts, max_output_kb."
        ),
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Log spawn, exit and timing details to stderr.",
    )

    sub = parser.add_subparsers(
        dest="command",
        required=True,
        parser_class=_RichArgumentParser,
    )

    run_cmd = sub.add_parser(
        "run",
        help="Run one code snippet and show the outcome.",
        description=(
            "Run one code snippet in a fresh interpreter process.\n"
            "Code comes from the positional argument, --file, or stdin ('-')."
        ),
        epilog=(
            "Examples:\n"
            "  python -m snr run \"print('hello')\"\n"
            "  python -m snr run --json \"import sys; sys.exit(3)\""
        ),
        formatter_class=_HELP_FORMATTER,
    )
    run_cmd.add_argument(
        "code",
        nargs="?",
        help="Code to run. Use '-' or omit to read it from stdin.",
    )
    run_cmd.add_argument(
        "--file",
        help="Read the code from this file instead.",
    )
    run_cmd.add_argument(
        "--timeout-seconds",
        type=int,
        default=None,
        help="Wall-clock bound, clamped into the configured range (default: settings value).",
    )
    run_cmd.add_argument(
        "--json",
        action="store_true",
        help="Print the raw tool payload as JSON.",
    )

    sub.add_parser(
        "check",
        help="Verify that the configured interpreter can be spawned.",
        description=(
            "Run a version probe through the executor.\n"
            "Reports the resolved interpreter path and version."
        ),
        formatter_class=_HELP_FORMATTER,
    )

    sub.add_parser(
        "schema",
        help="Print the execute_code tool schema as JSON.",
        description="Print the schema an agent framework needs to register execute_code.",
        formatter_class=_HELP_FORMATTER,
    )

    return parser


def build_supervisor() -> SubprocessSupervisor:
    """Create the process supervisor used by CLI commands.

    Example:
        ```python
        supervisor = build_supervisor()
        ```
    """
    return SubprocessSupervisor()


def _configure_logging(verbose: bool) -> None:
    """Route library logging through Rich on stderr.

    Example:
        ```python
        _configure_logging(verbose=True)
        ```
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _read_code(args: argparse.Namespace) -> str:
    """Return the snippet selected by `run` arguments.

    Example:
        ```python
        code = _read_code(argparse.Namespace(code="print(1)", file=None))
        ```
    """
    if args.file is not None:
        return Path(args.file).read_text(encoding="utf-8")
    if args.code is None or args.code == "-":
        return sys.stdin.read()
    return str(args.code)


def _print_payload(payload: dict[str, Any]) -> None:
    """Render a tool payload as Rich panels.

    Example:
        ```python
        _print_payload({"success": True, "stdout": "4", "stderr": "", "exit_code": 0, "execution_time_ms": 12})
        ```
    """
    if payload["success"]:
        title = f"Success (exit 0, {payload['execution_time_ms']}ms)"
        style = "green"
    else:
        title = (
            f"{payload.get('error_kind', 'failure')} "
            f"(exit {payload['exit_code']}, {payload['execution_time_ms']}ms)"
        )
        style = "red"
        _CONSOLE.print(Panel.fit(Text(str(payload.get("error", ""))), title="Error", border_style=style))
        if "help" in payload:
            _CONSOLE.print(Panel.fit(Text(str(payload["help"])), title="Help", border_style="yellow"))
    if payload["stdout"]:
        _CONSOLE.print(Panel(Text(payload["stdout"]), title="stdout", border_style=style))
    if payload["stderr"]:
        _CONSOLE.print(Panel(Text(payload["stderr"]), title="stderr", border_style="yellow"))
    if payload.get("output_truncated"):
        _CONSOLE.print("[bold yellow]Output was truncated at the configured cap.[/bold yellow]")
    _CONSOLE.print(f"[bold {style}]{title}[/bold {style}]")


def _run_check(settings: RunnerSettings) -> int:
    """Probe the configured interpreter and report its location and version.

    Example:
        ```python
        code = _run_check(RunnerSettings())
        ```
    """
    payload = execute_code(_VERSION_PROBE, supervisor=build_supervisor(), settings=settings)
    if not payload["success"]:
        _print_payload(payload)
        return 1
    lines = payload["stdout"].splitlines()
    table = Table(title="Interpreter")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="magenta")
    table.add_row("command", settings.interpreter)
    table.add_row("path", lines[0] if lines else "")
    table.add_row("version", lines[1] if len(lines) > 1 else "")
    table.add_row("delivery", settings.delivery)
    table.add_row(
        "timeout range",
        f"{settings.min_timeout_seconds}-{settings.max_timeout_seconds}s "
        f"(default {settings.default_timeout_seconds}s)",
    )
    table.add_row("output cap", f"{settings.max_output_kb} KiB")
    _CONSOLE.print(table)
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """Run the `snr` CLI command handler.

    Example:
        ```python
        code = main(["run", "print(1)"])
        ```
    """
    parser = build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    _configure_logging(args.verbose)

    try:
        settings = resolve_settings(None, args.settings_file)
    except (OSError, ValueError) as exc:
        parser.error(str(exc))

    if args.command == "schema":
        _CONSOLE.print_json(data=build_tool_schema(settings))
        return 0
    if args.command == "check":
        return _run_check(settings)
    if args.command == "run":
        try:
            code = _read_code(args)
        except OSError as exc:
            parser.error(f"Cannot read code: {exc}")
        payload = execute_code(
            code,
            args.timeout_seconds,
            supervisor=build_supervisor(),
            settings=settings,
        )
        if args.json:
            _CONSOLE.print_json(data=payload)
        else:
            _print_payload(payload)
        return 0 if payload["success"] else 1

    parser.error("Unhandled command")
