from __future__ import annotations

import io
from pathlib import Path

import pytest

from snippet_runner.execution.types import SpawnRequest, SpawnResult
from snr import cli


class _FakeSupervisor:
    result = SpawnResult(stdout="4\n", returncode=0)
    requests: list[SpawnRequest] = []

    def run(self, request: SpawnRequest) -> SpawnResult:
        self.__class__.requests.append(request)
        return self.result


@pytest.fixture(autouse=True)
def _patch_supervisor(monkeypatch: pytest.MonkeyPatch) -> None:
    _FakeSupervisor.result = SpawnResult(stdout="4\n", returncode=0)
    _FakeSupervisor.requests = []
    monkeypatch.setattr(cli, "SubprocessSupervisor", _FakeSupervisor)


def test_cli_run_success(capsys: pytest.CaptureFixture[str]) -> None:
    code = cli.main(["run", "print(2 + 2)"])
    output = capsys.readouterr().out
    assert code == 0
    assert "Success" in output
    assert "4" in output
    assert _FakeSupervisor.requests[0].argv[-1] == "print(2 + 2)"


def test_cli_run_failure_exit_status(capsys: pytest.CaptureFixture[str]) -> None:
    _FakeSupervisor.result = SpawnResult(stderr="ZeroDivisionError\n", returncode=1)
    code = cli.main(["run", "1 / 0"])
    output = capsys.readouterr().out
    assert code == 1
    assert "Code execution failed with exit code 1" in output
    assert "ZeroDivisionError" in output


def test_cli_run_json(capsys: pytest.CaptureFixture[str]) -> None:
    code = cli.main(["run", "--json", "--timeout-seconds", "3", "print(2 + 2)"])
    output = capsys.readouterr().out
    assert code == 0
    assert '"success": true' in output
    assert '"exit_code": 0' in output
    assert _FakeSupervisor.requests[0].timeout_seconds == 3


def test_cli_run_from_file(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    script = tmp_path / "snippet.py"
    script.write_text("print('from file')\n", encoding="utf-8")
    code = cli.main(["run", "--file", str(script)])
    capsys.readouterr()
    assert code == 0
    assert _FakeSupervisor.requests[0].argv[-1] == "print('from file')\n"


def test_cli_run_from_stdin(monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]) -> None:
    monkeypatch.setattr("sys.stdin", io.StringIO("print('piped')"))
    code = cli.main(["run", "-"])
    capsys.readouterr()
    assert code == 0
    assert _FakeSupervisor.requests[0].argv[-1] == "print('piped')"


def test_cli_run_missing_interpreter_shows_help(capsys: pytest.CaptureFixture[str]) -> None:
    _FakeSupervisor.result = SpawnResult(not_found=True)
    code = cli.main(["run", "print(1)"])
    output = capsys.readouterr().out
    assert code == 1
    assert "python.org" in output


def test_cli_settings_file(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    settings_file = tmp_path / "runner.toml"
    settings_file.write_text("[runner]\ninterpreter = \"pypy3\"\ndelivery = \"stdin\"\n", encoding="utf-8")
    code = cli.main(["--settings-file", str(settings_file), "run", "print(1)"])
    capsys.readouterr()
    assert code == 0
    assert _FakeSupervisor.requests[0].argv == ["pypy3", "-"]
    assert _FakeSupervisor.requests[0].stdin_data == "print(1)"


def test_cli_bad_settings_file(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    with pytest.raises(SystemExit) as exc:
        cli.main(["--settings-file", str(tmp_path / "missing.toml"), "schema"])
    output = capsys.readouterr().out
    assert exc.value.code == 2
    assert "Settings file not found" in output


def test_cli_check_reports_interpreter(capsys: pytest.CaptureFixture[str]) -> None:
    _FakeSupervisor.result = SpawnResult(stdout="/usr/bin/python3\n3.12.1\n", returncode=0)
    code = cli.main(["check"])
    output = capsys.readouterr().out
    assert code == 0
    assert "/usr/bin/python3" in output
    assert "3.12.1" in output


def test_cli_check_fails_without_interpreter(capsys: pytest.CaptureFixture[str]) -> None:
    _FakeSupervisor.result = SpawnResult(not_found=True)
    code = cli.main(["check"])
    capsys.readouterr()
    assert code == 1


def test_cli_schema(capsys: pytest.CaptureFixture[str]) -> None:
    code = cli.main(["schema"])
    output = capsys.readouterr().out
    assert code == 0
    assert '"name": "execute_code"' in output
    assert _FakeSupervisor.requests == []


def test_cli_top_level_help_examples(capsys: pytest.CaptureFixture[str]) -> None:
    with pytest.raises(SystemExit) as exc:
        cli.main(["--help"])
    output = capsys.readouterr().out
    assert exc.value.code == 0
    assert "Quick Examples:" in output
    assert "python -m snr check" in output


def test_cli_print_help_writes_to_requested_stream(capsys: pytest.CaptureFixture[str]) -> None:
    parser = cli.build_parser()
    buffer = io.StringIO()
    parser.print_help(file=buffer)
    output = capsys.readouterr().out
    assert output == ""
    help_text = buffer.getvalue()
    assert "Usage:" in help_text
    assert "snippet-runner CLI" in help_text
