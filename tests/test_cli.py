"""Tests for the sddgen command-line interface."""

import json
import subprocess
from pathlib import Path

import pytest
from typer.testing import CliRunner

from sddgen import __version__, cli
from sddgen.config import RunConfig

from conftest import ARCHITECTURE, PARSED_SPEC, FakeOracle, as_json_response, fenced

runner = CliRunner()


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.chdir(tmp_path)
    for name in RunConfig.model_fields:
        monkeypatch.delenv(f"SDDGEN_{name.upper()}", raising=False)
    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)


def use_oracle(monkeypatch: pytest.MonkeyPatch, oracle: FakeOracle) -> None:
    class StubFactory:
        @classmethod
        def from_config(cls, config):
            return oracle

    monkeypatch.setattr(cli, "AnthropicOracle", StubFactory)


def test_version() -> None:
    result = runner.invoke(cli.app, ["version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_extract_lists_blocks(tmp_path: Path) -> None:
    response = tmp_path / "response.md"
    response.write_text(fenced("lib/a.ts", "const a = 1\n") + "\n```css\nbody {}\n```", encoding="utf-8")

    result = runner.invoke(cli.app, ["extract", str(response)])

    assert result.exit_code == 0
    assert "lib/a.ts" in result.output
    assert "code-block-0.css" in result.output


def test_extract_writes_files(tmp_path: Path) -> None:
    response = tmp_path / "response.md"
    response.write_text(fenced("lib/a.ts", "const a = 1\n"), encoding="utf-8")

    result = runner.invoke(cli.app, ["extract", str(response), "-o", str(tmp_path / "out")])

    assert result.exit_code == 0
    assert (tmp_path / "out" / "lib" / "a.ts").read_text(encoding="utf-8") == "const a = 1\n"


def test_extract_without_blocks_fails(tmp_path: Path) -> None:
    response = tmp_path / "response.md"
    response.write_text("no code here", encoding="utf-8")

    assert runner.invoke(cli.app, ["extract", str(response)]).exit_code == 1


def test_check_reports_errors(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    def fake_run(command, **kwargs):
        if "tsc" in command:
            return subprocess.CompletedProcess(command, 2, "app/page.tsx(1,1): error TS2304: Cannot find name 'x'.\n", "")
        return subprocess.CompletedProcess(command, 0, "[]", "")

    monkeypatch.setattr(subprocess, "run", fake_run)
    result = runner.invoke(cli.app, ["check", str(tmp_path)])

    assert result.exit_code == 1
    assert "TS2304" in result.output


def test_check_clean_project_with_failed_checker(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    def fake_run(command, **kwargs):
        if "tsc" in command:
            return subprocess.CompletedProcess(command, 0, "", "")
        raise FileNotFoundError("npx")

    monkeypatch.setattr(subprocess, "run", fake_run)
    result = runner.invoke(cli.app, ["check", str(tmp_path)])

    assert result.exit_code == 0
    assert "eslint skipped" in result.output
    assert "No errors found" in result.output


def test_generate_runs_pipeline(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    spec = tmp_path / "spec.md"
    spec.write_text("# Todo\n", encoding="utf-8")
    frontend = fenced("app/page.tsx", "export default function Home() {}\n", "tsx")
    use_oracle(monkeypatch, FakeOracle(as_json_response(PARSED_SPEC), as_json_response(ARCHITECTURE), frontend))

    result = runner.invoke(
        cli.app,
        ["generate", str(spec), "-o", str(tmp_path / "out"), "--no-database", "--no-backend", "--no-fix", "--clean"],
    )

    assert result.exit_code == 0, result.output
    project = tmp_path / "out" / "todo-app"
    assert (project / "app" / "page.tsx").exists()
    package = json.loads((project / "package.json").read_text(encoding="utf-8"))
    assert package["name"] == "todo-app"
    assert "Generation summary" in result.output
    assert not (tmp_path / ".temp").exists()


def test_generate_fails_without_api_key(tmp_path: Path) -> None:
    spec = tmp_path / "spec.md"
    spec.write_text("# Todo\n", encoding="utf-8")

    result = runner.invoke(cli.app, ["generate", str(spec)])

    assert result.exit_code == 1
    assert "ANTHROPIC_API_KEY" in result.output


def test_generate_reports_phase_failure(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    spec = tmp_path / "spec.md"
    spec.write_text("# Todo\n", encoding="utf-8")
    use_oracle(monkeypatch, FakeOracle("I cannot do that."))

    result = runner.invoke(cli.app, ["generate", str(spec)])

    assert result.exit_code == 1
    assert "Error" in result.output


def test_fix_command(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    project = tmp_path / "project"
    project.mkdir()
    (project / "a.ts").write_text("const a = foo\n", encoding="utf-8")
    tsc_output = iter([
        subprocess.CompletedProcess([], 2, "a.ts(1,11): error TS2304: Cannot find name 'foo'.\n", ""),
        subprocess.CompletedProcess([], 0, "", ""),
        subprocess.CompletedProcess([], 0, "", ""),
    ])
    monkeypatch.setattr(subprocess, "run", lambda command, **kwargs: next(tsc_output))
    use_oracle(monkeypatch, FakeOracle(fenced("a.ts", "const a = 1\n")))

    result = runner.invoke(cli.app, ["fix", str(project), "--no-lint"])

    assert result.exit_code == 0, result.output
    assert (project / "a.ts").read_text(encoding="utf-8") == "const a = 1\n"
    assert "All errors fixed" in result.output
