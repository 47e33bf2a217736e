"""Shared fakes: a scripted oracle and a scripted diagnostics collector."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from sddgen.config import RunConfig
from sddgen.diagnostics import ErrorInfo, ErrorKind


class FakeOracle:
    """Returns scripted responses in order and records every call."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls: list[tuple[str, str | None]] = []

    def generate(self, prompt: str, instructions: str | None = None) -> str:
        self.calls.append((prompt, instructions))
        if not self.responses:
            raise AssertionError("FakeOracle ran out of responses")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        if callable(response):
            return response(prompt)
        return response


class ScriptedCollector:
    """Returns one scripted error list per collect() call; the last one repeats."""

    def __init__(self, *rounds: list[ErrorInfo]):
        self.rounds = list(rounds)
        self.calls = 0

    def collect(self, project_dir: Path) -> list[ErrorInfo]:
        index = min(self.calls, len(self.rounds) - 1)
        self.calls += 1
        return list(self.rounds[index])


def type_error(file: str, line: int = 1, message: str = "Cannot find name 'x'.") -> ErrorInfo:
    return ErrorInfo(file=file, line=line, column=1, message=message, code="TS2304", kind=ErrorKind.TYPE)


def lint_error(file: str, line: int = 1, message: str = "'x' is defined but never used.") -> ErrorInfo:
    return ErrorInfo(file=file, line=line, column=1, message=message, code="no-unused-vars", kind=ErrorKind.LINT)


def fenced(path: str, body: str, language: str = "typescript") -> str:
    return f"```{language}:{path}\n{body}```"


PARSED_SPEC = {
    "projectName": "todo-app",
    "description": "A simple todo list",
    "features": ["Create todos", "Complete todos"],
    "techStack": {
        "frontend": "Next.js 14",
        "backend": "Next.js API routes",
        "database": "PostgreSQL",
        "styling": "Tailwind CSS",
        "authentication": "NextAuth",
    },
    "dataModels": [
        {
            "name": "Todo",
            "fields": [
                {"name": "id", "type": "string", "required": True},
                {"name": "title", "type": "string", "required": True},
                {"name": "done", "type": "boolean", "default": False},
            ],
        }
    ],
    "apiEndpoints": [
        {"method": "GET", "path": "/api/todos", "description": "List todos"},
    ],
}

ARCHITECTURE = {
    "projectName": "todo-app",
    "projectStructure": {
        "rootDir": "todo-app",
        "directories": [{"path": "app", "purpose": "Routes"}],
    },
    "dependencies": {
        "dependencies": {"date-fns": "^3.0.0"},
        "devDependencies": {},
    },
    "configFiles": [{"filename": "package.json", "purpose": "Dependencies"}],
    "fileList": [
        {"path": "app/page.tsx", "type": "page", "purpose": "Home"},
        {"path": "components/ui/button.tsx", "type": "component", "purpose": "Button"},
        {"path": "app/api/todos/route.ts", "type": "api", "purpose": "Todos API"},
        {"path": "lib/actions/todos.ts", "type": "lib", "purpose": "Server actions"},
    ],
}


def as_json_response(payload: dict) -> str:
    return f"Here is the result:\n\n```json\n{json.dumps(payload, indent=2)}\n```\n"


@pytest.fixture
def run_config(tmp_path: Path) -> RunConfig:
    return RunConfig(output_dir=tmp_path / "output", temp_dir=tmp_path / ".temp")


@pytest.fixture
def spec_file(tmp_path: Path) -> Path:
    path = tmp_path / "spec.md"
    path.write_text("# Todo app\n\nUsers can create and complete todos.\n", encoding="utf-8")
    return path
