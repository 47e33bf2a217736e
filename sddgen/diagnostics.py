"""
sddgen Diagnostics - Type checker and lint checker adapters

Runs tsc and eslint against a generated project and normalizes their output
into ErrorInfo records. The two checkers are isolated from each other: if one
cannot run or its output cannot be parsed, it contributes nothing and the
failure is recorded in the report, while the other's errors are kept.
"""

from __future__ import annotations

import json
import logging
import re
import subprocess
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path, PurePath
from typing import Protocol

from sddgen.errors import DiagnosticToolError

logger = logging.getLogger(__name__)

TSC_COMMAND = ("npx", "tsc", "--noEmit", "--pretty", "false")
ESLINT_COMMAND = ("npx", "eslint", ".", "--format", "json", "--ext", ".ts,.tsx,.js,.jsx")

# file.ts(line,column): error TS2304: message
_TSC_LINE = re.compile(
    r"^(.+?)\((\d+),(\d+)\):\s+(error|warning)\s+([A-Z]+\d+):\s+(.+)$"
)

ESLINT_ERROR = 2  # 1 = warning, deliberately out of the repair loop's scope


class ErrorKind(str, Enum):
    TYPE = "type"
    LINT = "lint"


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"


@dataclass(frozen=True)
class ErrorInfo:
    """One normalized diagnostic."""

    file: str
    line: int
    message: str
    kind: ErrorKind
    severity: Severity = Severity.ERROR
    column: int | None = None
    code: str | None = None  # e.g. TS2304, no-unused-vars

    def describe(self) -> str:
        """Line 10:3 - TYPE TS2304: Cannot find name 'x'."""
        location = f"Line {self.line}"
        if self.column:
            location += f":{self.column}"
        code = f" {self.code}" if self.code else ""
        return f"{location} - {self.kind.value.upper()}{code}: {self.message}"


@dataclass(frozen=True)
class CheckerFailure:
    """A checker that contributed nothing because it failed."""

    checker: str
    message: str


@dataclass
class DiagnosticsReport:
    errors: list[ErrorInfo] = field(default_factory=list)
    failures: list[CheckerFailure] = field(default_factory=list)

    @property
    def clean(self) -> bool:
        return not self.errors


# ═══════════════════════════════════════════════════════════════════════════
# PARSERS
# ═══════════════════════════════════════════════════════════════════════════


def parse_tsc_output(output: str) -> list[ErrorInfo]:
    """Parse `tsc --pretty false` output. Lines that do not match are ignored."""
    errors = []
    for line in output.splitlines():
        match = _TSC_LINE.match(line.strip())
        if not match:
            continue
        file, line_no, column, severity, code, message = match.groups()
        errors.append(ErrorInfo(
            file=file.strip(),
            line=int(line_no),
            column=int(column),
            message=message.strip(),
            code=code,
            kind=ErrorKind.TYPE,
            severity=Severity(severity),
        ))
    return errors


def _relative_to_project(file_path: str, project_dir: Path | None) -> str:
    if project_dir is None:
        return file_path
    path = PurePath(file_path)
    if not path.is_absolute():
        return file_path
    try:
        return path.relative_to(project_dir.resolve()).as_posix()
    except ValueError:
        return file_path


def parse_eslint_output(output: str, project_dir: Path | None = None) -> list[ErrorInfo]:
    """
    Parse `eslint --format json` output, keeping severity-2 messages only.

    Args:
        output: JSON array of {filePath, messages: [...]}
        project_dir: When given, absolute file paths under it become relative

    Raises:
        DiagnosticToolError: The output is not the expected JSON
    """
    try:
        results = json.loads(output)
    except json.JSONDecodeError as e:
        raise DiagnosticToolError("eslint", f"Failed to parse JSON output: {e}") from e
    if not isinstance(results, list):
        raise DiagnosticToolError("eslint", "Expected a JSON array of file results")

    errors = []
    for result in results:
        if not isinstance(result, dict):
            raise DiagnosticToolError("eslint", f"Unexpected file result: {result!r}")
        messages = result.get("messages") or []
        file_path = result.get("filePath", "")
        if not isinstance(file_path, str):
            raise DiagnosticToolError("eslint", f"Unexpected filePath: {file_path!r}")
        if not isinstance(messages, list):
            raise DiagnosticToolError("eslint", f"Unexpected messages for {file_path}: {messages!r}")
        file = _relative_to_project(file_path, project_dir)
        for msg in messages:
            if not isinstance(msg, dict):
                raise DiagnosticToolError("eslint", f"Unexpected message in {file_path}: {msg!r}")
            if msg.get("severity") != ESLINT_ERROR:
                continue
            errors.append(ErrorInfo(
                file=file,
                line=msg.get("line") or 0,
                column=msg.get("column"),
                message=msg.get("message", ""),
                code=msg.get("ruleId") or None,
                kind=ErrorKind.LINT,
                severity=Severity.ERROR,
            ))
    return errors


# ═══════════════════════════════════════════════════════════════════════════
# CHECKERS
# ═══════════════════════════════════════════════════════════════════════════


class Checker(Protocol):
    name: str

    def check(self, project_dir: Path) -> list[ErrorInfo]: ...


def _run(name: str, command: tuple[str, ...], project_dir: Path, timeout: float) -> subprocess.CompletedProcess:
    logger.info("Checking %s errors...", name)
    try:
        return subprocess.run(
            list(command),
            cwd=project_dir,
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
            timeout=timeout,
        )
    except subprocess.TimeoutExpired as e:
        raise DiagnosticToolError(name, f"Timed out after {timeout:.0f}s") from e
    except OSError as e:
        raise DiagnosticToolError(name, f"Could not run {command[0]}: {e}") from e


class TypeChecker:
    """tsc adapter"""

    name = "tsc"

    def __init__(self, command: tuple[str, ...] = TSC_COMMAND, timeout: float = 300.0):
        self.command = command
        self.timeout = timeout

    def check(self, project_dir: Path) -> list[ErrorInfo]:
        proc = _run(self.name, self.command, project_dir, self.timeout)
        if proc.returncode == 0:
            logger.info("No TypeScript errors found")
            return []
        errors = parse_tsc_output(f"{proc.stdout}\n{proc.stderr}")
        logger.info("Found %d TypeScript errors", len(errors))
        return errors


class LintChecker:
    """eslint adapter"""

    name = "eslint"

    def __init__(self, command: tuple[str, ...] = ESLINT_COMMAND, timeout: float = 300.0):
        self.command = command
        self.timeout = timeout

    def check(self, project_dir: Path) -> list[ErrorInfo]:
        proc = _run(self.name, self.command, project_dir, self.timeout)
        if proc.returncode == 0:
            logger.info("No ESLint errors found")
            return []
        if not proc.stdout.strip():
            return []
        errors = parse_eslint_output(proc.stdout, project_dir)
        logger.info("Found %d ESLint errors", len(errors))
        return errors


# ═══════════════════════════════════════════════════════════════════════════
# COLLECTOR
# ═══════════════════════════════════════════════════════════════════════════


class DiagnosticsCollector:
    """Union of independent checkers over one project directory."""

    def __init__(self, checkers: list[Checker] | None = None):
        if checkers is None:
            checkers = [TypeChecker(), LintChecker()]
        self.checkers = checkers

    @classmethod
    def create(
        cls,
        check_types: bool = True,
        check_lint: bool = True,
        timeout: float = 300.0,
    ) -> "DiagnosticsCollector":
        checkers: list[Checker] = []
        if check_types:
            checkers.append(TypeChecker(timeout=timeout))
        if check_lint:
            checkers.append(LintChecker(timeout=timeout))
        return cls(checkers)

    def collect_report(self, project_dir: Path) -> DiagnosticsReport:
        report = DiagnosticsReport()
        for checker in self.checkers:
            try:
                report.errors.extend(checker.check(project_dir))
            except DiagnosticToolError as e:
                logger.warning("Checker %s skipped: %s", e.checker, e.message)
                report.failures.append(CheckerFailure(checker=e.checker, message=e.message))
        return report

    def collect(self, project_dir: Path) -> list[ErrorInfo]:
        return self.collect_report(project_dir).errors
