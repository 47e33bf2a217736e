"""
sddgen Repair - Iterative, bounded repair of a generated project

    CHECKING -> GROUPING -> FIXING -> CHECKING | CONVERGED | EXHAUSTED

Each attempt collects diagnostics, groups them by file and asks the oracle
to rewrite each failing file, one file at a time in first-seen order. The
loop stops when a check comes back clean, when an attempt fixes nothing, or
when the attempt budget runs out. A final check always follows, because a
rewrite can introduce new errors or leave the other checker's errors alone.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path, PurePosixPath
from typing import Callable

from sddgen.artifacts import extract_single_file
from sddgen.diagnostics import DiagnosticsCollector, ErrorInfo
from sddgen.errors import RepairRequestError, SddgenError
from sddgen.oracle import GenerationOracle
from sddgen.rendering import render

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 3

FENCE_LANGUAGES = {
    ".ts": "typescript",
    ".tsx": "tsx",
    ".js": "javascript",
    ".jsx": "jsx",
    ".mjs": "javascript",
    ".cjs": "javascript",
}


class RepairOutcome(str, Enum):
    CONVERGED = "converged"
    EXHAUSTED = "exhausted"


@dataclass
class ErrorGroup:
    """All errors of one file."""

    file: str
    errors: list[ErrorInfo]


@dataclass
class FixAttempt:
    attempt_number: int
    errors_found: int
    errors_fixed: int
    files_modified: list[str]
    success: bool
    duration_ms: int


@dataclass
class RepairSession:
    """Append-only attempt log of one loop run."""

    attempts: list[FixAttempt] = field(default_factory=list)
    outcome: RepairOutcome | None = None

    def record(self, attempt: FixAttempt) -> None:
        self.attempts.append(attempt)


@dataclass
class RepairResult:
    project_path: Path
    success: bool
    attempts: int
    fixed_errors: list[ErrorInfo]
    remaining_errors: list[ErrorInfo]
    files_modified: list[str]
    fix_results: list[FixAttempt]
    outcome: RepairOutcome


def group_errors_by_file(errors: list[ErrorInfo]) -> list[ErrorGroup]:
    """Partition errors by file, keeping first-seen file order."""
    groups: dict[str, list[ErrorInfo]] = {}
    for error in errors:
        groups.setdefault(error.file, []).append(error)
    return [ErrorGroup(file=file, errors=file_errors) for file, file_errors in groups.items()]


def fence_language(file: str) -> str:
    return FENCE_LANGUAGES.get(PurePosixPath(file).suffix, "typescript")


class IterativeRepairLoop:
    """
    Converges a project toward zero diagnostics within max_attempts.

    The loop only rewrites files under the project directory it is given; it
    never creates or deletes anything else.
    """

    def __init__(
        self,
        collector: DiagnosticsCollector,
        oracle: GenerationOracle,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.collector = collector
        self.oracle = oracle
        self.max_attempts = max_attempts
        self.clock = clock

    def run(self, project_dir: Path) -> RepairResult:
        """
        Run the loop against a project.

        Args:
            project_dir: Root of the generated project

        Returns:
            RepairResult; remaining_errors comes from a final, separate check
        """
        project_dir = Path(project_dir)
        logger.info("Starting repair of %s (max %d attempts)", project_dir, self.max_attempts)

        session = RepairSession()
        fixed_errors: list[ErrorInfo] = []
        files_modified: dict[str, None] = {}

        for attempt_number in range(1, self.max_attempts + 1):
            logger.info("=== Fix attempt %d/%d ===", attempt_number, self.max_attempts)
            started = self.clock()

            errors = self.collector.collect(project_dir)
            if not errors:
                logger.info("No errors found")
                session.record(FixAttempt(
                    attempt_number=attempt_number,
                    errors_found=0,
                    errors_fixed=0,
                    files_modified=[],
                    success=True,
                    duration_ms=self._elapsed_ms(started),
                ))
                session.outcome = RepairOutcome.CONVERGED
                break

            groups = group_errors_by_file(errors)
            logger.info("Found %d errors across %d files", len(errors), len(groups))

            errors_fixed = 0
            modified: list[str] = []
            for group in groups:
                try:
                    changed = self.fix_group(project_dir, group)
                except (SddgenError, OSError) as e:
                    logger.error("Failed to fix %s: %s", group.file, e)
                    continue
                if changed:
                    errors_fixed += len(group.errors)
                    modified.append(group.file)
                    fixed_errors.extend(group.errors)
                    files_modified.setdefault(group.file, None)

            attempt = FixAttempt(
                attempt_number=attempt_number,
                errors_found=len(errors),
                errors_fixed=errors_fixed,
                files_modified=modified,
                success=errors_fixed > 0,
                duration_ms=self._elapsed_ms(started),
            )
            session.record(attempt)
            logger.info(
                "Attempt %d: %d found, %d fixed, %d files modified (%.1fs)",
                attempt_number,
                attempt.errors_found,
                attempt.errors_fixed,
                len(modified),
                attempt.duration_ms / 1000,
            )

            # A non-improving attempt ends the loop even with budget left.
            if errors_fixed == 0:
                logger.info("No errors fixed in this attempt, stopping")
                session.outcome = RepairOutcome.EXHAUSTED
                break
        else:
            session.outcome = RepairOutcome.EXHAUSTED

        remaining = self.collector.collect(project_dir)

        result = RepairResult(
            project_path=project_dir,
            success=not remaining,
            attempts=len(session.attempts),
            fixed_errors=fixed_errors,
            remaining_errors=remaining,
            files_modified=list(files_modified),
            fix_results=session.attempts,
            outcome=session.outcome,
        )
        logger.info(
            "Repair finished (%s): %d attempts, %d fixed, %d remaining",
            result.outcome.value,
            result.attempts,
            len(result.fixed_errors),
            len(result.remaining_errors),
        )
        return result

    def fix_group(self, project_dir: Path, group: ErrorGroup) -> bool:
        """
        Ask the oracle to repair one file.

        Returns:
            True if the file was rewritten, False for a no-op

        Raises:
            RepairRequestError: The file lies outside the project, could not
                be read or written, or the oracle call failed
        """
        root = Path(project_dir).resolve()
        path = (root / group.file).resolve()
        if not path.is_relative_to(root):
            raise RepairRequestError(group.file, f"Refusing to modify a file outside {root}")

        # newline="" keeps CRLF files byte-for-byte
        try:
            with open(path, encoding="utf-8", newline="") as f:
                content = f.read()
        except (OSError, UnicodeDecodeError) as e:
            raise RepairRequestError(group.file, f"Failed to read file: {e}") from e

        fixed = self.request_fix(group, content)
        if fixed is None:
            logger.warning("No fix returned for %s", group.file)
            return False
        if fixed == content:
            logger.info("No changes made to %s", group.file)
            return False

        try:
            with open(path, "w", encoding="utf-8", newline="") as f:
                f.write(fixed)
        except OSError as e:
            raise RepairRequestError(group.file, f"Failed to write file: {e}") from e

        logger.info("Fixed %s (%d errors)", group.file, len(group.errors))
        return True

    def request_fix(self, group: ErrorGroup, content: str) -> str | None:
        prompt = render(
            "prompts/repair.md.j2",
            file=group.file,
            errors=group.errors,
            content=content,
            language=fence_language(group.file),
        )
        logger.info("Requesting fix for %s", group.file)
        try:
            response = self.oracle.generate(prompt)
        except Exception as e:
            raise RepairRequestError(group.file, f"Oracle call failed: {e}") from e
        if not isinstance(response, str):
            return None
        return extract_single_file(response, group.file)

    def _elapsed_ms(self, started: float) -> int:
        return int((self.clock() - started) * 1000)
