"""Tests for the iterative repair loop."""

from pathlib import Path

import pytest

from sddgen.errors import OracleError
from sddgen.repair import (
    ErrorGroup,
    IterativeRepairLoop,
    RepairOutcome,
    fence_language,
    group_errors_by_file,
)

from conftest import FakeOracle, ScriptedCollector, fenced, lint_error, type_error


def write(project: Path, relative: str, content: str) -> Path:
    path = project / relative
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


def ticking_clock():
    now = [0.0]

    def clock() -> float:
        now[0] += 0.5
        return now[0]

    return clock


def test_group_errors_by_file_is_a_partition() -> None:
    errors = [
        type_error("b.ts", 1),
        lint_error("a.ts", 2),
        type_error("b.ts", 3),
        type_error("c.ts", 4),
    ]

    groups = group_errors_by_file(errors)

    assert [g.file for g in groups] == ["b.ts", "a.ts", "c.ts"]
    flattened = [e for g in groups for e in g.errors]
    assert sorted(flattened, key=id) == sorted(errors, key=id)
    assert len(flattened) == len(errors)
    assert all(e.file == g.file for g in groups for e in g.errors)
    assert [e.line for e in groups[0].errors] == [1, 3]


def test_group_errors_by_file_empty() -> None:
    assert group_errors_by_file([]) == []


def test_fence_language() -> None:
    assert fence_language("app/page.tsx") == "tsx"
    assert fence_language("lib/a.js") == "javascript"
    assert fence_language("README") == "typescript"


def test_max_attempts_must_be_positive() -> None:
    with pytest.raises(ValueError):
        IterativeRepairLoop(ScriptedCollector([]), FakeOracle(), max_attempts=0)


def test_zero_errors_converges_in_one_attempt(tmp_path: Path) -> None:
    oracle = FakeOracle()
    collector = ScriptedCollector([])

    result = IterativeRepairLoop(collector, oracle).run(tmp_path)

    assert result.success
    assert result.attempts == 1
    assert result.outcome == RepairOutcome.CONVERGED
    assert result.fix_results[0].errors_found == 0
    assert result.fix_results[0].success
    assert result.fixed_errors == []
    assert result.remaining_errors == []
    assert oracle.calls == []
    # one check in the loop, one final check
    assert collector.calls == 2


def test_fixes_file_and_converges(tmp_path: Path) -> None:
    write(tmp_path, "lib/a.ts", "const a = foo\n")
    oracle = FakeOracle(fenced("lib/a.ts", "const a = 1\n"))
    collector = ScriptedCollector([type_error("lib/a.ts")], [])

    result = IterativeRepairLoop(collector, oracle, max_attempts=3).run(tmp_path)

    assert result.success
    assert result.outcome == RepairOutcome.CONVERGED
    assert result.attempts == 2
    assert result.files_modified == ["lib/a.ts"]
    assert len(result.fixed_errors) == 1
    assert (tmp_path / "lib" / "a.ts").read_text(encoding="utf-8") == "const a = 1\n"

    prompt, instructions = oracle.calls[0]
    assert "lib/a.ts" in prompt
    assert "const a = foo" in prompt
    assert "Cannot find name 'x'." in prompt
    assert instructions is None


def test_two_persistent_errors_exhaust_budget(tmp_path: Path) -> None:
    write(tmp_path, "a.ts", "a0\n")
    write(tmp_path, "b.ts", "b0\n")
    responses = iter(["a1\n", "a2\n", "a3\n"])

    def fix_a(prompt: str) -> str:
        return fenced("a.ts", next(responses))

    # one of the two files gets a real fix per attempt, the other's fix is a no-op
    oracle = FakeOracle(fix_a, fenced("b.ts", "b0\n"), fix_a, fenced("b.ts", "b0\n"), fix_a, fenced("b.ts", "b0\n"))
    persistent = [type_error("a.ts"), type_error("b.ts")]
    collector = ScriptedCollector(persistent, persistent, persistent, [type_error("b.ts")])

    result = IterativeRepairLoop(collector, oracle, max_attempts=3).run(tmp_path)

    assert result.attempts == 3
    assert not result.success
    assert result.outcome == RepairOutcome.EXHAUSTED
    assert len(result.remaining_errors) == 1
    assert [a.errors_fixed for a in result.fix_results] == [1, 1, 1]
    assert [a.errors_found for a in result.fix_results] == [2, 2, 2]
    assert result.files_modified == ["a.ts"]
    assert (tmp_path / "b.ts").read_text(encoding="utf-8") == "b0\n"


def test_identical_response_stops_early(tmp_path: Path) -> None:
    path = write(tmp_path, "a.ts", "same\n")
    mtime = path.stat().st_mtime_ns
    oracle = FakeOracle(fenced("a.ts", "same\n"))
    collector = ScriptedCollector([type_error("a.ts")])

    result = IterativeRepairLoop(collector, oracle, max_attempts=3).run(tmp_path)

    assert result.attempts == 1
    assert result.fix_results[0].errors_fixed == 0
    assert not result.fix_results[0].success
    assert result.outcome == RepairOutcome.EXHAUSTED
    assert not result.success
    assert result.files_modified == []
    assert path.stat().st_mtime_ns == mtime
    assert len(oracle.calls) == 1


def test_oracle_failure_is_isolated_per_file(tmp_path: Path) -> None:
    write(tmp_path, "a.ts", "a0\n")
    write(tmp_path, "b.ts", "b0\n")
    oracle = FakeOracle(OracleError("overloaded"), fenced("b.ts", "b1\n"))
    collector = ScriptedCollector([type_error("a.ts"), lint_error("b.ts")], [type_error("a.ts")])

    result = IterativeRepairLoop(collector, oracle, max_attempts=1).run(tmp_path)

    assert result.fix_results[0].errors_fixed == 1
    assert result.files_modified == ["b.ts"]
    assert (tmp_path / "b.ts").read_text(encoding="utf-8") == "b1\n"
    assert [e.file for e in result.remaining_errors] == ["a.ts"]


def test_unreadable_file_is_skipped(tmp_path: Path) -> None:
    oracle = FakeOracle()
    collector = ScriptedCollector([type_error("missing.ts")])

    result = IterativeRepairLoop(collector, oracle).run(tmp_path)

    assert result.attempts == 1
    assert result.fix_results[0].errors_fixed == 0
    assert oracle.calls == []


def test_response_without_usable_content_is_noop(tmp_path: Path) -> None:
    write(tmp_path, "a.ts", "a0\n")
    loop = IterativeRepairLoop(ScriptedCollector([]), FakeOracle("```\n"))

    assert loop.fix_group(tmp_path, ErrorGroup(file="a.ts", errors=[type_error("a.ts")])) is False
    assert (tmp_path / "a.ts").read_text(encoding="utf-8") == "a0\n"


def test_final_check_reports_new_errors(tmp_path: Path) -> None:
    write(tmp_path, "a.ts", "a0\n")
    oracle = FakeOracle(fenced("a.ts", "a1\n"))
    collector = ScriptedCollector([type_error("a.ts")], [lint_error("c.ts")])

    result = IterativeRepairLoop(collector, oracle, max_attempts=1).run(tmp_path)

    assert result.outcome == RepairOutcome.EXHAUSTED
    assert [e.file for e in result.remaining_errors] == ["c.ts"]
    assert not result.success


def test_attempt_durations_use_clock(tmp_path: Path) -> None:
    result = IterativeRepairLoop(ScriptedCollector([]), FakeOracle(), clock=ticking_clock()).run(tmp_path)
    assert result.fix_results[0].duration_ms == 500


def test_attempts_never_exceed_budget(tmp_path: Path) -> None:
    write(tmp_path, "a.ts", "0\n")
    counter = iter(range(1, 100))
    oracle = FakeOracle(*[lambda prompt: fenced("a.ts", f"{next(counter)}\n") for _ in range(5)])
    collector = ScriptedCollector([type_error("a.ts")])

    result = IterativeRepairLoop(collector, oracle, max_attempts=2).run(tmp_path)

    assert result.attempts == 2
    assert len(oracle.calls) == 2


def test_undecodable_file_does_not_abort_attempt(tmp_path: Path) -> None:
    (tmp_path / "a.ts").write_bytes(b"\xff\xfe bad")
    write(tmp_path, "b.ts", "b0\n")
    oracle = FakeOracle(fenced("b.ts", "b1\n"))
    collector = ScriptedCollector([type_error("a.ts"), type_error("b.ts")], [type_error("a.ts")])

    result = IterativeRepairLoop(collector, oracle, max_attempts=1).run(tmp_path)

    assert result.fix_results[0].errors_fixed == 1
    assert result.files_modified == ["b.ts"]
    assert (tmp_path / "b.ts").read_text(encoding="utf-8") == "b1\n"
    assert (tmp_path / "a.ts").read_bytes() == b"\xff\xfe bad"
    assert len(oracle.calls) == 1


@pytest.mark.parametrize("outside", ["../outside.ts", "ABSOLUTE"])
def test_files_outside_project_are_never_rewritten(tmp_path: Path, outside: str) -> None:
    project = tmp_path / "proj"
    project.mkdir()
    target = write(tmp_path, "outside.ts", "x\n")
    file = str(target) if outside == "ABSOLUTE" else outside
    oracle = FakeOracle(fenced(file, "changed\n"))
    collector = ScriptedCollector([type_error(file)])

    result = IterativeRepairLoop(collector, oracle, max_attempts=1).run(project)

    assert target.read_text(encoding="utf-8") == "x\n"
    assert result.fix_results[0].errors_fixed == 0
    assert result.files_modified == []
    assert oracle.calls == []


def test_crlf_file_kept_byte_for_byte(tmp_path: Path) -> None:
    path = tmp_path / "a.ts"
    path.write_bytes(b"const a = 1\r\n")
    oracle = FakeOracle(fenced("a.ts", "const a = 1\r\n"), fenced("a.ts", "const a = 2\r\n"))
    loop = IterativeRepairLoop(ScriptedCollector([]), oracle)
    group = ErrorGroup(file="a.ts", errors=[type_error("a.ts")])

    assert loop.fix_group(tmp_path, group) is False
    assert loop.fix_group(tmp_path, group) is True
    assert path.read_bytes() == b"const a = 2\r\n"
