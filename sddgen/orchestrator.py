"""
sddgen Orchestrator - Runs the phase pipeline

The phase list is fixed before anything runs. Each phase sees only the
outputs it declared; the context grows as phase name -> output.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Callable

from sddgen.config import RunConfig
from sddgen.errors import PhaseContractError
from sddgen.oracle import GenerationOracle
from sddgen.phases import SPEC_SOURCE, Phase, default_phases
from sddgen.spec import ArchitecturePlan

logger = logging.getLogger(__name__)

PhaseListener = Callable[[Phase, Any], None]


@dataclass
class PipelineResult:
    project_path: Path | None
    outputs: dict[str, Any] = field(default_factory=dict)

    @property
    def final(self) -> Any:
        """Output of the last phase that ran."""
        if not self.outputs:
            return None
        return next(reversed(self.outputs.values()))


def validate_phases(phases: list[Phase]) -> None:
    """
    Check that every phase's required inputs come from an earlier phase.

    Raises:
        PhaseContractError: A required input is never produced, or two phases
            share a name
    """
    available = {SPEC_SOURCE}
    for phase in phases:
        if phase.name in available:
            raise PhaseContractError(f"Duplicate phase name: {phase.name}")
        missing = [key for key in phase.requires if key not in available]
        if missing:
            raise PhaseContractError(
                f"Phase '{phase.name}' requires {', '.join(missing)}, "
                "which no earlier phase produces"
            )
        available.add(phase.name)


class Orchestrator:
    """Sequential pipeline over a static list of phases."""

    def __init__(
        self,
        config: RunConfig,
        oracle: GenerationOracle,
        phases: list[Phase] | None = None,
        on_phase_complete: PhaseListener | None = None,
    ):
        self.config = config
        self.oracle = oracle
        self.phases = phases if phases is not None else default_phases(config, oracle)
        self.on_phase_complete = on_phase_complete
        validate_phases(self.phases)

    def run(self, spec_path: str | Path) -> PipelineResult:
        """
        Execute every phase in order.

        Args:
            spec_path: Markdown spec file

        Returns:
            PipelineResult with every phase output

        Raises:
            Whatever a phase raises, unchanged. Files written by completed
            phases stay on disk.
        """
        context: dict[str, Any] = {SPEC_SOURCE: Path(spec_path)}
        result = PipelineResult(project_path=None)
        started = time.monotonic()

        logger.info("Running %d phases: %s", len(self.phases), ", ".join(p.name for p in self.phases))

        for phase in self.phases:
            inputs = MappingProxyType({key: context[key] for key in phase.input_keys if key in context})
            phase_started = time.monotonic()
            try:
                output = phase.execute(inputs)
            except Exception:
                logger.error("Phase %s failed", phase.name)
                raise

            if not isinstance(output, phase.output_type):
                raise PhaseContractError(
                    f"Phase '{phase.name}' returned {type(output).__name__}, "
                    f"expected {phase.output_type.__name__}"
                )

            context[phase.name] = output
            result.outputs[phase.name] = output
            if isinstance(output, ArchitecturePlan):
                result.project_path = self.config.project_path(output.project_name)
            logger.info("Phase %s completed in %.1fs", phase.name, time.monotonic() - phase_started)

            if self.on_phase_complete:
                self.on_phase_complete(phase, output)

        logger.info("Pipeline finished in %.1fs", time.monotonic() - started)
        return result
