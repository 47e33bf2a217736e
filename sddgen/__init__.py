"""
sddgen - Spec-driven project generation

Turns a Markdown product spec into a Next.js + TypeScript project through a
fixed pipeline of LLM-backed phases, then repairs type and lint errors in a
bounded loop.
"""

__version__ = "0.1.0"

from sddgen.artifacts import extract_code_blocks, materialize
from sddgen.config import RunConfig, load_config
from sddgen.diagnostics import DiagnosticsCollector, ErrorInfo
from sddgen.orchestrator import Orchestrator, PipelineResult
from sddgen.repair import IterativeRepairLoop, RepairResult

__all__ = [
    "RunConfig",
    "load_config",
    "Orchestrator",
    "PipelineResult",
    "extract_code_blocks",
    "materialize",
    "DiagnosticsCollector",
    "ErrorInfo",
    "IterativeRepairLoop",
    "RepairResult",
]
