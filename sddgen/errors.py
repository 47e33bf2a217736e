"""
sddgen Errors - Exception taxonomy

Fatal errors (configuration, phase execution, extraction, oracle) propagate
unchanged to the caller. Diagnostic and repair-request errors are isolated:
the collector and the repair loop catch them and record what was skipped.
"""

from __future__ import annotations


class SddgenError(Exception):
    """Base class for all sddgen errors."""


class ConfigurationError(SddgenError):
    """Invalid or incomplete configuration, raised before any phase runs."""


class PhaseExecutionError(SddgenError):
    """A phase could not produce its declared output."""


class PhaseContractError(PhaseExecutionError):
    """A phase broke its boundary contract (inputs, output type, lifecycle)."""


class ExtractionError(PhaseExecutionError):
    """A structured payload could not be extracted or validated."""


class OracleError(SddgenError):
    """The generation oracle failed or returned an unusable response."""


class DiagnosticToolError(SddgenError):
    """A checker process could not be run or its output could not be parsed."""

    def __init__(self, checker: str, message: str):
        super().__init__(f"{checker}: {message}")
        self.checker = checker
        self.message = message


class RepairRequestError(SddgenError):
    """Repairing a single file failed."""

    def __init__(self, file: str, message: str):
        super().__init__(f"{file}: {message}")
        self.file = file
        self.message = message
