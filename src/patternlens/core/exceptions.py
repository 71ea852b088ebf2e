"""Error taxonomy for pattern detection, persistence and insight generation."""

from datetime import datetime
from uuid import UUID

from patternlens.utils.exceptions import ModelError, PatternLensError


class DataInsufficiencyError(PatternLensError):
    """Raised when a detector has too little data to say anything.

    Not a failure: the orchestrator turns it into an empty detector result.

    Attributes:
        detector: Name of the detector that gave up
        required: Minimum amount of data the detector needs
        available: Amount of data actually available
    """

    def __init__(self, detector: str, required: int, available: int):
        super().__init__(
            f"{detector} needs at least {required} data points, found {available}"
        )
        self.detector = detector
        self.required = required
        self.available = available

    def __str__(self) -> str:
        return f"DataInsufficiencyError: {self.args[0]}"


class DetectionValidationError(PatternLensError):
    """Raised when a detector receives malformed geographic or temporal input.

    Validation happens before any computation and is surfaced to the caller.

    Attributes:
        parameter: Name of the offending parameter
        value: The rejected value
    """

    def __init__(self, parameter: str, value: object, reason: str):
        super().__init__(f"Invalid {parameter}={value!r}: {reason}")
        self.parameter = parameter
        self.value = value

    def __str__(self) -> str:
        return f"DetectionValidationError: {self.args[0]}"


class ExternalServiceError(ModelError):
    """Raised when the narrative generator fails, times out or returns junk.

    Always recovered locally with a templated narrative.

    Attributes:
        service: The external service that failed
    """

    def __init__(self, message: str, service: str = "narrative_generator"):
        super().__init__(message)
        self.service = service

    def __str__(self) -> str:
        return f"ExternalServiceError({self.service}): {self.args[0]}"


class PersistenceError(PatternLensError):
    """Raised when a write against the pattern store fails.

    Aborts the current run; the message and stack end up on the AnalysisRun.

    Attributes:
        operation: The write that failed (e.g., "replace_links")
    """

    def __init__(self, message: str, operation: str):
        super().__init__(message)
        self.operation = operation

    def __str__(self) -> str:
        return f"PersistenceError({self.operation}): {self.args[0]}"


class PatternNotFoundError(PatternLensError):
    """Raised when a pattern does not exist.

    Attributes:
        pattern_id: The identifier that was looked up
    """

    def __init__(self, pattern_id: UUID | str):
        super().__init__(f"Pattern not found: {pattern_id}")
        self.pattern_id = pattern_id

    def __str__(self) -> str:
        return f"PatternNotFoundError: {self.args[0]}"


class AnalysisRunInProgressError(PatternLensError):
    """Raised when a run is requested while another one is still running.

    Attributes:
        run_id: The in-flight run
        started_at: When the in-flight run started
    """

    def __init__(self, run_id: UUID | str, started_at: datetime | None):
        super().__init__(f"Analysis run already in progress: {run_id}")
        self.run_id = run_id
        self.started_at = started_at

    def __str__(self) -> str:
        return f"AnalysisRunInProgressError: {self.args[0]} (started={self.started_at})"
