"""Error types raised by the solving pipeline."""

from typing import Optional


class PostflopError(Exception):
    """Base class for pipeline failures."""

    stage: str = "pipeline"

    def __init__(self, message: str, field: Optional[str] = None, stage: Optional[str] = None):
        self.field = field
        if stage is not None:
            self.stage = stage
        super().__init__(message)

    def __str__(self) -> str:
        message = super().__str__()
        if self.field:
            return f"[{self.stage}] {self.field}: {message}"
        return f"[{self.stage}] {message}"


class ConfigurationError(PostflopError, ValueError):
    """Missing or malformed input field (card, range or sizing string)."""

    stage = "config"


class AbstractionError(PostflopError, ValueError):
    """Inconsistent betting abstraction (negative stack, bad thresholds)."""

    stage = "abstraction"


class EngineError(PostflopError, RuntimeError):
    """Game construction, memory or solve failure inside the engine."""

    stage = "engine"
