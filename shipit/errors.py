"""Error types raised by shipit."""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(str, Enum):
    """Closed set of failure categories."""

    CONFIGURATION = "configuration"
    PROVIDER = "provider"
    PUBLISH = "publish"
    PRECONDITION = "precondition"


class ShipitError(Exception):
    """Base class for every error shipit raises on purpose."""

    kind: ErrorKind

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context: Dict[str, Any] = {k: v for k, v in context.items() if v is not None}

    def __str__(self) -> str:
        if not self.context:
            return self.message
        details = ", ".join(f"{key}={value}" for key, value in sorted(self.context.items()))
        return f"{self.message} ({details})"


class ConfigurationError(ShipitError):
    """Malformed or deprecated configuration. Fatal."""

    kind = ErrorKind.CONFIGURATION

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message, path=path)
        self.path = path


class ProviderError(ShipitError):
    """A call to the hosting service or to git failed."""

    kind = ErrorKind.PROVIDER

    def __init__(self, message: str, stage: str, status: Optional[int] = None):
        super().__init__(message, stage=stage, status=status)
        self.stage = stage
        self.status = status


class PublishError(ShipitError):
    """A write (tag, release, comment, notification) failed."""

    kind = ErrorKind.PUBLISH

    def __init__(self, message: str, stage: str, status: Optional[int] = None):
        super().__init__(message, stage=stage, status=status)
        self.stage = stage
        self.status = status

    @classmethod
    def wrap(cls, error: Exception, stage: str) -> "PublishError":
        """Build a PublishError for ``error``, keeping any HTTP status it carried."""
        status = getattr(error, "status", None)
        message = error.message if isinstance(error, ShipitError) else str(error)
        return cls(f"{stage} failed: {message}", stage=stage, status=status)


class PreconditionError(ShipitError):
    """An operation ran before the setup it depends on."""

    kind = ErrorKind.PRECONDITION

    def __init__(self, operation: str, requirement: str = "load_config()"):
        super().__init__(
            f"Cannot run '{operation}' before {requirement} has completed",
            operation=operation,
        )
        self.operation = operation
