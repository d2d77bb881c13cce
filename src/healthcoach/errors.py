"""Application-level exception types for healthcoach."""

from __future__ import annotations

from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from healthcoach.availability import UnavailableReason


class HealthCoachError(Exception):
    """Base exception for healthcoach."""

    def describe(self) -> str:
        return str(self) or type(self).__name__


class ConfigurationError(HealthCoachError):
    """Base exception for configuration and startup validation errors."""


class DuplicateToolError(ConfigurationError):
    """Raised when two tools are registered under the same name."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Tool already registered: {name}")
        self.name = name


class SessionBusyError(HealthCoachError):
    """Raised when a prompt is submitted while a response is in flight."""


class ModelUnavailableError(HealthCoachError):
    """Raised when a session is created against an unavailable model."""

    def __init__(self, reason: UnavailableReason) -> None:
        super().__init__(reason.message)
        self.reason = reason


class AuthorizationError(HealthCoachError):
    """Raised by a health data provider when read access is refused."""


class ToolError(HealthCoachError):
    """Recoverable tool failure, reported back to the model as tool output."""

    kind = "tool_error"

    def __init__(self, description: str) -> None:
        super().__init__(description)
        self.description = description


class MissingDataError(ToolError):
    kind = "missing_data"


class AuthorizationDeniedError(ToolError):
    kind = "authorization_denied"


class InvalidArgumentsError(ToolError):
    kind = "invalid_arguments"


class UnitConversionError(ToolError):
    kind = "unit_conversion"


class ToolCallCategory(StrEnum):
    UNKNOWN_TOOL = "unknown_tool"
    TIMEOUT = "timeout"
    FAILED = "failed"


class ToolCallError(HealthCoachError):
    """Orchestration-level tool failure surfaced to the caller."""

    def __init__(
        self,
        tool_name: str,
        category: ToolCallCategory,
        underlying: BaseException | None = None,
    ) -> None:
        self.tool_name = tool_name
        self.category = category
        self.underlying = underlying
        super().__init__(self.describe())

    def describe(self) -> str:
        if self.category is ToolCallCategory.UNKNOWN_TOOL:
            return f"unknown_tool: {self.tool_name}"
        if self.underlying is not None:
            return f"{self.category.value}: {self.tool_name}: {self.underlying!s}"
        return f"{self.category.value}: {self.tool_name}"


class UnknownToolError(ToolCallError):
    def __init__(self, tool_name: str) -> None:
        super().__init__(tool_name, ToolCallCategory.UNKNOWN_TOOL)


class GenerationErrorCategory(StrEnum):
    CONTEXT_WINDOW_EXCEEDED = "context_window_exceeded"
    MODEL_UNAVAILABLE = "model_unavailable"
    GUARDRAIL_VIOLATION = "guardrail_violation"
    RATE_LIMITED = "rate_limited"
    DECODING_FAILURE = "decoding_failure"
    CONNECTION = "connection"
    TIMEOUT = "timeout"
    STEP_LIMIT = "step_limit"
    UNKNOWN = "unknown"


class GenerationError(HealthCoachError):
    """Model-side failure for one generation cycle."""

    def __init__(self, category: GenerationErrorCategory, message: str = "") -> None:
        self.category = category
        self.message = message
        super().__init__(self.describe())

    def describe(self) -> str:
        if self.message:
            return f"{self.category.value}: {self.message}"
        return self.category.value
