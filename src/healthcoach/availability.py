"""Model availability status."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class UnavailableReason(StrEnum):
    FEATURE_DISABLED = "feature_disabled"
    DEVICE_NOT_ELIGIBLE = "device_not_eligible"
    MODEL_NOT_READY = "model_not_ready"
    NOT_CONFIGURED = "not_configured"
    UNKNOWN = "unknown"

    @property
    def message(self) -> str:
        return _MESSAGES[self]


_MESSAGES: dict[UnavailableReason, str] = {
    UnavailableReason.FEATURE_DISABLED: "The language model feature is not enabled. Please enable it in settings.",
    UnavailableReason.DEVICE_NOT_ELIGIBLE: "This device is not eligible for the language model.",
    UnavailableReason.MODEL_NOT_READY: "The language model is not ready yet. Please try again later.",
    UnavailableReason.NOT_CONFIGURED: "No language model is configured. Set HEALTHCOACH_MODEL and HEALTHCOACH_API_KEY.",
    UnavailableReason.UNKNOWN: "The language model is unavailable for an unknown reason.",
}


@dataclass(frozen=True)
class Available:
    @property
    def is_available(self) -> bool:
        return True


@dataclass(frozen=True)
class Unavailable:
    reason: UnavailableReason

    @property
    def is_available(self) -> bool:
        return False


AvailabilityStatus = Available | Unavailable
