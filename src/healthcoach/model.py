"""Language model connection contract."""

from __future__ import annotations

from collections.abc import AsyncIterator, Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from healthcoach.availability import AvailabilityStatus
from healthcoach.tools.registry import ToolDescriptor
from healthcoach.transcript import Entry


@dataclass(frozen=True)
class TextDelta:
    text: str


@dataclass(frozen=True)
class StructureDelta:
    content: Mapping[str, Any]


@dataclass(frozen=True)
class ToolInvocation:
    tool_name: str
    arguments: Mapping[str, Any] = field(default_factory=dict)
    call_id: str = ""


ModelEvent = TextDelta | StructureDelta | ToolInvocation


@dataclass(frozen=True)
class GenerationRequest:
    """Everything the model sees for one pass: the transcript so far and the tools."""

    transcript: tuple[Entry, ...]
    tools: tuple[ToolDescriptor, ...] = ()


@runtime_checkable
class LanguageModel(Protocol):
    def availability(self) -> AvailabilityStatus: ...

    async def prewarm(self, request: GenerationRequest) -> None: ...

    def stream(self, request: GenerationRequest) -> AsyncIterator[ModelEvent]:
        """Stream events for one pass; raise GenerationError on model failure."""
        ...
