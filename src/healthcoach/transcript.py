"""Conversation transcript: entries, segments and the append-only store."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from copy import deepcopy
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, ClassVar


def _freeze(content: Mapping[str, Any]) -> Mapping[str, Any]:
    return MappingProxyType(deepcopy(dict(content)))


@dataclass(frozen=True)
class Text:
    content: str

    kind: ClassVar[str] = "text"


@dataclass(frozen=True)
class Structure:
    content: Mapping[str, Any]

    kind: ClassVar[str] = "structure"

    def __post_init__(self) -> None:
        object.__setattr__(self, "content", _freeze(self.content))


Segment = Text | Structure


def text_segments(text: str) -> tuple[Segment, ...]:
    return (Text(text),) if text else ()


def coalesce(segments: Iterable[Segment]) -> tuple[Segment, ...]:
    """Merge adjacent text segments, keeping order."""
    merged: list[Segment] = []
    for segment in segments:
        if isinstance(segment, Text) and merged and isinstance(merged[-1], Text):
            merged[-1] = Text(merged[-1].content + segment.content)
            continue
        merged.append(segment)
    return tuple(merged)


def _join_text(segments: Iterable[Segment]) -> str:
    return "".join(segment.content for segment in segments if isinstance(segment, Text))


@dataclass(frozen=True)
class _SegmentedEntry:
    segments: tuple[Segment, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "segments", tuple(self.segments))

    @property
    def text(self) -> str:
        return _join_text(self.segments)


@dataclass(frozen=True)
class Instructions(_SegmentedEntry):
    kind: ClassVar[str] = "instructions"


@dataclass(frozen=True)
class Prompt(_SegmentedEntry):
    kind: ClassVar[str] = "prompt"


@dataclass(frozen=True)
class Response(_SegmentedEntry):
    kind: ClassVar[str] = "response"


@dataclass(frozen=True)
class ToolCall:
    call_id: str
    tool_name: str
    arguments: Mapping[str, Any] = field(default_factory=dict)

    kind: ClassVar[str] = "tool_call"

    def __post_init__(self) -> None:
        object.__setattr__(self, "arguments", _freeze(self.arguments))

    @property
    def segments(self) -> tuple[Segment, ...]:
        return (Structure(self.arguments),)

    @property
    def text(self) -> str:
        return ""


@dataclass(frozen=True)
class ToolFailure:
    kind: str
    description: str


@dataclass(frozen=True)
class ToolOutput(_SegmentedEntry):
    call_id: str = ""
    tool_name: str = ""
    failure: ToolFailure | None = None

    kind: ClassVar[str] = "tool_output"

    @property
    def ok(self) -> bool:
        return self.failure is None

    @property
    def payload(self) -> Mapping[str, Any] | None:
        for segment in self.segments:
            if isinstance(segment, Structure):
                return segment.content
        return None


Entry = Instructions | Prompt | ToolCall | ToolOutput | Response
ENTRY_TYPES = (Instructions, Prompt, ToolCall, ToolOutput, Response)


def segment_to_dict(segment: Segment) -> dict[str, Any]:
    if isinstance(segment, Text):
        return {"kind": segment.kind, "content": segment.content}
    return {"kind": segment.kind, "content": dict(segment.content)}


def entry_to_dict(entry: Entry) -> dict[str, Any]:
    payload: dict[str, Any] = {"kind": entry.kind}
    match entry:
        case ToolCall(call_id=call_id, tool_name=tool_name, arguments=arguments):
            payload.update(call_id=call_id, tool_name=tool_name, arguments=dict(arguments))
        case ToolOutput(call_id=call_id, tool_name=tool_name, failure=failure):
            payload.update(call_id=call_id, tool_name=tool_name)
            payload["segments"] = [segment_to_dict(segment) for segment in entry.segments]
            if failure is not None:
                payload["failure"] = {"kind": failure.kind, "description": failure.description}
        case _:
            payload["segments"] = [segment_to_dict(segment) for segment in entry.segments]
    return payload


class Transcript:
    """Ordered, append-only log of conversation entries."""

    def __init__(self, entries: Iterable[Entry] = ()) -> None:
        self._entries: list[Entry] = []
        for entry in entries:
            self.append(entry)

    def append(self, entry: Entry) -> None:
        if not isinstance(entry, ENTRY_TYPES):
            raise TypeError(f"not a transcript entry: {entry!r}")
        self._entries.append(entry)

    def snapshot(self) -> tuple[Entry, ...]:
        return tuple(self._entries)

    @property
    def last(self) -> Entry | None:
        return self._entries[-1] if self._entries else None

    def to_dicts(self) -> list[dict[str, Any]]:
        return [entry_to_dict(entry) for entry in self._entries]

    def __iter__(self) -> Iterator[Entry]:
        return iter(self.snapshot())

    def __len__(self) -> int:
        return len(self._entries)

    def __getitem__(self, index: int) -> Entry:
        return self._entries[index]
