from dataclasses import FrozenInstanceError

import pytest

from healthcoach.transcript import (
    Instructions,
    Prompt,
    Response,
    Structure,
    Text,
    ToolCall,
    ToolFailure,
    ToolOutput,
    Transcript,
    coalesce,
    text_segments,
)


def test_append_keeps_insertion_order() -> None:
    transcript = Transcript([Instructions(text_segments("coach"))])
    transcript.append(Prompt(text_segments("hi")))
    transcript.append(Response(text_segments("hello")))

    assert [entry.kind for entry in transcript] == ["instructions", "prompt", "response"]
    assert len(transcript) == 3
    assert transcript.last == Response((Text("hello"),))


def test_snapshot_is_detached_from_later_appends() -> None:
    transcript = Transcript()
    transcript.append(Prompt(text_segments("one")))
    snapshot = transcript.snapshot()

    transcript.append(Prompt(text_segments("two")))

    assert isinstance(snapshot, tuple)
    assert len(snapshot) == 1
    assert len(transcript) == 2


def test_rejects_non_entries() -> None:
    transcript = Transcript()

    with pytest.raises(TypeError):
        transcript.append("prompt")  # type: ignore[arg-type]

    assert len(transcript) == 0


def test_entries_are_immutable() -> None:
    payload = {"systolic": 128}
    output = ToolOutput(segments=(Structure(payload),), call_id="c1", tool_name="blood_pressure")
    payload["systolic"] = 999

    assert output.payload == {"systolic": 128}
    with pytest.raises(TypeError):
        output.payload["systolic"] = 1  # type: ignore[index]
    with pytest.raises(FrozenInstanceError):
        output.call_id = "c2"  # type: ignore[misc]


def test_tool_call_exposes_arguments_as_structure() -> None:
    call = ToolCall(call_id="c1", tool_name="blood_pressure", arguments={"days": 1})

    [segment] = call.segments
    assert isinstance(segment, Structure)
    assert dict(segment.content) == {"days": 1}
    assert call.text == ""


def test_coalesce_merges_adjacent_text_only() -> None:
    segments = [Text("a"), Text("b"), Structure({"x": 1}), Text("c")]

    merged = coalesce(segments)

    assert merged[0] == Text("ab")
    assert isinstance(merged[1], Structure)
    assert merged[2] == Text("c")
    assert text_segments("") == ()


def test_to_dicts_renders_every_entry_kind() -> None:
    transcript = Transcript([
        Instructions(text_segments("coach")),
        Prompt(text_segments("bp?")),
        ToolCall(call_id="c1", tool_name="blood_pressure"),
        ToolOutput(
            segments=text_segments("Missing blood pressure data"),
            call_id="c1",
            tool_name="blood_pressure",
            failure=ToolFailure(kind="missing_data", description="Missing blood pressure data"),
        ),
        Response(text_segments("No reading yet.")),
    ])

    rendered = transcript.to_dicts()

    assert [item["kind"] for item in rendered] == [
        "instructions",
        "prompt",
        "tool_call",
        "tool_output",
        "response",
    ]
    assert rendered[2] == {"kind": "tool_call", "call_id": "c1", "tool_name": "blood_pressure", "arguments": {}}
    assert rendered[3]["failure"] == {"kind": "missing_data", "description": "Missing blood pressure data"}
    assert rendered[4]["segments"] == [{"kind": "text", "content": "No reading yet."}]
