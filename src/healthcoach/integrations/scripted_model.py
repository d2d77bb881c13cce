"""Offline rule-based model for demos and tests without an endpoint."""

from __future__ import annotations

import asyncio
import re
from collections.abc import AsyncIterator, Mapping
from typing import Any

from healthcoach.availability import Available, AvailabilityStatus
from healthcoach.model import GenerationRequest, ModelEvent, TextDelta, ToolInvocation
from healthcoach.transcript import Entry, Prompt, ToolOutput

BLOOD_PRESSURE_HINT = re.compile(r"blood\s*pressure|\bbp\b", re.IGNORECASE)
WORD_CHUNK = re.compile(r"\S+\s*")

GREETING = (
    "I'm your health coach. Ask me to check your latest blood pressure and "
    "I'll suggest what to do next."
)


def classify(systolic: int, diastolic: int) -> str:
    """Blood pressure category using the common adult thresholds."""
    if systolic > 180 or diastolic > 120:
        return "hypertensive crisis"
    if systolic >= 140 or diastolic >= 90:
        return "stage 2 hypertension"
    if systolic >= 130 or diastolic >= 80:
        return "stage 1 hypertension"
    if systolic >= 120:
        return "elevated"
    return "normal"


_ADVICE: dict[str, str] = {
    "normal": "Keep up your current habits: regular activity, a balanced diet and good sleep.",
    "elevated": "Cut back on salt, stay active most days and recheck in a few weeks.",
    "stage 1 hypertension": (
        "Reduce sodium, limit alcohol, aim for 150 minutes of activity a week and talk to your doctor "
        "about a follow-up."
    ),
    "stage 2 hypertension": "Please book an appointment with your doctor soon to review this reading.",
    "hypertensive crisis": "Seek medical care right away, especially if you have chest pain or shortness of breath.",
}


def describe_reading(payload: Mapping[str, Any]) -> str:
    systolic = int(payload["systolic"])
    diastolic = int(payload["diastolic"])
    category = classify(systolic, diastolic)
    reading = f"Your latest blood pressure reading is {systolic}/{diastolic} mmHg, which is {category}."
    return f"{reading} {_ADVICE[category]}"


def describe_output(output: ToolOutput) -> str:
    if output.failure is None:
        return describe_reading(output.payload or {})
    if output.failure.kind == "missing_data":
        return (
            "I couldn't find a blood pressure reading in your health data, so I can't comment on your numbers yet. "
            "Take a measurement, sync it, and ask me again."
        )
    if output.failure.kind == "authorization_denied":
        return "I don't have permission to read your blood pressure data. Grant read access and ask me again."
    return f"I couldn't read your blood pressure: {output.failure.description}"


def _current_turn(entries: tuple[Entry, ...]) -> tuple[Prompt | None, list[ToolOutput]]:
    for index in range(len(entries) - 1, -1, -1):
        entry = entries[index]
        if isinstance(entry, Prompt):
            outputs = [item for item in entries[index + 1 :] if isinstance(item, ToolOutput)]
            return entry, outputs
    return None, []


class ScriptedModel:
    """Calls the blood pressure tool when asked about it, then phrases the result."""

    def __init__(self, *, tool_name: str = "blood_pressure", delay: float = 0.0) -> None:
        self._tool_name = tool_name
        self._delay = delay
        self._calls = 0

    @property
    def name(self) -> str:
        return "scripted"

    def availability(self) -> AvailabilityStatus:
        return Available()

    async def prewarm(self, request: GenerationRequest) -> None:
        return None

    async def stream(self, request: GenerationRequest) -> AsyncIterator[ModelEvent]:
        prompt, outputs = _current_turn(request.transcript)
        has_tool = any(descriptor.name == self._tool_name for descriptor in request.tools)
        wants_tool = prompt is not None and BLOOD_PRESSURE_HINT.search(prompt.text) is not None

        if wants_tool and has_tool and not outputs:
            self._calls += 1
            yield ToolInvocation(tool_name=self._tool_name, arguments={}, call_id=f"scripted_{self._calls}")
            return

        reply = describe_output(outputs[-1]) if outputs else GREETING
        for chunk in WORD_CHUNK.findall(reply):
            if self._delay:
                await asyncio.sleep(self._delay)
            yield TextDelta(chunk)
