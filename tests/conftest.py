from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from datetime import UTC, datetime

import pytest
from pydantic import BaseModel

from healthcoach.availability import Available, AvailabilityStatus
from healthcoach.health import CorrelatedRecord, CorrelationType, QuantitySample, QuantityType
from healthcoach.model import GenerationRequest, ModelEvent
from healthcoach.tools.registry import ToolRegistry


@dataclass
class Delay:
    seconds: float


@dataclass
class FakeModel:
    """Replays one scripted list of events per model pass.

    Items that are exceptions are raised, ``Delay`` items sleep.
    """

    passes: list[list[ModelEvent | BaseException | Delay]]
    status: AvailabilityStatus = field(default_factory=Available)
    prewarm_error: Exception | None = None
    requests: list[GenerationRequest] = field(default_factory=list)
    closed: int = 0
    prewarm_calls: int = 0

    def availability(self) -> AvailabilityStatus:
        return self.status

    async def prewarm(self, request: GenerationRequest) -> None:
        self.prewarm_calls += 1
        if self.prewarm_error is not None:
            raise self.prewarm_error

    async def stream(self, request: GenerationRequest) -> AsyncIterator[ModelEvent]:
        self.requests.append(request)
        events = self.passes.pop(0)
        try:
            for event in events:
                if isinstance(event, BaseException):
                    raise event
                if isinstance(event, Delay):
                    await asyncio.sleep(event.seconds)
                    continue
                yield event
        finally:
            self.closed += 1


class EchoArguments(BaseModel):
    value: str


@dataclass
class EchoTool:
    calls: list[str] = field(default_factory=list)

    async def __call__(self, arguments: EchoArguments) -> dict[str, str]:
        self.calls.append(arguments.value)
        return {"value": arguments.value}


@pytest.fixture
def echo_tool() -> EchoTool:
    return EchoTool()


@pytest.fixture
def registry(echo_tool: EchoTool) -> ToolRegistry:
    registry = ToolRegistry()
    registry.tool(name="echo", description="Echo a value back", arguments=EchoArguments)(echo_tool)
    return registry


def blood_pressure_record(
    systolic: float | None,
    diastolic: float | None,
    *,
    unit: str = "mmHg",
    recorded_at: datetime | None = None,
) -> CorrelatedRecord:
    samples = []
    if systolic is not None:
        samples.append(QuantitySample(quantity_type=QuantityType.BLOOD_PRESSURE_SYSTOLIC, value=systolic, unit=unit))
    if diastolic is not None:
        samples.append(QuantitySample(quantity_type=QuantityType.BLOOD_PRESSURE_DIASTOLIC, value=diastolic, unit=unit))
    return CorrelatedRecord(
        correlation_type=CorrelationType.BLOOD_PRESSURE,
        recorded_at=recorded_at or datetime(2026, 10, 17, 8, 30, tzinfo=UTC),
        samples=tuple(samples),
    )


@pytest.fixture
def make_record():
    return blood_pressure_record


@pytest.fixture
def make_model():
    return FakeModel


@pytest.fixture
def delay():
    return Delay
