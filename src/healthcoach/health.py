"""Health data provider interface, records and bundled providers."""

from __future__ import annotations

import asyncio
from collections.abc import Iterable, Sequence
from datetime import datetime
from enum import StrEnum
from pathlib import Path
from typing import Protocol, runtime_checkable

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

from healthcoach.errors import AuthorizationError, UnitConversionError


class QuantityType(StrEnum):
    BLOOD_PRESSURE_SYSTOLIC = "blood_pressure_systolic"
    BLOOD_PRESSURE_DIASTOLIC = "blood_pressure_diastolic"


class CorrelationType(StrEnum):
    BLOOD_PRESSURE = "blood_pressure"


# Factors into millimetres of mercury.
MMHG_FACTORS: dict[str, float] = {
    "mmhg": 1.0,
    "kpa": 7.50061683,
    "cmh2o": 0.73555912,
}


def to_mmhg(value: float, unit: str) -> float:
    factor = MMHG_FACTORS.get(unit.replace(" ", "").casefold())
    if factor is None:
        raise UnitConversionError(f"Cannot convert {unit!r} to mmHg")
    return value * factor


class QuantitySample(BaseModel):
    model_config = ConfigDict(frozen=True)

    quantity_type: QuantityType
    value: float
    unit: str = "mmHg"

    def value_in_mmhg(self) -> float:
        return to_mmhg(self.value, self.unit)


class CorrelatedRecord(BaseModel):
    """One record bundling related sub-quantities."""

    model_config = ConfigDict(frozen=True)

    correlation_type: CorrelationType
    recorded_at: datetime
    samples: tuple[QuantitySample, ...] = ()

    def first(self, quantity_type: QuantityType) -> QuantitySample | None:
        for sample in self.samples:
            if sample.quantity_type == quantity_type:
                return sample
        return None


class HealthExport(BaseModel):
    """On-disk export read by JsonFileHealthProvider."""

    authorized: bool = True
    records: list[CorrelatedRecord] = Field(default_factory=list)


@runtime_checkable
class HealthDataProvider(Protocol):
    async def request_authorization(self, read_scopes: Iterable[QuantityType]) -> None:
        """Raise AuthorizationError when read access is refused."""
        ...

    async def query_latest_correlated(
        self,
        correlation_type: CorrelationType,
        quantity_types: Sequence[QuantityType],
    ) -> CorrelatedRecord | None: ...


def latest(records: Iterable[CorrelatedRecord], correlation_type: CorrelationType) -> CorrelatedRecord | None:
    matching = [record for record in records if record.correlation_type == correlation_type]
    if not matching:
        return None
    return max(matching, key=lambda record: record.recorded_at)


class InMemoryHealthProvider:
    def __init__(self, records: Iterable[CorrelatedRecord] = (), *, authorized: bool = True) -> None:
        self.records = list(records)
        self.authorized = authorized
        self.authorization_requests: list[tuple[QuantityType, ...]] = []
        self.queries = 0

    async def request_authorization(self, read_scopes: Iterable[QuantityType]) -> None:
        self.authorization_requests.append(tuple(read_scopes))
        if not self.authorized:
            raise AuthorizationError("Health data read access was denied")

    async def query_latest_correlated(
        self,
        correlation_type: CorrelationType,
        quantity_types: Sequence[QuantityType],
    ) -> CorrelatedRecord | None:
        self.queries += 1
        return latest(self.records, correlation_type)


class JsonFileHealthProvider:
    """Reads a JSON health export; a missing file means no records."""

    def __init__(self, path: Path) -> None:
        self.path = path

    async def _load(self) -> HealthExport:
        if not self.path.is_file():
            logger.debug("health.export.missing path={}", self.path)
            return HealthExport()
        raw = await asyncio.to_thread(self.path.read_text, encoding="utf-8")
        return HealthExport.model_validate_json(raw)

    async def request_authorization(self, read_scopes: Iterable[QuantityType]) -> None:
        export = await self._load()
        if not export.authorized:
            raise AuthorizationError(f"Health data read access was denied by {self.path.name}")

    async def query_latest_correlated(
        self,
        correlation_type: CorrelationType,
        quantity_types: Sequence[QuantityType],
    ) -> CorrelatedRecord | None:
        export = await self._load()
        return latest(export.records, correlation_type)
