"""Blood pressure measurement tool."""

from __future__ import annotations

from loguru import logger
from pydantic import BaseModel

from healthcoach.errors import AuthorizationDeniedError, AuthorizationError, MissingDataError
from healthcoach.health import CorrelationType, HealthDataProvider, QuantityType
from healthcoach.tools.registry import EmptyArguments, RegisteredTool, ToolDescriptor, ToolRegistry, ToolResult

MISSING_BLOOD_PRESSURE_DATA = "Missing blood pressure data"

READ_SCOPES = (QuantityType.BLOOD_PRESSURE_SYSTOLIC, QuantityType.BLOOD_PRESSURE_DIASTOLIC)


class BloodPressureTool:
    """Fetches the latest systolic/diastolic pair from the health data provider."""

    name = "blood_pressure"
    description = "Get the latest blood pressure (systolic and diastolic) from the health store."
    arguments: type[BaseModel] = EmptyArguments

    def __init__(self, provider: HealthDataProvider) -> None:
        self._provider = provider

    @property
    def descriptor(self) -> ToolDescriptor:
        return ToolDescriptor(name=self.name, description=self.description, arguments=self.arguments)

    async def __call__(self, arguments: BaseModel) -> ToolResult:
        systolic, diastolic = await self.fetch_latest()
        return {"systolic": int(systolic), "diastolic": int(diastolic)}

    async def fetch_latest(self) -> tuple[float, float]:
        try:
            await self._provider.request_authorization(READ_SCOPES)
        except AuthorizationError as exc:
            raise AuthorizationDeniedError(str(exc) or "Health data read access was denied") from exc

        record = await self._provider.query_latest_correlated(CorrelationType.BLOOD_PRESSURE, READ_SCOPES)
        if record is None:
            logger.info("blood_pressure.missing reason=no_record")
            raise MissingDataError(MISSING_BLOOD_PRESSURE_DATA)

        systolic = record.first(QuantityType.BLOOD_PRESSURE_SYSTOLIC)
        diastolic = record.first(QuantityType.BLOOD_PRESSURE_DIASTOLIC)
        if systolic is None or diastolic is None:
            logger.info("blood_pressure.missing reason=incomplete_record recorded_at={}", record.recorded_at)
            raise MissingDataError(MISSING_BLOOD_PRESSURE_DATA)

        return systolic.value_in_mmhg(), diastolic.value_in_mmhg()


def register(registry: ToolRegistry, provider: HealthDataProvider) -> RegisteredTool:
    tool = BloodPressureTool(provider)
    return registry.register(tool.descriptor, tool)
