"""Tool registry keyed by name, with argument validation before invocation."""

from __future__ import annotations

import inspect
import json
import time
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from typing import Any

from loguru import logger
from pydantic import BaseModel, ConfigDict, ValidationError

from healthcoach.errors import DuplicateToolError, InvalidArgumentsError, ToolError, UnknownToolError

Primitive = int | float | str | bool | None
ToolResult = Mapping[str, Primitive]
ToolHandler = Callable[[Any], Awaitable[ToolResult] | ToolResult]

_PRIMITIVES = (int, float, str, bool, type(None))


class EmptyArguments(BaseModel):
    """Empty input payload."""

    model_config = ConfigDict(extra="forbid")


def _shorten_text(text: str, width: int = 30, placeholder: str = "...") -> str:
    """Shorten text to width characters, cutting in the middle of words if needed."""
    if len(text) <= width:
        return text

    available = width - len(placeholder)
    if available <= 0:
        return placeholder

    return text[:available] + placeholder


@dataclass(frozen=True)
class ToolDescriptor:
    """Tool metadata the model uses to decide applicability."""

    name: str
    description: str
    arguments: type[BaseModel] = EmptyArguments

    def schema(self) -> dict[str, Any]:
        return self.arguments.model_json_schema()


@dataclass(frozen=True)
class RegisteredTool:
    descriptor: ToolDescriptor
    handler: ToolHandler

    @property
    def name(self) -> str:
        return self.descriptor.name

    def validate(self, arguments: Mapping[str, Any]) -> BaseModel:
        try:
            return self.descriptor.arguments.model_validate(dict(arguments))
        except ValidationError as exc:
            errors = "; ".join(
                f"{'.'.join(str(part) for part in error['loc']) or '<root>'}: {error['msg']}" for error in exc.errors()
            )
            raise InvalidArgumentsError(f"Invalid arguments for {self.name}: {errors}") from exc

    async def invoke(self, arguments: Mapping[str, Any]) -> ToolResult:
        params = self.validate(arguments)
        result = self.handler(params)
        if inspect.isawaitable(result):
            result = await result
        return _check_result(self.name, result)


def _check_result(name: str, result: object) -> ToolResult:
    if not isinstance(result, Mapping):
        raise TypeError(f"tool {name} returned {type(result).__name__}, expected a mapping")
    for key, value in result.items():
        if not isinstance(key, str) or not isinstance(value, _PRIMITIVES):
            raise TypeError(f"tool {name} returned a non-primitive field: {key!r}")
    return dict(result)


class ToolRegistry:
    """Registry mapping tool names to validated handlers."""

    def __init__(self) -> None:
        self._tools: dict[str, RegisteredTool] = {}

    def register(self, descriptor: ToolDescriptor, handler: ToolHandler) -> RegisteredTool:
        if descriptor.name in self._tools:
            raise DuplicateToolError(descriptor.name)
        registered = RegisteredTool(descriptor=descriptor, handler=handler)
        self._tools[descriptor.name] = registered
        logger.debug("tool.register name={}", descriptor.name)
        return registered

    def tool(
        self,
        *,
        name: str,
        description: str,
        arguments: type[BaseModel] = EmptyArguments,
    ) -> Callable[[ToolHandler], ToolHandler]:
        def decorator(handler: ToolHandler) -> ToolHandler:
            self.register(ToolDescriptor(name=name, description=description, arguments=arguments), handler)
            return handler

        return decorator

    def has(self, name: str) -> bool:
        return name in self._tools

    def resolve(self, name: str) -> RegisteredTool:
        registered = self._tools.get(name)
        if registered is None:
            raise UnknownToolError(name)
        return registered

    def descriptors(self) -> tuple[ToolDescriptor, ...]:
        return tuple(registered.descriptor for registered in self._tools.values())

    def names(self) -> list[str]:
        return list(self._tools)

    async def invoke(self, name: str, arguments: Mapping[str, Any]) -> ToolResult:
        registered = self.resolve(name)
        self._log_tool_call(name, arguments)

        start = time.monotonic()
        try:
            return await registered.invoke(arguments)
        except ToolError as exc:
            logger.info("tool.call.failed name={} kind={} description={}", name, exc.kind, exc.description)
            raise
        except Exception:
            logger.exception("tool.call.error name={}", name)
            raise
        finally:
            duration = time.monotonic() - start
            logger.info("tool.call.end name={} duration={:.3f}ms", name, duration * 1000)

    def _log_tool_call(self, name: str, arguments: Mapping[str, Any]) -> None:
        params: list[str] = []
        for key, value in arguments.items():
            try:
                rendered = json.dumps(value, ensure_ascii=False)
            except TypeError:
                rendered = repr(value)
            params.append(f"{key}={_shorten_text(rendered)}")
        logger.info("tool.call.start name={} {{ {} }}", name, ", ".join(params))

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)
