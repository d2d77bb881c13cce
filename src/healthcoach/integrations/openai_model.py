"""Language model backed by an OpenAI-compatible chat completions endpoint."""

from __future__ import annotations

import json
from collections.abc import AsyncIterator, Iterable
from dataclasses import dataclass
from typing import Any, ClassVar

import openai
from loguru import logger
from openai import AsyncOpenAI
from openai.types.chat import ChatCompletionMessageParam, ChatCompletionToolParam

from healthcoach.availability import Available, AvailabilityStatus, Unavailable, UnavailableReason
from healthcoach.errors import GenerationError, GenerationErrorCategory
from healthcoach.model import GenerationRequest, ModelEvent, TextDelta, ToolInvocation
from healthcoach.tools.registry import ToolDescriptor
from healthcoach.transcript import (
    Entry,
    Instructions,
    Prompt,
    Response,
    Segment,
    Structure,
    Text,
    ToolCall,
    ToolOutput,
)


@dataclass
class _PendingCall:
    call_id: str = ""
    name: str = ""
    arguments: str = ""

    def to_invocation(self) -> ToolInvocation:
        try:
            arguments = json.loads(self.arguments) if self.arguments.strip() else {}
        except json.JSONDecodeError as exc:
            raise GenerationError(
                GenerationErrorCategory.DECODING_FAILURE,
                f"tool call arguments for {self.name} are not valid JSON",
            ) from exc
        if not isinstance(arguments, dict):
            raise GenerationError(
                GenerationErrorCategory.DECODING_FAILURE,
                f"tool call arguments for {self.name} must be an object",
            )
        return ToolInvocation(tool_name=self.name, arguments=arguments, call_id=self.call_id)


def render_segments(segments: Iterable[Segment]) -> str:
    parts: list[str] = []
    for segment in segments:
        match segment:
            case Text(content=content):
                parts.append(content)
            case Structure(content=content):
                parts.append(json.dumps(dict(content), ensure_ascii=False))
    return "".join(parts)


def render_messages(entries: Iterable[Entry]) -> list[ChatCompletionMessageParam]:
    """Render transcript entries as chat messages.

    Tool calls that never received an output (a cycle that ended in an error)
    are left out, since the endpoint rejects unanswered calls.
    """
    entries = list(entries)
    answered = {entry.call_id for entry in entries if isinstance(entry, ToolOutput)}
    messages: list[ChatCompletionMessageParam] = []
    for entry in entries:
        match entry:
            case Instructions():
                if entry.text:
                    messages.append({"role": "system", "content": entry.text})
            case Prompt():
                messages.append({"role": "user", "content": render_segments(entry.segments)})
            case Response():
                if content := render_segments(entry.segments):
                    messages.append({"role": "assistant", "content": content})
            case ToolCall(call_id=call_id, tool_name=tool_name, arguments=arguments):
                if call_id not in answered:
                    continue
                messages.append(
                    {
                        "role": "assistant",
                        "tool_calls": [
                            {
                                "id": call_id,
                                "type": "function",
                                "function": {"name": tool_name, "arguments": json.dumps(dict(arguments))},
                            }
                        ],
                    }
                )
            case ToolOutput(call_id=call_id, failure=failure):
                if failure is not None:
                    content = json.dumps({"error": failure.kind, "message": failure.description})
                else:
                    content = json.dumps(dict(entry.payload or {}), ensure_ascii=False)
                messages.append({"role": "tool", "tool_call_id": call_id, "content": content})
    return messages


def render_tools(descriptors: Iterable[ToolDescriptor]) -> list[ChatCompletionToolParam]:
    return [
        {
            "type": "function",
            "function": {
                "name": descriptor.name,
                "description": descriptor.description,
                "parameters": descriptor.schema(),
            },
        }
        for descriptor in descriptors
    ]


def map_openai_error(exc: openai.OpenAIError) -> GenerationError:
    """Categorize an openai client failure."""
    message = str(exc)
    if isinstance(exc, openai.APITimeoutError):
        category = GenerationErrorCategory.TIMEOUT
    elif isinstance(exc, openai.APIConnectionError):
        category = GenerationErrorCategory.CONNECTION
    elif isinstance(exc, openai.RateLimitError):
        category = GenerationErrorCategory.RATE_LIMITED
    elif isinstance(exc, openai.AuthenticationError | openai.PermissionDeniedError | openai.NotFoundError):
        category = GenerationErrorCategory.MODEL_UNAVAILABLE
    elif isinstance(exc, openai.BadRequestError) and (
        getattr(exc, "code", None) == "context_length_exceeded" or "context length" in message.casefold()
    ):
        category = GenerationErrorCategory.CONTEXT_WINDOW_EXCEEDED
    else:
        category = GenerationErrorCategory.UNKNOWN
    return GenerationError(category, message)


class OpenAIChatModel:
    """Streams chat completions and reports tool calls back to the session."""

    DEFAULT_HEADERS: ClassVar[dict[str, str]] = {"X-Title": "healthcoach"}

    def __init__(
        self,
        model: str,
        *,
        api_key: str | None = None,
        api_base: str | None = None,
        max_tokens: int = 1024,
        client: AsyncOpenAI | None = None,
    ) -> None:
        self._model = model
        self._api_key = api_key
        self._api_base = api_base
        self._max_tokens = max_tokens
        self._client = client

    @property
    def name(self) -> str:
        return self._model

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = AsyncOpenAI(
                api_key=self._api_key,
                base_url=self._api_base,
                default_headers=self.DEFAULT_HEADERS,
            )
        return self._client

    def availability(self) -> AvailabilityStatus:
        if not self._model.strip():
            return Unavailable(UnavailableReason.NOT_CONFIGURED)
        if self._client is None and not self._api_key:
            return Unavailable(UnavailableReason.NOT_CONFIGURED)
        return Available()

    async def prewarm(self, request: GenerationRequest) -> None:
        await self.client.models.retrieve(self._model)
        logger.debug("openai.prewarm.done model={}", self._model)

    async def stream(self, request: GenerationRequest) -> AsyncIterator[ModelEvent]:
        kwargs: dict[str, Any] = {
            "model": self._model,
            "messages": render_messages(request.transcript),
            "max_tokens": self._max_tokens,
            "stream": True,
        }
        if request.tools:
            kwargs["tools"] = render_tools(request.tools)
            kwargs["parallel_tool_calls"] = False

        try:
            stream = await self.client.chat.completions.create(**kwargs)
        except openai.OpenAIError as exc:
            logger.warning("openai.call.error model={} error={}", self._model, exc)
            raise map_openai_error(exc) from exc

        pending: dict[int, _PendingCall] = {}
        try:
            async for chunk in stream:
                if not chunk.choices:
                    continue
                choice = chunk.choices[0]
                delta = choice.delta
                if delta.content:
                    yield TextDelta(delta.content)
                refusal = getattr(delta, "refusal", None)
                if refusal:
                    raise GenerationError(GenerationErrorCategory.GUARDRAIL_VIOLATION, refusal)
                for call in delta.tool_calls or ():
                    accumulated = pending.setdefault(call.index, _PendingCall())
                    if call.id:
                        accumulated.call_id = call.id
                    if call.function is not None:
                        accumulated.name += call.function.name or ""
                        accumulated.arguments += call.function.arguments or ""
                if choice.finish_reason == "content_filter":
                    raise GenerationError(GenerationErrorCategory.GUARDRAIL_VIOLATION, "response was filtered")
        except openai.OpenAIError as exc:
            logger.warning("openai.stream.error model={} error={}", self._model, exc)
            raise map_openai_error(exc) from exc
        finally:
            await stream.close()

        for index in sorted(pending):
            yield pending[index].to_invocation()

