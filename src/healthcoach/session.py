"""Conversation session: prompt, stream, tool call, resume."""

from __future__ import annotations

import asyncio
import uuid
import weakref
from collections.abc import AsyncGenerator
from contextlib import aclosing
from dataclasses import dataclass, field
from enum import StrEnum

from loguru import logger

from healthcoach.availability import Unavailable
from healthcoach.errors import (
    GenerationError,
    GenerationErrorCategory,
    HealthCoachError,
    ModelUnavailableError,
    SessionBusyError,
    ToolCallCategory,
    ToolCallError,
    ToolError,
)
from healthcoach.model import GenerationRequest, LanguageModel, ModelEvent, StructureDelta, TextDelta, ToolInvocation
from healthcoach.stream import ResponseStream
from healthcoach.tools.registry import ToolRegistry
from healthcoach.transcript import (
    Instructions,
    Prompt,
    Response,
    Segment,
    Structure,
    Text,
    ToolCall,
    ToolFailure,
    ToolOutput,
    Transcript,
    coalesce,
    text_segments,
)

DEFAULT_MODEL_TIMEOUT_SECONDS = 30.0
DEFAULT_TOOL_TIMEOUT_SECONDS = 10.0
DEFAULT_MAX_STEPS = 8


class SessionState(StrEnum):
    IDLE = "idle"
    GENERATING = "generating"
    AWAITING_TOOL = "awaiting_tool"
    ERROR = "error"


@dataclass
class _Cycle:
    pending: list[Segment] = field(default_factory=list)
    steps: int = 0
    finished: bool = False


class ConversationSession:
    """One conversation with a model and a fixed set of tools.

    ``submit`` appends the prompt and returns a ``ResponseStream``; the
    generation cycle runs as the stream is consumed. Only one cycle may be in
    flight at a time.
    """

    def __init__(
        self,
        model: LanguageModel,
        tools: ToolRegistry,
        instructions: str,
        *,
        model_timeout: float | None = DEFAULT_MODEL_TIMEOUT_SECONDS,
        tool_timeout: float | None = DEFAULT_TOOL_TIMEOUT_SECONDS,
        max_steps: int = DEFAULT_MAX_STEPS,
    ) -> None:
        if max_steps < 1:
            raise ValueError("max_steps must be at least 1")
        self._model = model
        self._tools = tools
        self._model_timeout = model_timeout
        self._tool_timeout = tool_timeout
        self._max_steps = max_steps
        self._transcript = Transcript([Instructions(text_segments(instructions.strip()))])
        self._state = SessionState.IDLE
        self._last_error: HealthCoachError | None = None
        self._cycle: _Cycle | None = None
        self._stream: weakref.ref[ResponseStream] | None = None
        self._prewarm_task: asyncio.Task[None] | None = None

    @classmethod
    def create(
        cls,
        model: LanguageModel,
        tools: ToolRegistry,
        instructions: str,
        *,
        model_timeout: float | None = DEFAULT_MODEL_TIMEOUT_SECONDS,
        tool_timeout: float | None = DEFAULT_TOOL_TIMEOUT_SECONDS,
        max_steps: int = DEFAULT_MAX_STEPS,
    ) -> ConversationSession:
        """Build a session after checking the model is available."""
        status = model.availability()
        if isinstance(status, Unavailable):
            raise ModelUnavailableError(status.reason)
        return cls(
            model,
            tools,
            instructions,
            model_timeout=model_timeout,
            tool_timeout=tool_timeout,
            max_steps=max_steps,
        )

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_responding(self) -> bool:
        return self._state in (SessionState.GENERATING, SessionState.AWAITING_TOOL)

    @property
    def transcript(self) -> Transcript:
        return self._transcript

    @property
    def tools(self) -> ToolRegistry:
        return self._tools

    @property
    def last_error(self) -> HealthCoachError | None:
        return self._last_error

    @property
    def partial_response(self) -> tuple[Segment, ...]:
        if self._cycle is None or self._cycle.finished:
            return ()
        return coalesce(self._cycle.pending)

    def submit(self, prompt: str) -> ResponseStream:
        self._abandon_suspended_stream()
        if self.is_responding:
            raise SessionBusyError(f"session is {self._state.value}; wait for the current response")
        if not prompt.strip():
            raise ValueError("prompt must not be empty")

        self._transcript.append(Prompt(text_segments(prompt)))
        self._state = SessionState.GENERATING
        self._last_error = None
        cycle = _Cycle()
        self._cycle = cycle
        logger.info("session.submit entries={} tools={}", len(self._transcript), self._tools.names())
        stream = ResponseStream(self._run(cycle), on_close=lambda: self._finish(cycle))
        finalizer = weakref.finalize(stream, self._finish, cycle)
        finalizer.atexit = False
        self._stream = weakref.ref(stream)
        return stream

    def _abandon_suspended_stream(self) -> None:
        stream = self._stream() if self._stream is not None else None
        if stream is not None and stream.suspended:
            logger.info("session.cycle.abandoned entries={}", len(self._transcript))
            stream.abandon()

    async def respond(self, prompt: str) -> Response:
        """Submit a prompt, drain the stream and return the final response entry."""
        await self.submit(prompt).collect()
        response = self._transcript.last
        if not isinstance(response, Response):
            raise RuntimeError("generation cycle finished without a response entry")
        return response

    def prewarm(self) -> None:
        """Hint the model to load ahead of the first prompt. Never raises."""
        if self._prewarm_task is not None and not self._prewarm_task.done():
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("session.prewarm.skipped reason=no_running_loop")
            return
        self._prewarm_task = loop.create_task(self._prewarm())

    async def _prewarm(self) -> None:
        try:
            await self._model.prewarm(self._request())
        except Exception as exc:
            logger.debug("session.prewarm.failed error={!r}", exc)

    def _request(self) -> GenerationRequest:
        return GenerationRequest(transcript=self._transcript.snapshot(), tools=self._tools.descriptors())

    async def _run(self, cycle: _Cycle) -> AsyncGenerator[Segment, None]:
        try:
            while True:
                cycle.steps += 1
                if cycle.steps > self._max_steps:
                    raise GenerationError(
                        GenerationErrorCategory.STEP_LIMIT,
                        f"no final response after {self._max_steps} model passes",
                    )
                self._state = SessionState.GENERATING
                logger.debug("session.step step={}", cycle.steps)

                invocation: ToolInvocation | None = None
                async with aclosing(self._model_events(self._request())) as events:
                    async for event in events:
                        match event:
                            case ToolInvocation():
                                invocation = event
                                break
                            case TextDelta(text=text):
                                if not text:
                                    continue
                                segment: Segment = Text(text)
                            case StructureDelta(content=content):
                                segment = Structure(content)
                            case _:
                                raise GenerationError(
                                    GenerationErrorCategory.DECODING_FAILURE,
                                    f"unexpected model event: {type(event).__name__}",
                                )
                        cycle.pending.append(segment)
                        yield segment

                if invocation is None:
                    break
                self._commit_pending(cycle)
                await self._call_tool(invocation)
        except (GenerationError, ToolCallError) as exc:
            self._fail(cycle, exc)
            raise
        except Exception as exc:
            error = GenerationError(GenerationErrorCategory.UNKNOWN, str(exc) or type(exc).__name__)
            self._fail(cycle, error)
            raise error from exc
        finally:
            self._finish(cycle)

    async def _model_events(self, request: GenerationRequest) -> AsyncGenerator[ModelEvent, None]:
        events = aiter(self._model.stream(request))
        try:
            while True:
                try:
                    async with asyncio.timeout(self._model_timeout):
                        event = await anext(events)
                except StopAsyncIteration:
                    return
                except TimeoutError as exc:
                    raise GenerationError(
                        GenerationErrorCategory.TIMEOUT,
                        f"no model output within {self._model_timeout}s",
                    ) from exc
                yield event
        finally:
            aclose = getattr(events, "aclose", None)
            if aclose is not None:
                await aclose()

    async def _call_tool(self, invocation: ToolInvocation) -> None:
        name = invocation.tool_name
        call_id = invocation.call_id or f"call_{uuid.uuid4().hex[:12]}"
        self._state = SessionState.AWAITING_TOOL
        self._transcript.append(ToolCall(call_id=call_id, tool_name=name, arguments=invocation.arguments))
        logger.info("session.tool.call name={} call_id={}", name, call_id)

        try:
            async with asyncio.timeout(self._tool_timeout):
                result = await self._tools.invoke(name, invocation.arguments)
        except ToolError as exc:
            output = ToolOutput(
                segments=(Text(exc.description),),
                call_id=call_id,
                tool_name=name,
                failure=ToolFailure(kind=exc.kind, description=exc.description),
            )
        except ToolCallError:
            raise
        except TimeoutError as exc:
            raise ToolCallError(name, ToolCallCategory.TIMEOUT) from exc
        except Exception as exc:
            raise ToolCallError(name, ToolCallCategory.FAILED, exc) from exc
        else:
            output = ToolOutput(segments=(Structure(result),), call_id=call_id, tool_name=name)

        self._transcript.append(output)
        self._state = SessionState.GENERATING
        logger.info("session.tool.output name={} call_id={} ok={}", name, call_id, output.ok)

    def _commit_pending(self, cycle: _Cycle) -> None:
        if cycle.pending:
            self._transcript.append(Response(coalesce(cycle.pending)))
            cycle.pending.clear()

    def _fail(self, cycle: _Cycle, error: HealthCoachError) -> None:
        if cycle.finished:
            return
        cycle.finished = True
        self._commit_pending(cycle)
        self._state = SessionState.ERROR
        self._last_error = error
        logger.warning("session.cycle.error steps={} error={}", cycle.steps, error.describe())

    def _finish(self, cycle: _Cycle) -> None:
        """Finalize the cycle with whatever was produced; no-op once finished."""
        if cycle.finished:
            return
        cycle.finished = True
        last = self._transcript.last
        if self._state is SessionState.AWAITING_TOOL and isinstance(last, ToolCall):
            self._transcript.append(
                ToolOutput(
                    segments=text_segments("Tool call was cancelled"),
                    call_id=last.call_id,
                    tool_name=last.tool_name,
                    failure=ToolFailure(kind="cancelled", description="Tool call was cancelled"),
                )
            )
        self._transcript.append(Response(coalesce(cycle.pending)))
        cycle.pending.clear()
        self._state = SessionState.IDLE
        logger.info("session.cycle.end steps={} entries={}", cycle.steps, len(self._transcript))
