"""Terminal display sink."""

from __future__ import annotations

import json
import threading

from rich.console import Console
from rich.markup import escape

from healthcoach.availability import Unavailable
from healthcoach.errors import GenerationError, HealthCoachError, ToolCallError
from healthcoach.stream import ResponseStream
from healthcoach.transcript import Entry, Instructions, Prompt, Response, Text, ToolCall, ToolOutput, Transcript


class Renderer:
    """Rich renderer for transcript entries and live responses."""

    def __init__(self, console: Console | None = None) -> None:
        self.console: Console = console or Console()
        self._print_lock = threading.Lock()

    def welcome(self, model: str, tools: list[str]) -> None:
        self._print("[bold green]healthcoach[/bold green] - ask about your latest blood pressure.")
        self._print(f"[bold]Model:[/bold] [magenta]{escape(model)}[/magenta]")
        if tools:
            self._print(f"[bold]Available tools:[/bold] [green]{escape(', '.join(tools))}[/green]")
        self._print("[dim]Type 'transcript' to show the conversation, 'quit' to leave.[/dim]")

    def info(self, message: str) -> None:
        self._print(message)

    def unavailable(self, status: Unavailable) -> None:
        self._print(f"[bold red]Unavailable:[/bold red] {escape(status.reason.message)}")

    def error(self, error: HealthCoachError) -> None:
        if isinstance(error, GenerationError):
            label = f"Generation error ({error.category.value})"
        elif isinstance(error, ToolCallError):
            label = f"Tool call error ({error.category.value})"
        else:
            label = "Error"
        self._print(f"[bold red]{label}:[/bold red] {escape(error.describe())}")

    def entry(self, entry: Entry) -> None:
        match entry:
            case Instructions():
                self._print(f"[dim]Instructions: {escape(entry.text)}[/dim]")
            case Prompt():
                self._print(f"[bold cyan]You:[/bold cyan] {escape(entry.text)}")
            case ToolCall(tool_name=tool_name, arguments=arguments):
                self._print(f"[dim]-> {escape(tool_name)}({escape(json.dumps(dict(arguments)))})[/dim]")
            case ToolOutput(tool_name=tool_name, failure=failure):
                if failure is not None:
                    self._print(f"[dim]<- {escape(tool_name)} failed: {escape(failure.description)}[/dim]")
                else:
                    self._print(f"[dim]<- {escape(tool_name)} {escape(json.dumps(dict(entry.payload or {})))}[/dim]")
            case Response():
                if entry.text:
                    self._print(f"[bold yellow]Coach:[/bold yellow] {escape(entry.text)}")

    def transcript(self, transcript: Transcript) -> None:
        for entry in transcript:
            self.entry(entry)

    async def live(self, stream: ResponseStream, transcript: Transcript) -> None:
        """Print increments as they arrive, with tool entries in transcript order."""
        seen = len(transcript)
        started = False
        async with stream:
            async for segment in stream:
                tool_entries = _tool_entries(transcript, seen)
                seen = len(transcript)
                if tool_entries:
                    if started:
                        self.console.print()
                        started = False
                    for entry in tool_entries:
                        self.entry(entry)
                if not isinstance(segment, Text):
                    continue
                if not started:
                    self.console.print("[bold yellow]Coach:[/bold yellow] ", end="")
                    started = True
                self.console.print(escape(segment.content), end="", soft_wrap=True)
        if started:
            self.console.print()
        for entry in _tool_entries(transcript, seen):
            self.entry(entry)

    def _print(self, message: str) -> None:
        with self._print_lock:
            self.console.print(message)


def _tool_entries(transcript: Transcript, seen: int) -> list[Entry]:
    return [entry for entry in transcript.snapshot()[seen:] if isinstance(entry, ToolCall | ToolOutput)]
