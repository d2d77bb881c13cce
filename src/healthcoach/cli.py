"""Command line interface for healthcoach."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Optional

import typer

from healthcoach.availability import Unavailable
from healthcoach.bootstrap import build_session
from healthcoach.config import Settings, get_settings
from healthcoach.errors import HealthCoachError, ModelUnavailableError
from healthcoach.integrations import build_model
from healthcoach.logging_utils import LogProfile, configure_logging
from healthcoach.render import Renderer
from healthcoach.session import ConversationSession

EXIT_COMMANDS = frozenset({"quit", "exit", "q"})

app = typer.Typer(
    name="healthcoach",
    help="Health coach chat with a blood pressure tool.",
    add_completion=False,
    rich_markup_mode="rich",
)

ModelOption = typer.Option(None, "--model", "-m", help="'scripted' or an OpenAI-compatible chat model name")
HealthDataOption = typer.Option(None, "--health-data", help="JSON health export to read readings from")
LogLevelOption = typer.Option(None, "--log-level", help="Log level (DEBUG, INFO, WARNING, ERROR)")


def _load_settings(
    model: Optional[str],
    health_data: Optional[Path],
    log_level: Optional[str],
    *,
    profile: LogProfile = "default",
) -> Settings:
    settings = get_settings(model=model, health_data_path=health_data, log_level=log_level)
    configure_logging(level=settings.log_level, profile=profile)
    return settings


def _create_session(settings: Settings, renderer: Renderer) -> ConversationSession:
    try:
        return build_session(settings)
    except ModelUnavailableError as exc:
        renderer.unavailable(Unavailable(exc.reason))
        raise typer.Exit(1) from exc


async def _ask(session: ConversationSession, renderer: Renderer, prompt: str) -> bool:
    try:
        await renderer.live(session.submit(prompt), session.transcript)
    except HealthCoachError as exc:
        renderer.error(exc)
        return False
    except ValueError as exc:
        renderer.info(f"[bold red]Error:[/bold red] {exc}")
        return False
    return True


async def _chat_loop(session: ConversationSession, renderer: Renderer) -> None:
    session.prewarm()
    while True:
        try:
            user_input = await asyncio.to_thread(renderer.console.input, "[bold cyan]You:[/bold cyan] ")
        except (KeyboardInterrupt, EOFError):
            renderer.info("\nGoodbye!")
            return

        text = user_input.strip()
        if not text:
            continue
        if text.casefold() in EXIT_COMMANDS:
            renderer.info("Goodbye!")
            return
        if text.casefold() == "transcript":
            renderer.transcript(session.transcript)
            continue
        await _ask(session, renderer, text)


@app.command()
def chat(
    model: Optional[str] = ModelOption,
    health_data: Optional[Path] = HealthDataOption,
    log_level: Optional[str] = LogLevelOption,
) -> None:
    """Start an interactive health coach chat."""
    settings = _load_settings(model, health_data, log_level, profile="chat")
    renderer = Renderer()
    session = _create_session(settings, renderer)
    renderer.welcome(settings.model, session.tools.names())
    asyncio.run(_chat_loop(session, renderer))


@app.command()
def ask(
    prompt: str = typer.Argument(..., help="Prompt to send"),
    model: Optional[str] = ModelOption,
    health_data: Optional[Path] = HealthDataOption,
    log_level: Optional[str] = LogLevelOption,
    show_transcript: bool = typer.Option(False, "--transcript", help="Print the full transcript afterwards"),
) -> None:
    """Send one prompt and stream the reply."""
    settings = _load_settings(model, health_data, log_level)
    renderer = Renderer()
    session = _create_session(settings, renderer)
    ok = asyncio.run(_ask(session, renderer, prompt))
    if show_transcript:
        renderer.transcript(session.transcript)
    if not ok:
        raise typer.Exit(1)


@app.command()
def availability(
    model: Optional[str] = ModelOption,
    log_level: Optional[str] = LogLevelOption,
) -> None:
    """Report whether the configured model can be used."""
    settings = _load_settings(model, None, log_level)
    renderer = Renderer()
    status = build_model(settings).availability()
    if isinstance(status, Unavailable):
        renderer.unavailable(status)
        raise typer.Exit(1)
    renderer.info(f"[bold green]Available:[/bold green] {settings.model}")
