"""Session bootstrap helpers."""

from __future__ import annotations

from healthcoach.config import Settings
from healthcoach.health import HealthDataProvider, JsonFileHealthProvider
from healthcoach.integrations import build_model
from healthcoach.model import LanguageModel
from healthcoach.session import ConversationSession
from healthcoach.tools import ToolRegistry
from healthcoach.tools import blood_pressure


def build_registry(provider: HealthDataProvider) -> ToolRegistry:
    """Build the fixed tool set: the blood pressure tool."""

    registry = ToolRegistry()
    blood_pressure.register(registry, provider)
    return registry


def build_session(
    settings: Settings,
    *,
    model: LanguageModel | None = None,
    provider: HealthDataProvider | None = None,
) -> ConversationSession:
    """Build a session for one conversation; raises ModelUnavailableError."""

    model = model or build_model(settings)
    provider = provider or JsonFileHealthProvider(settings.health_data_path)
    return ConversationSession.create(
        model,
        build_registry(provider),
        settings.instructions,
        model_timeout=settings.model_timeout_seconds,
        tool_timeout=settings.tool_timeout_seconds,
        max_steps=settings.max_steps,
    )
