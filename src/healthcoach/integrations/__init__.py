"""Model integrations."""

from __future__ import annotations

from healthcoach.config import Settings
from healthcoach.model import LanguageModel

from .openai_model import OpenAIChatModel
from .scripted_model import ScriptedModel


def build_model(settings: Settings) -> LanguageModel:
    """Build the language model configured for this process."""

    if settings.uses_scripted_model:
        return ScriptedModel()
    return OpenAIChatModel(
        settings.model,
        api_key=settings.api_key,
        api_base=settings.api_base,
        max_tokens=settings.max_tokens,
    )


__all__ = ["OpenAIChatModel", "ScriptedModel", "build_model"]
