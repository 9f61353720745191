from __future__ import annotations

from typing import Optional

from pydantic import Field
from pydantic_settings import SettingsConfigDict

from core.settings.base import MailpipeBaseSettings


class LLMSettings(MailpipeBaseSettings):
    """
    Settings for the conversation summarizer.
    Loaded from .env with prefix OPENAI_*
    """

    api_key: Optional[str] = None
    model: str = "o3-mini"
    temperature: float = Field(default=0.1, ge=0.0, le=2.0)
    timeout_seconds: float = Field(default=90.0, gt=0)
    base_url: Optional[str] = None

    model_config = SettingsConfigDict(env_prefix="OPENAI_")

    @property
    def supports_temperature(self) -> bool:
        """Reasoning models (o1, o3, ...) reject the temperature parameter."""
        return not self.model.startswith("o")
