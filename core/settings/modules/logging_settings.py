from __future__ import annotations

from typing import Optional

from pydantic_settings import SettingsConfigDict

from core.settings.base import MailpipeBaseSettings


class LoggingSettings(MailpipeBaseSettings):
    """
    Logging settings.
    Loaded from .env with prefix LOG_*
    """

    level: str = "INFO"
    file: Optional[str] = None

    model_config = SettingsConfigDict(env_prefix="LOG_")
