from __future__ import annotations

from pydantic import Field
from pydantic_settings import SettingsConfigDict

from core.settings.base import MailpipeBaseSettings


class PipelineSettings(MailpipeBaseSettings):
    """
    Pipeline orchestration settings.
    Loaded from .env with prefix PIPELINE_*
    """

    default_step_timeout_seconds: float = Field(default=30.0, gt=0)
    pipeline_version: str = "v1"
    stuck_after_minutes: int = Field(default=30, gt=0)
    stuck_reset_after_minutes: int = Field(default=60, gt=0)
    stats_window_hours: int = Field(default=24, gt=0)

    model_config = SettingsConfigDict(env_prefix="PIPELINE_")
