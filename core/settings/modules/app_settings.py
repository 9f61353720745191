from __future__ import annotations

from functools import lru_cache

from pydantic import BaseModel, ConfigDict

from core.settings.modules.database_settings import DatabaseSettings
from core.settings.modules.llm_settings import LLMSettings
from core.settings.modules.logging_settings import LoggingSettings
from core.settings.modules.pipeline_settings import PipelineSettings


class AppSettings(BaseModel):
    """Application settings aggregator."""

    model_config = ConfigDict(arbitrary_types_allowed=True, extra="ignore")

    pipeline: PipelineSettings
    database: DatabaseSettings
    llm: LLMSettings
    logging: LoggingSettings


@lru_cache()
def get_app_settings() -> AppSettings:
    return AppSettings(
        pipeline=PipelineSettings(),
        database=DatabaseSettings(),
        llm=LLMSettings(),
        logging=LoggingSettings(),
    )
