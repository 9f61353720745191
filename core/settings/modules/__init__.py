# Settings modules
from .app_settings import AppSettings, get_app_settings
from .database_settings import DatabaseSettings
from .llm_settings import LLMSettings
from .logging_settings import LoggingSettings
from .pipeline_settings import PipelineSettings

__all__ = [
    "AppSettings",
    "get_app_settings",
    "DatabaseSettings",
    "LLMSettings",
    "LoggingSettings",
    "PipelineSettings",
]
