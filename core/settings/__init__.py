# Settings package
from core.settings.modules import (
    AppSettings,
    DatabaseSettings,
    LLMSettings,
    LoggingSettings,
    PipelineSettings,
    get_app_settings,
)

__all__ = [
    "get_app_settings",
    "AppSettings",
    "DatabaseSettings",
    "LLMSettings",
    "LoggingSettings",
    "PipelineSettings",
]
