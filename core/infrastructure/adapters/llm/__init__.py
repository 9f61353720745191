"""LLM adapters.

Keep this package import-light: the OpenAI client is imported only by
modules that need it. Import concrete summarizers directly from their modules.
"""

__all__ = []
