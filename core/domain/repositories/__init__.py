from .entity_store import EntityStore
from .output_repository import OutputRepository

__all__ = ["EntityStore", "OutputRepository"]
