from .sqlalchemy_entity_store import SQLAlchemyEntityStore
from .sqlalchemy_output_repository import SQLAlchemyOutputRepository

__all__ = ["SQLAlchemyEntityStore", "SQLAlchemyOutputRepository"]
