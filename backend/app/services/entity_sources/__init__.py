"""Entity sources: where reservations, rooms, tasks and payments come from."""

from app.services.entity_sources.base import EntityKind, EntitySource
from app.services.entity_sources.database import DatabaseEntitySource
from app.services.entity_sources.rest import RestEntitySource

__all__ = ["EntityKind", "EntitySource", "DatabaseEntitySource", "RestEntitySource"]
