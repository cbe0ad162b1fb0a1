"""HookRelay database layer: Base, engine, session factory, exceptions."""

from hookrelay.db.base import Base, JSONType
from hookrelay.db.engine import create_engine
from hookrelay.db.exceptions import ConfigurationError, DatabaseError
from hookrelay.db.session import create_all, create_session_factory

__all__ = [
    "Base",
    "JSONType",
    "create_engine",
    "create_all",
    "create_session_factory",
    "DatabaseError",
    "ConfigurationError",
]
