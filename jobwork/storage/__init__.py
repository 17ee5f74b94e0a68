"""
Entity storage.

Two interchangeable backends implement ``Storage``; the configured one is
built once at startup by ``build_storage``.
"""
from .base import Storage
from .memory import MemoryStorage


def build_storage(settings) -> Storage:
    """Create the backend named by ``settings.STORAGE_BACKEND``."""
    if settings.STORAGE_BACKEND == "memory":
        return MemoryStorage()

    from jobwork.db.session import build_engine, build_session_factory
    from .sql import SqlStorage

    engine = build_engine(settings.DATABASE_URL)
    return SqlStorage(build_session_factory(engine))


__all__ = ["Storage", "MemoryStorage", "build_storage"]
