"""Schedule persistence"""

from .repository import ScheduleStore, InMemoryScheduleStore
from .sqlalchemy_repository import DatabaseManager, SQLAlchemyScheduleStore

__all__ = [
    "ScheduleStore",
    "InMemoryScheduleStore",
    "DatabaseManager",
    "SQLAlchemyScheduleStore",
]
