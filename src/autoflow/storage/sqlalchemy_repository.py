"""
SQLAlchemy schedule store
"""
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Callable, List, Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from ..core.parser import GraphParser
from ..exceptions import PersistenceError
from ..models.schedule import ScheduleDescriptor
from .repository import ScheduleStore
from .sqlalchemy_models import Base, WorkflowSchedule


def _aware(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite drops tzinfo on the way back
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class DatabaseManager:
    """Owns the async engine and session factory"""

    def __init__(self, database_url: str):
        self.database_url = database_url
        self.engine: Optional[AsyncEngine] = None
        self.async_session_maker = None

    async def initialize(self):
        """Open the connection pool and create tables"""
        if self.engine is not None:
            return

        options = {"echo": False}
        if not self.database_url.startswith("sqlite"):
            options.update(pool_size=20, max_overflow=10, pool_pre_ping=True)
        self.engine = create_async_engine(self.database_url, **options)

        self.async_session_maker = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False
        )

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def close(self):
        if self.engine:
            await self.engine.dispose()
            self.engine = None
            self.async_session_maker = None

    @asynccontextmanager
    async def get_session(self):
        """Transactional session: commit on success, rollback on error"""
        if self.async_session_maker is None:
            raise PersistenceError("DatabaseManager.initialize() has not been called")

        async with self.async_session_maker() as session:
            try:
                yield session
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                raise PersistenceError(str(e)) from e
            except Exception:
                await session.rollback()
                raise


class SQLAlchemyScheduleStore(ScheduleStore):
    """Schedule store backed by any SQLAlchemy async database"""

    def __init__(self, db_manager: DatabaseManager):
        self.db = db_manager
        self.parser = GraphParser()

    async def save(self, descriptor: ScheduleDescriptor) -> None:
        async with self.db.get_session() as session:
            row = await session.get(WorkflowSchedule, descriptor.workflow_id)
            if row is None:
                row = WorkflowSchedule(workflow_id=descriptor.workflow_id)
                session.add(row)
            self._apply(row, descriptor)

    async def get(self, workflow_id: str) -> Optional[ScheduleDescriptor]:
        async with self.db.get_session() as session:
            row = await session.get(WorkflowSchedule, workflow_id)
            return self._to_descriptor(row) if row else None

    async def list_active(self) -> List[ScheduleDescriptor]:
        async with self.db.get_session() as session:
            result = await session.execute(
                select(WorkflowSchedule)
                .where(WorkflowSchedule.is_active.is_(True))
                .order_by(WorkflowSchedule.next_due_at)
            )
            return [self._to_descriptor(row) for row in result.scalars().all()]

    async def list_all(self) -> List[ScheduleDescriptor]:
        async with self.db.get_session() as session:
            result = await session.execute(
                select(WorkflowSchedule).order_by(WorkflowSchedule.workflow_id)
            )
            return [self._to_descriptor(row) for row in result.scalars().all()]

    async def update(
        self,
        workflow_id: str,
        mutate: Callable[[ScheduleDescriptor], None]
    ) -> Optional[ScheduleDescriptor]:
        async with self.db.get_session() as session:
            result = await session.execute(
                select(WorkflowSchedule)
                .where(WorkflowSchedule.workflow_id == workflow_id)
                .with_for_update()
            )
            row = result.scalar_one_or_none()
            if row is None:
                return None

            descriptor = self._to_descriptor(row)
            mutate(descriptor)
            descriptor.updated_at = datetime.now(timezone.utc)
            self._apply(row, descriptor)
            return descriptor

    async def mark_inactive(self, workflow_id: str) -> bool:
        async with self.db.get_session() as session:
            row = await session.get(WorkflowSchedule, workflow_id)
            if row is None:
                return False
            row.is_active = False
            row.updated_at = datetime.now(timezone.utc)
            return True

    async def clear(self) -> int:
        async with self.db.get_session() as session:
            result = await session.execute(delete(WorkflowSchedule))
            return result.rowcount or 0

    def _apply(self, row: WorkflowSchedule, descriptor: ScheduleDescriptor) -> None:
        row.recurrence = descriptor.recurrence
        row.graph_snapshot = self.parser.to_dict(descriptor.graph)
        row.next_due_at = descriptor.next_due_at
        row.last_run_at = descriptor.last_run_at
        row.execution_count = descriptor.execution_count
        row.is_active = descriptor.is_active
        row.created_at = descriptor.created_at
        row.updated_at = descriptor.updated_at

    def _to_descriptor(self, row: WorkflowSchedule) -> ScheduleDescriptor:
        return ScheduleDescriptor(
            workflow_id=row.workflow_id,
            recurrence=row.recurrence,
            graph=self.parser.parse_dict(row.graph_snapshot),
            next_due_at=_aware(row.next_due_at),
            last_run_at=_aware(row.last_run_at),
            execution_count=row.execution_count or 0,
            is_active=bool(row.is_active),
            created_at=_aware(row.created_at) or datetime.now(timezone.utc),
            updated_at=_aware(row.updated_at) or datetime.now(timezone.utc),
        )
