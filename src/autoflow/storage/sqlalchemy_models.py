"""
SQLAlchemy table definitions
"""
from sqlalchemy import Boolean, Column, DateTime, Index, Integer, JSON, String
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func


Base = declarative_base()


class WorkflowSchedule(Base):
    """Persisted schedule descriptor"""
    __tablename__ = 'workflow_schedules'

    workflow_id = Column(String(255), primary_key=True)
    recurrence = Column(String(64), nullable=False)
    graph_snapshot = Column(JSON, nullable=False)
    next_due_at = Column(DateTime(timezone=True), nullable=False)
    last_run_at = Column(DateTime(timezone=True))
    execution_count = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        Index('idx_workflow_schedules_active', 'is_active'),
        Index('idx_workflow_schedules_next_due', 'next_due_at'),
    )
