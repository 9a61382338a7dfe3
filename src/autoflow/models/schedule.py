"""
Recurrence vocabulary and persisted schedule state
"""
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, Optional

from ..exceptions import ScheduleError
from .workflow import WorkflowGraph


logger = logging.getLogger(__name__)


class ScheduleState(Enum):
    """Lifecycle of a schedule descriptor"""
    UNSCHEDULED = "unscheduled"
    ACTIVE = "active"
    RUNNING = "running"
    INACTIVE = "inactive"


FIXED_INTERVALS: Dict[str, timedelta] = {
    "every_minute": timedelta(minutes=1),
    "hourly": timedelta(hours=1),
    "daily": timedelta(days=1),
    "weekly": timedelta(weeks=1),
    # Approximate month, not calendar aware
    "monthly": timedelta(milliseconds=2629746000),
}

DEFAULT_RECURRENCE = "every_minute"

# Keeps every due-time computation far inside the datetime range
MAX_INTERVAL = timedelta(days=3660)

_EVERY_N_MINUTES = re.compile(r"^every_(\d+)_minutes$")


class Recurrence:
    """Parsed recurrence literal"""

    def __init__(self, literal: str, interval: timedelta):
        self.literal = literal
        self.interval = interval

    def __repr__(self) -> str:
        return f"Recurrence({self.literal!r}, {self.interval})"

    def __eq__(self, other) -> bool:
        if not isinstance(other, Recurrence):
            return NotImplemented
        return self.literal == other.literal and self.interval == other.interval

    @classmethod
    def parse(cls, literal: str) -> "Recurrence":
        """Strict parse, raising ``ScheduleError`` for unknown literals"""
        if not isinstance(literal, str):
            raise ScheduleError(f"Recurrence must be a string, got {type(literal).__name__}")

        if literal in FIXED_INTERVALS:
            return cls(literal, FIXED_INTERVALS[literal])

        match = _EVERY_N_MINUTES.match(literal)
        if match:
            try:
                minutes = int(match.group(1))
            except ValueError:
                raise ScheduleError(f"Recurrence interval is not a usable number: {literal}")
            if minutes <= 0:
                raise ScheduleError(f"Recurrence interval must be positive: {literal}")
            if minutes > MAX_INTERVAL // timedelta(minutes=1):
                raise ScheduleError(f"Recurrence interval longer than {MAX_INTERVAL.days} days: {literal}")
            return cls(literal, timedelta(minutes=minutes))

        raise ScheduleError(f"Unknown recurrence: {literal}")

    @classmethod
    def resolve(cls, literal: str) -> "Recurrence":
        """Lenient parse: unknown literals fall back to the shortest interval"""
        try:
            return cls.parse(literal)
        except ScheduleError as e:
            logger.warning(f"{e}; defaulting to {DEFAULT_RECURRENCE}")
            return cls(literal, FIXED_INTERVALS[DEFAULT_RECURRENCE])


def interval_for(literal: str) -> timedelta:
    return Recurrence.resolve(literal).interval


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _parse_datetime(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return _as_utc(value)
    return _as_utc(datetime.fromisoformat(value))


@dataclass
class ScheduleDescriptor:
    """Persisted recurrence state for one workflow"""
    workflow_id: str
    recurrence: str
    graph: WorkflowGraph
    next_due_at: datetime
    last_run_at: Optional[datetime] = None
    execution_count: int = 0
    is_active: bool = True
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    def __post_init__(self):
        self.next_due_at = _as_utc(self.next_due_at)
        self.last_run_at = _as_utc(self.last_run_at)
        self.created_at = _as_utc(self.created_at)
        self.updated_at = _as_utc(self.updated_at)

    @property
    def interval(self) -> timedelta:
        return interval_for(self.recurrence)

    def is_due(self, now: datetime) -> bool:
        return self.is_active and now >= self.next_due_at

    def to_dict(self) -> Dict[str, Any]:
        from ..core.parser import GraphParser

        return {
            "workflow_id": self.workflow_id,
            "recurrence": self.recurrence,
            "graph": GraphParser().to_dict(self.graph),
            "next_due_at": self.next_due_at.isoformat(),
            "last_run_at": self.last_run_at.isoformat() if self.last_run_at else None,
            "execution_count": self.execution_count,
            "is_active": self.is_active,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ScheduleDescriptor":
        from ..core.parser import GraphParser

        return cls(
            workflow_id=data["workflow_id"],
            recurrence=data["recurrence"],
            graph=GraphParser().parse_dict(data["graph"]),
            next_due_at=_parse_datetime(data["next_due_at"]),
            last_run_at=_parse_datetime(data.get("last_run_at")),
            execution_count=int(data.get("execution_count", 0)),
            is_active=bool(data.get("is_active", True)),
            created_at=_parse_datetime(data.get("created_at")) or _utcnow(),
            updated_at=_parse_datetime(data.get("updated_at")) or _utcnow(),
        )
