"""
Run-scoped execution models
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from ..exceptions import WorkflowError
from .workflow import NodeType


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RunStatus(Enum):
    """Overall run outcome"""
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class RunEventType(Enum):
    """Events published on the event bus while a run progresses"""
    WORKFLOW_STARTED = "workflow.started"
    WORKFLOW_COMPLETED = "workflow.completed"
    WORKFLOW_FAILED = "workflow.failed"

    NODE_STARTED = "node.started"
    NODE_COMPLETED = "node.completed"
    NODE_FAILED = "node.failed"
    NODE_BRANCH_SKIPPED = "node.skipped_branches"

    SCHEDULE_FIRED = "schedule.fired"


@dataclass
class NodeResult:
    """Outcome of executing one node: ``ok`` with ``data`` or not ``ok`` with ``error``"""
    ok: bool
    data: Any = None
    error: Optional[str] = None
    node_id: Optional[str] = None
    node_type: Optional[NodeType] = None

    @classmethod
    def success(cls, data: Any, node_id: str = None, node_type: NodeType = None) -> "NodeResult":
        return cls(ok=True, data=data, node_id=node_id, node_type=node_type)

    @classmethod
    def failure(cls, error: str, node_id: str = None, node_type: NodeType = None) -> "NodeResult":
        return cls(ok=False, error=error, node_id=node_id, node_type=node_type)

    def to_dict(self) -> Dict[str, Any]:
        if self.ok:
            return {"ok": True, "data": self.data}
        return {"ok": False, "error": self.error}


@dataclass
class RunContext:
    """Mutable per-run mapping of node id to result, plus the ``current`` slot"""
    execution_id: str
    results: Dict[str, NodeResult] = field(default_factory=dict)
    current: Optional[NodeResult] = None

    def record(self, node_id: str, result: NodeResult) -> None:
        self.results[node_id] = result
        self.current = result

    def get(self, node_id: str) -> Optional[NodeResult]:
        return self.results.get(node_id)

    def previous_data(self) -> Any:
        """Input for the next node.

        ``current`` wins when set. Otherwise the most recently inserted
        successful, non-trigger result whose data is a mapping.
        """
        if self.current is not None:
            return self.current.data

        for result in reversed(list(self.results.values())):
            if not result.ok or result.node_type == NodeType.TRIGGER:
                continue
            if isinstance(result.data, dict):
                return result.data
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "execution_id": self.execution_id,
            "results": {node_id: r.to_dict() for node_id, r in self.results.items()},
            "current": self.current.to_dict() if self.current else None,
        }


@dataclass
class RunResult:
    """Run record handed back to the scheduler and to hosts"""
    execution_id: str
    workflow_id: Optional[str]
    status: RunStatus
    context: RunContext
    logs: List[str] = field(default_factory=list)
    error: Optional[str] = None
    failed_node_id: Optional[str] = None
    failure: Optional[WorkflowError] = None
    started_at: datetime = field(default_factory=utcnow)
    finished_at: Optional[datetime] = None

    @property
    def success(self) -> bool:
        return self.status == RunStatus.COMPLETED

    @property
    def executed_nodes(self) -> List[str]:
        """Node ids in execution order"""
        return list(self.context.results)

    @property
    def duration(self) -> Optional[float]:
        if self.finished_at is None:
            return None
        return (self.finished_at - self.started_at).total_seconds()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "execution_id": self.execution_id,
            "workflow_id": self.workflow_id,
            "status": self.status.value,
            "success": self.success,
            "logs": list(self.logs),
            "error": self.error,
            "error_type": self.failure.code if self.failure else None,
            "failed_node_id": self.failed_node_id,
            "context": self.context.to_dict(),
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
        }
