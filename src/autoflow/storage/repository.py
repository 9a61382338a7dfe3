"""
Schedule store interface
"""
import asyncio
import copy
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from ..models.schedule import ScheduleDescriptor


class ScheduleStore(ABC):
    """Durable key-value store of schedule descriptors keyed by workflow id"""

    @abstractmethod
    async def save(self, descriptor: ScheduleDescriptor) -> None:
        """Insert or replace a descriptor"""
        pass

    @abstractmethod
    async def get(self, workflow_id: str) -> Optional[ScheduleDescriptor]:
        """Fetch a descriptor, active or not"""
        pass

    @abstractmethod
    async def list_active(self) -> List[ScheduleDescriptor]:
        """All descriptors with ``is_active`` set"""
        pass

    @abstractmethod
    async def list_all(self) -> List[ScheduleDescriptor]:
        """Every descriptor including inactive ones"""
        pass

    @abstractmethod
    async def update(
        self,
        workflow_id: str,
        mutate: Callable[[ScheduleDescriptor], None]
    ) -> Optional[ScheduleDescriptor]:
        """Atomic read-modify-write; returns the stored result or None if absent"""
        pass

    @abstractmethod
    async def mark_inactive(self, workflow_id: str) -> bool:
        """Deactivate without deleting; False when the descriptor does not exist"""
        pass

    @abstractmethod
    async def clear(self) -> int:
        """Remove everything, returning how many descriptors were purged"""
        pass


# In-memory implementation (tests and single-shot runs)
class InMemoryScheduleStore(ScheduleStore):
    """Keeps copies so callers never share state with the store"""

    def __init__(self):
        self.descriptors: Dict[str, ScheduleDescriptor] = {}
        self._lock = asyncio.Lock()

    async def save(self, descriptor: ScheduleDescriptor) -> None:
        async with self._lock:
            self.descriptors[descriptor.workflow_id] = copy.copy(descriptor)

    async def get(self, workflow_id: str) -> Optional[ScheduleDescriptor]:
        descriptor = self.descriptors.get(workflow_id)
        return copy.copy(descriptor) if descriptor else None

    async def list_active(self) -> List[ScheduleDescriptor]:
        return [copy.copy(d) for d in self.descriptors.values() if d.is_active]

    async def list_all(self) -> List[ScheduleDescriptor]:
        return [copy.copy(d) for d in self.descriptors.values()]

    async def update(
        self,
        workflow_id: str,
        mutate: Callable[[ScheduleDescriptor], None]
    ) -> Optional[ScheduleDescriptor]:
        async with self._lock:
            stored = self.descriptors.get(workflow_id)
            if stored is None:
                return None
            working = copy.copy(stored)
            mutate(working)
            working.updated_at = datetime.now(timezone.utc)
            self.descriptors[workflow_id] = working
            return copy.copy(working)

    async def mark_inactive(self, workflow_id: str) -> bool:
        async with self._lock:
            stored = self.descriptors.get(workflow_id)
            if stored is None:
                return False
            stored.is_active = False
            stored.updated_at = datetime.now(timezone.utc)
            return True

    async def clear(self) -> int:
        async with self._lock:
            count = len(self.descriptors)
            self.descriptors.clear()
            return count
