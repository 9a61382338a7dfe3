"""
Recurring workflow scheduler

One heartbeat task polls every active schedule descriptor and fires the due
ones through the execution engine. Each workflow has an execution lock so a
slow run is never overlapped by the next occurrence, and after every fired
occurrence ``next_due_at`` moves forward by whole intervals from its previous
value, so execution latency never shifts the cadence.

State per descriptor::

    Unscheduled -> Active <-> Running -> Active ... -> Inactive
"""
import asyncio
import copy
import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional, Set

from ..exceptions import ScheduleError, WorkflowLockedError
from ..integrations.event_bus import EventBus
from ..models.execution import RunEventType, RunResult
from ..models.node_config import parse_node_config
from ..models.schedule import Recurrence, ScheduleDescriptor, ScheduleState
from ..models.workflow import WorkflowGraph, find_trigger_node
from ..storage.repository import InMemoryScheduleStore, ScheduleStore
from .engine import ExecutionEngine


logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def next_occurrence(previous_due: datetime, interval: timedelta, now: datetime) -> datetime:
    """``previous_due + interval``, pushed forward by whole intervals until after ``now``"""
    upcoming = previous_due + interval
    if upcoming <= now:
        missed = (now - upcoming) // interval + 1
        logger.warning(f"Skipping {missed} missed occurrence(s) to keep the schedule phase")
        upcoming += interval * missed
    return upcoming


class WorkflowScheduler:
    """Heartbeat driven scheduler owning the descriptor table and the lock table"""

    def __init__(
        self,
        engine: ExecutionEngine,
        store: Optional[ScheduleStore] = None,
        heartbeat_interval: float = 5.0,
        clock: Optional[Callable[[], datetime]] = None,
        event_bus: Optional[EventBus] = None,
        autostart: bool = True,
    ):
        self.engine = engine
        self.store = store or InMemoryScheduleStore()
        self.heartbeat_interval = heartbeat_interval
        self.clock = clock or _utcnow
        self.event_bus = event_bus
        # Tests drive tick() by hand with autostart disabled
        self.autostart = autostart

        self._schedules: Dict[str, ScheduleDescriptor] = {}
        self._running: Set[str] = set()
        self._inactive: Set[str] = set()
        self._last_results: Dict[str, RunResult] = {}
        # Guards _schedules, _running and _inactive together
        self._lock = asyncio.Lock()
        self._heartbeat: Optional[asyncio.Task] = None
        self._inflight: Set[asyncio.Task] = set()
        self._initialized = False

    @property
    def is_running(self) -> bool:
        return self._heartbeat is not None and not self._heartbeat.done()

    async def initialize(self) -> None:
        """Load persisted schedules and start the heartbeat; safe to call repeatedly"""
        async with self._lock:
            if self._initialized:
                return
            self._initialized = True

            now = self.clock()
            restored = 0
            for descriptor in await self.store.list_active():
                if descriptor.workflow_id in self._schedules:
                    continue
                if descriptor.next_due_at <= now:
                    # Re-arm instead of replaying missed occurrences
                    rearmed_at = now + descriptor.interval
                    updated = await self.store.update(
                        descriptor.workflow_id,
                        lambda d: setattr(d, "next_due_at", rearmed_at),
                    )
                    descriptor = updated or descriptor
                    logger.info(
                        f"Re-armed overdue schedule {descriptor.workflow_id} to {descriptor.next_due_at.isoformat()}"
                    )
                self._schedules[descriptor.workflow_id] = descriptor
                restored += 1

            for descriptor in await self.store.list_all():
                if not descriptor.is_active:
                    self._inactive.add(descriptor.workflow_id)

        logger.info(f"Scheduler initialized with {restored} active schedules")
        if self.autostart:
            self.start()

    def start(self) -> None:
        """Start the heartbeat task if it is not already running"""
        if self.is_running:
            return
        self._heartbeat = asyncio.create_task(self._heartbeat_loop())
        logger.info(f"Heartbeat started (every {self.heartbeat_interval}s)")

    async def stop(self, wait: bool = True) -> None:
        """Stop the heartbeat; in-flight runs are awaited unless ``wait`` is false"""
        if self._heartbeat is not None:
            self._heartbeat.cancel()
            try:
                await self._heartbeat
            except asyncio.CancelledError:
                pass
            self._heartbeat = None
            logger.info("Heartbeat stopped")
        if wait:
            await self.wait_for_idle()

    async def wait_for_idle(self) -> None:
        """Wait until every fired run has finished"""
        while self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)

    async def schedule(self, workflow_id: str, recurrence: str, graph: WorkflowGraph) -> ScheduleDescriptor:
        """Activate (or replace) the schedule of ``workflow_id``"""
        self._validate_graph(graph)
        resolved = Recurrence.resolve(recurrence)

        now = self.clock()
        descriptor = ScheduleDescriptor(
            workflow_id=workflow_id,
            recurrence=recurrence,
            graph=graph,
            next_due_at=now + resolved.interval,
            created_at=now,
            updated_at=now,
        )

        async with self._lock:
            await self.store.save(descriptor)
            self._schedules[workflow_id] = descriptor
            self._inactive.discard(workflow_id)

        logger.info(
            f"Scheduled workflow {workflow_id} ({recurrence}), next execution {descriptor.next_due_at.isoformat()}"
        )
        if self.autostart:
            self.start()
        return copy.copy(descriptor)

    async def update_schedule(self, workflow_id: str, recurrence: str) -> ScheduleDescriptor:
        """Change the recurrence of an active schedule, keeping its graph"""
        existing = self._schedules.get(workflow_id)
        if existing is None:
            raise ScheduleError(f"Workflow {workflow_id} is not scheduled")
        logger.info(f"Updating schedule for workflow {workflow_id}: {existing.recurrence} -> {recurrence}")
        return await self.schedule(workflow_id, recurrence, existing.graph)

    async def unschedule(self, workflow_id: str) -> bool:
        """Deactivate a schedule; an in-flight run finishes but is not re-armed"""
        async with self._lock:
            removed = self._schedules.pop(workflow_id, None)
            stored = await self.store.get(workflow_id)
            if stored is not None:
                await self.store.mark_inactive(workflow_id)
            if removed is not None or stored is not None:
                self._inactive.add(workflow_id)

        was_active = removed is not None or (stored is not None and stored.is_active)
        if was_active:
            logger.info(f"Unscheduled workflow: {workflow_id}")
        return was_active

    async def status(self, workflow_id: str) -> Optional[ScheduleDescriptor]:
        descriptor = self._schedules.get(workflow_id)
        if descriptor is not None:
            return copy.copy(descriptor)
        return await self.store.get(workflow_id)

    def state(self, workflow_id: str) -> ScheduleState:
        if workflow_id in self._schedules:
            if workflow_id in self._running:
                return ScheduleState.RUNNING
            return ScheduleState.ACTIVE
        if workflow_id in self._running:
            return ScheduleState.RUNNING
        if workflow_id in self._inactive:
            return ScheduleState.INACTIVE
        return ScheduleState.UNSCHEDULED

    async def list_schedules(self, include_inactive: bool = False) -> List[ScheduleDescriptor]:
        if include_inactive:
            return await self.store.list_all()
        return [copy.copy(d) for d in self._schedules.values()]

    def last_result(self, workflow_id: str) -> Optional[RunResult]:
        return self._last_results.get(workflow_id)

    def is_locked(self, workflow_id: str) -> bool:
        return workflow_id in self._running

    async def run_once(self, workflow_id: str, graph: WorkflowGraph) -> RunResult:
        """Run ``graph`` now under the workflow's execution lock; cadence is untouched"""
        await self._acquire(workflow_id)
        try:
            result = await self.engine.run(graph, workflow_id=workflow_id)
            self._last_results[workflow_id] = result
            return result
        finally:
            await self._release(workflow_id)

    async def trigger_now(self, workflow_id: str) -> Optional[RunResult]:
        """Run a scheduled workflow immediately; None when it is not scheduled"""
        descriptor = self._schedules.get(workflow_id)
        if descriptor is None:
            logger.warning(f"Workflow {workflow_id} not found for immediate execution")
            return None

        await self._acquire(workflow_id)
        try:
            logger.info(f"Immediately executing workflow: {workflow_id}")
            result = await self.engine.run(descriptor.graph, workflow_id=workflow_id)
            self._last_results[workflow_id] = result

            now = self.clock()

            def record(d: ScheduleDescriptor) -> None:
                d.last_run_at = now
                d.execution_count += 1

            async with self._lock:
                if self._schedules.get(workflow_id) is descriptor:
                    updated = await self.store.update(workflow_id, record)
                    if updated is not None:
                        self._schedules[workflow_id] = updated
            return result
        finally:
            await self._release(workflow_id)

    async def clear_all(self) -> int:
        """Full reset: stop the heartbeat, drop every descriptor and lock, wipe the store"""
        await self.stop(wait=False)
        async with self._lock:
            self._schedules.clear()
            self._running.clear()
            self._inactive.clear()
            self._last_results.clear()
            purged = await self.store.clear()
            self._initialized = False
        logger.info(f"Cleared all schedules ({purged} purged)")
        return purged

    async def tick(self) -> List[str]:
        """One heartbeat pass; returns the workflow ids fired"""
        now = self.clock()
        fired = []

        async with self._lock:
            for workflow_id, descriptor in list(self._schedules.items()):
                if not descriptor.is_due(now):
                    continue
                if workflow_id in self._running:
                    logger.debug(f"Workflow {workflow_id} still running, skipping this tick")
                    continue

                self._running.add(workflow_id)
                fired.append(workflow_id)
                task = asyncio.create_task(self._fire(workflow_id, descriptor))
                self._inflight.add(task)
                task.add_done_callback(self._inflight.discard)

        return fired

    async def _heartbeat_loop(self) -> None:
        while True:
            try:
                await self.tick()
            except Exception as e:
                logger.error(f"Heartbeat tick failed: {e}", exc_info=True)
            await asyncio.sleep(self.heartbeat_interval)

    async def _fire(self, workflow_id: str, descriptor: ScheduleDescriptor) -> None:
        try:
            logger.info(f"Executing scheduled workflow: {workflow_id}")
            await self._publish(RunEventType.SCHEDULE_FIRED, workflow_id, descriptor)

            try:
                result = await self.engine.run(descriptor.graph, workflow_id=workflow_id)
            except Exception as e:
                logger.error(f"Error in scheduled execution of {workflow_id}: {e}", exc_info=True)
            else:
                self._last_results[workflow_id] = result
                if result.success:
                    logger.info(f"Successfully executed workflow {workflow_id}")
                else:
                    logger.warning(f"Scheduled run of {workflow_id} failed: {result.error}")

            await self._complete(workflow_id, descriptor)
        finally:
            # Released here too when the run is cancelled before completing
            self._running.discard(workflow_id)

    async def _complete(self, workflow_id: str, fired: ScheduleDescriptor) -> None:
        now = self.clock()
        interval = fired.interval
        previous_due = fired.next_due_at

        def advance(d: ScheduleDescriptor) -> None:
            d.next_due_at = next_occurrence(previous_due, interval, now)
            d.last_run_at = now
            d.execution_count += 1

        async with self._lock:
            try:
                if self._schedules.get(workflow_id) is not fired:
                    logger.info(f"Workflow {workflow_id} was unscheduled or replaced during its run")
                    return

                advanced = copy.copy(fired)
                advance(advanced)
                try:
                    stored = await self.store.update(workflow_id, advance)
                except Exception as e:
                    logger.error(f"Could not persist schedule advance for {workflow_id}: {e}", exc_info=True)
                    stored = None
                self._schedules[workflow_id] = stored or advanced
            finally:
                self._running.discard(workflow_id)

    async def _acquire(self, workflow_id: str) -> None:
        async with self._lock:
            if workflow_id in self._running:
                raise WorkflowLockedError(workflow_id)
            self._running.add(workflow_id)

    async def _release(self, workflow_id: str) -> None:
        async with self._lock:
            self._running.discard(workflow_id)

    def _validate_graph(self, graph: WorkflowGraph) -> None:
        graph.check()
        find_trigger_node(graph)
        for node in graph.nodes:
            parse_node_config(node)

    async def _publish(self, event_type: RunEventType, workflow_id: str, descriptor: ScheduleDescriptor):
        if self.event_bus is None:
            return
        await self.event_bus.publish(event_type.value, {
            "workflow_id": workflow_id,
            "recurrence": descriptor.recurrence,
            "due_at": descriptor.next_due_at.isoformat(),
        })
