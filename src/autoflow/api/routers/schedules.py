"""
Recurring schedule management
"""
import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, Query, status

from ...core.parser import GraphParser
from ...core.scheduler import WorkflowScheduler
from ...exceptions import EngineError, GraphError, ScheduleError, WorkflowLockedError
from ..dependencies import api_error, get_parser, get_scheduler
from ..models import ScheduleRequest, UpdateScheduleRequest


logger = logging.getLogger(__name__)
router = APIRouter()


def _not_found(workflow_id: str):
    return api_error(status.HTTP_404_NOT_FOUND, "not_found", f"Workflow {workflow_id} is not scheduled")


@router.get("")
async def list_schedules(
    include_inactive: bool = Query(False, description="Include unscheduled workflows"),
    scheduler: WorkflowScheduler = Depends(get_scheduler),
) -> Dict[str, Any]:
    descriptors = await scheduler.list_schedules(include_inactive=include_inactive)
    return {
        "items": [d.to_dict() for d in descriptors],
        "total": len(descriptors),
    }


@router.delete("")
async def clear_schedules(scheduler: WorkflowScheduler = Depends(get_scheduler)) -> Dict[str, Any]:
    """Drop every schedule, then restart an empty heartbeat"""
    purged = await scheduler.clear_all()
    await scheduler.initialize()
    return {"purged": purged}


@router.get("/{workflow_id}")
async def get_schedule(
    workflow_id: str,
    scheduler: WorkflowScheduler = Depends(get_scheduler),
) -> Dict[str, Any]:
    descriptor = await scheduler.status(workflow_id)
    if descriptor is None:
        raise _not_found(workflow_id)

    last = scheduler.last_result(workflow_id)
    return {
        **descriptor.to_dict(),
        "state": scheduler.state(workflow_id).value,
        "last_result": last.to_dict() if last else None,
    }


@router.post("/{workflow_id}", status_code=status.HTTP_201_CREATED)
async def create_schedule(
    workflow_id: str,
    request: ScheduleRequest,
    scheduler: WorkflowScheduler = Depends(get_scheduler),
    parser: GraphParser = Depends(get_parser),
) -> Dict[str, Any]:
    try:
        graph = parser.parse_dict(request.graph)
        descriptor = await scheduler.schedule(workflow_id, request.recurrence, graph)
    except (GraphError, EngineError) as e:
        raise api_error(status.HTTP_400_BAD_REQUEST, e.code, str(e))
    return descriptor.to_dict()


@router.put("/{workflow_id}")
async def update_schedule(
    workflow_id: str,
    request: UpdateScheduleRequest,
    scheduler: WorkflowScheduler = Depends(get_scheduler),
) -> Dict[str, Any]:
    try:
        descriptor = await scheduler.update_schedule(workflow_id, request.recurrence)
    except ScheduleError:
        raise _not_found(workflow_id)
    return descriptor.to_dict()


@router.delete("/{workflow_id}")
async def delete_schedule(
    workflow_id: str,
    scheduler: WorkflowScheduler = Depends(get_scheduler),
) -> Dict[str, Any]:
    if not await scheduler.unschedule(workflow_id):
        raise _not_found(workflow_id)
    return {"workflow_id": workflow_id, "unscheduled": True}


@router.post("/{workflow_id}/trigger")
async def trigger_schedule(
    workflow_id: str,
    scheduler: WorkflowScheduler = Depends(get_scheduler),
) -> Dict[str, Any]:
    """Run a scheduled workflow now without shifting its cadence"""
    try:
        result = await scheduler.trigger_now(workflow_id)
    except WorkflowLockedError as e:
        raise api_error(status.HTTP_409_CONFLICT, e.code, str(e))
    if result is None:
        raise _not_found(workflow_id)
    return result.to_dict()
