"""
One-off workflow runs and graph validation
"""
import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, status

from ...core.parser import GraphParser
from ...core.scheduler import WorkflowScheduler
from ...exceptions import EngineError, GraphError, WorkflowLockedError
from ...models.node_config import parse_node_config
from ...models.workflow import find_trigger_node
from ..dependencies import api_error, get_parser, get_scheduler
from ..models import RunRequest, ValidateRequest


logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/validate")
async def validate_workflow(
    request: ValidateRequest,
    parser: GraphParser = Depends(get_parser),
) -> Dict[str, Any]:
    """Check a graph without running it"""
    errors = []
    try:
        graph = parser.parse_dict(request.graph)
        find_trigger_node(graph)
        for node in graph.nodes:
            parse_node_config(node)
    except (GraphError, EngineError) as e:
        errors.append(str(e))
    return {"valid": not errors, "errors": errors}


@router.post("/{workflow_id}/run")
async def run_workflow(
    workflow_id: str,
    request: RunRequest,
    scheduler: WorkflowScheduler = Depends(get_scheduler),
    parser: GraphParser = Depends(get_parser),
) -> Dict[str, Any]:
    """Execute a graph once; node failures come back in the result, not as HTTP errors"""
    try:
        graph = parser.parse_dict(request.graph)
    except (GraphError, EngineError) as e:
        raise api_error(status.HTTP_400_BAD_REQUEST, e.code, str(e))

    try:
        result = await scheduler.run_once(workflow_id, graph)
    except WorkflowLockedError as e:
        raise api_error(status.HTTP_409_CONFLICT, e.code, str(e))

    logger.info(f"Manual run of {workflow_id} finished with status {result.status.value}")
    return result.to_dict()
