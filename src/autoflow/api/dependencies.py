"""
FastAPI dependencies
"""
from fastapi import HTTPException, Request, status

from ..core.parser import GraphParser
from ..core.scheduler import WorkflowScheduler


def get_scheduler(request: Request) -> WorkflowScheduler:
    scheduler = getattr(request.app.state, "scheduler", None)
    if scheduler is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={
                "error": "service_unavailable",
                "message": "Scheduler not initialized"
            }
        )
    return scheduler


def get_parser(request: Request) -> GraphParser:
    return getattr(request.app.state, "parser", None) or GraphParser()


def api_error(status_code: int, error: str, message: str) -> HTTPException:
    return HTTPException(status_code=status_code, detail={"error": error, "message": message})
