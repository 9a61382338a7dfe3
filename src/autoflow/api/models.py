"""
API request models
"""
from typing import Any, Dict

from pydantic import BaseModel, Field


class RunRequest(BaseModel):
    """Run a graph once"""
    graph: Dict[str, Any] = Field(..., description="Workflow graph (nodes and edges)")


class ValidateRequest(BaseModel):
    graph: Dict[str, Any] = Field(..., description="Workflow graph (nodes and edges)")


class ScheduleRequest(BaseModel):
    """Activate or replace a recurring schedule"""
    recurrence: str = Field("every_minute", description="Recurrence literal, e.g. every_5_minutes")
    graph: Dict[str, Any] = Field(..., description="Workflow graph (nodes and edges)")


class UpdateScheduleRequest(BaseModel):
    recurrence: str = Field(..., description="New recurrence literal")
