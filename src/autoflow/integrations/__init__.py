"""Service capabilities and the event bus"""

from .registry import (
    Service,
    FunctionService,
    ServiceDefinition,
    ServiceRegistry,
    ServiceResult
)
from .builtin import HttpService, LogService, MockAIService, register_builtin_services
from .event_bus import Event, EventBus

__all__ = [
    "Service",
    "FunctionService",
    "ServiceDefinition",
    "ServiceRegistry",
    "ServiceResult",
    "HttpService",
    "LogService",
    "MockAIService",
    "register_builtin_services",
    "Event",
    "EventBus",
]
