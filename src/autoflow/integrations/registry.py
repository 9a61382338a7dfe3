"""
Service capability registry

Every integration (weather, email, chat, http, ai, ...) satisfies the same
request/response contract::

    execute(config, previous_data) -> ServiceResult(success, data, error)

The registry maps capability names to services and is the only place the
engine calls into them. Timeouts and stray exceptions are turned into
``success=False`` results here so a misbehaving integration can never crash
a run.
"""
import asyncio
import inspect
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Union

from ..exceptions import UnknownCapabilityError


logger = logging.getLogger(__name__)


@dataclass
class ServiceResult:
    """Outcome of one capability call"""
    success: bool
    data: Any = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, data: Any = None) -> "ServiceResult":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: str, data: Any = None) -> "ServiceResult":
        return cls(success=False, data=data, error=error)

    @classmethod
    def coerce(cls, value: Any) -> "ServiceResult":
        """Accept a ServiceResult or a ``{"success": ...}`` mapping"""
        if isinstance(value, ServiceResult):
            return value
        if isinstance(value, dict) and "success" in value:
            return cls(
                success=bool(value["success"]),
                data=value.get("data"),
                error=value.get("error"),
            )
        return cls.fail(f"Service returned an unsupported result type: {type(value).__name__}")


class Service(ABC):
    """Base class for capability implementations"""

    @abstractmethod
    async def execute(self, config: Dict[str, Any], previous_data: Any) -> ServiceResult:
        """Perform the request; must report failures through ``ServiceResult``"""
        pass


class FunctionService(Service):
    """Adapts a plain sync or async callable to the service contract"""

    def __init__(self, func: Callable):
        if not callable(func):
            raise ValueError("Service handler must be callable")
        self.func = func

    async def execute(self, config: Dict[str, Any], previous_data: Any) -> ServiceResult:
        if inspect.iscoroutinefunction(self.func):
            result = await self.func(config, previous_data)
        else:
            # Blocking handlers run in a worker thread so the invoke timeout still applies
            result = await asyncio.to_thread(self.func, config, previous_data)
            if inspect.isawaitable(result):
                result = await result
        return ServiceResult.coerce(result)


@dataclass
class ServiceDefinition:
    """Registered capability"""
    name: str
    service: Service
    description: str = ""
    timeout: Optional[float] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


class ServiceRegistry:
    """Capability name -> service lookup with bounded invocation"""

    def __init__(self, default_timeout: float = 30.0):
        self.default_timeout = default_timeout
        self._services: Dict[str, ServiceDefinition] = {}

    def register(
        self,
        name: str,
        service: Union[Service, Callable],
        description: str = "",
        timeout: Optional[float] = None,
        **metadata: Any
    ) -> ServiceDefinition:
        """Register (or replace) the service behind ``name``"""
        if not isinstance(service, Service):
            service = FunctionService(service)

        definition = ServiceDefinition(
            name=name,
            service=service,
            description=description,
            timeout=timeout,
            metadata=metadata,
        )
        self._services[name] = definition
        logger.info(f"Registered service: {name}")
        return definition

    def unregister(self, name: str) -> bool:
        if name in self._services:
            del self._services[name]
            logger.info(f"Unregistered service: {name}")
            return True
        return False

    def get(self, name: str) -> ServiceDefinition:
        definition = self._services.get(name)
        if definition is None:
            raise UnknownCapabilityError(name)
        return definition

    def has(self, name: str) -> bool:
        return name in self._services

    def names(self) -> List[str]:
        return list(self._services)

    async def invoke(
        self,
        name: str,
        config: Dict[str, Any],
        previous_data: Any,
        timeout: Optional[float] = None
    ) -> ServiceResult:
        """Call a capability, never raising for service-side problems.

        ``UnknownCapabilityError`` is still raised for unregistered names since
        that is a configuration problem, not a service failure.
        """
        definition = self.get(name)
        limit = definition.timeout or timeout or self.default_timeout
        start_time = time.time()

        try:
            result = await asyncio.wait_for(
                definition.service.execute(dict(config), previous_data),
                timeout=limit,
            )
        except asyncio.TimeoutError:
            logger.warning(f"Service {name} timed out after {limit}s")
            return ServiceResult.fail(f"Service '{name}' timed out after {limit}s")
        except Exception as e:
            logger.error(f"Service {name} raised: {e}", exc_info=True)
            return ServiceResult.fail(f"Service '{name}' raised {type(e).__name__}: {e}")

        result = ServiceResult.coerce(result)
        duration_ms = (time.time() - start_time) * 1000
        if result.success:
            logger.info(f"Service {name} invoked successfully in {duration_ms:.2f}ms")
        else:
            logger.warning(f"Service {name} reported failure in {duration_ms:.2f}ms: {result.error}")
        return result
