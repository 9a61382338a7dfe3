"""
Built-in services

Concrete third-party integrations live outside this package; these are the
generic ones every deployment gets: an HTTP request/webhook service, a log
sink, and an offline AI stand-in used until a real completion provider is
registered under ``ai``.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import httpx

from .registry import Service, ServiceRegistry, ServiceResult


logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class HttpService(Service):
    """Generic HTTP request; the previous node's data is the default JSON body"""

    def __init__(self, client: Optional[httpx.AsyncClient] = None, default_timeout: float = 10.0):
        self.client = client
        self.default_timeout = default_timeout

    async def execute(self, config: Dict[str, Any], previous_data: Any) -> ServiceResult:
        url = config.get("url")
        if not url:
            return ServiceResult.fail("URL is required for HTTP service")

        method = str(config.get("method", "GET")).upper()
        headers = {"Content-Type": "application/json", **(config.get("headers") or {})}
        body = config.get("body")
        if body is None and method not in ("GET", "HEAD") and previous_data is not None:
            body = previous_data
        timeout = float(config.get("timeout", self.default_timeout))

        try:
            if self.client is not None:
                response = await self._send(self.client, method, url, headers, body, timeout)
            else:
                async with httpx.AsyncClient() as client:
                    response = await self._send(client, method, url, headers, body, timeout)
        except httpx.TimeoutException:
            return ServiceResult.fail("Request timeout")
        except httpx.HTTPError as e:
            return ServiceResult.fail(f"HTTP request failed: {e}")

        try:
            payload = response.json()
        except ValueError:
            payload = response.text

        if response.is_error:
            return ServiceResult.fail(
                f"HTTP {response.status_code}: {response.reason_phrase}",
                data={"status": response.status_code, "response": payload},
            )

        return ServiceResult.ok({
            "action": config.get("action", "request"),
            "url": url,
            "method": method,
            "status": response.status_code,
            "data": payload,
            "timestamp": _now(),
        })

    async def _send(self, client, method, url, headers, body, timeout) -> httpx.Response:
        kwargs = {"headers": headers, "timeout": timeout}
        if isinstance(body, (dict, list)):
            kwargs["json"] = body
        elif body is not None:
            kwargs["content"] = str(body)
        return await client.request(method, url, **kwargs)


class LogService(Service):
    """Writes a message (or the incoming data) to the application log"""

    def __init__(self, logger_name: str = "autoflow.actions"):
        self.logger = logging.getLogger(logger_name)

    async def execute(self, config: Dict[str, Any], previous_data: Any) -> ServiceResult:
        message = config.get("message") or f"Workflow data: {previous_data!r}"
        level = getattr(logging, str(config.get("level", "INFO")).upper(), logging.INFO)
        self.logger.log(level, message)
        return ServiceResult.ok({"message": message, "timestamp": _now()})


class MockAIService(Service):
    """Offline completion provider returning a canned response"""

    async def execute(self, config: Dict[str, Any], previous_data: Any) -> ServiceResult:
        return ServiceResult.ok({
            "response": "This is a mock AI response. Register a completion service under 'ai' for real responses.",
            "prompt": config.get("prompt", ""),
            "model": config.get("model", "mock"),
            "usage": {"prompt_tokens": 0, "completion_tokens": 0},
            "source": "mock",
        })


def register_builtin_services(registry: ServiceRegistry, client: Optional[httpx.AsyncClient] = None) -> ServiceRegistry:
    """Register http, webhook, log and the mock ai service"""
    http = HttpService(client=client)
    registry.register("http", http, description="Generic HTTP request")
    registry.register("webhook", http, description="Outgoing webhook call")
    registry.register("log", LogService(), description="Write to the application log")
    if not registry.has("ai"):
        registry.register("ai", MockAIService(), description="Offline AI stand-in")
    return registry
