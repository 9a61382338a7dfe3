import asyncio
import time
from unittest.mock import AsyncMock

import pytest

from autoflow.exceptions import UnknownCapabilityError
from autoflow.integrations.builtin import LogService, MockAIService, register_builtin_services
from autoflow.integrations.event_bus import EventBus
from autoflow.integrations.registry import ServiceRegistry, ServiceResult


def test_register_plain_callable():
    async def runner():
        registry = ServiceRegistry()
        registry.register("echo", lambda config, previous: {"success": True, "data": previous})

        result = await registry.invoke("echo", {}, {"value": 1})
        assert result.success
        assert result.data == {"value": 1}

    asyncio.run(runner())


def test_register_async_mock():
    async def runner():
        registry = ServiceRegistry()
        handler = AsyncMock(return_value=ServiceResult.ok({"temperature": 20}))
        registry.register("weather", handler, description="Weather lookup", provider="test")

        result = await registry.invoke("weather", {"city": "Oslo"}, None)
        assert result.data == {"temperature": 20}
        handler.assert_awaited_once_with({"city": "Oslo"}, None)
        assert registry.get("weather").metadata == {"provider": "test"}

    asyncio.run(runner())


def test_unknown_capability():
    registry = ServiceRegistry()
    with pytest.raises(UnknownCapabilityError):
        registry.get("missing")
    with pytest.raises(UnknownCapabilityError):
        asyncio.run(registry.invoke("missing", {}, None))


def test_unregister():
    registry = ServiceRegistry()
    registry.register("noop", lambda c, p: ServiceResult.ok())
    assert registry.unregister("noop")
    assert not registry.unregister("noop")
    assert registry.names() == []


def test_timeout_becomes_failed_result():
    async def slow(config, previous):
        await asyncio.sleep(1)
        return ServiceResult.ok()

    async def runner():
        registry = ServiceRegistry(default_timeout=5.0)
        registry.register("slow", slow, timeout=0.01)
        result = await registry.invoke("slow", {}, None)
        assert not result.success
        assert "timed out" in result.error

    asyncio.run(runner())


def test_call_timeout_used_when_service_has_none():
    async def slow(config, previous):
        await asyncio.sleep(1)

    async def runner():
        registry = ServiceRegistry(default_timeout=5.0)
        registry.register("slow", slow)
        result = await registry.invoke("slow", {}, None, timeout=0.01)
        assert "0.01" in result.error

    asyncio.run(runner())


def test_blocking_sync_handler_times_out():
    def blocking(config, previous):
        time.sleep(0.5)
        return ServiceResult.ok()

    async def runner():
        registry = ServiceRegistry(default_timeout=5.0)
        registry.register("blocking", blocking, timeout=0.05)
        started = time.monotonic()
        result = await registry.invoke("blocking", {}, None)
        assert not result.success
        assert "timed out" in result.error
        assert time.monotonic() - started < 0.4

    asyncio.run(runner())


def test_exception_becomes_failed_result():
    def explode(config, previous):
        raise RuntimeError("kaput")

    async def runner():
        registry = ServiceRegistry()
        registry.register("explode", explode)
        result = await registry.invoke("explode", {}, None)
        assert not result.success
        assert "RuntimeError" in result.error
        assert "kaput" in result.error

    asyncio.run(runner())


def test_invalid_return_value_is_failure():
    async def runner():
        registry = ServiceRegistry()
        registry.register("odd", lambda c, p: 42)
        result = await registry.invoke("odd", {}, None)
        assert not result.success
        assert "int" in result.error

    asyncio.run(runner())


def test_config_is_copied_before_call():
    seen = []

    def mutate(config, previous):
        config["touched"] = True
        seen.append(config)
        return ServiceResult.ok()

    async def runner():
        registry = ServiceRegistry()
        registry.register("mutate", mutate)
        original = {"a": 1}
        await registry.invoke("mutate", original, None)
        assert original == {"a": 1}
        assert seen[0]["touched"]

    asyncio.run(runner())


def test_builtin_services():
    async def runner():
        registry = register_builtin_services(ServiceRegistry())
        assert {"http", "webhook", "log", "ai"} <= set(registry.names())

        logged = await registry.invoke("log", {"message": "hello"}, None)
        assert logged.data["message"] == "hello"

        missing_url = await registry.invoke("http", {}, None)
        assert not missing_url.success
        assert "URL is required" in missing_url.error

        ai = await registry.invoke("ai", {"prompt": "Summarize"}, None)
        assert ai.data["source"] == "mock"
        assert ai.data["prompt"] == "Summarize"

    asyncio.run(runner())


def test_builtins_keep_existing_ai_service():
    registry = ServiceRegistry()
    custom = MockAIService()
    registry.register("ai", custom)
    register_builtin_services(registry)
    assert registry.get("ai").service is custom
    assert isinstance(registry.get("log").service, LogService)


def test_event_bus_wildcard_and_errors():
    async def runner():
        bus = EventBus()
        received = []

        async def on_any(event):
            received.append(("any", event.topic))

        def broken(event):
            raise ValueError("subscriber bug")

        await bus.subscribe("*", on_any)
        await bus.subscribe("workflow.completed", broken)
        await bus.publish("workflow.completed", {"execution_id": "x"})

        assert received == [("any", "workflow.completed")]

        await bus.unsubscribe("*", on_any)
        await bus.publish("workflow.started", {})
        assert len(received) == 1

    asyncio.run(runner())
