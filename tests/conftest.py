"""
Shared fixtures and graph builders
"""
import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from autoflow.integrations.registry import Service, ServiceRegistry, ServiceResult
from autoflow.models.workflow import Edge, Node, NodeType, WorkflowGraph


def node(node_id, node_type, label="", **config):
    return Node(id=node_id, type=NodeType(node_type), label=label, config=config)


def graph(nodes, edges=()):
    return WorkflowGraph(
        nodes=tuple(nodes),
        edges=tuple(Edge(source=s, target=t, id=f"{s}-{t}") for s, t in edges),
    )


def simple_graph(action="notify"):
    """trigger -> action"""
    return graph(
        [
            node("trigger", "trigger", "Every minute", triggerType="schedule", schedule="every_minute"),
            node("notify", "action", "Notify", action=action),
        ],
        [("trigger", "notify")],
    )


class RecordingService(Service):
    """Records every call; optionally fails or waits on a gate"""

    def __init__(self, name, calls, result=None, error=None, gate=None):
        self.name = name
        self.calls = calls
        self.result = result
        self.error = error
        self.gate = gate
        self.entered = asyncio.Event() if gate is not None else None

    async def execute(self, config, previous_data):
        self.calls.append((self.name, dict(config), previous_data))
        if self.gate is not None:
            self.entered.set()
            await self.gate.wait()
        if self.error:
            return ServiceResult.fail(self.error)
        return ServiceResult.ok(self.result if self.result is not None else {"from": self.name})


class FakeClock:
    """Injectable clock returning aware UTC datetimes"""

    def __init__(self, start=None):
        self.now = start or datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)
        return self.now


@pytest.fixture
def calls():
    return []


@pytest.fixture
def registry(calls):
    registry = ServiceRegistry(default_timeout=5.0)
    registry.register("notify", RecordingService("notify", calls))
    registry.register("weather", RecordingService("weather", calls, result={"temperature": 31, "city": "Berlin"}))
    registry.register("broken", RecordingService("broken", calls, error="boom"))
    return registry


@pytest.fixture
def clock():
    return FakeClock()
