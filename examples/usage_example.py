"""
autoflow usage example

Runs the weather alert graph once with a stubbed weather service, then
schedules it every minute and lets the heartbeat fire it.
"""
import asyncio
import logging
from pathlib import Path

from autoflow import ExecutionEngine, GraphParser, ServiceRegistry, ServiceResult, WorkflowScheduler
from autoflow.config import configure_logging
from autoflow.integrations import EventBus, register_builtin_services


configure_logging("INFO")
logger = logging.getLogger("autoflow.example")


async def fake_weather(config, previous_data):
    return ServiceResult.ok({"data": {"current": {"temperature_2m": 33.4}}})


def setup_engine(event_bus: EventBus) -> ExecutionEngine:
    registry = register_builtin_services(ServiceRegistry(default_timeout=10.0))
    # Replace the real HTTP call so the example works offline
    registry.register("http", fake_weather, description="Stubbed weather API")
    return ExecutionEngine(registry=registry, event_bus=event_bus)


async def example_single_run(engine: ExecutionEngine):
    print("\n=== Single run ===")
    graph = GraphParser().parse_file(str(Path(__file__).parent / "weather_alert.json"))
    result = await engine.run(graph, workflow_id="weather-alert")

    for line in result.logs:
        print(line)
    print(f"Status: {result.status.value}, nodes: {result.executed_nodes}")


async def example_schedule(engine: ExecutionEngine, event_bus: EventBus):
    print("\n=== Scheduled run ===")
    graph = GraphParser().parse_file(str(Path(__file__).parent / "weather_alert.json"))

    await event_bus.subscribe(
        "schedule.fired",
        lambda event: logger.info(f"Fired {event.payload['workflow_id']}")
    )

    scheduler = WorkflowScheduler(engine, heartbeat_interval=1.0, event_bus=event_bus)
    await scheduler.initialize()
    descriptor = await scheduler.schedule("weather-alert", "every_minute", graph)
    print(f"Next run at {descriptor.next_due_at.isoformat()}")

    # Skip the wait and fire immediately without touching the cadence
    result = await scheduler.trigger_now("weather-alert")
    print(f"Immediate run succeeded: {result.success}")

    status = await scheduler.status("weather-alert")
    print(f"Executions so far: {status.execution_count}")

    await scheduler.stop()


async def main():
    event_bus = EventBus()
    engine = setup_engine(event_bus)

    await example_single_run(engine)
    await example_schedule(engine, event_bus)


if __name__ == "__main__":
    asyncio.run(main())
