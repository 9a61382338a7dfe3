"""
autoflow command line
"""
import asyncio
import json
import sys

import click

from .config import Settings, configure_logging
from .core.engine import ExecutionEngine
from .core.parser import GraphParser
from .core.scheduler import WorkflowScheduler
from .exceptions import EngineError, GraphError, WorkflowError
from .models.node_config import parse_node_config
from .models.workflow import find_trigger_node
from .storage.sqlalchemy_repository import DatabaseManager, SQLAlchemyScheduleStore


def _load_graph(graph_file):
    try:
        return GraphParser().parse_file(graph_file)
    except GraphError as e:
        raise click.ClickException(str(e))


def _engine(settings: Settings) -> ExecutionEngine:
    return ExecutionEngine(
        service_timeout=settings.service_timeout,
        conditional_branching=settings.conditional_branching,
    )


async def _with_store(settings: Settings, action):
    db_manager = DatabaseManager(settings.database_url)
    await db_manager.initialize()
    try:
        return await action(SQLAlchemyScheduleStore(db_manager))
    finally:
        await db_manager.close()


@click.group()
@click.option('--log-level', default=None, help='Override AUTOFLOW_LOG_LEVEL')
@click.pass_context
def cli(ctx, log_level):
    """autoflow workflow runtime"""
    settings = Settings.from_env()
    if log_level:
        settings.log_level = log_level.upper()
    configure_logging(settings.log_level)
    ctx.obj = settings


@cli.command()
@click.argument('graph_file', type=click.Path(exists=True, dir_okay=False))
@click.option('--workflow-id', default=None, help='Workflow id recorded on the run')
@click.option('--json', 'as_json', is_flag=True, help='Print the full run result as JSON')
@click.pass_obj
def run(settings, graph_file, workflow_id, as_json):
    """Run a workflow graph once"""
    graph = _load_graph(graph_file)
    result = asyncio.run(_engine(settings).run(graph, workflow_id=workflow_id))

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2, default=str))
    else:
        for line in result.logs:
            click.echo(line)
    if not result.success:
        sys.exit(1)


@cli.command()
@click.argument('graph_file', type=click.Path(exists=True, dir_okay=False))
def validate(graph_file):
    """Validate a workflow graph without running it"""
    graph = _load_graph(graph_file)
    try:
        find_trigger_node(graph)
        for node in graph.nodes:
            parse_node_config(node)
    except (GraphError, EngineError) as e:
        raise click.ClickException(str(e))
    click.echo(f"Valid: {len(graph.nodes)} nodes, {len(graph.edges)} edges")


@cli.command()
@click.argument('graph_file', type=click.Path(exists=True, dir_okay=False))
@click.option('--workflow-id', required=True, help='Schedule key')
@click.option('--recurrence', default='every_minute', show_default=True, help='e.g. hourly, every_5_minutes')
@click.option('--duration', type=float, default=None, help='Stop after this many seconds')
@click.pass_obj
def schedule(settings, graph_file, workflow_id, recurrence, duration):
    """Schedule a workflow and run the heartbeat in the foreground"""
    graph = _load_graph(graph_file)

    async def _serve():
        db_manager = DatabaseManager(settings.database_url)
        await db_manager.initialize()
        scheduler = WorkflowScheduler(
            _engine(settings),
            store=SQLAlchemyScheduleStore(db_manager),
            heartbeat_interval=settings.heartbeat_seconds,
        )
        try:
            await scheduler.initialize()
            descriptor = await scheduler.schedule(workflow_id, recurrence, graph)
            click.echo(f"Scheduled {workflow_id} ({recurrence}), next run at {descriptor.next_due_at.isoformat()}")
            if duration is None:
                await asyncio.Event().wait()
            else:
                await asyncio.sleep(duration)
        finally:
            await scheduler.stop()
            await db_manager.close()

    try:
        asyncio.run(_serve())
    except WorkflowError as e:
        raise click.ClickException(str(e))
    except KeyboardInterrupt:
        click.echo("Scheduler stopped")


@cli.command()
@click.argument('workflow_id')
@click.pass_obj
def status(settings, workflow_id):
    """Show the stored schedule of a workflow"""
    descriptor = asyncio.run(_with_store(settings, lambda store: store.get(workflow_id)))
    if descriptor is None:
        raise click.ClickException(f"Workflow {workflow_id} is not scheduled")

    data = descriptor.to_dict()
    data.pop("graph")
    click.echo(json.dumps(data, indent=2))


@cli.command(name='list')
@click.option('--all', 'include_inactive', is_flag=True, help='Include inactive schedules')
@click.pass_obj
def list_schedules(settings, include_inactive):
    """List stored schedules"""
    async def _list(store):
        return await (store.list_all() if include_inactive else store.list_active())

    descriptors = asyncio.run(_with_store(settings, _list))
    if not descriptors:
        click.echo("No schedules")
    for d in descriptors:
        state = "active" if d.is_active else "inactive"
        click.echo(f"{d.workflow_id}\t{d.recurrence}\t{state}\tnext={d.next_due_at.isoformat()}\truns={d.execution_count}")


@cli.command()
@click.argument('workflow_id')
@click.pass_obj
def unschedule(settings, workflow_id):
    """Deactivate a stored schedule"""
    if not asyncio.run(_with_store(settings, lambda store: store.mark_inactive(workflow_id))):
        raise click.ClickException(f"Workflow {workflow_id} is not scheduled")
    click.echo(f"Unscheduled {workflow_id}")


@cli.command()
@click.confirmation_option(prompt='Remove every stored schedule?')
@click.pass_obj
def clear(settings):
    """Remove every stored schedule"""
    purged = asyncio.run(_with_store(settings, lambda store: store.clear()))
    click.echo(f"Cleared {purged} schedules")


@cli.command()
@click.option('--host', default=None, help='Host to bind to')
@click.option('--port', type=int, default=None, help='Port to bind to')
@click.option('--reload', is_flag=True, help='Enable auto-reload')
@click.pass_obj
def serve(settings, host, port, reload):
    """Start the API server"""
    import uvicorn

    host = host or settings.api_host
    port = port or settings.api_port
    click.echo(f"Starting API server on {host}:{port}")
    uvicorn.run(
        "autoflow.api:build_app",
        factory=True,
        host=host,
        port=port,
        reload=reload or settings.api_reload,
        log_level=settings.log_level.lower(),
    )


def main():
    """Main entry point"""
    cli()


if __name__ == '__main__':
    main()
