"""
Execution engine

Runs one workflow graph breadth-first from its trigger, threading each node's
output to the next through a :class:`RunContext`. The first failing node
aborts the run; the caller always gets a :class:`RunResult` with the
chronological log, even on failure.
"""
import logging
from collections import deque
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple
from uuid import uuid4

from ..exceptions import (
    DanglingEdgeError, EngineError, GraphError, ServiceError, WorkflowError
)
from ..integrations.builtin import register_builtin_services
from ..integrations.event_bus import EventBus
from ..integrations.registry import ServiceRegistry
from ..models.execution import (
    NodeResult, RunContext, RunEventType, RunResult, RunStatus
)
from ..models.node_config import (
    ActionConfig, AIConfig, DataSourceConfig, LogicConfig, TransformConfig,
    TriggerConfig, parse_node_config
)
from ..models.workflow import Node, NodeType, WorkflowGraph, find_trigger_node, outgoing_edges
from .conditions import ConditionEvaluator
from .templating import apply_mapping, get_nested_value, pick_fields, render_template


logger = logging.getLogger(__name__)


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


class ExecutionEngine:
    """Executes workflow graphs against a service registry"""

    def __init__(
        self,
        registry: Optional[ServiceRegistry] = None,
        evaluator: Optional[ConditionEvaluator] = None,
        event_bus: Optional[EventBus] = None,
        service_timeout: float = 30.0,
        conditional_branching: bool = True,
    ):
        if registry is None:
            registry = register_builtin_services(ServiceRegistry(default_timeout=service_timeout))
        self.registry = registry
        self.evaluator = evaluator or ConditionEvaluator()
        self.event_bus = event_bus
        self.service_timeout = service_timeout
        # When true a logic node whose condition is false does not enqueue its successors
        self.conditional_branching = conditional_branching

    async def run(self, graph: WorkflowGraph, workflow_id: Optional[str] = None) -> RunResult:
        """Execute ``graph`` once"""
        execution_id = f"exec-{uuid4().hex}"
        context = RunContext(execution_id=execution_id)
        result = RunResult(
            execution_id=execution_id,
            workflow_id=workflow_id,
            status=RunStatus.RUNNING,
            context=context,
        )
        logs = result.logs

        logs.append(f"Starting workflow execution (ID: {execution_id})")
        logger.info(f"Starting execution {execution_id} of workflow {workflow_id}")
        await self._publish(RunEventType.WORKFLOW_STARTED, result)

        try:
            trigger = find_trigger_node(graph)
        except GraphError as e:
            return await self._finish_failed(result, e, f"Error: {e}")

        logs.append(f"Starting from: {trigger.display_name}")

        worklist = deque([trigger])
        visited = set()

        while worklist:
            node = worklist.popleft()
            if node.id in visited:
                continue
            visited.add(node.id)

            logs.append(f"Executing: {node.display_name} ({node.type.value})")
            await self._publish(RunEventType.NODE_STARTED, result, node=node)

            node_result, failure = await self._execute(node, context)
            context.record(node.id, node_result)

            if not node_result.ok:
                result.failed_node_id = node.id
                await self._publish(RunEventType.NODE_FAILED, result, node=node, error=node_result.error)
                return await self._finish_failed(
                    result, failure,
                    f"Error: Failed to execute {node.display_name}: {node_result.error}",
                )

            logs.append(f"{node.display_name} completed")
            await self._publish(RunEventType.NODE_COMPLETED, result, node=node)

            if not self._follows_edges(node, node_result):
                logs.append(f"{node.display_name}: condition is false, downstream nodes skipped")
                await self._publish(RunEventType.NODE_BRANCH_SKIPPED, result, node=node)
                continue

            for edge in outgoing_edges(graph, node.id):
                target = graph.get_node(edge.target)
                if target is None:
                    return await self._finish_failed(
                        result, DanglingEdgeError(edge.id, edge.target),
                        f"Error: edge '{edge.id}' points to missing node '{edge.target}'",
                    )
                if target.id not in visited:
                    worklist.append(target)

        logs.append("Workflow completed successfully")
        result.status = RunStatus.COMPLETED
        result.finished_at = datetime.now(timezone.utc)
        logger.info(f"Execution {execution_id} completed ({len(context.results)} nodes)")
        await self._publish(RunEventType.WORKFLOW_COMPLETED, result)
        return result

    async def execute_node(self, node: Node, context: RunContext) -> NodeResult:
        """Execute a single node; errors come back as a failed NodeResult"""
        node_result, _ = await self._execute(node, context)
        return node_result

    async def _execute(self, node: Node, context: RunContext) -> Tuple[NodeResult, Optional[WorkflowError]]:
        try:
            data = await self._dispatch(node, context)
        except WorkflowError as e:
            logger.warning(f"Node {node.id} failed: {e}")
            return NodeResult.failure(str(e), node.id, node.type), e
        except Exception as e:
            logger.error(f"Node {node.id} raised unexpectedly: {e}", exc_info=True)
            failure = EngineError(f"Unexpected {type(e).__name__}: {e}")
            return NodeResult.failure(str(failure), node.id, node.type), failure
        return NodeResult.success(data, node.id, node.type), None

    async def _dispatch(self, node: Node, context: RunContext) -> Any:
        config = parse_node_config(node)

        if node.type == NodeType.TRIGGER:
            return self._execute_trigger(config, context)
        if node.type == NodeType.DATA_SOURCE:
            return await self._execute_data_source(node, config, context)
        if node.type == NodeType.ACTION:
            return await self._execute_action(node, config, context)
        if node.type == NodeType.LOGIC:
            return self._execute_logic(config, context)
        if node.type == NodeType.TRANSFORM:
            return self._execute_transform(config, context)
        if node.type == NodeType.AI:
            return await self._execute_ai(node, config, context)
        raise EngineError(f"Unknown node type: {node.type}")

    def _execute_trigger(self, config: TriggerConfig, context: RunContext) -> Dict[str, Any]:
        return {
            "triggered_at": _timestamp(),
            "schedule": config.schedule,
            "trigger_type": config.trigger_type,
            "execution_id": context.execution_id,
        }

    async def _call_service(self, name: str, node: Node, config: Dict[str, Any], previous_data: Any) -> Any:
        service_result = await self.registry.invoke(
            name, config, previous_data, timeout=self.service_timeout
        )
        if not service_result.success:
            raise ServiceError(name, service_result.error or f"Service {name} failed", node.display_name)
        return service_result.data

    async def _execute_data_source(
        self, node: Node, config: DataSourceConfig, context: RunContext
    ) -> Dict[str, Any]:
        data = await self._call_service(config.source, node, node.config, context.previous_data())
        return {"source": config.source, "data": data, "timestamp": _timestamp()}

    async def _execute_action(self, node: Node, config: ActionConfig, context: RunContext) -> Dict[str, Any]:
        data = await self._call_service(config.action, node, node.config, context.previous_data())
        return {"action": config.action, "result": data, "timestamp": _timestamp()}

    def _execute_logic(self, config: LogicConfig, context: RunContext) -> Dict[str, Any]:
        input_data = context.previous_data()

        if config.condition:
            outcome = self.evaluator.evaluate(config.condition, input_data)
            return {
                "type": "condition",
                "condition": config.condition,
                "result": outcome,
                "data_used": input_data,
                "timestamp": _timestamp(),
            }

        return {"type": "logic", "executed": True, "data": input_data, "timestamp": _timestamp()}

    def _execute_transform(self, config: TransformConfig, context: RunContext) -> Dict[str, Any]:
        input_data = context.previous_data()

        if config.mode == "mapping":
            return {
                "type": "transform",
                "mode": "mapping",
                "transformed": apply_mapping(config.mapping, input_data),
                "original": input_data,
                "timestamp": _timestamp(),
            }

        if config.mode == "filter":
            items = get_nested_value(input_data, config.source) if config.source else input_data
            if items is None:
                items = []
            elif not isinstance(items, list):
                items = [items]
            kept = [item for item in items if self.evaluator.evaluate(config.condition, item)]
            return {
                "type": "transform",
                "mode": "filter",
                "transformed": kept,
                "original": input_data,
                "timestamp": _timestamp(),
            }

        if config.mode == "pick":
            return {
                "type": "transform",
                "mode": "pick",
                "transformed": pick_fields(input_data, config.fields),
                "original": input_data,
                "timestamp": _timestamp(),
            }

        if config.mode == "format":
            return {
                "type": "transform",
                "mode": "format",
                "transformed": render_template(config.template, input_data),
                "original": input_data,
                "timestamp": _timestamp(),
            }

        return {"type": "transform", "input": input_data, "executed": True, "timestamp": _timestamp()}

    async def _execute_ai(self, node: Node, config: AIConfig, context: RunContext) -> Dict[str, Any]:
        input_data = context.previous_data()
        prompt = render_template(config.prompt, input_data)
        data = await self._call_service("ai", node, {**node.config, "prompt": prompt}, input_data)
        return {
            "type": "ai",
            "prompt": prompt,
            "input": input_data,
            "result": data,
            "timestamp": _timestamp(),
        }

    def _follows_edges(self, node: Node, node_result: NodeResult) -> bool:
        if not self.conditional_branching or node.type != NodeType.LOGIC:
            return True
        data = node_result.data or {}
        if data.get("type") != "condition":
            return True
        return bool(data.get("result"))

    async def _finish_failed(self, result: RunResult, failure: Optional[WorkflowError], log_line: str) -> RunResult:
        result.logs.append(log_line)
        result.status = RunStatus.FAILED
        result.failure = failure
        result.error = str(failure) if failure else log_line
        result.finished_at = datetime.now(timezone.utc)
        logger.warning(f"Execution {result.execution_id} failed: {result.error}")
        await self._publish(RunEventType.WORKFLOW_FAILED, result)
        return result

    async def _publish(self, event_type: RunEventType, result: RunResult, node: Node = None, **extra: Any):
        if self.event_bus is None:
            return
        payload = {
            "execution_id": result.execution_id,
            "workflow_id": result.workflow_id,
            **extra,
        }
        if node is not None:
            payload["node_id"] = node.id
            payload["node_type"] = node.type.value
        if event_type in (RunEventType.WORKFLOW_COMPLETED, RunEventType.WORKFLOW_FAILED):
            payload["status"] = result.status.value
            payload["error"] = result.error
        await self.event_bus.publish(event_type.value, payload)
