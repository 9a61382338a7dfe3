"""
Exception hierarchy for the automation runtime
"""
from typing import Optional


class WorkflowError(Exception):
    """Base class for all runtime errors"""
    code = "workflow_error"


class GraphError(WorkflowError):
    """Malformed workflow graph"""
    code = "graph_error"


class NoTriggerError(GraphError):
    """The graph has no trigger node and cannot run"""
    code = "no_trigger"

    def __init__(self, message: str = "No trigger node found"):
        super().__init__(message)


class DanglingEdgeError(GraphError):
    """An edge references a node that does not exist"""
    code = "dangling_edge"

    def __init__(self, edge_id: str, node_id: str):
        self.edge_id = edge_id
        self.node_id = node_id
        super().__init__(f"Edge '{edge_id}' references unknown node '{node_id}'")


class GraphValidationError(GraphError):
    """The graph payload failed structural validation"""
    code = "invalid_graph"


class EngineError(WorkflowError):
    """Node cannot be executed as configured"""
    code = "engine_error"


class MissingConfigError(EngineError):
    """A required node configuration key is absent"""
    code = "missing_config"

    def __init__(self, node_id: str, key: str, message: str = None):
        self.node_id = node_id
        self.key = key
        super().__init__(message or f"Node '{node_id}' is missing required config '{key}'")


class InvalidConfigError(EngineError):
    """A node configuration value has the wrong shape"""
    code = "invalid_config"

    def __init__(self, node_id: str, message: str):
        self.node_id = node_id
        super().__init__(f"Node '{node_id}' has invalid config: {message}")


class UnknownNodeTypeError(EngineError):
    """Node type is not one of the supported kinds"""
    code = "unknown_node_type"

    def __init__(self, node_id: str, node_type: str):
        self.node_id = node_id
        self.node_type = node_type
        super().__init__(f"Unknown node type '{node_type}' for node '{node_id}'")


class UnknownCapabilityError(EngineError):
    """No service is registered under the requested capability name"""
    code = "unknown_capability"

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"No service registered for capability '{name}'")


class ServiceError(WorkflowError):
    """A capability reported failure"""
    code = "service_error"

    def __init__(self, service: str, message: str, node_label: Optional[str] = None):
        self.service = service
        self.node_label = node_label
        super().__init__(message)


class ScheduleError(WorkflowError):
    """Scheduling failure"""
    code = "schedule_error"


class WorkflowLockedError(ScheduleError):
    """The workflow already has a run in flight"""
    code = "workflow_locked"

    def __init__(self, workflow_id: str):
        self.workflow_id = workflow_id
        super().__init__(f"Workflow '{workflow_id}' is already running")


class PersistenceError(WorkflowError):
    """Schedule store failure"""
    code = "persistence_error"
