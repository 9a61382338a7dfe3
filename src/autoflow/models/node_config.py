"""
Typed node configuration variants

Each node type carries its own configuration shape. ``parse_node_config``
turns the open ``config`` mapping of a :class:`Node` into one of the variants
below, raising a typed ``EngineError`` when required keys are missing or a
value has the wrong shape. Keys that a capability consumes but the engine does
not understand are kept in ``options`` and handed to the service untouched.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple, Union

from ..exceptions import InvalidConfigError, MissingConfigError
from .workflow import Node, NodeType


TRANSFORM_MODES = ("mapping", "filter", "pick", "format")


@dataclass(frozen=True)
class TriggerConfig:
    trigger_type: str = "scheduled"
    schedule: Optional[str] = None
    options: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class DataSourceConfig:
    source: str
    options: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ActionConfig:
    action: str
    options: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class LogicConfig:
    condition: Optional[str] = None


@dataclass(frozen=True)
class TransformConfig:
    mode: Optional[str] = None
    mapping: Optional[Dict[str, Any]] = None
    source: Optional[str] = None
    condition: Optional[str] = None
    fields: Tuple[str, ...] = ()
    template: Optional[str] = None


@dataclass(frozen=True)
class AIConfig:
    prompt: str = ""
    options: Dict[str, Any] = field(default_factory=dict)


NodeConfig = Union[
    TriggerConfig, DataSourceConfig, ActionConfig, LogicConfig, TransformConfig, AIConfig
]


def _optional_str(node: Node, config: Dict[str, Any], key: str) -> Optional[str]:
    value = config.get(key)
    if value is not None and not isinstance(value, str):
        raise InvalidConfigError(node.id, f"'{key}' must be a string")
    return value


def _required_str(node: Node, config: Dict[str, Any], key: str) -> str:
    value = config.get(key)
    if value is None or value == "":
        raise MissingConfigError(node.id, key)
    if not isinstance(value, str):
        raise InvalidConfigError(node.id, f"'{key}' must be a string")
    return value


def _reject_unknown(node: Node, config: Dict[str, Any], allowed: Tuple[str, ...]) -> None:
    unknown = sorted(set(config) - set(allowed))
    if unknown:
        raise InvalidConfigError(node.id, f"unknown keys {unknown}")


def _parse_trigger(node: Node, config: Dict[str, Any]) -> TriggerConfig:
    trigger_type = _optional_str(node, config, "triggerType") or "scheduled"
    schedule = _optional_str(node, config, "schedule")
    options = {k: v for k, v in config.items() if k not in ("triggerType", "schedule")}
    return TriggerConfig(trigger_type=trigger_type, schedule=schedule, options=options)


def _parse_data_source(node: Node, config: Dict[str, Any]) -> DataSourceConfig:
    source = _required_str(node, config, "source")
    return DataSourceConfig(source=source, options={k: v for k, v in config.items() if k != "source"})


def _parse_action(node: Node, config: Dict[str, Any]) -> ActionConfig:
    action = _required_str(node, config, "action")
    return ActionConfig(action=action, options={k: v for k, v in config.items() if k != "action"})


def _parse_logic(node: Node, config: Dict[str, Any]) -> LogicConfig:
    _reject_unknown(node, config, ("condition",))
    return LogicConfig(condition=_optional_str(node, config, "condition"))


def _parse_transform(node: Node, config: Dict[str, Any]) -> TransformConfig:
    _reject_unknown(node, config, ("mode", "mapping", "source", "condition", "fields", "template"))

    mapping = config.get("mapping")
    if mapping is not None and not isinstance(mapping, dict):
        raise InvalidConfigError(node.id, "'mapping' must be an object")

    fields = config.get("fields", ())
    if isinstance(fields, str):
        fields = (fields,)
    if not isinstance(fields, (list, tuple)) or not all(isinstance(f, str) for f in fields):
        raise InvalidConfigError(node.id, "'fields' must be a list of strings")

    mode = _optional_str(node, config, "mode")
    if mode is None and mapping is not None:
        mode = "mapping"
    if mode is not None and mode not in TRANSFORM_MODES:
        raise InvalidConfigError(node.id, f"unsupported transform mode '{mode}'")

    if mode == "mapping" and mapping is None:
        raise MissingConfigError(node.id, "mapping")
    if mode == "filter" and not config.get("condition"):
        raise MissingConfigError(node.id, "condition")
    if mode == "pick" and not fields:
        raise MissingConfigError(node.id, "fields")
    if mode == "format" and not config.get("template"):
        raise MissingConfigError(node.id, "template")

    return TransformConfig(
        mode=mode,
        mapping=mapping,
        source=_optional_str(node, config, "source"),
        condition=_optional_str(node, config, "condition"),
        fields=tuple(fields),
        template=_optional_str(node, config, "template"),
    )


def _parse_ai(node: Node, config: Dict[str, Any]) -> AIConfig:
    prompt = _optional_str(node, config, "prompt") or ""
    return AIConfig(prompt=prompt, options={k: v for k, v in config.items() if k != "prompt"})


_PARSERS = {
    NodeType.TRIGGER: _parse_trigger,
    NodeType.DATA_SOURCE: _parse_data_source,
    NodeType.ACTION: _parse_action,
    NodeType.LOGIC: _parse_logic,
    NodeType.TRANSFORM: _parse_transform,
    NodeType.AI: _parse_ai,
}


def parse_node_config(node: Node) -> NodeConfig:
    """Build the typed configuration for ``node``"""
    config = node.config or {}
    if not isinstance(config, dict):
        raise InvalidConfigError(node.id, "config must be an object")
    return _PARSERS[node.type](node, config)
