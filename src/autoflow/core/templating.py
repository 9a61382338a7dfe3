"""
Dot-path lookups and placeholder rendering shared by transform and ai nodes
"""
import json
import re
from typing import Any, Dict, Optional


PLACEHOLDER = re.compile(r"\{\{\s*([\w.]+)\s*\}\}")

_MISSING = object()


def get_nested_value(obj: Any, path: str, default: Any = None) -> Any:
    """Resolve ``a.b.0.c`` against nested mappings and lists"""
    if not path:
        return obj

    current = obj
    for key in path.split("."):
        if isinstance(current, dict):
            current = current.get(key, _MISSING)
        elif isinstance(current, (list, tuple)) and key.isdigit():
            index = int(key)
            current = current[index] if index < len(current) else _MISSING
        else:
            current = _MISSING

        if current is _MISSING:
            return default
    return current


def has_path(obj: Any, path: str) -> bool:
    return get_nested_value(obj, path, _MISSING) is not _MISSING


def _stringify(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False, default=str)
    return str(value)


def render_template(template: str, data: Any) -> str:
    """Substitute ``{{field}}`` and ``{{nested.field}}`` from ``data``.

    Unresolved placeholders are left verbatim.
    """
    if not template or data is None:
        return template or ""

    def replace(match: "re.Match") -> str:
        value = get_nested_value(data, match.group(1), _MISSING)
        if value is _MISSING or value is None:
            return match.group(0)
        return _stringify(value)

    return PLACEHOLDER.sub(replace, template)


def apply_mapping(mapping: Dict[str, Any], data: Any) -> Dict[str, Any]:
    """Build a new object from ``$.path`` references; other values are copied as literals"""
    transformed = {}
    for key, value in mapping.items():
        if isinstance(value, str) and value.startswith("$."):
            transformed[key] = get_nested_value(data, value[2:])
        elif value == "$":
            transformed[key] = data
        else:
            transformed[key] = value
    return transformed


def pick_fields(data: Any, fields) -> Dict[str, Optional[Any]]:
    return {path: get_nested_value(data, path) for path in fields}
