import json
import re
from typing import Any, Dict

_PLACEHOLDER_PATTERN = re.compile(r"\{\{([^}]+)\}\}")
_INDEXED_PART_PATTERN = re.compile(r"^([^\[]+)\[(\d+)\]$")


def get_nested_value(data: Dict[str, Any], path: str) -> Any:
    """
    Resolve a dotted path such as "order.items[0].name" against a variable map.
    Returns None when any segment is missing.
    """
    current: Any = data
    for part in path.split("."):
        if current is None:
            return None

        indexed = _INDEXED_PART_PATTERN.match(part)
        if indexed:
            current = current.get(indexed.group(1)) if isinstance(current, dict) else None
            if not isinstance(current, list):
                return None
            index = int(indexed.group(2))
            current = current[index] if index < len(current) else None
        elif isinstance(current, dict):
            current = current.get(part)
        else:
            return None

    return current


def stringify_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return str(value)


def interpolate_variables(text: str, variables: Dict[str, Any]) -> str:
    """
    Replace {{path}} placeholders with variable values. Unknown paths render as "".
    """
    if not text:
        return ""
    return _PLACEHOLDER_PATTERN.sub(
        lambda match: stringify_value(get_nested_value(variables, match.group(1).strip())),
        text
    )


def interpolate_structure(value: Any, variables: Dict[str, Any]) -> Any:
    """
    Interpolate every string inside a JSON-like structure. Keys and non-string leaves are kept as-is.
    """
    if isinstance(value, str):
        return interpolate_variables(value, variables)
    if isinstance(value, dict):
        return {key: interpolate_structure(item, variables) for key, item in value.items()}
    if isinstance(value, list):
        return [interpolate_structure(item, variables) for item in value]
    return value
