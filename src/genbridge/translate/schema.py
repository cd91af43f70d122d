"""Tool declarations bridged between google-genai and plain JSON Schema."""

from __future__ import annotations

import logging
from typing import Any

from google.genai import types

from genbridge.backends.models import BackendTool

logger = logging.getLogger(__name__)

# google-genai Schema field names that differ from JSON Schema keywords.
_SCHEMA_KEYWORDS = {
    "any_of": "anyOf",
    "min_items": "minItems",
    "max_items": "maxItems",
    "min_length": "minLength",
    "max_length": "maxLength",
    "min_properties": "minProperties",
    "max_properties": "maxProperties",
    "additional_properties": "additionalProperties",
}
_DROPPED_KEYWORDS = frozenset({"property_ordering", "propertyOrdering"})


def bridge_tools(tools: Any) -> dict[str, BackendTool] | None:
    """Convert google-genai tool declarations into a backend tool map.

    Accepts ``types.Tool`` / ``types.FunctionDeclaration`` objects or dicts of
    either shape. Declarations without a name are dropped. Returns ``None``
    rather than an empty mapping when nothing survives, so callers can omit
    tool fields from the request entirely.
    """
    if not tools:
        return None

    tool_map: dict[str, BackendTool] = {}
    for declaration in _iter_declarations(tools):
        name = declaration.get("name")
        if not isinstance(name, str) or not name:
            continue
        tool_map[name] = BackendTool(
            description=declaration.get("description") or "",
            parameters=bridge_parameters(_declared_parameters(declaration)),
        )
    return tool_map or None


def bridge_parameters(schema: Any) -> dict[str, Any]:
    """Convert one parameters schema to the JSON Schema backends accept.

    Only ``object`` schemas carry ``properties``/``required``; any other
    declared type degrades to ``{"type": <lowercased>}`` and a schema without
    a type becomes ``{}``.
    """
    schema = _as_dict(schema)
    if not schema:
        return {}

    schema_type = _lower_type(schema.get("type"))
    if schema_type == "object":
        properties = schema.get("properties") or {}
        additional = schema.get(
            "additionalProperties", schema.get("additional_properties")
        )
        return {
            "type": "object",
            "properties": {
                key: _convert_property(value) for key, value in properties.items()
            },
            "required": list(schema.get("required") or []),
            "additionalProperties": additional is not False,
        }
    if schema_type:
        return {"type": schema_type}
    return {}


def to_function_declarations(
    tool_map: dict[str, BackendTool] | None,
) -> list[types.FunctionDeclaration]:
    """Rebuild google-genai declarations from a bridged tool map."""
    if not tool_map:
        return []
    return [
        types.FunctionDeclaration(
            name=name,
            description=tool.description or None,
            parameters_json_schema=tool.parameters or None,
        )
        for name, tool in tool_map.items()
    ]


def _iter_declarations(tools: Any) -> list[dict[str, Any]]:
    if not isinstance(tools, (list, tuple)):
        tools = [tools]

    declarations: list[dict[str, Any]] = []
    for tool in tools:
        data = _as_dict(tool)
        if not data:
            logger.debug("Skipping unsupported tool entry: %r", type(tool).__name__)
            continue
        nested = data.get("function_declarations", data.get("functionDeclarations"))
        if nested is not None:
            declarations.extend(_as_dict(d) for d in nested)
        elif "name" in data:
            declarations.append(data)
    return declarations


def _declared_parameters(declaration: dict[str, Any]) -> Any:
    for key in ("parameters", "parameters_json_schema", "parametersJsonSchema"):
        value = declaration.get(key)
        if value is not None:
            return value
    return None


def _convert_property(schema: Any) -> Any:
    """Convert a nested property schema, keeping its keywords."""
    schema = _as_dict(schema)
    converted: dict[str, Any] = {}
    for key, value in schema.items():
        if key in _DROPPED_KEYWORDS:
            continue
        key = _SCHEMA_KEYWORDS.get(key, key)
        if key == "type":
            value = _lower_type(value)
        elif key == "properties" and isinstance(value, dict):
            value = {k: _convert_property(v) for k, v in value.items()}
        elif key == "items":
            value = _convert_property(value)
        elif key == "anyOf" and isinstance(value, list):
            value = [_convert_property(v) for v in value]
        converted[key] = value
    return converted


def _lower_type(value: Any) -> Any:
    if isinstance(value, str):
        return value.lower()
    if isinstance(value, list):
        return [v.lower() if isinstance(v, str) else v for v in value]
    enum_value = getattr(value, "value", None)
    if isinstance(enum_value, str):
        return enum_value.lower()
    return value


def _as_dict(value: Any) -> dict[str, Any]:
    if isinstance(value, dict):
        return value
    dump = getattr(value, "model_dump", None)
    if callable(dump):
        return dump(mode="json", exclude_none=True)
    return {}
