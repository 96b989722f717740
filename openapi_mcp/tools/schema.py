"""
Schema Builder.

Turns an Operation's parameters and request body into the JSON Schema a
tool advertises, plus the agent-facing description and usage examples.

The same schema is used in three places:
    - listed/described to clients
    - validated against at call time (Argument Marshaler)
    - previewed in dry-run mode
so every consumer sees exactly one contract per operation.

Schema shape:
    {
        "type": "object",
        "properties": {
            "<param>": {..., "x-parameter-in": "query"},
            "requestBody": {...}
        },
        "required": [...]
    }

Properties carry ``x-`` serialization metadata (location, style, explode,
original name) so the marshaler can reproduce the wire format.
"""

from __future__ import annotations

import copy
import json
import re
from typing import Any

from openapi_mcp.spec.models import (
    Operation,
    Parameter,
    ParameterLocation,
    RequestBody,
    is_json_media_type,
)

REQUEST_BODY_PROPERTY = "requestBody"
CONFIRMATION_FLAG = "__confirmed"

_COPIED_KEYWORDS = (
    "type",
    "format",
    "description",
    "enum",
    "default",
    "example",
    "minimum",
    "maximum",
    "exclusiveMinimum",
    "exclusiveMaximum",
    "readOnly",
    "minLength",
    "maxLength",
    "pattern",
    "minItems",
    "maxItems",
    "uniqueItems",
    "const",
)

NAME_FORMATS = ("lower", "upper", "snake", "camel")


# =============================================================================
# Input Schema
# =============================================================================


def build_input_schema(
    parameters: tuple[Parameter, ...] | list[Parameter],
    request_body: RequestBody | None = None,
) -> dict[str, Any]:
    """
    Build the tool input schema.

    Args:
        parameters: Operation parameters, in declaration order
        request_body: Optional request body descriptor

    Returns:
        JSON Schema object; one property per parameter, requestBody last
    """
    properties: dict[str, Any] = {}
    required: list[str] = []

    for param in parameters:
        prop = extract_property(param.schema)
        prop["description"] = param.description or _synthesized_description(param)
        prop["x-parameter-in"] = param.location.value
        if param.property_name != param.name:
            prop["x-parameter-name"] = param.name
        if param.schema_type in ("array", "object"):
            prop["x-style"] = param.effective_style
            prop["x-explode"] = bool(param.explode)
        if param.deprecated:
            prop["deprecated"] = True

        properties[param.property_name] = prop
        if param.required:
            required.append(param.property_name)

    if request_body is not None and request_body.content:
        properties[REQUEST_BODY_PROPERTY] = _body_property(request_body)
        if request_body.required:
            required.append(REQUEST_BODY_PROPERTY)

    return {
        "type": "object",
        "properties": properties,
        "required": required,
    }


def build_operation_schema(operation: Operation) -> dict[str, Any]:
    return build_input_schema(operation.parameters, operation.request_body)


def extract_property(schema: Any) -> dict[str, Any]:
    """
    Convert an OpenAPI schema fragment into a JSON Schema property.

    Handles allOf (merged), oneOf/anyOf (kept), OpenAPI 3.0 ``nullable``,
    nested object properties and array items. Unresolved references are
    treated as free-form objects.
    """
    if not isinstance(schema, dict):
        return {}

    if "$ref" in schema:
        return {"type": "object", "description": f"See {schema['$ref']}"}

    if "allOf" in schema:
        own = {k: v for k, v in schema.items() if k != "allOf"}
        schema = _merge_all_of([own, *schema["allOf"]])

    prop: dict[str, Any] = {}

    for key in ("oneOf", "anyOf"):
        if isinstance(schema.get(key), list):
            prop[key] = [extract_property(s) for s in schema[key]]

    for key in _COPIED_KEYWORDS:
        if key in schema:
            prop[key] = copy.deepcopy(schema[key])
    _convert_exclusive_bounds(prop)

    if isinstance(schema.get("discriminator"), dict) and schema["discriminator"].get("propertyName"):
        prop["x-discriminator"] = schema["discriminator"]["propertyName"]

    if isinstance(schema.get("properties"), dict):
        prop["properties"] = {
            name: extract_property(sub) for name, sub in schema["properties"].items()
        }
        prop.setdefault("type", "object")

    if isinstance(schema.get("required"), list) and schema["required"]:
        prop["required"] = list(schema["required"])

    if isinstance(schema.get("additionalProperties"), dict):
        prop["additionalProperties"] = extract_property(schema["additionalProperties"])
    elif isinstance(schema.get("additionalProperties"), bool):
        prop["additionalProperties"] = schema["additionalProperties"]

    if "items" in schema:
        prop["items"] = extract_property(schema["items"])

    if schema.get("nullable") and isinstance(prop.get("type"), str):
        prop["type"] = [prop["type"], "null"]

    return prop


def _merge_all_of(members: Any) -> dict[str, Any]:
    merged: dict[str, Any] = {}
    if not isinstance(members, list):
        return merged

    for member in members:
        if not isinstance(member, dict):
            continue
        if isinstance(member.get("allOf"), list):
            own = {k: v for k, v in member.items() if k != "allOf"}
            member = _merge_all_of([own, *member["allOf"]])
        for key, value in member.items():
            if key == "properties" and isinstance(value, dict):
                merged.setdefault("properties", {}).update(value)
            elif key == "required" and isinstance(value, list):
                merged.setdefault("required", [])
                merged["required"].extend(v for v in value if v not in merged["required"])
            else:
                merged.setdefault(key, value)
    return merged


def _convert_exclusive_bounds(prop: dict[str, Any]) -> None:
    # OpenAPI 3.0 booleans become Draft 7 numeric bounds.
    for bound, exclusive in (("minimum", "exclusiveMinimum"), ("maximum", "exclusiveMaximum")):
        flag = prop.get(exclusive)
        if not isinstance(flag, bool):
            continue
        if flag and bound in prop:
            prop[exclusive] = prop.pop(bound)
        else:
            del prop[exclusive]


def _without_read_only(prop: dict[str, Any]) -> dict[str, Any]:
    """Remove response-only properties from a request body schema."""
    if isinstance(prop.get("properties"), dict):
        read_only = {name for name, sub in prop["properties"].items() if sub.get("readOnly") is True}
        prop["properties"] = {
            name: _without_read_only(sub)
            for name, sub in prop["properties"].items()
            if name not in read_only
        }
        if "required" in prop:
            prop["required"] = [name for name in prop["required"] if name not in read_only]
            if not prop["required"]:
                del prop["required"]

    if isinstance(prop.get("items"), dict):
        prop["items"] = _without_read_only(prop["items"])

    for key in ("oneOf", "anyOf"):
        if isinstance(prop.get(key), list):
            prop[key] = [_without_read_only(s) for s in prop[key]]
    return prop


def _synthesized_description(param: Parameter) -> str:
    requirement = "required" if param.required else "optional"
    return f"{param.location.value.capitalize()} parameter '{param.name}' ({requirement})."


def _body_property(request_body: RequestBody) -> dict[str, Any]:
    json_schema = request_body.json_schema()
    if json_schema is not None:
        prop = _without_read_only(extract_property(json_schema)) or {"type": "object"}
        prop["description"] = request_body.description or prop.get("description") or "The JSON request body."
        return prop

    media_type = request_body.select_media_type() or ""
    if media_type.split(";")[0].lower() in ("application/x-www-form-urlencoded", "multipart/form-data"):
        prop = _without_read_only(extract_property(request_body.content[media_type]))
        prop.setdefault("type", "object")
    else:
        prop = {"type": "string"}

    prop["description"] = request_body.description or prop.get("description") or f"The {media_type} request body."
    prop["x-media-type"] = media_type
    return prop


# =============================================================================
# Examples
# =============================================================================


def generate_example_value(prop: dict[str, Any]) -> Any:
    """
    Produce a plausible example for a schema property.

    Precedence: first enum value, declared example, declared default,
    then a value derived from type and format.
    """
    if not isinstance(prop, dict):
        return None

    if prop.get("enum"):
        return prop["enum"][0]
    if "example" in prop:
        return prop["example"]
    if "default" in prop:
        return prop["default"]

    for key in ("oneOf", "anyOf"):
        if prop.get(key):
            return generate_example_value(prop[key][0])

    schema_type = prop.get("type")
    if isinstance(schema_type, list):
        schema_type = next((t for t in schema_type if t != "null"), None)

    if schema_type == "string":
        return {
            "email": "user@example.com",
            "uri": "https://example.com",
            "url": "https://example.com",
            "date": "2024-01-01",
            "date-time": "2024-01-01T00:00:00Z",
            "uuid": "123e4567-e89b-12d3-a456-426614174000",
        }.get(prop.get("format", ""), "example_string")
    if schema_type == "number":
        return 123.45
    if schema_type == "integer":
        return 123
    if schema_type == "boolean":
        return True
    if schema_type == "array":
        return [generate_example_value(prop.get("items") or {"type": "string"})]
    if schema_type == "object" or "properties" in prop:
        properties = prop.get("properties") or {}
        if not properties:
            return {"key": "value"}
        required = prop.get("required") or list(properties)
        return {name: generate_example_value(properties[name]) for name in required if name in properties}
    return None


def build_example_arguments(schema: dict[str, Any], *, include_optional: bool = False) -> dict[str, Any]:
    """Example arguments covering the required properties of an input schema."""
    properties = schema.get("properties") or {}
    names = list(properties) if include_optional else list(schema.get("required") or [])
    return {name: generate_example_value(properties[name]) for name in names if name in properties}


# =============================================================================
# Descriptions
# =============================================================================


def build_tool_description(
    operation: Operation,
    schema: dict[str, Any],
    *,
    tool_name: str | None = None,
    confirm_dangerous_actions: bool = True,
) -> str:
    """
    Agent-oriented description of an operation tool.

    Sections: description text, AUTHENTICATION, PARAMETERS (required and
    optional), EXAMPLE call, and a SAFETY note for mutating methods.
    """
    name = tool_name or operation.operation_id
    lines: list[str] = []

    text = operation.full_description
    if operation.deprecated:
        text = f"DEPRECATED: {text}"
    lines.append(text)

    if operation.security:
        schemes = sorted({scheme for req in operation.security for scheme in req})
        if schemes:
            lines.append("")
            lines.append(f"AUTHENTICATION: Requires {', '.join(schemes)} credentials.")

    properties = schema.get("properties") or {}
    required = set(schema.get("required") or [])
    if properties:
        lines.append("")
        lines.append("PARAMETERS:")
        for label, names in (
            ("Required", [n for n in properties if n in required]),
            ("Optional", [n for n in properties if n not in required]),
        ):
            if not names:
                continue
            lines.append(f"- {label}:")
            for prop_name in names:
                lines.append(f"  - {prop_name}{_describe_property(properties[prop_name])}")

    example = build_example_arguments(schema)
    lines.append("")
    lines.append(f"EXAMPLE: call {name} {json.dumps(example)}")

    if operation.is_mutating and confirm_dangerous_actions:
        lines.append("")
        lines.append(
            f"SAFETY: {operation.method.upper()} changes data. The first call returns a "
            f"confirmation request; repeat it with {{\"{CONFIRMATION_FLAG}\": true}} to proceed."
        )

    return "\n".join(lines)


def _describe_property(prop: dict[str, Any]) -> str:
    details = []
    schema_type = prop.get("type")
    if isinstance(schema_type, list):
        schema_type = "|".join(schema_type)
    if schema_type:
        details.append(str(schema_type))
    if prop.get("format"):
        details.append(prop["format"])
    if prop.get("enum"):
        details.append("one of: " + ", ".join(str(v) for v in prop["enum"]))

    text = f" ({'; '.join(details)})" if details else ""
    if prop.get("description"):
        text += f": {prop['description']}"
    return text


# =============================================================================
# Tool Names
# =============================================================================


def format_tool_name(name_format: str | None, name: str) -> str:
    """
    Apply a naming convention to an operation identifier.

    Examples:
        lower: getPetById -> getpetbyid
        upper: getPetById -> GETPETBYID
        snake: getPetById -> get_pet_by_id
        camel: get_pet-by id -> getPetById
    """
    if not name_format:
        return name

    if name_format == "lower":
        return name.lower()
    if name_format == "upper":
        return name.upper()
    if name_format == "snake":
        snake = re.sub(r"(?<=[a-z0-9])([A-Z])", r"_\1", name)
        snake = re.sub(r"[-\s]+", "_", snake)
        return re.sub(r"_+", "_", snake).lower()
    if name_format == "camel":
        parts = [p for p in re.split(r"[_\-\s]+", name) if p]
        if not parts:
            return name
        head = parts[0][:1].lower() + parts[0][1:]
        return head + "".join(p[:1].upper() + p[1:] for p in parts[1:])

    raise ValueError(f"Unknown tool name format '{name_format}'. Use one of: {', '.join(NAME_FORMATS)}")
