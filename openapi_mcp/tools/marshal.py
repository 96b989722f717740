"""
Argument Marshaler.

Maps tool arguments onto an HTTP request according to each parameter's
location and serialization style.

Validation:
    Arguments are checked against the tool input schema with jsonschema
    before anything is encoded, so a call that passes validation is exactly
    a call the marshaler can encode.

Serialization:
    path    simple style; URL-escaped; arrays comma-joined
    query   form (arrays comma-joined, repeated key when explode=true),
            spaceDelimited, pipeDelimited, deepObject (name[key]=value)
    header  stringified; arrays comma-joined
    cookie  stringified; arrays comma-joined
    body    JSON, form-urlencoded, multipart, text, or raw bytes depending
            on the selected media type

Usage:
    descriptor = marshal(operation, {"item_id": 42, "tag": ["a", "b"]})
    descriptor.url  # -> "/items/42?tag=a,b"
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import quote, urlencode

import httpx
from jsonschema import Draft7Validator

from openapi_mcp.errors import InvalidArgument, MissingPathParameter
from openapi_mcp.spec.models import (
    Operation,
    Parameter,
    ParameterLocation,
    is_json_media_type,
)
from openapi_mcp.tools.schema import (
    CONFIRMATION_FLAG,
    REQUEST_BODY_PROPERTY,
    build_operation_schema,
)

logger = logging.getLogger(__name__)

# Placeholder host used only to drive httpx's body encoders
_ENCODER_URL = "http://localhost/"


# =============================================================================
# Data Classes
# =============================================================================


@dataclass(slots=True)
class RequestDescriptor:
    """
    Fully-specified outbound request.

    Created by the marshaler with an empty base_url; the server selector and
    auth injector fill in the rest before the executor sends it.
    """

    method: str
    path: str
    base_url: str = ""
    query: list[tuple[str, str]] = field(default_factory=list)
    headers: dict[str, str] = field(default_factory=dict)
    cookies: dict[str, str] = field(default_factory=dict)
    body: bytes | None = None
    content_type: str | None = None
    ignored_arguments: list[str] = field(default_factory=list)

    @property
    def url(self) -> str:
        url = f"{self.base_url.rstrip('/')}{self.path}"
        if self.query:
            url = f"{url}?{urlencode(self.query, safe=',[]')}"
        return url


# =============================================================================
# Marshaling
# =============================================================================


def marshal(
    operation: Operation,
    arguments: dict[str, Any],
    input_schema: dict[str, Any] | None = None,
) -> RequestDescriptor:
    """
    Turn tool arguments into a request descriptor.

    Args:
        operation: Operation being invoked
        arguments: Caller-supplied arguments
        input_schema: Schema to validate against (built from the operation
            when omitted)

    Returns:
        RequestDescriptor with path, query, headers, cookies and body set

    Raises:
        MissingPathParameter: A path placeholder has no argument
        InvalidArgument: A required argument is missing or a value violates
            its declared type or enum
    """
    schema = input_schema if input_schema is not None else build_operation_schema(operation)
    arguments = _normalize_keys(operation, arguments or {})

    _check_path_parameters(operation, arguments)
    validate_arguments(schema, arguments)

    descriptor = RequestDescriptor(method=operation.method.upper(), path=operation.path)

    for param in operation.parameters:
        key = param.property_name
        if key not in arguments or arguments[key] is None:
            continue
        value = arguments[key]

        if param.location == ParameterLocation.PATH:
            encoded = quote(_serialize_simple(param, value), safe="")
            descriptor.path = descriptor.path.replace(f"{{{param.name}}}", encoded)
        elif param.location == ParameterLocation.QUERY:
            descriptor.query.extend(_serialize_query(param, value))
        elif param.location == ParameterLocation.HEADER:
            descriptor.headers[param.name] = _serialize_simple(param, value)
        elif param.location == ParameterLocation.COOKIE:
            descriptor.cookies[param.name] = _serialize_simple(param, value)

    if REQUEST_BODY_PROPERTY in arguments and operation.request_body is not None:
        _encode_body(descriptor, operation, arguments[REQUEST_BODY_PROPERTY])

    known = {p.property_name for p in operation.parameters} | {REQUEST_BODY_PROPERTY, CONFIRMATION_FLAG}
    descriptor.ignored_arguments = [k for k in arguments if k not in known]
    if descriptor.ignored_arguments:
        logger.debug(
            f"[marshal:{operation.operation_id}] Ignoring unknown arguments: "
            f"{descriptor.ignored_arguments}"
        )

    return descriptor


def validate_arguments(schema: dict[str, Any], arguments: dict[str, Any]) -> None:
    """
    Validate arguments against an input schema.

    Raises:
        InvalidArgument: With one message per violation
    """
    validator = Draft7Validator(schema)
    violations = sorted(validator.iter_errors(arguments), key=lambda e: list(e.absolute_path))
    if not violations:
        return

    messages: list[str] = []
    missing: list[str] = []
    properties = schema.get("properties") or {}

    for error in violations:
        if error.validator == "required" and not error.absolute_path:
            name = _missing_property(error)
            missing.append(name)
            prop = properties.get(name, {})
            hint = f" ({prop['type']})" if isinstance(prop.get("type"), str) else ""
            desc = f": {prop['description']}" if prop.get("description") else ""
            messages.append(f"Missing required parameter '{name}'{hint}{desc}")
        else:
            location = ".".join(str(p) for p in error.absolute_path) or "arguments"
            messages.append(f"Invalid value for '{location}': {error.message}")

    raise InvalidArgument("; ".join(messages), errors=messages, missing=missing)


def _missing_property(error: Any) -> str:
    # jsonschema reports "'name' is a required property"
    message: str = error.message
    if message.startswith("'") and "'" in message[1:]:
        return message[1 : message.index("'", 1)]
    return message


def _normalize_keys(operation: Operation, arguments: dict[str, Any]) -> dict[str, Any]:
    """Drop None values and accept original names in place of escaped ones."""
    normalized = {k: v for k, v in arguments.items() if v is not None}
    for param in operation.parameters:
        if param.property_name == param.name:
            continue
        if param.property_name not in normalized and param.name in normalized:
            normalized[param.property_name] = normalized.pop(param.name)
    return normalized


def _check_path_parameters(operation: Operation, arguments: dict[str, Any]) -> None:
    missing = [
        p.property_name
        for p in operation.parameters_in(ParameterLocation.PATH)
        if arguments.get(p.property_name) is None
    ]
    if missing:
        messages = [f"Missing required path parameter '{name}'" for name in missing]
        raise MissingPathParameter("; ".join(messages), errors=messages, missing=missing)


# =============================================================================
# Value Serialization
# =============================================================================


def stringify(value: Any, param: Parameter | None = None) -> str:
    """
    Render a scalar for the wire.

    Booleans become true/false, integer-typed floats drop their decimals,
    nested structures are JSON-encoded.
    """
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        if param is None or param.schema_type == "integer":
            return str(int(value))
    if isinstance(value, (dict, list)):
        return json.dumps(value, separators=(",", ":"))
    return str(value)


def _serialize_simple(param: Parameter, value: Any) -> str:
    if isinstance(value, list):
        return ",".join(stringify(v, _item_param(param)) for v in value)
    if isinstance(value, dict):
        if param.explode:
            return ",".join(f"{k}={stringify(v)}" for k, v in value.items())
        return ",".join(f"{k},{stringify(v)}" for k, v in value.items())
    return stringify(value, param)


def _serialize_query(param: Parameter, value: Any) -> list[tuple[str, str]]:
    style = param.effective_style

    if isinstance(value, list):
        items = [stringify(v, _item_param(param)) for v in value]
        if param.explode:
            return [(param.name, item) for item in items]
        separator = {"spaceDelimited": " ", "pipeDelimited": "|"}.get(style, ",")
        return [(param.name, separator.join(items))]

    if isinstance(value, dict):
        if style == "deepObject":
            return [(f"{param.name}[{k}]", stringify(v)) for k, v in value.items()]
        if param.explode:
            return [(k, stringify(v)) for k, v in value.items()]
        return [(param.name, ",".join(f"{k},{stringify(v)}" for k, v in value.items()))]

    return [(param.name, stringify(value, param))]


def _item_param(param: Parameter) -> Parameter | None:
    items = param.schema.get("items")
    if isinstance(items, dict) and items.get("type") == "integer":
        return Parameter(name=param.name, location=param.location, schema=items)
    return None


# =============================================================================
# Body Encoding
# =============================================================================


def _encode_body(descriptor: RequestDescriptor, operation: Operation, value: Any) -> None:
    request_body = operation.request_body
    media_type = request_body.select_media_type() if request_body else None
    if media_type is None:
        return

    base = media_type.split(";")[0].strip().lower()

    if is_json_media_type(base):
        descriptor.body = json.dumps(value).encode("utf-8")
        descriptor.content_type = media_type
    elif base == "application/x-www-form-urlencoded":
        fields = _form_fields(value)
        request = httpx.Request(descriptor.method, _ENCODER_URL, data=fields)
        descriptor.body = request.read()
        descriptor.content_type = request.headers["Content-Type"]
    elif base == "multipart/form-data":
        files = {}
        for name, field_value in _as_mapping(value).items():
            if isinstance(field_value, bytes):
                files[name] = (name, field_value, "application/octet-stream")
            else:
                files[name] = (None, _form_value(field_value))
        request = httpx.Request(descriptor.method, _ENCODER_URL, files=files)
        descriptor.body = request.read()
        descriptor.content_type = request.headers["Content-Type"]
    elif base.startswith("text/"):
        descriptor.body = (value if isinstance(value, str) else stringify(value)).encode("utf-8")
        descriptor.content_type = media_type
    else:
        if isinstance(value, bytes):
            descriptor.body = value
        elif isinstance(value, str):
            descriptor.body = value.encode("utf-8")
        else:
            descriptor.body = json.dumps(value).encode("utf-8")
        descriptor.content_type = media_type


def _as_mapping(value: Any) -> dict[str, Any]:
    if isinstance(value, dict):
        return value
    raise InvalidArgument(
        f"Invalid value for '{REQUEST_BODY_PROPERTY}': form bodies must be objects",
        errors=[f"Invalid value for '{REQUEST_BODY_PROPERTY}': expected an object"],
    )


def _form_fields(value: Any) -> dict[str, Any]:
    fields: dict[str, Any] = {}
    for name, field_value in _as_mapping(value).items():
        if isinstance(field_value, list):
            fields[name] = [_form_value(v) for v in field_value]
        else:
            fields[name] = _form_value(field_value)
    return fields


def _form_value(value: Any) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return stringify(value)
