"""OpenAPI 3.0 transformer.

Converts scanned controllers into an OpenAPI document. Object types are
emitted once into ``components/schemas`` and referenced by ``$ref``
everywhere else.
"""

import logging
from typing import Any, Callable

from api_scramble.routing import build_path, default_status, to_openapi_path
from api_scramble.scanner.base import AnalyzedType, ControllerDescriptor, MethodDescriptor

from .mock import literal_value

logger = logging.getLogger(__name__)

REF_PREFIX = "#/components/schemas/"
DEFAULT_DESCRIPTION = "Generated from FastAPI routers using api-scramble"

# Ordered: first matching substring wins.
LEAF_SCHEMAS: list[tuple[tuple[str, ...], dict]] = [
    (("dict", "mapping"), {"type": "object"}),
    (("str",), {"type": "string"}),
    (("bool",), {"type": "boolean"}),
    (("uuid",), {"type": "string", "format": "uuid"}),
    (("datetime",), {"type": "string", "format": "date-time"}),
    (("date",), {"type": "string", "format": "date"}),
    (("int",), {"type": "integer"}),
    (("float", "decimal", "number"), {"type": "number"}),
]
LITERAL_TYPES = [(bool, "boolean"), (int, "integer"), (float, "number"), (str, "string")]


class SchemaRegistry:
    """Named schemas collected during one transform call."""

    def __init__(self):
        self.schemas: dict[str, dict] = {}

    def __contains__(self, name: str) -> bool:
        return name in self.schemas

    def ref(self, name: str) -> dict:
        return {"$ref": f"{REF_PREFIX}{name}"}

    def register(self, name: str, build: Callable[[], dict]) -> dict:
        """Register ``name`` once and return a reference to it.

        A placeholder is stored before ``build`` runs, so a type that refers
        back to itself gets a ``$ref`` instead of recursing.
        """
        if name not in self.schemas:
            self.schemas[name] = {}
            self.schemas[name] = build()
        return self.ref(name)


def to_json_schema(analyzed: AnalyzedType, registry: SchemaRegistry) -> dict:
    """Schema fragment for ``analyzed``, registering object types."""
    if analyzed.items is not None:
        return {"type": "array", "items": to_json_schema(analyzed.items, registry)}

    if analyzed.union_types is not None:
        # Members are printed names, never expanded, so they never become $refs.
        return {"oneOf": [type_to_schema(t) for t in analyzed.union_types]}

    if analyzed.properties is not None:
        name = analyzed.type or "Object"
        return registry.register(name, lambda: _object_schema(analyzed, registry))

    return _leaf_schema(analyzed.type, registry)


def type_to_schema(type_name: str) -> dict:
    """Schema for a primitive/opaque type name. Defaults to string."""
    literal = literal_value(type_name)
    if literal is not None:
        json_type = next(t for py_type, t in LITERAL_TYPES if isinstance(literal, py_type))
        return {"type": json_type, "enum": [literal]}

    lower = type_name.lower()
    if lower in ("any", "typing.any", "object"):
        return {}
    for keys, schema in LEAF_SCHEMAS:
        if any(k in lower for k in keys):
            return dict(schema)
    return {"type": "string"}


def _leaf_schema(type_name: str, registry: SchemaRegistry) -> dict:
    if type_name in registry:
        return registry.ref(type_name)
    return type_to_schema(type_name)


def _object_schema(analyzed: AnalyzedType, registry: SchemaRegistry) -> dict:
    properties = {}
    required = []
    for prop in analyzed.properties or []:
        properties[prop.name] = to_json_schema(prop.type, registry)
        if not prop.type.is_optional:
            required.append(prop.name)

    schema: dict[str, Any] = {"type": "object", "properties": properties}
    if required:
        schema["required"] = required
    return schema


class OpenApiTransformer:
    """Builds OpenAPI 3.0.0 documents from scanned controllers."""

    def __init__(self, base_url: str = "http://localhost:8000"):
        self.base_url = base_url

    def transform(
        self,
        controllers: list[ControllerDescriptor],
        title: str = "FastAPI API",
        version: str = "1.0.0",
        base_url: str | None = None,
        description: str = DEFAULT_DESCRIPTION,
    ) -> dict:
        """Return the OpenAPI document as a plain dict."""
        registry = SchemaRegistry()
        base_url = base_url or self.base_url
        paths: dict[str, dict] = {}

        for controller in controllers:
            for method in controller.methods:
                path = to_openapi_path(build_path(controller.path, method.route))
                operation = self._create_operation(controller, method, path, registry, base_url)
                paths.setdefault(path, {})[method.http_method.lower()] = operation

        logger.info(f"OpenAPI document built: {len(paths)} path(s), {len(registry.schemas)} schema(s)")
        return {
            "openapi": "3.0.0",
            "info": {
                "title": title,
                "version": version,
                "description": description,
            },
            "servers": [{"url": base_url}],
            "paths": paths,
            "components": {"schemas": registry.schemas},
        }

    def _create_operation(
        self,
        controller: ControllerDescriptor,
        method: MethodDescriptor,
        path: str,
        registry: SchemaRegistry,
        base_url: str,
    ) -> dict:
        operation: dict[str, Any] = {
            "summary": method.name,
            "operationId": method.name,
            "tags": [controller.name],
        }
        if method.summary:
            operation["description"] = method.summary

        body = method.request_body()
        if body is not None:
            # Embedded bodies are inlined; their name is only unique per handler.
            schema = _object_schema(body, registry) if method.embeds_body else to_json_schema(body, registry)
            operation["requestBody"] = {
                "required": not body.is_optional,
                "content": {"application/json": {"schema": schema}},
            }

        parameters = []
        for param in method.parameters:
            if param.source == "query":
                # Object query params are flattened one entry per property.
                if param.type.properties is not None:
                    for prop in param.type.properties:
                        parameters.append({
                            "name": prop.name,
                            "in": "query",
                            "required": not prop.type.is_optional,
                            "schema": to_json_schema(prop.type, registry),
                        })
                else:
                    parameters.append({
                        "name": param.name,
                        "in": "query",
                        "required": not param.type.is_optional,
                        "schema": to_json_schema(param.type, registry),
                    })
            elif param.source == "path":
                parameters.append({
                    "name": param.name,
                    "in": "path",
                    "required": True,
                    "schema": to_json_schema(param.type, registry),
                })

        if parameters:
            operation["parameters"] = parameters

        status = default_status(method.http_method, method.status_code)
        operation["responses"] = {str(status): self._create_response(method, status, registry)}
        operation["x-code-samples"] = generate_code_samples(
            method.http_method, f"{base_url.rstrip('/')}{path}", "requestBody" in operation
        )
        return operation

    def _create_response(self, method: MethodDescriptor, status: int, registry: SchemaRegistry) -> dict:
        if status == 204 or method.return_type.type == "None":
            return {"description": "No Content" if status == 204 else "Success"}
        return {
            "description": "Success",
            "content": {
                "application/json": {"schema": to_json_schema(method.return_type, registry)},
            },
        }


def generate_code_samples(http_method: str, url: str, has_body: bool) -> list[dict]:
    """curl / Python requests / JavaScript fetch snippets for one operation."""
    verb = http_method.upper()

    curl = f'curl -X {verb} "{url}" \\\n  -H "Content-Type: application/json"'
    if has_body:
        curl += " \\\n  -d '{}'"

    python = f'import requests\n\nresponse = requests.{verb.lower()}("{url}"'
    python += ", json={})" if has_body else ")"
    python += "\nprint(response.json())"

    js_body = ",\n  body: JSON.stringify({})" if has_body else ""
    javascript = (
        f"fetch('{url}', {{\n"
        f"  method: '{verb}',\n"
        f"  headers: {{ 'Content-Type': 'application/json' }}{js_body},\n"
        f"}})\n"
        f"  .then(response => response.json())\n"
        f"  .then(data => console.log(data));"
    )

    return [
        {"lang": "curl", "source": curl},
        {"lang": "python", "source": python},
        {"lang": "javascript", "source": javascript},
    ]
