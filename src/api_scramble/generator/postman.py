"""Postman Collection v2.1 generator.

One folder per controller, one request per route. Request bodies and query
strings are filled with mock data.
"""

import json

from api_scramble.routing import build_path, path_param_names, split_segments
from api_scramble.scanner.base import ControllerDescriptor, MethodDescriptor

from .mock import MockGenerator

SCHEMA_URL = "https://schema.getpostman.com/json/collection/v2.1.0/collection.json"
DEFAULT_DESCRIPTION = "Generated from FastAPI routers using api-scramble"


class PostmanCollectionGenerator:
    """Generates a Postman collection from scanned controllers."""

    def __init__(self, base_url: str = "{{baseUrl}}", mock_generator: MockGenerator | None = None):
        self.base_url = base_url
        self.mock_generator = mock_generator or MockGenerator()

    def generate_collection(
        self,
        controllers: list[ControllerDescriptor],
        collection_name: str = "FastAPI API",
        base_url_value: str = "http://localhost:8000",
    ) -> dict:
        """Return the collection as a plain dict."""
        items = []
        for controller in controllers:
            items.append({
                "name": controller.name,
                "item": [
                    {
                        "name": f"{method.http_method} {method.name}",
                        "request": self._create_request(controller, method),
                    }
                    for method in controller.methods
                ],
            })

        return {
            "info": {
                "name": collection_name,
                "description": DEFAULT_DESCRIPTION,
                "schema": SCHEMA_URL,
            },
            "item": items,
            "variable": [
                {"key": "baseUrl", "value": base_url_value, "type": "string"},
            ],
        }

    def _create_request(self, controller: ControllerDescriptor, method: MethodDescriptor) -> dict:
        full_path = build_path(controller.path, method.route)
        segments = split_segments(full_path)

        url: dict = {
            "raw": f"{self.base_url}/{'/'.join(segments)}",
            "host": [self.base_url],
            "path": segments,
        }
        variables = path_param_names(full_path)
        if variables:
            url["variable"] = [{"key": name, "value": ""} for name in variables]

        request: dict = {
            "method": method.http_method,
            "header": [
                {"key": "Content-Type", "value": "application/json", "type": "text"},
            ],
            "url": url,
        }

        body = method.request_body()
        if body is not None and body.kind in ("object", "array"):
            mock_data = self.mock_generator.generate(body)
            request["body"] = {"mode": "raw", "raw": json.dumps(mock_data, indent=2)}

        query = self._query_entries(method)
        if query:
            url["query"] = query
            url["raw"] += "?" + "&".join(f"{q['key']}={q['value']}" for q in query)

        return request

    def _query_entries(self, method: MethodDescriptor) -> list[dict]:
        entries = []
        for param in method.parameters:
            if param.source != "query":
                continue
            if param.type.properties is not None:
                mock_data = self.mock_generator.generate(param.type)
                entries.extend({"key": k, "value": _query_value(v)} for k, v in mock_data.items())
            else:
                value = self.mock_generator.generate(param.type, param.name)
                entries.append({"key": param.name, "value": _query_value(value)})
        return entries


def _query_value(value) -> str:
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, (list, dict)):
        return json.dumps(value)
    return str(value)
