"""Route table built from scanned controllers.

Route paths keep path parameters as ``:name`` segments. The mock server
matches requests against them and the OpenAPI emitter converts them to
``{name}`` form.
"""

import re

from pydantic import BaseModel, ConfigDict

from api_scramble.scanner.base import ControllerDescriptor, MethodDescriptor

PARAM_MARKER = ":"


def build_path(prefix: str, route: str) -> str:
    """Join a controller prefix and a method route into ``/a/b`` form."""
    parts = [p for p in (prefix, route) if p]
    return "/" + re.sub(r"/+", "/", "/".join(parts)).strip("/")


def split_segments(path: str) -> list[str]:
    return [s for s in path.split("/") if s]


def match_path(pattern: str, path: str) -> bool:
    """Segment-wise match where ``:name`` segments match any single segment."""
    pattern_parts = split_segments(pattern)
    path_parts = split_segments(path)

    if len(pattern_parts) != len(path_parts):
        return False

    for expected, actual in zip(pattern_parts, path_parts):
        if expected.startswith(PARAM_MARKER):
            continue
        if expected != actual:
            return False
    return True


def to_openapi_path(path: str) -> str:
    """``/users/:id`` -> ``/users/{id}``."""
    segments = [
        f"{{{s[1:]}}}" if s.startswith(PARAM_MARKER) else s
        for s in split_segments(path)
    ]
    return "/" + "/".join(segments)


def path_param_names(path: str) -> list[str]:
    return [s[1:] for s in split_segments(path) if s.startswith(PARAM_MARKER)]


def default_status(http_method: str, explicit: int | None = None) -> int:
    """Status a handler answers with: explicit code, else by verb."""
    if explicit is not None:
        return explicit
    method = http_method.upper()
    if method == "POST":
        return 201
    if method == "DELETE":
        return 204
    return 200


class RouteMatch(BaseModel):
    model_config = ConfigDict(frozen=True)

    controller: ControllerDescriptor
    method: MethodDescriptor
    path: str

    @property
    def status_code(self) -> int:
        return default_status(self.method.http_method, self.method.status_code)


class RouteTable:
    """Flat, ordered list of every scanned route."""

    def __init__(self, routes: list[RouteMatch] | None = None):
        self.routes = routes or []

    @classmethod
    def from_controllers(cls, controllers: list[ControllerDescriptor]) -> "RouteTable":
        routes = [
            RouteMatch(controller=c, method=m, path=build_path(c.path, m.route))
            for c in controllers
            for m in c.methods
        ]
        return cls(routes)

    def find(self, http_method: str, path: str) -> RouteMatch | None:
        """First route (in scan order) matching verb and path, or None."""
        method = http_method.upper()
        for route in self.routes:
            if route.method.http_method == method and match_path(route.path, path):
                return route
        return None

    def __len__(self) -> int:
        return len(self.routes)

    def __iter__(self):
        return iter(self.routes)
