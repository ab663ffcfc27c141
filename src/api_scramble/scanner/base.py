"""Data models for scanned controllers.

The scanner converts a project's route declarations into these models,
and every generator (OpenAPI, Postman, mock server) reads only from them.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict

ParamSource = Literal["body", "query", "path", "none"]


class AnalyzedType(BaseModel):
    """Structural description of a declared type.

    At most one of ``items``, ``union_types`` and ``properties`` is set.
    """

    model_config = ConfigDict(frozen=True)

    type: str  # printed type name, e.g. UserDto / int / dict[str, int]
    is_array: bool = False
    is_optional: bool = False
    items: "AnalyzedType | None" = None
    properties: "list[PropertyInfo] | None" = None
    union_types: list[str] | None = None

    @property
    def kind(self) -> str:
        if self.items is not None:
            return "array"
        if self.union_types is not None:
            return "union"
        if self.properties is not None:
            return "object"
        return "primitive"


class PropertyInfo(BaseModel):
    """A declared attribute of an object type."""

    model_config = ConfigDict(frozen=True)

    name: str
    type: AnalyzedType


AnalyzedType.model_rebuild()


class ParameterDescriptor(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    type: AnalyzedType
    source: ParamSource
    embed: bool = False  # Body(embed=True)


class MethodDescriptor(BaseModel):
    """A single route handler."""

    model_config = ConfigDict(frozen=True)

    name: str
    http_method: str  # GET / POST / PUT / DELETE / PATCH
    route: str  # sub-route, path params as :name
    parameters: list[ParameterDescriptor]
    return_type: AnalyzedType
    status_code: int | None = None
    summary: str = ""

    @property
    def body_parameters(self) -> list[ParameterDescriptor]:
        return [p for p in self.parameters if p.source == "body"]

    @property
    def embeds_body(self) -> bool:
        """Several body parameters, or one with ``Body(embed=True)``."""
        body = self.body_parameters
        return len(body) > 1 or any(p.embed for p in body)

    def request_body(self) -> AnalyzedType | None:
        """The JSON body the handler reads, or None.

        An embedded body is one object keyed by parameter name; otherwise the
        single body parameter is the body itself.
        """
        body = self.body_parameters
        if not body:
            return None
        if not self.embeds_body:
            return body[0].type
        return AnalyzedType(
            type=f"Body_{self.name}",
            is_optional=all(p.type.is_optional for p in body),
            properties=[PropertyInfo(name=p.name, type=p.type) for p in body],
        )


class ControllerDescriptor(BaseModel):
    """A router with its prefix and route handlers."""

    model_config = ConfigDict(frozen=True)

    name: str
    path: str
    methods: list[MethodDescriptor]
    source_file: str = ""
