"""Type reflector that turns annotation AST nodes into AnalyzedType trees.

Class names are resolved against a ClassIndex built from every scanned
module, so DTOs declared anywhere in the project are expanded into their
attributes. Anything the reflector cannot resolve structurally (generics,
mappings, unknown names) is kept as an opaque leaf holding the printed type.
"""

import ast
import logging

from .base import AnalyzedType, PropertyInfo

logger = logging.getLogger(__name__)

ARRAY_TYPES = {
    "list", "List", "Sequence", "MutableSequence", "Iterable", "Collection",
    "set", "Set", "frozenset", "FrozenSet", "tuple", "Tuple",
}
WRAPPER_TYPES = {"Annotated", "Required", "NotRequired", "Final", "ReadOnly"}
FIELD_FACTORIES = {"Field", "field"}
SKIPPED_MEMBERS = {"model_config"}


class ClassIndex:
    """Top-level classes of the scanned modules, keyed by simple name."""

    def __init__(self):
        self._classes: dict[str, ast.ClassDef] = {}

    def add_module(self, tree: ast.Module, source: str = "") -> None:
        for node in tree.body:
            if not isinstance(node, ast.ClassDef):
                continue
            if node.name in self._classes:
                logger.debug(f"Duplicate class {node.name} in {source}, keeping first definition")
                continue
            self._classes[node.name] = node

    def get(self, name: str) -> ast.ClassDef | None:
        return self._classes.get(name)

    def __contains__(self, name: str) -> bool:
        return name in self._classes

    def __len__(self) -> int:
        return len(self._classes)


class TypeReflector:
    """Reflects annotations into AnalyzedType, guarding against cyclic DTOs."""

    def __init__(self, index: ClassIndex | None = None):
        self.index = index or ClassIndex()
        self._active: set[str] = set()

    def reflect(self, annotation: ast.expr | None, optional: bool = False) -> AnalyzedType:
        """Describe ``annotation``. Never raises; unknown shapes become leaves."""
        if annotation is None:
            return AnalyzedType(type="Any", is_optional=optional)

        if isinstance(annotation, ast.Constant):
            if isinstance(annotation.value, str):
                return self._reflect_forward_ref(annotation.value, optional)
            if annotation.value is None:
                return AnalyzedType(type="None", is_optional=optional)

        if isinstance(annotation, ast.BinOp) and isinstance(annotation.op, ast.BitOr):
            return self._reflect_union(_flatten_bitor(annotation), annotation, optional)

        if isinstance(annotation, ast.Subscript):
            return self._reflect_subscript(annotation, optional)

        if isinstance(annotation, (ast.Name, ast.Attribute)):
            cls = self.index.get(simple_name(annotation))
            if cls is not None:
                return self._reflect_class(cls, optional)

        return AnalyzedType(type=ast.unparse(annotation), is_optional=optional)

    def _reflect_forward_ref(self, text: str, optional: bool) -> AnalyzedType:
        try:
            parsed = ast.parse(text, mode="eval").body
        except SyntaxError:
            return AnalyzedType(type=text, is_optional=optional)
        return self.reflect(parsed, optional)

    def _reflect_subscript(self, node: ast.Subscript, optional: bool) -> AnalyzedType:
        base = simple_name(node.value)
        args = subscript_args(node)

        if base in WRAPPER_TYPES and args:
            return self.reflect(args[0], optional)
        if base == "Optional" and args:
            return self._reflect_union(args, node, optional)
        if base == "Union":
            return self._reflect_union(args, node, optional)
        if base == "Literal":
            return AnalyzedType(
                type=ast.unparse(node),
                is_optional=optional,
                union_types=[ast.unparse(a) for a in args],
            )
        if base in ARRAY_TYPES and args:
            if base in ("tuple", "Tuple") and not _is_homogeneous_tuple(args):
                return AnalyzedType(type=ast.unparse(node), is_optional=optional)
            return AnalyzedType(
                type=ast.unparse(node),
                is_array=True,
                is_optional=optional,
                items=self.reflect(args[0]),
            )

        return AnalyzedType(type=ast.unparse(node), is_optional=optional)

    def _reflect_union(self, members: list[ast.expr], node: ast.expr, optional: bool) -> AnalyzedType:
        non_null = [m for m in members if not _is_none(m)]
        if not non_null:
            return AnalyzedType(type="None", is_optional=optional)
        if len(non_null) == 1:
            return self.reflect(non_null[0], optional)
        return AnalyzedType(
            type=ast.unparse(node),
            is_optional=optional,
            union_types=[ast.unparse(m) for m in non_null],
        )

    def _reflect_class(self, cls: ast.ClassDef, optional: bool) -> AnalyzedType:
        if is_enum_class(cls):
            values = _enum_values(cls)
            if not values:
                return AnalyzedType(type=cls.name, is_optional=optional)
            return AnalyzedType(type=cls.name, is_optional=optional, union_types=values)

        # Already expanding this class further up: stop here.
        if cls.name in self._active:
            return AnalyzedType(type=cls.name, is_optional=optional)

        self._active.add(cls.name)
        try:
            properties = self._extract_properties(cls)
        finally:
            self._active.discard(cls.name)

        return AnalyzedType(type=cls.name, is_optional=optional, properties=properties)

    def _extract_properties(self, cls: ast.ClassDef, lineage: frozenset[str] = frozenset()) -> list[PropertyInfo]:
        fields: dict[str, PropertyInfo] = {}

        # Inheritance cycles are cut by lineage; _active holds only the expansion path.
        lineage = lineage | {cls.name}
        for base in cls.bases:
            base_cls = self.index.get(simple_name(base))
            if base_cls is None or base_cls.name in lineage or is_enum_class(base_cls):
                continue
            for prop in self._extract_properties(base_cls, lineage):
                fields[prop.name] = prop

        total = _typed_dict_total(cls)
        for stmt in cls.body:
            if not isinstance(stmt, ast.AnnAssign) or not isinstance(stmt.target, ast.Name):
                continue
            name = stmt.target.id
            if name.startswith("_") or name in SKIPPED_MEMBERS or _is_wrapped(stmt.annotation, "ClassVar"):
                continue

            optional = has_default(stmt.value) or not total or _is_wrapped(stmt.annotation, "NotRequired")
            if _is_wrapped(stmt.annotation, "Required"):
                optional = False
            fields[name] = PropertyInfo(name=name, type=self.reflect(stmt.annotation, optional))

        return list(fields.values())


def simple_name(node: ast.expr) -> str:
    """Last dotted component of a name, e.g. ``typing.List[int]`` -> ``List``."""
    if isinstance(node, ast.Name):
        return node.id
    if isinstance(node, ast.Attribute):
        return node.attr
    if isinstance(node, ast.Subscript):
        return simple_name(node.value)
    if isinstance(node, ast.Call):
        return simple_name(node.func)
    return ""


def subscript_args(node: ast.Subscript) -> list[ast.expr]:
    if isinstance(node.slice, ast.Tuple):
        return list(node.slice.elts)
    return [node.slice]


def has_default(value: ast.expr | None) -> bool:
    """Whether a class attribute's assigned value gives it a default."""
    if value is None:
        return False
    if isinstance(value, ast.Call) and simple_name(value.func) in FIELD_FACTORIES:
        return call_has_default(value)
    return True


def call_has_default(call: ast.Call) -> bool:
    """``Field(None)`` / ``Query(default=1)`` -> True, ``Field(...)`` / ``Query()`` -> False."""
    if any(kw.arg in ("default", "default_factory") for kw in call.keywords):
        return True
    if call.args:
        first = call.args[0]
        return not (isinstance(first, ast.Constant) and first.value is Ellipsis)
    return False


def is_enum_class(cls: ast.ClassDef) -> bool:
    return any(simple_name(b).endswith(("Enum", "Flag")) for b in cls.bases)


def _enum_values(cls: ast.ClassDef) -> list[str]:
    values = []
    for stmt in cls.body:
        if not isinstance(stmt, ast.Assign) or len(stmt.targets) != 1:
            continue
        target = stmt.targets[0]
        if not isinstance(target, ast.Name) or target.id.startswith("_"):
            continue
        if isinstance(stmt.value, ast.Constant):
            values.append(repr(stmt.value.value))
        else:
            values.append(repr(target.id.lower()))
    return values


def _typed_dict_total(cls: ast.ClassDef) -> bool:
    for kw in cls.keywords:
        if kw.arg == "total" and isinstance(kw.value, ast.Constant):
            return bool(kw.value.value)
    return True


def _is_wrapped(annotation: ast.expr, wrapper: str) -> bool:
    return isinstance(annotation, ast.Subscript) and simple_name(annotation.value) == wrapper


def _is_none(node: ast.expr) -> bool:
    if isinstance(node, ast.Constant):
        return node.value is None or node.value == "None"
    return isinstance(node, ast.Name) and node.id in ("None", "NoneType")


def _is_homogeneous_tuple(args: list[ast.expr]) -> bool:
    return len(args) == 2 and isinstance(args[1], ast.Constant) and args[1].value is Ellipsis


def _flatten_bitor(node: ast.expr) -> list[ast.expr]:
    if isinstance(node, ast.BinOp) and isinstance(node.op, ast.BitOr):
        return _flatten_bitor(node.left) + _flatten_bitor(node.right)
    return [node]
