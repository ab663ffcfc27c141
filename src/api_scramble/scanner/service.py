"""Controller scanner that statically reads FastAPI route declarations.

Every ``*.py`` file under the source directory is parsed with ``ast``; the
host application is never imported. A module-level ``APIRouter(...)`` or
``FastAPI(...)`` assignment is a controller, and functions decorated with
``@<router>.get/post/put/delete/patch(...)`` are its methods.
"""

import ast
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path

from api_scramble.errors import ScanError
from api_scramble.routing import build_path

from .base import ControllerDescriptor, MethodDescriptor, ParameterDescriptor
from .reflector import ClassIndex, TypeReflector, call_has_default, simple_name, subscript_args

logger = logging.getLogger(__name__)

HTTP_METHODS = ("get", "post", "put", "delete", "patch")
ROUTER_FACTORIES = {"APIRouter", "FastAPI"}
SKIPPED_DIRS = {".git", "__pycache__", ".venv", "venv", "node_modules", "build", "dist", "site-packages", ".tox"}

# Parameter marker -> binding source
MARKERS = {
    "Body": "body",
    "Form": "body",
    "File": "body",
    "Query": "query",
    "Path": "path",
    "Depends": "none",
    "Security": "none",
    "Header": "none",
    "Cookie": "none",
}
NO_BINDING_TYPES = {"Request", "Response", "BackgroundTasks", "WebSocket", "HTTPConnection"}
PATH_PARAM_RE = re.compile(r"\{(\w+)(?::\w+)?\}")
STATUS_ATTR_RE = re.compile(r"HTTP_(\d{3})")


@dataclass
class _Module:
    path: Path
    tree: ast.Module

    @property
    def name(self) -> str:
        return self.path.parent.name if self.path.stem == "__init__" else self.path.stem


@dataclass
class _Router:
    module: _Module
    var: str
    factory: str = "APIRouter"
    prefix: str = ""
    tags: list[str] = field(default_factory=list)


class ScannerService:
    """Builds ControllerDescriptors from a FastAPI source tree."""

    def scan_controllers(self, source_path: str | Path) -> list[ControllerDescriptor]:
        """Scan ``source_path`` recursively.

        Returns an empty list when the directory is missing or any file fails
        to parse; a partial route table is never returned.
        """
        root = Path(source_path)
        logger.info(f"Scanning directory: {root.resolve()}")

        if not root.is_dir():
            logger.warning(f"Source directory not found: {root}")
            return []

        try:
            modules = self._parse_modules(root)
        except ScanError as e:
            logger.error(f"Scan aborted, {e}")
            return []
        logger.info(f"Loaded {len(modules)} Python file(s)")

        index = ClassIndex()
        aliases: dict[str, ast.expr] = {}
        for module in modules:
            index.add_module(module.tree, str(module.path))
            aliases.update(_find_aliases(module.tree))
        reflector = TypeReflector(index)

        routers = [r for m in modules for r in _find_routers(m)]
        mounts = _find_mounts(modules, routers)

        controllers = []
        for router in routers:
            controller = self._build_controller(router, mounts, reflector, aliases)
            # An application object that only mounts routers is not a controller.
            if controller.methods or router.factory != "FastAPI":
                controllers.append(controller)
                logger.info(f"  - {controller.name} ({len(controller.methods)} endpoint(s))")

        if not controllers:
            logger.warning(f"No controllers found in {root}. Please check your source_path config.")
        else:
            logger.info(f"Found {len(controllers)} controller(s)")
        return controllers

    def _parse_modules(self, root: Path) -> list[_Module]:
        modules = []
        for path in sorted(root.rglob("*.py")):
            if any(part in SKIPPED_DIRS for part in path.relative_to(root).parts):
                continue
            try:
                text = path.read_text(encoding="utf-8")
                tree = ast.parse(text, filename=str(path))
            except SyntaxError as e:
                raise ScanError(path, f"SyntaxError: {e.msg} (line {e.lineno})") from e
            except (OSError, UnicodeDecodeError) as e:
                raise ScanError(path, str(e)) from e
            modules.append(_Module(path=path, tree=tree))
        return modules

    def _build_controller(
        self,
        router: _Router,
        mounts: dict[tuple[str, str], tuple[str, list[str]]],
        reflector: TypeReflector,
        aliases: dict[str, ast.expr],
    ) -> ControllerDescriptor:
        mount_prefix, mount_tags = mounts.get((router.module.name, router.var), ("", []))
        tags = router.tags or mount_tags
        if tags:
            name = tags[0]
        elif router.var in ("router", "app"):
            name = router.module.name
        else:
            name = router.var

        methods = []
        for node in router.module.tree.body:
            if not isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef)):
                continue
            for decorator in node.decorator_list:
                verb = _route_verb(decorator, router.var)
                if verb:
                    methods.append(self._build_method(node, decorator, verb, reflector, aliases))

        return ControllerDescriptor(
            name=name,
            path=_normalize_route(_join_prefix(mount_prefix, router.prefix)),
            methods=methods,
            source_file=str(router.module.path),
        )

    def _build_method(
        self,
        func: ast.FunctionDef | ast.AsyncFunctionDef,
        decorator: ast.Call,
        verb: str,
        reflector: TypeReflector,
        aliases: dict[str, ast.expr],
    ) -> MethodDescriptor:
        raw_route = _decorator_path(decorator)
        path_params = set(PATH_PARAM_RE.findall(raw_route))

        parameters = []
        for arg, default in _function_args(func):
            if arg.arg in ("self", "cls"):
                continue
            parameters.append(self._build_parameter(arg, default, path_params, reflector, aliases))

        return_annotation = func.returns
        response_model = _keyword(decorator, "response_model")
        if response_model is not None and not _is_none_constant(response_model):
            return_annotation = response_model

        docstring = ast.get_docstring(func) or ""
        return MethodDescriptor(
            name=func.name,
            http_method=verb.upper(),
            route=_normalize_route(raw_route),
            parameters=parameters,
            return_type=reflector.reflect(_resolve_alias(return_annotation, aliases)),
            status_code=_status_code(_keyword(decorator, "status_code")),
            summary=docstring.strip().split("\n")[0],
        )

    def _build_parameter(
        self,
        arg: ast.arg,
        default: ast.expr | None,
        path_params: set[str],
        reflector: TypeReflector,
        aliases: dict[str, ast.expr],
    ) -> ParameterDescriptor:
        annotation = _resolve_alias(arg.annotation, aliases)
        marker = None

        if isinstance(annotation, ast.Subscript) and simple_name(annotation.value) == "Annotated":
            args = subscript_args(annotation)
            annotation = args[0]
            for meta in args[1:]:
                if isinstance(meta, ast.Call) and simple_name(meta.func) in MARKERS:
                    marker = meta
        if marker is None and isinstance(default, ast.Call) and simple_name(default.func) in MARKERS:
            marker = default

        if marker is not None:
            optional = call_has_default(marker) or (default is not None and default is not marker)
        else:
            optional = default is not None and not _is_ellipsis(default)

        analyzed = reflector.reflect(annotation, optional)

        if marker is not None:
            source = MARKERS[simple_name(marker.func)]
            # Depends() on a model reads the model's fields from the query string.
            if _is_class_dependency(marker) and analyzed.kind == "object":
                source = "query"
        elif arg.arg in path_params:
            source = "path"
        elif annotation is not None and simple_name(annotation) in NO_BINDING_TYPES:
            source = "none"
        elif analyzed.kind == "object" or (analyzed.kind == "array" and analyzed.items.kind == "object"):
            source = "body"
        else:
            source = "query"

        embed = marker is not None and source == "body" and _is_true(_keyword(marker, "embed"))
        return ParameterDescriptor(name=arg.arg, type=analyzed, source=source, embed=embed)


def _find_routers(module: _Module) -> list[_Router]:
    routers = []
    for node in module.tree.body:
        if isinstance(node, ast.Assign) and len(node.targets) == 1:
            target, value = node.targets[0], node.value
        elif isinstance(node, ast.AnnAssign) and node.value is not None:
            target, value = node.target, node.value
        else:
            continue
        if not isinstance(target, ast.Name) or not isinstance(value, ast.Call):
            continue
        if simple_name(value.func) not in ROUTER_FACTORIES:
            continue
        routers.append(_Router(
            module=module,
            var=target.id,
            factory=simple_name(value.func),
            prefix=_string_keyword(value, "prefix"),
            tags=_string_list_keyword(value, "tags"),
        ))
    return routers


def _find_mounts(modules: list[_Module], routers: list[_Router]) -> dict[tuple[str, str], tuple[str, list[str]]]:
    """Map (module, router var) to the prefix/tags of its include_router call."""
    prefixes = {(r.module.name, r.var): r.prefix for r in routers}
    mounts: dict[tuple[str, str], tuple[str, list[str]]] = {}

    for module in modules:
        imports = _imported_names(module.tree)
        for node in ast.walk(module.tree):
            if not (isinstance(node, ast.Call) and isinstance(node.func, ast.Attribute)):
                continue
            if node.func.attr != "include_router" or not node.args:
                continue

            target = node.args[0]
            if isinstance(target, ast.Attribute) and isinstance(target.value, ast.Name):
                key = (imports.get(target.value.id, target.value.id), target.attr)
            elif isinstance(target, ast.Name):
                qualified = imports.get(target.id, "")
                if "." in qualified:
                    module_name, var = qualified.rsplit(".", 1)
                    key = (module_name, var)
                else:
                    key = (module.name, target.id)
            else:
                continue

            parent_prefix = ""
            if isinstance(node.func.value, ast.Name):
                parent_prefix = prefixes.get((module.name, node.func.value.id), "")
            prefix = _join_prefix(parent_prefix, _string_keyword(node, "prefix"))
            mounts.setdefault(key, (prefix, _string_list_keyword(node, "tags")))

    return mounts


def _imported_names(tree: ast.Module) -> dict[str, str]:
    """Local name -> last module component (or ``module.name`` for objects).

    ``from app.routers import users`` gives ``users -> users`` and
    ``from app.routers.users import router as users_router`` gives
    ``users_router -> users.router``.
    """
    names = {}
    for node in tree.body:
        if isinstance(node, ast.ImportFrom) and node.module:
            module_tail = node.module.rsplit(".", 1)[-1]
            for alias in node.names:
                local = alias.asname or alias.name
                if alias.name in ("router", "app") or alias.asname:
                    names[local] = f"{module_tail}.{alias.name}"
                else:
                    names[local] = alias.name
        elif isinstance(node, ast.Import):
            for alias in node.names:
                names[alias.asname or alias.name] = alias.name.rsplit(".", 1)[-1]
    return names


def _find_aliases(tree: ast.Module) -> dict[str, ast.expr]:
    """Module-level ``Name = Annotated[...]`` type aliases."""
    aliases = {}
    for node in tree.body:
        if (
            isinstance(node, ast.Assign)
            and len(node.targets) == 1
            and isinstance(node.targets[0], ast.Name)
            and isinstance(node.value, ast.Subscript)
            and simple_name(node.value.value) == "Annotated"
        ):
            aliases[node.targets[0].id] = node.value
    return aliases


def _resolve_alias(annotation: ast.expr | None, aliases: dict[str, ast.expr]) -> ast.expr | None:
    if isinstance(annotation, ast.Name) and annotation.id in aliases:
        return aliases[annotation.id]
    return annotation


def _route_verb(decorator: ast.expr, router_var: str) -> str | None:
    if not isinstance(decorator, ast.Call) or not isinstance(decorator.func, ast.Attribute):
        return None
    owner = decorator.func.value
    if not isinstance(owner, ast.Name) or owner.id != router_var:
        return None
    return decorator.func.attr if decorator.func.attr in HTTP_METHODS else None


def _function_args(func: ast.FunctionDef | ast.AsyncFunctionDef) -> list[tuple[ast.arg, ast.expr | None]]:
    args = func.args
    positional = args.posonlyargs + args.args
    defaults = [None] * (len(positional) - len(args.defaults)) + list(args.defaults)
    pairs = list(zip(positional, defaults))
    pairs.extend(zip(args.kwonlyargs, args.kw_defaults))
    return pairs


def _decorator_path(decorator: ast.Call) -> str:
    if decorator.args and isinstance(decorator.args[0], ast.Constant) and isinstance(decorator.args[0].value, str):
        return decorator.args[0].value
    return _string_keyword(decorator, "path")


def _keyword(call: ast.Call, name: str) -> ast.expr | None:
    for kw in call.keywords:
        if kw.arg == name:
            return kw.value
    return None


def _string_keyword(call: ast.Call, name: str) -> str:
    value = _keyword(call, name)
    if isinstance(value, ast.Constant) and isinstance(value.value, str):
        return value.value
    return ""


def _string_list_keyword(call: ast.Call, name: str) -> list[str]:
    value = _keyword(call, name)
    if not isinstance(value, (ast.List, ast.Tuple)):
        return []
    return [e.value for e in value.elts if isinstance(e, ast.Constant) and isinstance(e.value, str)]


def _status_code(value: ast.expr | None) -> int | None:
    if isinstance(value, ast.Constant) and isinstance(value.value, int):
        return value.value
    if isinstance(value, ast.Attribute):
        match = STATUS_ATTR_RE.match(value.attr)
        if match:
            return int(match.group(1))
    return None


def _join_prefix(*parts: str) -> str:
    if not any(parts):
        return ""
    return build_path(*parts)


def _normalize_route(path: str) -> str:
    """FastAPI ``{name}`` / ``{name:converter}`` params -> ``:name``."""
    return PATH_PARAM_RE.sub(r":\1", path)


def _is_class_dependency(marker: ast.Call) -> bool:
    """A bare ``Depends()``: the dependency is the annotated class itself."""
    if simple_name(marker.func) != "Depends" or marker.args:
        return False
    return all(kw.arg == "use_cache" for kw in marker.keywords)


def _is_true(node: ast.expr | None) -> bool:
    return isinstance(node, ast.Constant) and node.value is True


def _is_ellipsis(node: ast.expr) -> bool:
    return isinstance(node, ast.Constant) and node.value is Ellipsis


def _is_none_constant(node: ast.expr) -> bool:
    return isinstance(node, ast.Constant) and node.value is None
