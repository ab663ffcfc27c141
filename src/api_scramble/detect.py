"""Auto-detect the host project's layout and metadata."""

import logging
import os
import tomllib
from pathlib import Path

from pydantic import BaseModel

logger = logging.getLogger(__name__)

SOURCE_CANDIDATES = ("src", "app", "lib", "source")
CONTROLLER_MARKERS = ("APIRouter(", "FastAPI(")
SKIPPED_DIRS = {".git", "__pycache__", ".venv", "venv", "node_modules", "build", "dist"}
DEFAULT_APP_NAME = "FastAPI API"
DEFAULT_APP_VERSION = "1.0.0"
DEFAULT_PORT = 8000


class ProjectStructure(BaseModel):
    root_path: Path
    source_path: str
    pyproject: dict = {}
    controller_paths: list[Path] = []

    @property
    def has_controllers(self) -> bool:
        return bool(self.controller_paths)


def detect_project_structure(root: Path | None = None) -> ProjectStructure:
    """Inspect ``root`` (default: cwd) for source dir, pyproject and routers."""
    root = Path(root or Path.cwd())
    source_path = detect_source_path(root)
    return ProjectStructure(
        root_path=root,
        source_path=source_path,
        pyproject=read_pyproject(root),
        controller_paths=find_controllers(root / source_path),
    )


def detect_source_path(root: Path) -> str:
    """First conventional source directory containing Python files."""
    for candidate in SOURCE_CANDIDATES:
        path = root / candidate
        if path.is_dir() and any(path.rglob("*.py")):
            return candidate
    return "src"


def find_controllers(directory: Path) -> list[Path]:
    """Python files that declare an APIRouter or FastAPI app."""
    if not directory.is_dir():
        return []

    controllers = []
    for path in sorted(directory.rglob("*.py")):
        if any(part in SKIPPED_DIRS for part in path.relative_to(directory).parts):
            continue
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Skipping unreadable file {path}: {e}")
            continue
        if any(marker in text for marker in CONTROLLER_MARKERS):
            controllers.append(path)
    return controllers


def read_pyproject(root: Path) -> dict:
    path = root / "pyproject.toml"
    if not path.exists():
        return {}
    try:
        with path.open("rb") as f:
            return tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        logger.warning(f"Could not parse {path}: {e}")
        return {}


def detect_port() -> int:
    try:
        return int(os.getenv("PORT", DEFAULT_PORT))
    except ValueError:
        logger.warning(f"Invalid PORT value {os.getenv('PORT')!r}, using {DEFAULT_PORT}")
        return DEFAULT_PORT


def detect_base_url() -> str:
    host = os.getenv("HOST", "localhost")
    return f"http://{host}:{detect_port()}"


def get_app_name(root: Path | None = None) -> str:
    project = read_pyproject(Path(root or Path.cwd())).get("project", {})
    return project.get("name") or DEFAULT_APP_NAME


def get_app_version(root: Path | None = None) -> str:
    project = read_pyproject(Path(root or Path.cwd())).get("project", {})
    return project.get("version") or DEFAULT_APP_VERSION
