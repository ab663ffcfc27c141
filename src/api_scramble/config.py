"""Options for api-scramble, loaded from YAML or pyproject.toml.

Lookup order for ``load_options``: an explicit config file, then
``scramble.yaml`` in the project root, then the ``[tool.api-scramble]``
table of ``pyproject.toml``. Unset values are filled by ``resolve_options``
from project auto-detection.
"""

import logging
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, ValidationError

from api_scramble.detect import ProjectStructure, detect_base_url, read_pyproject
from api_scramble.errors import ConfigError

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "scramble.yaml"
PYPROJECT_TABLE = "api-scramble"


class ScrambleOptions(BaseModel):
    path: str = "/docs"
    enable_mock: bool = True
    mock_prefix: str = "/scramble-mock"
    auto_export_postman: bool = False
    postman_output_path: str = "collection.json"
    base_url: str | None = None
    source_path: str | None = None
    api_title: str | None = None
    api_version: str | None = None
    api_description: str = "Generated from FastAPI routers using api-scramble"
    primary_color: str = "#00f2ff"
    theme: Literal["classic", "futuristic"] = "futuristic"
    custom_domain_icon: str = ""
    locale: str = "en_US"
    seed: int | None = None


def load_options(config_path: Path | None = None, root: Path | None = None) -> ScrambleOptions:
    """Load options from YAML/pyproject; defaults when nothing is configured.

    Raises ConfigError when the configured values are invalid.
    """
    root = Path(root or Path.cwd())
    data = {str(k).replace("-", "_"): v for k, v in _read_config_data(config_path, root).items()}
    try:
        return ScrambleOptions(**data)
    except ValidationError as e:
        raise ConfigError(f"Invalid api-scramble options: {e}") from e


def resolve_options(options: ScrambleOptions, structure: ProjectStructure) -> ScrambleOptions:
    """Fill unset options from the detected project structure."""
    project = structure.pyproject.get("project", {})
    return options.model_copy(update={
        "base_url": options.base_url or detect_base_url(),
        "source_path": str(structure.root_path / (options.source_path or structure.source_path)),
        "api_title": options.api_title or project.get("name") or "FastAPI API",
        "api_version": options.api_version or project.get("version") or "1.0.0",
    })


def _read_config_data(config_path: Path | None, root: Path) -> dict:
    path = config_path or root / CONFIG_FILENAME
    if path.exists():
        try:
            data = yaml.safe_load(path.read_text(encoding="utf-8"))
        except (OSError, yaml.YAMLError) as e:
            logger.warning(f"Could not read {path}, using default options: {e}")
            return {}
        if data is None:
            return {}
        if not isinstance(data, dict):
            logger.warning(f"{path} does not contain a mapping, using default options")
            return {}
        return data

    if config_path is not None:
        logger.warning(f"Config file not found: {config_path}, using default options")
        return {}

    tool = read_pyproject(root).get("tool", {})
    return tool.get(PYPROJECT_TABLE, {})
