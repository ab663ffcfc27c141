"""Serialization of generated documents to JSON or YAML."""

import json
from pathlib import Path

import yaml

from api_scramble.errors import EmitError

FORMATS = ("json", "yaml")


def dump_document(document: dict, fmt: str = "json") -> str:
    """Serialize ``document``; raises EmitError on failure."""
    try:
        if fmt == "yaml":
            return yaml.safe_dump(document, sort_keys=False, allow_unicode=True)
        if fmt == "json":
            return json.dumps(document, indent=2, ensure_ascii=False)
    except (TypeError, ValueError, yaml.YAMLError) as e:
        raise EmitError(f"Failed to serialize document as {fmt}: {e}") from e
    raise EmitError(f"Unknown output format: {fmt}")


def write_document(document: dict, output: Path, fmt: str = "json") -> Path:
    """Serialize and write ``document``, creating parent directories."""
    text = dump_document(document, fmt)
    output.parent.mkdir(parents=True, exist_ok=True)
    try:
        output.write_text(text, encoding="utf-8")
    except OSError as e:
        raise EmitError(f"Failed to write {output}: {e}") from e
    return output
