from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import yaml

from plan_timeline.core.errors import PlanLoadError

_YAML_SUFFIXES = {".yaml", ".yml"}


def load_plan(path: str) -> dict[str, Any]:
    """Load a YAML/JSON plan file.

    Returns a dict with keys: schema_version, timestamp, items, __file__.
    ``items`` may be written as a list or as a mapping keyed by item id; the
    mapping form is turned into a list in document order. Nothing else is
    coerced; the validator owns shape checking.
    """

    p = Path(path)
    file = str(p)
    if not p.exists():
        raise PlanLoadError(code="E_FILE_NOT_FOUND", message="file does not exist", file=file)

    suffix = p.suffix.lower()
    if suffix not in _YAML_SUFFIXES and suffix != ".json":
        raise PlanLoadError(
            code="E_UNSUPPORTED_FORMAT",
            message="supported formats are .yaml/.yml and .json",
            file=file,
        )

    try:
        raw_text = p.read_text(encoding="utf-8")
    except OSError as e:  # pragma: no cover
        raise PlanLoadError(code="E_FILE_READ", message=str(e), file=file) from e

    if suffix in _YAML_SUFFIXES:
        try:
            data = yaml.safe_load(raw_text)
        except yaml.YAMLError as e:
            raise PlanLoadError(code="E_YAML_PARSE", message=str(e), file=file) from e
    else:
        try:
            data = json.loads(raw_text)
        except json.JSONDecodeError as e:
            raise PlanLoadError(code="E_JSON_PARSE", message=str(e), file=file) from e

    if not isinstance(data, dict):
        raise PlanLoadError(
            code="E_INVALID_TOP_LEVEL",
            message="top-level document must be a mapping/object",
            file=file,
        )

    return {
        "schema_version": data.get("schema_version"),
        "timestamp": data.get("timestamp"),
        "items": _items_as_list(data.get("items")),
        "__file__": file,
    }


def _items_as_list(raw: Any) -> Any:
    if not isinstance(raw, dict):
        return raw

    items: list[Any] = []
    for key, value in raw.items():
        if isinstance(value, dict) and "id" not in value:
            value = {"id": key, **value}
        items.append(value)
    return items
