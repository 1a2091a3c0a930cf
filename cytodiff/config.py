"""Configuration loading utilities for cytodiff runs."""

from __future__ import annotations

import json
import math
from dataclasses import fields
from pathlib import Path
from typing import Any

from cytodiff.core.types import DiffConfig


def load_json_config(path: str | Path) -> dict[str, Any]:
    """Load a run config from a JSON file; the root must be an object."""
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")
    if config_path.suffix.lower() != ".json":
        raise ValueError(
            f"Unsupported config format for '{config_path}'. Use a .json config file."
        )

    try:
        with open(config_path, "r", encoding="utf-8") as fh:
            data = json.load(fh)
    except json.JSONDecodeError as exc:
        raise ValueError(
            f"Invalid JSON in config '{config_path}' at line {exc.lineno}, "
            f"column {exc.colno}: {exc.msg}"
        ) from exc

    if not isinstance(data, dict):
        raise ValueError(
            f"Invalid config root in '{config_path}': expected JSON object, got {type(data).__name__}."
        )
    return data


def _as_tuple(key: str, value: Any) -> tuple[str, ...] | None:
    if value is None:
        return None
    if isinstance(value, str):
        return (value,)
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ValueError(f"Config key '{key}' must be a string or a list of strings.")
    return tuple(value)


def diff_config_from_dict(data: dict[str, Any]) -> DiffConfig:
    """Build a `DiffConfig`, rejecting keys it does not know.

    `maximum_dof` may be `null` for no upper bound.
    """
    known = {f.name for f in fields(DiffConfig)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ValueError(
            f"Unknown config key(s): {', '.join(unknown)}. Allowed: {', '.join(sorted(known))}."
        )
    kwargs = dict(data)
    if kwargs.get("maximum_dof", 0) is None:
        kwargs["maximum_dof"] = math.inf
    for key in ("must_express", "row_annotation"):
        if key in kwargs:
            kwargs[key] = _as_tuple(key, kwargs[key])
    return DiffConfig(**kwargs)


def load_diff_config(path: str | Path) -> DiffConfig:
    return diff_config_from_dict(load_json_config(path))
