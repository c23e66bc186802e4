"""
Configuration Loader (``gls_config.loader``).

Responsibility
--------------
Loads YAML files and parses them into the typed ``gls_config.schema``
dataclasses.  Runtime code calls ``gls_config.get_active_config()``
instead of this module.

Invariants enforced
-------------------
* Unknown keys are rejected (a typo never silently falls back to a default).
* Every parsed object is a frozen dataclass from ``schema.py``.
* ``compute_checksum`` is deterministic for identical merged input.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown section or key  -> ``ValueError``.
* Invalid value  -> ``ValueError`` from the schema ``__post_init__``.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import fields
from pathlib import Path
from typing import Any

import yaml

from gls_config.schema import (
    DatabaseSettings,
    GlsSettings,
    LoggingSettings,
    WorkflowSettings,
)

_SECTIONS: dict[str, type] = {
    "database": DatabaseSettings,
    "workflow": WorkflowSettings,
    "logging": LoggingSettings,
}


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the top level is not a mapping.
    """
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top level must be a mapping")
    return data


def merge_config(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Section-wise merge: keys in ``override`` replace keys in ``base``."""
    merged: dict[str, Any] = {k: dict(v or {}) for k, v in base.items()}
    for section, values in override.items():
        merged.setdefault(section, {}).update(values or {})
    return merged


def compute_checksum(data: dict[str, Any]) -> str:
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def _parse_section(name: str, cls: type, values: dict[str, Any]) -> Any:
    known = {f.name for f in fields(cls)}
    unknown = sorted(set(values) - known)
    if unknown:
        raise ValueError(f"Unknown key(s) in section '{name}': {', '.join(unknown)}")
    return cls(**values)


def parse_settings(data: dict[str, Any]) -> GlsSettings:
    """Build a ``GlsSettings`` from a merged config dict."""
    unknown = sorted(set(data) - set(_SECTIONS))
    if unknown:
        raise ValueError(f"Unknown configuration section(s): {', '.join(unknown)}")
    sections = {
        name: _parse_section(name, cls, data.get(name) or {})
        for name, cls in _SECTIONS.items()
    }
    return GlsSettings(checksum=compute_checksum(data), **sections)
