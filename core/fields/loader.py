"""Fields file loading utilities for CLI input."""

from __future__ import annotations

from pathlib import Path

import yaml  # type: ignore[import-untyped]

from core.fields.models import FieldCollection


def load_fields(path: Path) -> FieldCollection:
    """Load a field collection from a YAML (or JSON) file.

    Accepted shapes:
    - a list of ``{"label": ..., "value": ...}`` mappings
    - a mapping of label -> value
    """

    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise ValueError(f"Fields file not found: {path}") from exc
    except yaml.YAMLError as exc:
        raise ValueError(f"Invalid YAML in fields file: {path}") from exc

    if isinstance(raw, dict):
        pairs = [(_as_text(label), _as_text(value)) for label, value in raw.items()]
    elif isinstance(raw, list):
        pairs = [_entry_to_pair(entry, path) for entry in raw]
    else:
        raise ValueError(f"Fields file must contain a list or a mapping: {path}")

    return FieldCollection.from_pairs(pairs)


def parse_field_option(raw: str) -> tuple[str, str]:
    """Split a ``LABEL=VALUE`` option on the first ``=``."""

    if "=" not in raw:
        raise ValueError(f"Field option must look like LABEL=VALUE: {raw!r}")
    label, value = raw.split("=", 1)
    return label, value


def _entry_to_pair(entry: object, path: Path) -> tuple[str, str]:
    if not isinstance(entry, dict):
        raise ValueError(f"Fields file list entries must be mappings: {path}")
    unknown = set(entry) - {"label", "value"}
    if unknown:
        raise ValueError(f"Unknown keys {sorted(map(str, unknown))} in fields file: {path}")
    return _as_text(entry.get("label")), _as_text(entry.get("value"))


def _as_text(value: object) -> str:
    if value is None:
        return ""
    return str(value)
