from __future__ import annotations

from pathlib import Path

import pytest

from core.fields.loader import load_fields, parse_field_option


def test_load_fields_from_yaml_list(tmp_path: Path) -> None:
    path = tmp_path / "fields.yaml"
    path.write_text(
        """
- label: MAC Address
  value: "00:1A:2B:3C:4D:5E"
- label: Serial Number
  value: SN-001
""",
        encoding="utf-8",
    )

    collection = load_fields(path)

    assert [(field.label, field.value) for field in collection.fields] == [
        ("MAC Address", "00:1A:2B:3C:4D:5E"),
        ("Serial Number", "SN-001"),
    ]


def test_load_fields_from_json_mapping_keeps_order(tmp_path: Path) -> None:
    path = tmp_path / "fields.json"
    path.write_text('{"Zeta": "1", "Alpha": 2, "Empty": null}', encoding="utf-8")

    collection = load_fields(path)

    assert [(field.label, field.value) for field in collection.fields] == [
        ("Zeta", "1"),
        ("Alpha", "2"),
        ("Empty", ""),
    ]


def test_load_fields_rejects_scalar_document(tmp_path: Path) -> None:
    path = tmp_path / "fields.yaml"
    path.write_text("just a string\n", encoding="utf-8")

    with pytest.raises(ValueError, match="must contain a list or a mapping"):
        load_fields(path)


def test_load_fields_rejects_unknown_entry_keys(tmp_path: Path) -> None:
    path = tmp_path / "fields.yaml"
    path.write_text("- label: A\n  value: B\n  extra: C\n", encoding="utf-8")

    with pytest.raises(ValueError, match="Unknown keys"):
        load_fields(path)


def test_load_fields_reports_invalid_yaml(tmp_path: Path) -> None:
    path = tmp_path / "fields.yaml"
    path.write_text("- label: [unclosed\n", encoding="utf-8")

    with pytest.raises(ValueError, match="Invalid YAML"):
        load_fields(path)


def test_load_fields_reports_missing_file(tmp_path: Path) -> None:
    with pytest.raises(ValueError, match="not found"):
        load_fields(tmp_path / "missing.yaml")


def test_parse_field_option_splits_on_first_equals() -> None:
    assert parse_field_option("URL=https://example.com/?a=b") == (
        "URL",
        "https://example.com/?a=b",
    )
    assert parse_field_option("Empty=") == ("Empty", "")


def test_parse_field_option_requires_equals() -> None:
    with pytest.raises(ValueError, match="LABEL=VALUE"):
        parse_field_option("no separator")
