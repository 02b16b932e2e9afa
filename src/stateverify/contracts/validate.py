from __future__ import annotations

import json
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any

import jsonschema

from ..errors import VerifyError
from ..exit_codes import ERR_INTERNAL

REPORT_SCHEMA = "stateverify.report.v1"
RULES_SCHEMA = "stateverify.rules.v1"


@dataclass(frozen=True)
class CatalogEntry:
    name: str
    version: int
    file: str


def schemas_root() -> Path:
    return Path(__file__).resolve().parent / "schemas"


def load_catalog() -> dict[str, CatalogEntry]:
    raw = json.loads((schemas_root() / "catalog.json").read_text(encoding="utf-8"))
    entries: dict[str, CatalogEntry] = {}
    for row in raw.get("schemas", []):
        entry = CatalogEntry(name=row["name"], version=int(row["version"]), file=row["file"])
        entries[entry.name] = entry
    return entries


@lru_cache(maxsize=None)
def _load_schema(schema_name: str) -> dict[str, Any]:
    entry = load_catalog().get(schema_name)
    if entry is None:
        raise VerifyError(f"unknown schema: {schema_name}", ERR_INTERNAL)
    return json.loads((schemas_root() / entry.file).read_text(encoding="utf-8"))


def schema_errors(schema_name: str, payload: Any) -> list[str]:
    schema = _load_schema(schema_name)
    validator_cls = jsonschema.validators.validator_for(schema)
    validator = validator_cls(schema)
    errors: list[str] = []
    for err in sorted(validator.iter_errors(payload), key=lambda e: [str(p) for p in e.absolute_path]):
        pointer = "/".join(str(p) for p in err.absolute_path) or "<root>"
        errors.append(f"{pointer}: {err.message}")
    return errors


def validate(schema_name: str, payload: Any) -> dict[str, Any]:
    errors = schema_errors(schema_name, payload)
    if errors:
        raise VerifyError(f"schema validation failed for {schema_name} at {errors[0]}", ERR_INTERNAL, "schema_error")
    return payload


__all__ = ["CatalogEntry", "REPORT_SCHEMA", "RULES_SCHEMA", "load_catalog", "schema_errors", "schemas_root", "validate"]
