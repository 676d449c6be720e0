"""Request payload validation against the JSON Schemas shipped in ``adhours/schemas``."""

from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path
from typing import Any

from jsonschema import Draft202012Validator
from jsonschema.exceptions import best_match

from ..errors import InvalidInput


class SchemaRegistry:
    """Compiles every schema once and validates payloads by schema name.

    Failures surface as ``InvalidInput`` carrying the most relevant error,
    prefixed with the offending field.
    """

    def __init__(self, schema_dir: Path) -> None:
        self._validators = {
            path.stem: self._compile(path) for path in sorted(schema_dir.glob("*.json"))
        }

    @staticmethod
    def _compile(path: Path) -> Draft202012Validator:
        schema = json.loads(path.read_text())
        Draft202012Validator.check_schema(schema)
        return Draft202012Validator(schema, format_checker=Draft202012Validator.FORMAT_CHECKER)

    def names(self) -> list[str]:
        return sorted(self._validators)

    def validate(self, schema_name: str, payload: Any) -> None:
        validator = self._validators.get(schema_name)
        if validator is None:
            raise ValueError(f"unknown schema {schema_name}")
        error = best_match(validator.iter_errors(payload))
        if error is not None:
            field = ".".join(str(part) for part in error.absolute_path) or "request"
            raise InvalidInput(f"{field}: {error.message}")


@lru_cache(maxsize=1)
def get_schema_registry() -> SchemaRegistry:
    return SchemaRegistry(Path(__file__).resolve().parent.parent / "schemas")
