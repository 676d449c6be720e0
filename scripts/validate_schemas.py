"""Checks the JSON schemas and the packaged server config."""

from pathlib import Path
import json

from jsonschema import Draft202012Validator

from adhours.config import get_server_config


SCHEMA_DIR = Path(__file__).resolve().parent.parent / "adhours" / "schemas"


def validate() -> None:
    for schema in SCHEMA_DIR.glob("*.json"):
        data = json.loads(schema.read_text())
        Draft202012Validator.check_schema(data)
    config = get_server_config()
    print(f"schemas ok; storage backend {config.storage.backend}")


if __name__ == "__main__":
    validate()
