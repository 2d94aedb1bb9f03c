"""JSON schemas for the mcmeta summary payloads."""

from __future__ import annotations

from typing import Any, Dict

from jsonschema import Draft7Validator

_DATETIME = {
    "type": "string",
    "format": "date-time",
    "pattern": r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}(\.\d+)?(Z|[+-]\d{2}:\d{2})$",
}

VERSION_SCHEMA: Dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "required": [
        "id",
        "name",
        "release_target",
        "type",
        "stable",
        "data_version",
        "protocol_version",
        "data_pack_version",
        "resource_pack_version",
        "build_time",
        "release_time",
        "sha1",
    ],
    "properties": {
        "id": {"type": "string"},
        "name": {"type": "string"},
        "release_target": {"type": ["string", "null"]},
        "type": {"type": "string", "enum": ["snapshot", "release"]},
        "stable": {"type": "boolean"},
        "data_version": {"type": "number"},
        "protocol_version": {"type": "number"},
        "data_pack_version": {"type": "number"},
        "resource_pack_version": {"type": "number"},
        "build_time": _DATETIME,
        "release_time": _DATETIME,
        "sha1": {"type": "string"},
    },
}

VERSION_ARRAY_SCHEMA: Dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "array",
    "items": VERSION_SCHEMA,
}

# block id -> [{property: [allowed values]}, {property: default value}]
BLOCKS_SCHEMA: Dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "additionalProperties": {
        "type": "array",
        "items": [
            {
                "type": "object",
                "additionalProperties": {"type": "array", "items": {"type": "string"}},
            },
            {
                "type": "object",
                "additionalProperties": {"type": "string"},
            },
        ],
        "minItems": 2,
        "additionalItems": False,
    },
}


class SchemaValidationError(ValueError):
    """Payload did not match its schema."""

    def __init__(self, schema_name: str, messages: list[str]):
        self.schema_name = schema_name
        self.messages = messages
        super().__init__(f"{schema_name} validation failed: {', '.join(messages)}")


_validators = {
    "version": Draft7Validator(VERSION_SCHEMA),
    "version array": Draft7Validator(VERSION_ARRAY_SCHEMA),
    "blocks": Draft7Validator(BLOCKS_SCHEMA),
}


def _validate(schema_name: str, payload: Any) -> Any:
    errors = sorted(_validators[schema_name].iter_errors(payload), key=lambda e: [str(p) for p in e.path])
    if errors:
        raise SchemaValidationError(schema_name, [error.message for error in errors])
    return payload


def validate_version(payload: Any) -> Dict[str, Any]:
    return _validate("version", payload)


def validate_version_array(payload: Any) -> list[Dict[str, Any]]:
    return _validate("version array", payload)


def validate_blocks(payload: Any) -> Dict[str, list]:
    return _validate("blocks", payload)
