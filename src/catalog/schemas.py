"""JSON Schema contracts for registry metadata payloads.

Payloads are validated with jsonschema Draft7 before they are decoded, so the
parser only has to deal with well-typed structures.
"""

from __future__ import annotations

from typing import Any, Dict

from jsonschema import Draft7Validator

from common.errors import CatalogSchemaError

_AUTHOR = {
    "anyOf": [
        {"type": "string"},
        {
            "type": "object",
            "properties": {
                "name": {"type": ["string", "null"]},
                "url": {"type": ["string", "null"]},
            },
        },
        {"type": "null"},
    ]
}

_DIST_TAGS = {
    "type": "object",
    "properties": {"latest": {"type": "string"}},
}

ALL_PACKAGES_SCHEMA: Dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "patternProperties": {
        "^[^_]": {
            "type": "object",
            "required": ["name"],
            "properties": {
                "name": {"type": "string", "minLength": 1},
                "description": {"type": ["string", "null"]},
                "author": _AUTHOR,
                "dist-tags": _DIST_TAGS,
            },
        }
    },
}

PACKAGE_DETAIL_SCHEMA: Dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "required": ["name"],
    "properties": {
        "name": {"type": "string", "minLength": 1},
        "description": {"type": ["string", "null"]},
        "author": _AUTHOR,
        "dist-tags": _DIST_TAGS,
        "time": {"type": "object", "additionalProperties": {"type": "string"}},
        "versions": {
            "type": "object",
            "additionalProperties": {
                "type": "object",
                "properties": {
                    "displayName": {"type": ["string", "null"]},
                    "description": {"type": ["string", "null"]},
                    "changelog": {"type": ["string", "null"]},
                    "documentationUrl": {"type": ["string", "null"]},
                    "changelogUrl": {"type": ["string", "null"]},
                    "dependencies": {
                        "type": "object",
                        "additionalProperties": {"type": "string"},
                    },
                },
            },
        },
    },
}


def validate_payload(schema: Dict[str, Any], data: Any, what: str = "payload") -> None:
    """Validate ``data`` strictly and raise on the first error.

    Args:
        schema: Draft-07 JSON Schema dict.
        data: Decoded JSON payload.
        what: Short label used in the error message.

    Raises:
        CatalogSchemaError: if the payload does not match the schema.
    """
    validator = Draft7Validator(schema)
    errs = sorted(validator.iter_errors(data), key=lambda e: [str(p) for p in e.absolute_path])
    if errs:
        first = errs[0]
        path = "/".join(str(p) for p in first.absolute_path)
        raise CatalogSchemaError(f"Invalid {what} at '{path}': {first.message}")
