"""
Schema Validation - JSON Schema validation of Logging documents.

Provides the schema of a Logging parent resource and functions to validate
documents against it before they are loaded into the data model.
"""

import logging
from typing import Any, Dict, Optional, Tuple

from jsonschema import Draft7Validator, ValidationError

logger = logging.getLogger(__name__)

_STRING_MAP = {"type": "object", "additionalProperties": {"type": "string"}}

NODE_AGENT_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "required": ["name"],
    "properties": {
        "name": {"type": "string", "pattern": "^[a-z0-9]([-a-z0-9]*[a-z0-9])?$"},
        "type": {"type": "string"},
        "metadata": {
            "type": "object",
            "properties": {"labels": _STRING_MAP, "annotations": _STRING_MAP},
        },
        "fluentbit": {
            "type": "object",
            "properties": {
                "enabled": {"type": "boolean"},
                "daemonSetOverrides": {"type": "object"},
                "targetHost": {"type": "string"},
                "targetPort": {"type": "integer", "minimum": 0},
                "flush": {"type": "integer", "minimum": 0},
                "grace": {"type": "integer", "minimum": 0},
                "logLevel": {
                    "type": "string",
                    "enum": ["", "off", "error", "warn", "info", "debug", "trace"],
                },
                "coroStackSize": {"type": "integer", "minimum": 0},
                "inputTail": {"type": "object"},
                "security": {"type": "object"},
                "metrics": {"type": "object"},
                "mountPath": {"type": "string"},
                "bufferStorage": {"type": "object"},
                "filterAws": {"type": "object"},
                "forwardOptions": {"type": "object"},
                "customConfigSecret": {"type": "string"},
            },
        },
    },
}

LOGGING_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "required": ["metadata", "spec"],
    "properties": {
        "apiVersion": {"type": "string"},
        "kind": {"type": "string", "enum": ["Logging"]},
        "metadata": {
            "type": "object",
            "required": ["name"],
            "properties": {
                "name": {"type": "string", "minLength": 1},
                "labels": _STRING_MAP,
            },
        },
        "spec": {
            "type": "object",
            "properties": {
                "controlNamespace": {"type": "string"},
                "nodeAgents": {"type": "array", "items": NODE_AGENT_SCHEMA},
            },
        },
    },
}


def validate_logging_document(
    document: Dict[str, Any], schema: Optional[Dict[str, Any]] = None
) -> Tuple[bool, Optional[str]]:
    """
    Validate a Logging document against its JSON Schema.

    Node agent names must also be unique, since they are part of every
    child object's name.

    Args:
        document: The parsed Logging document
        schema: Schema to validate against (defaults to LOGGING_SCHEMA)

    Returns:
        Tuple of (is_valid, error_message)
    """
    try:
        validator = Draft7Validator(schema or LOGGING_SCHEMA)
        errors = list(validator.iter_errors(document))

        if errors:
            error_messages = []
            for error in errors:
                path = ".".join(str(p) for p in error.absolute_path) or "(root)"
                error_messages.append(f"{path}: {error.message}")
            return False, "; ".join(error_messages)

    except ValidationError as e:
        return False, f"Validation error: {str(e)}"
    except Exception as e:
        logger.error(f"Unexpected error during validation: {e}")
        return False, f"Validation failed: {str(e)}"

    spec = document.get("spec") or {}
    names = [a.get("name") for a in spec.get("nodeAgents") or []]
    duplicates = sorted({n for n in names if names.count(n) > 1})
    if duplicates:
        return False, f"spec.nodeAgents: duplicate names: {', '.join(duplicates)}"

    return True, None
