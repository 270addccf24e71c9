"""
Schema Validation - JSON Schema checks for attribute values.

Attribute policies are rendered as Draft 7 JSON schemas; these helpers
validate the schemas themselves and the concrete values of a plan.
"""

from typing import Any, Dict, List, Optional, Tuple

from jsonschema import Draft7Validator


def validate_schema(schema: Dict[str, Any]) -> Tuple[bool, Optional[str]]:
    """
    Validate that a schema is a valid Draft 7 JSON Schema.

    Args:
        schema: The schema to validate

    Returns:
        Tuple of (is_valid, error_message)
    """
    try:
        Draft7Validator.check_schema(schema)
        return True, None
    except Exception as e:
        return False, f"Invalid schema: {str(e)}"


def iter_schema_errors(
    values: Dict[str, Any], schema: Dict[str, Any]
) -> List[Tuple[str, str]]:
    """
    Collect every schema violation for a set of attribute values.

    Args:
        values: Attribute name to concrete value
        schema: The JSON Schema to validate against

    Returns:
        List of (path, message) tuples, sorted by path. The path is the
        dotted attribute path or "(root)".
    """
    validator = Draft7Validator(schema, format_checker=Draft7Validator.FORMAT_CHECKER)

    errors = []
    for error in validator.iter_errors(values):
        path = ".".join(str(p) for p in error.absolute_path) or "(root)"
        errors.append((path, error.message))

    return sorted(errors)
