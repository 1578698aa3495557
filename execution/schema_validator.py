"""Schema validation for persisted projects.

Validates project dictionaries against their JSON Schema definition.
All validation is deterministic.
"""

import json
from functools import lru_cache
from pathlib import Path

from jsonschema import Draft202012Validator, ValidationError

from config.settings import PROJECT_SCHEMA


def load_schema(schema_path: str | Path) -> dict:
    """Load a JSON Schema file.

    Args:
        schema_path: Path to the schema file.

    Returns:
        The schema dictionary.

    Raises:
        FileNotFoundError: If the schema file does not exist.
    """
    path = Path(schema_path)
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


@lru_cache(maxsize=None)
def _validator(schema_path: str) -> Draft202012Validator:
    return Draft202012Validator(load_schema(schema_path))


def get_validation_errors(data: dict, schema_path: str | Path) -> list[str]:
    """Return all validation errors for a data dictionary.

    Args:
        data: The data to validate.
        schema_path: Path to the JSON Schema file.

    Returns:
        List of human-readable error messages. Empty if valid.
    """
    validator = _validator(str(schema_path))
    errors = sorted(validator.iter_errors(data), key=lambda e: list(e.path))
    return [
        f"{'.'.join(str(p) for p in error.absolute_path) or 'root'}: {error.message}"
        for error in errors
    ]


def validate_project(project: dict) -> bool:
    """Validate a project dictionary against the project schema.

    Also checks the history cursor, which JSON Schema cannot express.

    Raises:
        ValidationError: If validation fails (first error only).
    """
    _validator(str(PROJECT_SCHEMA)).validate(project)
    if project["current_history_index"] >= len(project["outline_history"]):
        raise ValidationError(
            f"current_history_index {project['current_history_index']} is outside "
            f"outline_history of length {len(project['outline_history'])}"
        )
    return True


def is_valid_project(project: dict) -> bool:
    """Check if a project is valid without raising exceptions."""
    try:
        validate_project(project)
        return True
    except ValidationError:
        return False
