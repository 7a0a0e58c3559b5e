"""Lenient decoding for JSON columns whose stored shape is not guaranteed."""

import json
from typing import Any, Optional, TypeVar

import structlog
from pydantic import BaseModel, ValidationError

logger = structlog.get_logger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


def parse_loose_object(
    value: Any, model: type[ModelT], field: str
) -> Optional[ModelT]:
    """Decode ``value`` into ``model``; malformed data becomes None with a warning."""
    if value is None or isinstance(value, model):
        return value
    if isinstance(value, str):
        if not value.strip():
            return None
        try:
            value = json.loads(value)
        except ValueError:
            logger.warning("malformed_json_field", field=field, reason="not valid JSON")
            return None
    if not isinstance(value, dict):
        logger.warning(
            "malformed_json_field", field=field, reason=f"expected object, got {type(value).__name__}"
        )
        return None
    try:
        return model.model_validate(value)
    except ValidationError as e:
        logger.warning("malformed_json_field", field=field, errors=e.error_count())
        return None


def parse_loose_list(value: Any, model: type[ModelT], field: str) -> list[ModelT]:
    """Decode a list of objects, dropping entries that do not fit ``model``."""
    if value is None:
        return []
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except ValueError:
            logger.warning("malformed_json_field", field=field, reason="not valid JSON")
            return []
    if not isinstance(value, list):
        logger.warning("malformed_json_field", field=field, reason="expected list")
        return []
    parsed = []
    for item in value:
        entry = parse_loose_object(item, model, field)
        if entry is not None:
            parsed.append(entry)
    return parsed
