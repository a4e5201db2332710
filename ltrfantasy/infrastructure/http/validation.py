"""Lax shape validation of API responses.

The remote API is semi-structured and its payloads vary by endpoint, so a
response passes when it is an object carrying at least one of the entity's
required fields. This is deliberately weaker than schema validation.
"""

import logging
from typing import Any, Dict, Tuple, Union

from ltrfantasy.domain.models.common import EntityType

logger = logging.getLogger(__name__)

REQUIRED_API_FIELDS: Dict[EntityType, Tuple[str, ...]] = {
    EntityType.PLAYER: ("id", "fullName", "position"),
    EntityType.TEAM: ("id", "name", "abbreviation"),
    EntityType.GAME: ("id", "homeTeam", "awayTeam", "startTime"),
    EntityType.ODDS: ("spread", "moneyline", "overUnder"),
}


def validate_api_response(data: Any, schema_type: Union[EntityType, str]) -> bool:
    """Checks that ``data`` looks like an entity of ``schema_type``.

    Args:
        data: Decoded JSON payload.
        schema_type: Entity type or its name ('PLAYER', 'TEAM', 'GAME', 'ODDS').

    Returns:
        True if ``data`` is a dict with at least one required field.
    """
    if not isinstance(data, dict):
        return False

    try:
        entity_type = EntityType(schema_type)
    except ValueError:
        logger.warning(f"No validation schema for type: {schema_type}")
        return False

    return any(field in data for field in REQUIRED_API_FIELDS[entity_type])
