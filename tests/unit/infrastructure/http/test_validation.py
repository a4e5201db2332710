import pytest

from ltrfantasy.domain.models.common import EntityType
from ltrfantasy.infrastructure.http.validation import REQUIRED_API_FIELDS, validate_api_response


@pytest.mark.parametrize(
    "data, schema_type, expected",
    [
        ({"id": "1"}, EntityType.PLAYER, True),
        ({"position": "QB"}, "PLAYER", True),
        ({"abbreviation": "BUF"}, EntityType.TEAM, True),
        ({"startTime": "2024-09-08T17:00Z"}, EntityType.GAME, True),
        ({"overUnder": 47.5}, EntityType.ODDS, True),
        ({"name": "Bills"}, EntityType.PLAYER, False),
        ({}, EntityType.TEAM, False),
    ],
)
def test_any_required_field_is_enough(data, schema_type, expected):
    assert validate_api_response(data, schema_type) is expected


@pytest.mark.parametrize("data", [None, [], ["id"], "id", 42])
def test_non_objects_are_rejected(data):
    assert validate_api_response(data, EntityType.PLAYER) is False


def test_unknown_schema_type_is_rejected_with_warning(caplog):
    assert validate_api_response({"id": "1"}, "COACH") is False
    assert "No validation schema for type: COACH" in caplog.text


def test_every_entity_type_has_required_fields():
    assert set(REQUIRED_API_FIELDS) == set(EntityType)
