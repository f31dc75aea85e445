"""Tests for UUID4 generation and validation."""

import re

import pytest

from simstore.identifiers import (
    InvalidIdentifierError,
    assert_uuid4,
    generate_uuid4,
    is_uuid4,
    to_uuid4,
)

VALID = "550e8400-e29b-41d4-a716-446655440000"
UUID4_SHAPE = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-4[0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$")


def test_generated_ids_have_uuid4_shape_and_validate():
    value = generate_uuid4()
    assert isinstance(value, str)
    assert UUID4_SHAPE.match(value)
    assert is_uuid4(value)


def test_generated_ids_are_unique():
    assert len({generate_uuid4() for _ in range(200)}) == 200


@pytest.mark.parametrize(
    "candidate",
    [
        "invalid-uuid",
        "550e8400-e29b-31d4-a716-446655440000",  # version 3
        "550e8400-e29b-51d4-a716-446655440000",  # version 5
        "550e8400-e29b-41d4-c716-446655440000",  # wrong variant
        "550e8400-e29b-41d4-a716-44665544000",  # too short
        "550e8400-e29b-41d4-a716-4466554400000",  # too long
        "550e8400-e29b-41d4-a716-446655440000\n",  # trailing newline
        " 550e8400-e29b-41d4-a716-446655440000",  # leading space
        "",
        None,
        123,
        {},
    ],
)
def test_is_uuid4_rejects_other_shapes(candidate):
    assert is_uuid4(candidate) is False
    assert to_uuid4(candidate) is None


def test_uppercase_ids_are_accepted():
    assert is_uuid4(VALID.upper())


def test_to_uuid4_returns_value_unchanged():
    assert to_uuid4(VALID) == VALID


def test_assert_uuid4_returns_value():
    assert assert_uuid4(VALID) == VALID


def test_assert_uuid4_message_without_context():
    with pytest.raises(InvalidIdentifierError, match="Invalid UUID4: invalid-uuid"):
        assert_uuid4("invalid-uuid")


def test_assert_uuid4_message_with_context():
    with pytest.raises(InvalidIdentifierError, match="Invalid UUID4 in user creation: invalid-uuid"):
        assert_uuid4("invalid-uuid", "user creation")


def test_invalid_identifier_error_is_value_error():
    with pytest.raises(ValueError):
        assert_uuid4("550e8400-e29b-31d4-a716-446655440000")
