"""Tests for confirmation code generation."""

import pytest

from app.services.codes import (
    CODE_ALPHABET,
    CODE_LENGTH,
    generate_confirmation_code,
    is_valid_code,
)


def test_code_shape():
    for _ in range(50):
        code = generate_confirmation_code()
        assert len(code) == CODE_LENGTH
        assert set(code) <= set(CODE_ALPHABET)


def test_alphabet_has_no_lookalikes():
    assert len(CODE_ALPHABET) == 32
    for char in "01IO":
        assert char not in CODE_ALPHABET


def test_codes_are_random():
    codes = {generate_confirmation_code() for _ in range(200)}
    assert len(codes) == 200


@pytest.mark.parametrize(
    "code, valid",
    [
        ("ABC234", True),
        ("ZZZZZZ", True),
        ("abc234", False),
        ("ABC23", False),
        ("ABC2345", False),
        ("ABC10O", False),
        ("", False),
    ],
)
def test_is_valid_code(code, valid):
    assert is_valid_code(code) is valid
