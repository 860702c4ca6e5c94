"""Tests for category catalog name rules"""
import pytest

from cuentas.domain.category import DEFAULT_CATEGORY_NAMES, validate_category_name, same_name
from cuentas.domain.errors import ValidationError


class TestValidateCategoryName:
    def test_trimmed(self):
        assert validate_category_name("  Mascotas ") == "Mascotas"

    def test_empty_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_category_name("   ")
        assert exc_info.value.field == "name"

    def test_fifty_chars_allowed(self):
        assert validate_category_name("x" * 50) == "x" * 50

    def test_too_long_rejected(self):
        with pytest.raises(ValidationError):
            validate_category_name("x" * 51)

    @pytest.mark.parametrize("name", ["savings", "Uncategorized", " SAVINGS "])
    def test_reserved_rejected(self, name):
        with pytest.raises(ValidationError):
            validate_category_name(name)


def test_same_name_ignores_case():
    assert same_name("Diversión", "DIVERSIÓN")
    assert not same_name("Salud", "Salud y belleza")


def test_defaults_are_valid_names():
    assert [validate_category_name(n) for n in DEFAULT_CATEGORY_NAMES] == list(DEFAULT_CATEGORY_NAMES)
