"""
Unit tests for input validators and shared helpers.

Tests cover:
  - CPF / CNPJ checksum validation and normalisation
  - Email validation
  - Date parsing and working-day arithmetic
"""

from datetime import date, datetime

import pytest

from app.core.exceptions import ValidationError
from app.utils.helpers import add_working_days, next_working_day, parse_date, parse_datetime
from app.utils.validators import (
    is_valid_cnpj,
    is_valid_cpf,
    is_valid_email,
    only_digits,
    validate_document,
)


# ═══════════════════════════════════════════════════════════════
# CPF / CNPJ
# ═══════════════════════════════════════════════════════════════

class TestDocuments:
    def test_only_digits_strips_punctuation(self):
        assert only_digits("529.982.247-25") == "52998224725"
        assert only_digits(None) == ""

    @pytest.mark.parametrize("value", ["529.982.247-25", "52998224725"])
    def test_valid_cpf(self, value):
        assert is_valid_cpf(value)

    @pytest.mark.parametrize("value", ["529.982.247-24", "111.111.111-11", "1234", ""])
    def test_invalid_cpf(self, value):
        assert not is_valid_cpf(value)

    def test_valid_cnpj(self):
        assert is_valid_cnpj("11.222.333/0001-81")

    @pytest.mark.parametrize("value", ["11.222.333/0001-80", "00000000000000", "112223330001"])
    def test_invalid_cnpj(self, value):
        assert not is_valid_cnpj(value)

    def test_validate_document_returns_digits(self):
        assert validate_document("CNPJ", "11.222.333/0001-81") == "11222333000181"

    def test_validate_document_rejects_bad_checksum(self):
        with pytest.raises(ValidationError) as exc:
            validate_document("cpf", "529.982.247-24")
        assert exc.value.details == {"document": "checksum mismatch"}

    def test_validate_document_rejects_unknown_type(self):
        with pytest.raises(ValidationError):
            validate_document("rg", "123456789")


# ═══════════════════════════════════════════════════════════════
# Email
# ═══════════════════════════════════════════════════════════════

def test_email_validation():
    assert is_valid_email("ana@example.com")
    assert not is_valid_email("not-an-email")
    assert not is_valid_email("")


# ═══════════════════════════════════════════════════════════════
# Dates
# ═══════════════════════════════════════════════════════════════

class TestDates:
    def test_parse_date_formats(self):
        assert parse_date("2025-01-06") == date(2025, 1, 6)
        assert parse_date("06/01/2025") == date(2025, 1, 6)
        assert parse_date("06.01.2025") == date(2025, 1, 6)
        assert parse_date("2025-01-06T10:30:00Z") == date(2025, 1, 6)
        assert parse_date("garbage") is None

    def test_parse_datetime_midnight_for_dates(self):
        assert parse_datetime("2025-01-06") == datetime(2025, 1, 6)
        assert parse_datetime(None) is None

    def test_add_working_days_skips_weekend(self):
        friday = date(2025, 1, 3)
        assert add_working_days(friday, 1) == date(2025, 1, 6)
        assert add_working_days(friday, 5) == date(2025, 1, 10)
        assert add_working_days(friday, 0) == friday

    def test_next_working_day(self):
        assert next_working_day(date(2025, 1, 4)) == date(2025, 1, 6)
        assert next_working_day(date(2025, 1, 6)) == date(2025, 1, 6)
