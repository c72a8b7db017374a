"""Input validators — Brazilian tax IDs (CPF / CNPJ) and email addresses.

CPF  (individuals): 11 digits, two mod-11 check digits.
CNPJ (companies):   14 digits, two mod-11 check digits with cyclic weights.

Both reject sequences of a single repeated digit (e.g. 111.111.111-11),
which pass the arithmetic check but are not issued.
"""

from __future__ import annotations

import re

from email_validator import EmailNotValidError, validate_email

from app.core.exceptions import ValidationError

_NON_DIGITS = re.compile(r"\D")

_CNPJ_WEIGHTS_1 = (5, 4, 3, 2, 9, 8, 7, 6, 5, 4, 3, 2)
_CNPJ_WEIGHTS_2 = (6, 5, 4, 3, 2, 9, 8, 7, 6, 5, 4, 3, 2)


def only_digits(value: str | None) -> str:
    """Strip every non-digit character (dots, dashes, slashes, spaces)."""
    if not value:
        return ""
    return _NON_DIGITS.sub("", str(value))


def is_valid_cpf(value: str | None) -> bool:
    digits = [int(c) for c in only_digits(value)]
    if len(digits) != 11 or len(set(digits)) == 1:
        return False

    total = sum(digits[i] * (10 - i) for i in range(9))
    check = (total * 10) % 11
    if check >= 10:
        check = 0
    if check != digits[9]:
        return False

    total = sum(digits[i] * (11 - i) for i in range(10))
    check = (total * 10) % 11
    if check >= 10:
        check = 0
    return check == digits[10]


def _cnpj_check_digit(digits: list[int], weights: tuple[int, ...]) -> int:
    remainder = sum(d * w for d, w in zip(digits, weights)) % 11
    return 0 if remainder < 2 else 11 - remainder


def is_valid_cnpj(value: str | None) -> bool:
    digits = [int(c) for c in only_digits(value)]
    if len(digits) != 14 or len(set(digits)) == 1:
        return False
    if _cnpj_check_digit(digits[:12], _CNPJ_WEIGHTS_1) != digits[12]:
        return False
    return _cnpj_check_digit(digits[:13], _CNPJ_WEIGHTS_2) == digits[13]


def validate_document(document_type: str | None, value: str | None) -> str:
    """Normalise a CPF/CNPJ to digits and verify its checksum.

    Returns:
        The digits-only document.

    Raises:
        ValidationError: unknown document_type or checksum mismatch.
    """
    doc_type = (document_type or "").lower()
    digits = only_digits(value)
    if doc_type == "cpf":
        if not is_valid_cpf(digits):
            raise ValidationError("Invalid CPF", details={"document": "checksum mismatch"})
    elif doc_type == "cnpj":
        if not is_valid_cnpj(digits):
            raise ValidationError("Invalid CNPJ", details={"document": "checksum mismatch"})
    else:
        raise ValidationError("document_type must be 'cpf' or 'cnpj'")
    return digits


def is_valid_email(value: str | None) -> bool:
    if not value:
        return False
    try:
        validate_email(value, check_deliverability=False)
    except EmailNotValidError:
        return False
    return True


def normalize_email(value: str | None) -> str:
    return (value or "").strip().lower()
