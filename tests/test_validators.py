"""
Unit tests for field validators: CNPJ/CPF checksums, NFe key structure, dates and values.
"""
from __future__ import annotations

from datetime import date

import pytest

from core.schema import ExtractedFields
from validation.validators import (
    ValidationWeights,
    cnpj_check_digits,
    cpf_check_digits,
    format_cnpj,
    format_cpf,
    only_digits,
    parse_document_date,
    validate_cnpj,
    validate_cpf,
    validate_dates,
    validate_extracted_document,
    validate_monetary_values,
    validate_nfe_key,
)

VALID_CNPJ = "11.222.333/0001-81"
VALID_CPF = "529.982.247-25"
# UF 35 (SP), year 24, month 05, emitter CNPJ, model 55, series 001, number, emission type, code, DV
VALID_NFE_KEY = "352405" + "11222333000181" + "55" + "001" + "000000123" + "1" + "00000001" + "0"
TODAY = date(2024, 6, 1)


# ---------------------------------------------------------------------------
# CNPJ
# ---------------------------------------------------------------------------


def test_cnpj_check_digits_known_value() -> None:
    assert cnpj_check_digits("112223330001") == "81"


def test_valid_cnpj_formatted_and_bare() -> None:
    for value in (VALID_CNPJ, "11222333000181"):
        result = validate_cnpj(value)
        assert result.is_valid
        assert result.errors == []
        assert result.confidence_adjustment == pytest.approx(0.1)


def test_cnpj_wrong_check_digits() -> None:
    result = validate_cnpj("11.222.333/0001-82")
    assert not result.is_valid
    assert result.errors == ["CNPJ check digits are invalid"]
    assert result.confidence_adjustment == pytest.approx(-0.3)


def test_cnpj_wrong_length() -> None:
    result = validate_cnpj("11.222.333/0001")
    assert not result.is_valid
    assert result.errors == ["CNPJ must have 14 digits"]
    assert result.confidence_adjustment == pytest.approx(-0.2)


def test_cnpj_absent_is_neutral() -> None:
    for value in (None, ""):
        result = validate_cnpj(value)
        assert result.is_valid
        assert result.confidence_adjustment == 0.0


def test_cnpj_all_zeros_passes_checksum() -> None:
    """Repeated-digit CNPJs satisfy mod 11 and are not rejected (unlike CPF)."""
    assert validate_cnpj("00000000000000").is_valid


# ---------------------------------------------------------------------------
# CPF
# ---------------------------------------------------------------------------


def test_cpf_check_digits_known_value() -> None:
    assert cpf_check_digits("529982247") == "25"


def test_valid_cpf() -> None:
    result = validate_cpf(VALID_CPF)
    assert result.is_valid
    assert result.confidence_adjustment == pytest.approx(0.1)


def test_cpf_repeated_digits_rejected() -> None:
    result = validate_cpf("111.111.111-11")
    assert not result.is_valid
    assert result.errors == ["CPF with all digits equal is invalid"]
    assert result.confidence_adjustment == pytest.approx(-0.3)


def test_cpf_wrong_check_digits_and_length() -> None:
    bad = validate_cpf("529.982.247-26")
    assert bad.errors == ["CPF check digits are invalid"]
    short = validate_cpf("529.982.247")
    assert short.errors == ["CPF must have 11 digits"]
    assert short.confidence_adjustment == pytest.approx(-0.2)


# ---------------------------------------------------------------------------
# NFe access key
# ---------------------------------------------------------------------------


def test_valid_nfe_key() -> None:
    assert len(VALID_NFE_KEY) == 44
    result = validate_nfe_key(VALID_NFE_KEY)
    assert result.is_valid
    assert result.confidence_adjustment == pytest.approx(0.2)


def test_nfe_key_with_spaces_is_normalized() -> None:
    spaced = " ".join(VALID_NFE_KEY[i : i + 4] for i in range(0, 44, 4))
    assert validate_nfe_key(spaced).is_valid


def test_nfe_key_wrong_length() -> None:
    result = validate_nfe_key(VALID_NFE_KEY[:43])
    assert not result.is_valid
    assert result.confidence_adjustment == pytest.approx(-0.4)


def test_nfe_key_structure_violations_accumulate() -> None:
    # UF 99, year 05, month 13
    key = "990513" + VALID_NFE_KEY[6:]
    result = validate_nfe_key(key)
    assert not result.is_valid
    assert len(result.errors) == 3
    assert result.confidence_adjustment == pytest.approx(0.2 - 0.3)


def test_nfe_key_absent_is_neutral() -> None:
    assert validate_nfe_key("").is_valid
    assert validate_nfe_key(None).confidence_adjustment == 0.0


# ---------------------------------------------------------------------------
# Dates
# ---------------------------------------------------------------------------


def test_parse_document_date_formats() -> None:
    assert parse_document_date("2024-05-10") == date(2024, 5, 10)
    assert parse_document_date("10/05/2024") == date(2024, 5, 10)
    assert parse_document_date("2024-05-10T13:45:00") == date(2024, 5, 10)
    assert parse_document_date("31/02/2024") is None
    assert parse_document_date("yesterday") is None
    assert parse_document_date(None) is None


def test_dates_valid_pair() -> None:
    result = validate_dates("2024-05-10", "2024-06-10", today=TODAY)
    assert result.is_valid
    assert result.warnings == []
    assert result.confidence_adjustment == 0.0


def test_due_date_before_emission_is_error() -> None:
    result = validate_dates("2024-05-10", "2024-05-01", today=TODAY)
    assert result.errors == ["Due date is earlier than emission date"]
    assert result.confidence_adjustment == pytest.approx(-0.3)


def test_future_emission_is_warning_only() -> None:
    result = validate_dates("2024-07-01", None, today=TODAY)
    assert result.is_valid
    assert result.warnings == ["Emission date is in the future"]
    assert result.confidence_adjustment == pytest.approx(-0.1)


def test_old_emission_is_warning() -> None:
    result = validate_dates("15/03/1999", None, today=TODAY)
    assert result.is_valid
    assert result.warnings == ["Emission date is too old"]
    assert result.confidence_adjustment == pytest.approx(-0.05)


def test_invalid_dates_are_errors() -> None:
    result = validate_dates("not a date", "also not", today=TODAY)
    assert result.errors == ["Emission date is invalid", "Due date is invalid"]
    assert result.confidence_adjustment == pytest.approx(-0.4)


# ---------------------------------------------------------------------------
# Monetary values
# ---------------------------------------------------------------------------


def test_monetary_values_ok() -> None:
    result = validate_monetary_values(1500.0, 1350.0)
    assert result.is_valid
    assert result.confidence_adjustment == 0.0


def test_negative_total_is_error() -> None:
    result = validate_monetary_values(-10.0)
    assert not result.is_valid
    assert result.confidence_adjustment == pytest.approx(-0.3)


def test_zero_and_huge_totals_warn() -> None:
    assert validate_monetary_values(0.0).warnings == ["Total value is zero"]
    assert validate_monetary_values(1_000_000_000.0).warnings == ["Total value is unusually high"]


def test_net_above_total_warns() -> None:
    result = validate_monetary_values(100.0, 150.0)
    assert result.is_valid
    assert result.warnings == ["Net value is greater than total value"]
    assert result.confidence_adjustment == pytest.approx(-0.2)


def test_negative_net_is_error() -> None:
    result = validate_monetary_values(100.0, -5.0)
    assert result.errors == ["Net value cannot be negative"]


# ---------------------------------------------------------------------------
# Whole document
# ---------------------------------------------------------------------------


def test_validate_extracted_document_sums_adjustments() -> None:
    fields = {
        "cnpj_emitente": VALID_CNPJ,
        "cnpj_destinatario": "11.222.333/0001-82",
        "data_emissao": "10/05/2024",
        "valor_total": "R$ 1.234,56",
        "chave_acesso": VALID_NFE_KEY,
    }
    result = validate_extracted_document(fields, today=TODAY)
    assert not result.is_valid
    assert result.errors == ["CNPJ check digits are invalid"]
    # +0.1 (emitter) -0.3 (recipient) +0.2 (NFe key)
    assert result.confidence_adjustment == pytest.approx(0.0)


def test_validate_extracted_document_checks_cpf_when_present() -> None:
    result = validate_extracted_document(ExtractedFields(cpf_beneficiario="111.111.111-11"), today=TODAY)
    assert result.errors == ["CPF with all digits equal is invalid"]


def test_validate_extracted_document_empty_is_valid() -> None:
    result = validate_extracted_document({}, today=TODAY)
    assert result.is_valid
    assert result.confidence_adjustment == 0.0


def test_custom_weights_are_applied() -> None:
    weights = ValidationWeights(id_valid=0.05)
    assert validate_cnpj(VALID_CNPJ, weights).confidence_adjustment == pytest.approx(0.05)


def test_helpers() -> None:
    assert only_digits("11.222.333/0001-81") == "11222333000181"
    assert format_cnpj("11222333000181") == VALID_CNPJ
    assert format_cpf("52998224725") == VALID_CPF
    assert format_cnpj("123") == "123"
