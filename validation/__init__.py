"""Validation: checksum, date and value validators for extracted fiscal fields."""

from validation.validators import (
    ValidationWeights,
    DEFAULT_WEIGHTS,
    validate_cnpj,
    validate_cpf,
    validate_dates,
    validate_monetary_values,
    validate_nfe_key,
    validate_extracted_document,
    only_digits,
    parse_document_date,
)

__all__ = [
    "ValidationWeights",
    "DEFAULT_WEIGHTS",
    "validate_cnpj",
    "validate_cpf",
    "validate_dates",
    "validate_monetary_values",
    "validate_nfe_key",
    "validate_extracted_document",
    "only_digits",
    "parse_document_date",
]
