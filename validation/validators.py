"""
Field validators for extracted fiscal data.
Pure functions: checksum (CNPJ, CPF), NFe access-key structure, date logic and monetary ranges.
Each returns a ValidationResult whose confidence_adjustment is applied to the provider confidence.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Mapping

from core.models import ValidationResult
from core.schema import ExtractedFields

logger = logging.getLogger(__name__)

CNPJ_WEIGHTS_1 = (5, 4, 3, 2, 9, 8, 7, 6, 5, 4, 3, 2)
CNPJ_WEIGHTS_2 = (6, 5, 4, 3, 2, 9, 8, 7, 6, 5, 4, 3, 2)
CPF_WEIGHTS_1 = tuple(range(10, 1, -1))
CPF_WEIGHTS_2 = tuple(range(11, 1, -1))

_NON_DIGIT = re.compile(r"\D")
_REPEATED_CPF = re.compile(r"^(\d)\1{10}$")
_BR_DATE = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")

MIN_EMISSION_DATE = date(2000, 1, 1)
MAX_REASONABLE_TOTAL = 999_999_999
NFE_KEY_LENGTH = 44
UF_RANGE = (11, 53)
NFE_YEAR_RANGE = (8, 99)  # 2008-2099


@dataclass(frozen=True)
class ValidationWeights:
    """Confidence deltas per check. Calibrated constants; overridable from config."""

    id_wrong_length: float = -0.2
    id_bad_check_digits: float = -0.3
    id_valid: float = 0.1
    cpf_repeated_digits: float = -0.3
    invalid_date: float = -0.2
    future_emission: float = -0.1
    old_emission: float = -0.05
    due_before_emission: float = -0.3
    negative_total: float = -0.3
    zero_total: float = -0.1
    huge_total: float = -0.05
    liquid_above_total: float = -0.2
    negative_liquid: float = -0.3
    nfe_wrong_length: float = -0.4
    nfe_key_present: float = 0.2
    nfe_structure_violation: float = -0.1


DEFAULT_WEIGHTS = ValidationWeights()


def only_digits(value: Any) -> str:
    """Strip every non-digit character."""
    return _NON_DIGIT.sub("", str(value or ""))


def _check_digit(digits: str, weights: tuple[int, ...]) -> int:
    total = sum(int(d) * w for d, w in zip(digits, weights))
    remainder = total % 11
    return 0 if remainder < 2 else 11 - remainder


def cnpj_check_digits(base12: str) -> str:
    """Two check digits for the first 12 CNPJ digits."""
    d1 = _check_digit(base12, CNPJ_WEIGHTS_1)
    d2 = _check_digit(base12 + str(d1), CNPJ_WEIGHTS_2)
    return f"{d1}{d2}"


def cpf_check_digits(base9: str) -> str:
    """Two check digits for the first 9 CPF digits."""
    d1 = _check_digit(base9, CPF_WEIGHTS_1)
    d2 = _check_digit(base9 + str(d1), CPF_WEIGHTS_2)
    return f"{d1}{d2}"


def format_cnpj(value: str) -> str:
    """14 digits -> XX.XXX.XXX/XXXX-XX; anything else returned unchanged."""
    d = only_digits(value)
    if len(d) != 14:
        return value
    return f"{d[:2]}.{d[2:5]}.{d[5:8]}/{d[8:12]}-{d[12:]}"


def format_cpf(value: str) -> str:
    """11 digits -> XXX.XXX.XXX-XX; anything else returned unchanged."""
    d = only_digits(value)
    if len(d) != 11:
        return value
    return f"{d[:3]}.{d[3:6]}.{d[6:9]}-{d[9:]}"


def parse_document_date(value: Any) -> date | None:
    """
    Parse ISO (YYYY-MM-DD, with optional time) or Brazilian DD/MM/YYYY.
    Returns None when the value cannot be parsed.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    s = str(value or "").strip()
    if not s:
        return None
    m = _BR_DATE.match(s)
    if m:
        day, month, year = (int(g) for g in m.groups())
        try:
            return date(year, month, day)
        except ValueError:
            return None
    try:
        return datetime.fromisoformat(s.replace("Z", "+00:00")).date()
    except ValueError:
        return None


# ---------------------------------------------------------------------------
# Tax IDs
# ---------------------------------------------------------------------------


def validate_cnpj(cnpj: str | None, weights: ValidationWeights = DEFAULT_WEIGHTS) -> ValidationResult:
    """Mod-11 check of a CNPJ. Absent value is not an error."""
    if not cnpj:
        return ValidationResult.ok()
    digits = only_digits(cnpj)
    if len(digits) != 14:
        return ValidationResult.build(["CNPJ must have 14 digits"], adjustment=weights.id_wrong_length)
    if digits[12:] != cnpj_check_digits(digits[:12]):
        return ValidationResult.build(["CNPJ check digits are invalid"], adjustment=weights.id_bad_check_digits)
    return ValidationResult.build(adjustment=weights.id_valid)


def validate_cpf(cpf: str | None, weights: ValidationWeights = DEFAULT_WEIGHTS) -> ValidationResult:
    """Mod-11 check of a CPF; repeated-digit sequences are rejected up front."""
    if not cpf:
        return ValidationResult.ok()
    digits = only_digits(cpf)
    if len(digits) != 11:
        return ValidationResult.build(["CPF must have 11 digits"], adjustment=weights.id_wrong_length)
    if _REPEATED_CPF.match(digits):
        return ValidationResult.build(
            ["CPF with all digits equal is invalid"], adjustment=weights.cpf_repeated_digits
        )
    if digits[9:] != cpf_check_digits(digits[:9]):
        return ValidationResult.build(["CPF check digits are invalid"], adjustment=weights.id_bad_check_digits)
    return ValidationResult.build(adjustment=weights.id_valid)


# ---------------------------------------------------------------------------
# Dates and values
# ---------------------------------------------------------------------------


def validate_dates(
    data_emissao: Any = None,
    data_vencimento: Any = None,
    weights: ValidationWeights = DEFAULT_WEIGHTS,
    *,
    today: date | None = None,
) -> ValidationResult:
    """
    Emission/due date logic.

    - unparseable emission or due date: error
    - emission in the future: warning
    - emission before 2000-01-01: warning
    - due date earlier than emission: error
    """
    today = today or date.today()
    errors: list[str] = []
    warnings: list[str] = []
    adjustment = 0.0

    emissao = None
    if data_emissao:
        emissao = parse_document_date(data_emissao)
        if emissao is None:
            errors.append("Emission date is invalid")
            adjustment += weights.invalid_date
        elif emissao > today:
            warnings.append("Emission date is in the future")
            adjustment += weights.future_emission
        elif emissao < MIN_EMISSION_DATE:
            warnings.append("Emission date is too old")
            adjustment += weights.old_emission

    if data_vencimento:
        vencimento = parse_document_date(data_vencimento)
        if vencimento is None:
            errors.append("Due date is invalid")
            adjustment += weights.invalid_date
        elif emissao is not None and vencimento < emissao:
            errors.append("Due date is earlier than emission date")
            adjustment += weights.due_before_emission

    return ValidationResult.build(errors, warnings, adjustment)


def validate_monetary_values(
    valor_total: float | None = None,
    valor_liquido: float | None = None,
    weights: ValidationWeights = DEFAULT_WEIGHTS,
) -> ValidationResult:
    """Range checks on total and net amounts."""
    errors: list[str] = []
    warnings: list[str] = []
    adjustment = 0.0

    if valor_total is not None:
        if valor_total < 0:
            errors.append("Total value cannot be negative")
            adjustment += weights.negative_total
        elif valor_total == 0:
            warnings.append("Total value is zero")
            adjustment += weights.zero_total
        elif valor_total > MAX_REASONABLE_TOTAL:
            warnings.append("Total value is unusually high")
            adjustment += weights.huge_total

    if valor_liquido is not None:
        if valor_liquido < 0:
            errors.append("Net value cannot be negative")
            adjustment += weights.negative_liquid
        if valor_total is not None and valor_liquido > valor_total:
            warnings.append("Net value is greater than total value")
            adjustment += weights.liquid_above_total

    return ValidationResult.build(errors, warnings, adjustment)


# ---------------------------------------------------------------------------
# NFe access key
# ---------------------------------------------------------------------------


def validate_nfe_key(chave_acesso: str | None, weights: ValidationWeights = DEFAULT_WEIGHTS) -> ValidationResult:
    """
    Structural check of a 44-digit NFe access key: UF code (positions 0-1),
    year (2-3) and month (4-5). A well-formed key is a positive signal.
    """
    if not chave_acesso:
        return ValidationResult.ok()
    key = only_digits(chave_acesso)
    if len(key) != NFE_KEY_LENGTH:
        return ValidationResult.build(
            [f"NFe access key must have {NFE_KEY_LENGTH} digits"], adjustment=weights.nfe_wrong_length
        )

    uf, year, month = int(key[0:2]), int(key[2:4]), int(key[4:6])
    errors: list[str] = []
    adjustment = weights.nfe_key_present
    if not UF_RANGE[0] <= uf <= UF_RANGE[1]:
        errors.append("Invalid UF code in NFe access key")
        adjustment += weights.nfe_structure_violation
    if not NFE_YEAR_RANGE[0] <= year <= NFE_YEAR_RANGE[1]:
        errors.append("Invalid year in NFe access key")
        adjustment += weights.nfe_structure_violation
    if not 1 <= month <= 12:
        errors.append("Invalid month in NFe access key")
        adjustment += weights.nfe_structure_violation
    return ValidationResult.build(errors, adjustment=adjustment)


# ---------------------------------------------------------------------------
# Aggregate
# ---------------------------------------------------------------------------


def validate_extracted_document(
    fields: ExtractedFields | Mapping[str, Any],
    weights: ValidationWeights | None = None,
    *,
    today: date | None = None,
) -> ValidationResult:
    """
    Run every applicable check on an extracted document and merge the results.
    Warnings never invalidate; any error does.
    """
    weights = weights or DEFAULT_WEIGHTS
    data = fields if isinstance(fields, ExtractedFields) else ExtractedFields.from_raw(dict(fields))

    results: list[ValidationResult] = []
    if data.cnpj_emitente:
        results.append(validate_cnpj(data.cnpj_emitente, weights))
    if data.cnpj_destinatario:
        results.append(validate_cnpj(data.cnpj_destinatario, weights))
    # Beneficiary CPF is only extracted for payroll (pró-labore) documents
    if data.cpf_beneficiario:
        results.append(validate_cpf(data.cpf_beneficiario, weights))
    results.append(validate_dates(data.data_emissao, data.data_vencimento, weights, today=today))
    results.append(validate_monetary_values(data.valor_total, data.valor_liquido, weights))
    if data.chave_acesso:
        results.append(validate_nfe_key(data.chave_acesso, weights))

    merged = ValidationResult.merge(*results)
    if not merged.is_valid:
        logger.debug("Validation failed: errors=%s warnings=%s", merged.errors, merged.warnings)
    return merged
