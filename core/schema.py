"""
Pydantic schema for fields extracted from fiscal documents. Used by providers, validation, pipeline.
"""
from __future__ import annotations

import re
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

_MONEY_CLEAN = re.compile(r"[^\d,.\-]")
# "1.500" on a Brazilian document is fifteen hundred, not one and a half
_DOTTED_THOUSANDS = re.compile(r"-?\d{1,3}(?:\.\d{3})+")


def parse_brl_amount(value: Any) -> float | None:
    """
    Parse a monetary value as printed on Brazilian documents.
    "R$ 1.234,56" -> 1234.56, "R$ 1.500" -> 1500.0, "1234.56" -> 1234.56, "" / None / garbage -> None.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    s = _MONEY_CLEAN.sub("", str(value).strip())
    if not s or s in ("-", ",", "."):
        return None
    if "," in s:
        # Decimal comma: dots are thousand separators
        s = s.replace(".", "").replace(",", ".")
    elif s.count(".") > 1 or _DOTTED_THOUSANDS.fullmatch(s):
        s = s.replace(".", "")
    try:
        return float(s)
    except ValueError:
        return None


# ---------------------------------------------------------------------------
# Taxes
# ---------------------------------------------------------------------------


class TaxesSchema(BaseModel):
    """Tax amounts highlighted on the document."""

    icms: float | None = None
    ipi: float | None = None
    pis: float | None = None
    cofins: float | None = None
    iss: float | None = None

    @field_validator("icms", "ipi", "pis", "cofins", "iss", mode="before")
    @classmethod
    def money(cls, v: Any) -> float | None:
        return parse_brl_amount(v)


# ---------------------------------------------------------------------------
# Extracted fields (provider output payload)
# ---------------------------------------------------------------------------


class ExtractedFields(BaseModel):
    """Structured fields returned by an extraction provider. Unknown keys are kept."""

    model_config = ConfigDict(extra="allow")

    tipo_documento: str | None = None
    numero_documento: str | None = None
    serie: str | None = None
    chave_acesso: str | None = None
    data_emissao: str | None = None
    data_vencimento: str | None = None
    valor_total: float | None = None
    valor_liquido: float | None = None
    empresa_emitente: str | None = None
    empresa_destinatario: str | None = None
    cnpj_emitente: str | None = None
    cnpj_destinatario: str | None = None
    cpf_beneficiario: str | None = None
    inscricao_estadual: str | None = None
    descricao: str | None = None
    observacoes: str | None = None
    impostos: TaxesSchema | None = None

    @field_validator(
        "tipo_documento",
        "numero_documento",
        "serie",
        "chave_acesso",
        "data_emissao",
        "data_vencimento",
        "empresa_emitente",
        "empresa_destinatario",
        "cnpj_emitente",
        "cnpj_destinatario",
        "cpf_beneficiario",
        "inscricao_estadual",
        "descricao",
        "observacoes",
        mode="before",
    )
    @classmethod
    def blank_to_none(cls, v: Any) -> str | None:
        if v is None:
            return None
        s = str(v).strip()
        return s or None

    @field_validator("valor_total", "valor_liquido", mode="before")
    @classmethod
    def money(cls, v: Any) -> float | None:
        return parse_brl_amount(v)

    @field_validator("impostos", mode="before")
    @classmethod
    def taxes_dict_only(cls, v: Any) -> Any:
        return v if isinstance(v, (dict, TaxesSchema)) else None

    @classmethod
    def from_raw(cls, data: dict[str, Any] | None) -> ExtractedFields:
        """Build from a provider's raw field dict; drops the provider's own confidence key."""
        payload = {k: v for k, v in (data or {}).items() if k != "confidence"}
        return cls.model_validate(payload)
