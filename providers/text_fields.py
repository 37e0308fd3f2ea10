"""
Field parsing shared by providers: regex extraction from OCR text (Brazilian fiscal layouts)
and JSON recovery from LLM responses.
"""
from __future__ import annotations

import json
import logging
import re
from typing import Any

from core.schema import parse_brl_amount

logger = logging.getLogger(__name__)

CNPJ_PATTERN = re.compile(r"\b\d{2}\.?\d{3}\.?\d{3}/?\d{4}-?\d{2}\b")
CPF_PATTERN = re.compile(r"\b\d{3}\.\d{3}\.\d{3}-\d{2}\b|CPF\s*[:\s]\s*(\d{11})\b", re.IGNORECASE)
ACCESS_KEY_PATTERN = re.compile(r"(?:\d[\s.]?){43}\d")
DATE_PATTERN = re.compile(r"\b(\d{2})/(\d{2})/(\d{4})\b")
EMISSION_DATE_PATTERN = re.compile(
    r"(?:data\s+(?:de\s+)?emiss[ãa]o|emitid[oa]\s+em|emiss[ãa]o)\s*[:\s]\s*(\d{2}/\d{2}/\d{4})",
    re.IGNORECASE,
)
DUE_DATE_PATTERN = re.compile(
    r"(?:data\s+de\s+)?vencimento\s*[:\s]\s*(\d{2}/\d{2}/\d{4})",
    re.IGNORECASE,
)
MONEY = r"(?:R\$\s*)?(-?\d{1,3}(?:\.\d{3})+(?:,\d{2})?|-?\d{1,3}(?:\.\d{3})*,\d{2}|-?\d+(?:[.,]\d{2})?)"
TOTAL_PATTERN = re.compile(
    r"(?:valor\s+total(?:\s+da\s+nota)?|total\s+a\s+pagar|valor\s+do\s+documento|valor\s+bruto)\s*[:\s]\s*" + MONEY,
    re.IGNORECASE,
)
NET_PATTERN = re.compile(r"valor\s+l[íi]quido\s*[:\s]\s*" + MONEY, re.IGNORECASE)
NUMBER_PATTERN = re.compile(r"n[úu]mero\s*[:\s]\s*([\d.]+)", re.IGNORECASE)
SERIES_PATTERN = re.compile(r"s[ée]rie\s*[:\s]\s*(\d+)", re.IGNORECASE)


def _br_to_iso(day: str, month: str, year: str) -> str:
    return f"{year}-{month}-{day}"


def parse_fields_from_text(raw_text: str) -> dict[str, Any]:
    """
    Best-effort field extraction from OCR text.
    First CNPJ is the emitter, second the recipient; missing fields are omitted.
    """
    text = raw_text or ""
    fields: dict[str, Any] = {}

    cnpjs = list(dict.fromkeys(m.group(0) for m in CNPJ_PATTERN.finditer(text)))
    if cnpjs:
        fields["cnpj_emitente"] = cnpjs[0]
    if len(cnpjs) > 1:
        fields["cnpj_destinatario"] = cnpjs[1]

    cpf = CPF_PATTERN.search(text)
    if cpf:
        fields["cpf_beneficiario"] = cpf.group(1) or cpf.group(0)

    key = ACCESS_KEY_PATTERN.search(text)
    if key:
        fields["chave_acesso"] = re.sub(r"\D", "", key.group(0))

    emission = EMISSION_DATE_PATTERN.search(text)
    if emission:
        fields["data_emissao"] = _br_to_iso(*emission.group(1).split("/"))
    else:
        first_date = DATE_PATTERN.search(text)
        if first_date:
            fields["data_emissao"] = _br_to_iso(*first_date.groups())
    due = DUE_DATE_PATTERN.search(text)
    if due:
        fields["data_vencimento"] = _br_to_iso(*due.group(1).split("/"))

    totals = TOTAL_PATTERN.findall(text)
    if totals:
        # Last match: subtotal lines come before the grand total
        fields["valor_total"] = parse_brl_amount(totals[-1])
    net = NET_PATTERN.search(text)
    if net:
        fields["valor_liquido"] = parse_brl_amount(net.group(1))

    number = NUMBER_PATTERN.search(text)
    if number:
        fields["numero_documento"] = re.sub(r"\D", "", number.group(1))
    series = SERIES_PATTERN.search(text)
    if series:
        fields["serie"] = series.group(1)
    return fields


def extract_first_json_object(text: str) -> str:
    """Extract the first {...} object from text (brace-balanced)."""
    start = text.find("{")
    if start < 0:
        return text
    depth = 0
    for i in range(start, len(text)):
        if text[i] == "{":
            depth += 1
        elif text[i] == "}":
            depth -= 1
            if depth == 0:
                return text[start : i + 1]
    return text[start:]


def fix_json(s: str) -> str:
    """Remove trailing commas and other common invalid JSON."""
    s = re.sub(r",\s*}", "}", s)
    s = re.sub(r",\s*]", "]", s)
    return s


def parse_json_fields(text: str) -> dict[str, Any]:
    """LLM response (possibly fenced or chatty) -> dict. Raises ValueError when no object is recoverable."""
    cleaned = re.sub(r"^```(?:json)?\s*|\s*```$", "", (text or "").strip(), flags=re.MULTILINE)
    candidate = fix_json(extract_first_json_object(cleaned))
    try:
        data = json.loads(candidate)
    except json.JSONDecodeError as e:
        raise ValueError(f"response is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise ValueError("response JSON is not an object")
    return data
