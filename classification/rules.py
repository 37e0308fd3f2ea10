"""
Rule tables for document-type classification.
Each document type is a data record of weighted patterns; adding a type is a table change.
"""
from __future__ import annotations

import re
from dataclasses import dataclass

FALLBACK_TYPE = "Outro"
NFE_TYPE = "NFe"
NFCE_TYPE = "NFCe"
PROLABORE_TYPE = "Pró-labore"
RECIBO_TYPE = "Recibo"
BOLETO_TYPE = "Boleto"
CONTRATO_TYPE = "Contrato"
EXTRATO_TYPE = "Extrato"

_FLAGS = re.IGNORECASE


@dataclass(frozen=True)
class WeightedPattern:
    """One indicator: regex, score contribution and human-readable reason."""

    regex: re.Pattern[str]
    weight: float
    indicator: str


@dataclass(frozen=True)
class DocumentTypeRule:
    """Pattern set for one document type. split_type is reported when the score stays at or below the split threshold."""

    type: str
    patterns: tuple[WeightedPattern, ...]
    split_type: str | None = None


@dataclass(frozen=True)
class FilenameRule:
    """Filename keyword heuristic with a fixed confidence."""

    keywords: tuple[str, ...]
    type: str
    confidence: float
    indicator: str


def _p(pattern: str, weight: float, indicator: str, flags: int = _FLAGS) -> WeightedPattern:
    return WeightedPattern(re.compile(pattern, flags), weight, indicator)


NFE_RULE = DocumentTypeRule(
    type=NFE_TYPE,
    split_type=NFCE_TYPE,
    patterns=(
        _p(r"chave\s+de\s+acesso", 0.3, "Access key label found"),
        _p(r"nota\s+fiscal\s+eletr[ôo]nica", 0.25, "NFe header found"),
        _p(r"danfe", 0.05, "NFe pattern detected (DANFE)"),
        _p(r"nf-?e", 0.05, "NFe pattern detected (NF-e)"),
        _p(r"nfc-?e", 0.05, "NFe pattern detected (NFC-e)"),
        _p(r"\d{44}", 0.2, "44-digit sequence (access key)"),
        _p(r"s[éêe]rie\s*:\s*\d+", 0.1, "Series number found"),
        _p(r"n[úu]mero\s*:\s*\d+", 0.05, "NFe pattern detected (number)"),
        _p(r"cfop\s*:\s*\d{4}", 0.15, "CFOP found"),
        _p(r"natureza\s+da\s+opera[çc][ãa]o", 0.05, "NFe pattern detected (operation nature)"),
    ),
)

PROLABORE_RULE = DocumentTypeRule(
    type=PROLABORE_TYPE,
    patterns=(
        _p(r"pr[óo][\s-]?labore", 0.4, 'Term "pró-labore" found'),
        _p(r"remunera[çc][ãa]o\s+de\s+(s[óo]cio|administrador|diretor)", 0.15, "Partner remuneration context found"),
        _p(r"administrador", 0.2, "Administrator role found"),
        _p(r"s[óo]cio[\s-]administrador", 0.2, "Managing partner role found"),
        _p(r"diretor", 0.05, "Pró-labore pattern detected (director)"),
        _p(r"cargo\s*:\s*(administrador|diretor|s[óo]cio)", 0.2, "Administrator role found (position)"),
        _p(r"per[íi]odo\s+de\s+refer[êe]ncia", 0.05, "Pró-labore pattern detected (reference period)"),
        _p(r"valor\s+bruto", 0.1, "Gross value found"),
        _p(r"valor\s+l[íi]quido", 0.05, "Pró-labore pattern detected (net value)"),
        _p(r"desconto\s+inss", 0.05, "Pró-labore pattern detected (INSS deduction)"),
    ),
)

RECIBO_RULE = DocumentTypeRule(
    type=RECIBO_TYPE,
    patterns=(
        _p(r"^\s*recibo", 0.3, 'Header "RECIBO" found'),
        _p(r"recibo\s+de\s+pagamento", 0.05, "Receipt pattern detected (payment receipt)"),
        _p(r"recebi\s+de", 0.25, 'Phrase "recebi de" found'),
        _p(r"valor\s+por\s+extenso", 0.2, "Amount in words found"),
        _p(r"pagador", 0.05, "Receipt pattern detected (payer)"),
        _p(r"benefici[áa]rio", 0.05, "Receipt pattern detected (beneficiary)"),
        _p(r"motivo\s+do\s+pagamento", 0.05, "Receipt pattern detected (payment reason)"),
        _p(r"assinatura", 0.05, "Receipt pattern detected (signature)"),
    ),
)

BOLETO_RULE = DocumentTypeRule(
    type=BOLETO_TYPE,
    patterns=(
        _p(r"boleto\s+banc[áa]rio", 0.3, 'Term "boleto bancário" found'),
        _p(r"linha\s+digit[áa]vel", 0.25, "Digitable line label found"),
        _p(r"c[óo]digo\s+de\s+barras", 0.05, "Boleto pattern detected (barcode)"),
        _p(r"cedente", 0.15, "Payee (cedente) found"),
        _p(r"sacado", 0.05, "Boleto pattern detected (sacado)"),
        _p(r"nosso\s+n[úu]mero", 0.05, "Boleto pattern detected (nosso número)"),
        _p(r"vencimento", 0.05, "Boleto pattern detected (due date)"),
        _p(r"banco\s+\d{3}", 0.05, "Boleto pattern detected (bank code)"),
        _p(r"\d{5}\.\d{5}\s+\d{5}\.\d{6}\s+\d{5}\.\d{6}", 0.2, "Digitable line digits detected"),
    ),
)

CONTRATO_RULE = DocumentTypeRule(
    type=CONTRATO_TYPE,
    patterns=(
        _p(r"contrato", 0.2, 'Term "contrato" found'),
        _p(r"contratante", 0.05, "Contract pattern detected (contracting party)"),
        _p(r"contratado", 0.05, "Contract pattern detected (contracted party)"),
        _p(r"cl[áa]usula", 0.15, "Clauses found"),
        _p(r"objeto\s+do\s+contrato", 0.2, 'Term "contrato" found (object)'),
        _p(r"prazo\s+de\s+vig[êe]ncia", 0.05, "Contract pattern detected (term)"),
        _p(r"partes\s+contratantes", 0.05, "Contract pattern detected (parties)"),
    ),
)

EXTRATO_RULE = DocumentTypeRule(
    type=EXTRATO_TYPE,
    patterns=(
        _p(r"extrato", 0.25, 'Term "extrato" found'),
        _p(r"saldo\s+anterior", 0.15, "Balance information found (previous)"),
        _p(r"saldo\s+atual", 0.15, "Balance information found (current)"),
        _p(r"movimenta[çc][ãa]o", 0.05, "Statement pattern detected (transactions)"),
        _p(r"per[íi]odo\s*:", 0.05, "Statement pattern detected (period)"),
        _p(r"ag[êe]ncia", 0.05, "Statement pattern detected (branch)"),
        _p(r"conta\s+corrente", 0.05, "Statement pattern detected (checking account)"),
    ),
)

# Evaluation order is the tie-break order: earlier rules win equal scores.
DOCUMENT_TYPE_RULES: tuple[DocumentTypeRule, ...] = (
    NFE_RULE,
    PROLABORE_RULE,
    RECIBO_RULE,
    BOLETO_RULE,
    CONTRATO_RULE,
    EXTRATO_RULE,
)

FILENAME_RULES: tuple[FilenameRule, ...] = (
    FilenameRule(("nfe", "nota_fiscal"), NFE_TYPE, 0.6, "File name suggests NFe"),
    FilenameRule(("prolabore", "pro_labore"), PROLABORE_TYPE, 0.7, "File name suggests pró-labore"),
    FilenameRule(("recibo",), RECIBO_TYPE, 0.6, "File name suggests receipt"),
    FilenameRule(("boleto",), BOLETO_TYPE, 0.6, "File name suggests boleto"),
    FilenameRule(("contrato",), CONTRATO_TYPE, 0.6, "File name suggests contract"),
    FilenameRule(("extrato",), EXTRATO_TYPE, 0.6, "File name suggests bank statement"),
)
