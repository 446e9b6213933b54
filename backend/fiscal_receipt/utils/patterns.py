"""Regular expression catalogue for receipt field extraction.

Patterns are grouped by where they run (the scanned link or the fetched
portal page) and by field. Each list is ordered: extractors try the
patterns in sequence and stop at the first usable capture, so the most
specific patterns come first. Every pattern has exactly one capturing
group holding the raw candidate.
"""

from __future__ import annotations

import re
from typing import List, Pattern

_I = re.IGNORECASE

# A number with optional sign and ``.``/``,`` separators, ending in a digit
_NUMBER = r"[-+]?\d(?:[\d.,]*\d)?"
# Key boundary: the key must not be the tail of a longer identifier
_KEY = r"(?<![A-Za-z0-9_])"

# Known query keys, in priority order
VALUE_KEYS = ("vNF", "valorNF", "valor", "valorTotal", "total", "vPag")
DATE_KEYS = ("dhEmi", "dtEmissao", "dataEmissao", "data", "dt", "dEmi")


# ---------------------------------------------------------------------------
# Link text


LINK_VALUE_PATTERNS: List[Pattern[str]] = [
    *[re.compile(_KEY + key + r"=\s*(?:R\$\s*)?(" + _NUMBER + r")", _I) for key in ("vNF", "valorNF", "valor", "total", "vPag")],
    re.compile(r"R\$\s*(" + _NUMBER + r")", _I),
    re.compile(r"(?:valor|total)[^\d+\-]{0,20}(" + _NUMBER + r")", _I),
    re.compile(r"(\d+,\d{2})$"),
]

LINK_DATE_PATTERNS: List[Pattern[str]] = [
    re.compile(
        _KEY + r"(?:dhEmi|dtEmissao|dataEmissao|data|dt|dEmi)=\s*(\d{2}/\d{2}/\d{4}|\d{4}-\d{2}-\d{2})",
        _I,
    ),
    re.compile(r"(?:Data|Emiss(?:ã|a)o)\s*:\s*(\d{2}/\d{2}/\d{4})", _I),
    re.compile(r"(?<!\d)(\d{14})(?!\d)"),
]


# ---------------------------------------------------------------------------
# Fetched page (text rendering and raw markup)


PAGE_VALUE_PATTERNS: List[Pattern[str]] = [
    re.compile(r"valor\s+a\s+pagar\s*(?:R\$)?\s*:?\s*(" + _NUMBER + r")", _I),
    re.compile(r"valor\s+pago\s*(?:R\$)?\s*:?\s*(" + _NUMBER + r")", _I),
    re.compile(
        r"valor\s*total\s*(?:do|da|dos|das)?\s*(?:documento|cupom|nota)?\s*:?\s*(?:R\$)?\s*:?\s*(" + _NUMBER + r")",
        _I,
    ),
    re.compile(r"(?<![A-Za-z])total\s*(?:R\$|\$)?\s*:?\s*(" + _NUMBER + r")", _I),
    re.compile(r"(?:R\$|\$)\s*(" + _NUMBER + r")", _I),
    re.compile(r"\"valorTotal\"\s*:\s*\"([^\"]+)\"", _I),
    re.compile(r"valorNF(?:e|ce)?[\"':=]\s*[\"']?(" + _NUMBER + r")", _I),
]

# Last-resort money token; the extractor uses the last occurrence
PAGE_BARE_VALUE = re.compile(r"(?<![\d.,])(\d{1,3}(?:\.\d{3})+,\d{2}|\d+,\d{2})(?![\d,])")

PAGE_DATE_PATTERNS: List[Pattern[str]] = [
    re.compile(r"data\s*(?:de)?\s*emiss(?:ã|a|&atilde;)o\s*:?\s*(\d{2}/\d{2}/\d{4})", _I),
    re.compile(r"emiss(?:ã|a|&atilde;)o\s*:?\s*(\d{2}/\d{2}/\d{4})", _I),
    re.compile(r"data(?:Emissao)?[\"':=]\s*[\"']?(\d{2}/\d{2}/\d{4})", _I),
    re.compile(r"dhEmi[\"':=]\s*[\"']?(\d{4}-\d{2}-\d{2})", _I),
    re.compile(r"(?<!\d)(\d{2}/\d{2}/\d{4})(?!\d)"),
]

PAGE_DOCUMENT_NUMBER_PATTERNS: List[Pattern[str]] = [
    re.compile(r"n[úu]mero\s+do\s+documento\s*:?\s*(\d+)", _I),
    re.compile(r"n[úu]mero\s*:?\s*(\d+)", _I),
    re.compile(r"n[º°o]\s*:?\s*(\d+)", _I),
    re.compile(r"NF\s*n[º°o]\s*:?\s*(\d+)", _I),
    re.compile(r"documento\s*:?\s*(\d+)", _I),
    re.compile(r"cupom\s+fiscal\s*:?\s*(\d+)", _I),
    re.compile(r"nota\s+fiscal\s*:?\s*(\d+)", _I),
    re.compile(r"(?<![A-Za-z])SAT\s*:?\s*(\d+)", _I),
    re.compile(r"(?<![A-Za-z])E?CF\s*:?\s*(\d+)"),
    re.compile(r"nNF[\"':=]\s*[\"']?(\d+)", _I),
    re.compile(r"cNF[\"':=]\s*[\"']?(\d+)", _I),
    re.compile(r"numeroC(?:upom|F)[\"':=]\s*[\"']?(\d+)", _I),
    re.compile(r"Nro\.?\s*(\d{6,})", _I),
    re.compile(r"(?<!\d)(\d{6,9})(?!\d)"),
]


# ---------------------------------------------------------------------------
# Tokens searched inside a single element's text


MONEY_TOKEN = re.compile(r"(?:R\$\s*)?(\d{1,3}(?:\.\d{3})+,\d{2}|\d+[.,]\d{2})(?!\d)")
DATE_TOKEN = re.compile(r"(?<!\d)(\d{2}/\d{2}/\d{4}|\d{4}-\d{2}-\d{2})(?!\d)")
DATE_TIME_TOKEN = re.compile(r"(?<!\d)(\d{2}/\d{2}/\d{4})\s+\d{2}:\d{2}(?::\d{2})?")
