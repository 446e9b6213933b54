"""Field extractor strategies.

Each strategy inspects one information channel and proposes at most one
normalized ``Candidate`` per requested field, tagged with the strategy's
``ConfidenceTier``:

* ``LinkPatternExtractor`` – regex cascade over the scanned link text.
* ``UrlParameterExtractor`` – known query-parameter names of the parsed URL.
* ``StructuralSelectorExtractor`` – exact captions / selectors of the
  deployed portal template.
* ``KeywordHeuristicExtractor`` – keyword-bearing elements and their
  siblings.
* ``RawRegexFallbackExtractor`` – regexes over the whole fetched page.

Strategies never mutate shared state. Raw captures are run through the
normalizers before a candidate is emitted, so a candidate is always a
valid value; captures that fail normalization are simply not proposed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Pattern, Sequence
from urllib.parse import parse_qsl, unquote, urlsplit

from bs4 import BeautifulSoup, Comment, NavigableString, Tag

from fiscal_receipt.models.enums import ConfidenceTier, ExtractionField
from fiscal_receipt.utils import patterns
from fiscal_receipt.utils.normalizers import (
    fold_text,
    normalize_date,
    normalize_value,
    parse_amount,
)


logger = logging.getLogger(__name__)

VALUE = ExtractionField.VALUE
DATE = ExtractionField.DATE
DOCUMENT_NUMBER = ExtractionField.DOCUMENT_NUMBER

_NORMALIZERS: Dict[ExtractionField, Callable[[Optional[str]], Optional[str]]] = {
    VALUE: normalize_value,
    DATE: normalize_date,
    DOCUMENT_NUMBER: lambda raw: raw.strip() if raw and raw.strip() else None,
}

_SKIPPED_TAGS = ["script", "style", "noscript", "template", "head", "title", "meta"]


@dataclass(frozen=True)
class Candidate:
    """A normalized value proposed for ``field`` by one strategy."""

    field: ExtractionField
    value: str
    tier: ConfidenceTier
    source: str
    raw: str = ""


class ReceiptDocument:
    """Fetched portal page, parsed lazily and at most once."""

    def __init__(self, html: str) -> None:
        self.html = html or ""
        self._soup: Optional[BeautifulSoup] = None
        self._text: Optional[str] = None

    @property
    def soup(self) -> BeautifulSoup:
        if self._soup is None:
            try:
                self._soup = BeautifulSoup(self.html, "lxml")
            except Exception:  # lxml missing or rejecting the markup
                logger.warning("[html] lxml parser failed; falling back to html.parser")
                self._soup = BeautifulSoup(self.html, "html.parser")
        return self._soup

    @property
    def text(self) -> str:
        """Visible text of the page with elements separated by spaces."""
        if self._text is None:
            chunks = [
                str(piece)
                for piece in self.soup.find_all(string=True)
                if type(piece) is NavigableString and piece.parent.name not in _SKIPPED_TAGS
            ]
            self._text = " ".join(" ".join(chunks).split())
        return self._text


@dataclass
class ExtractionSource:
    """Everything the strategies may look at for one request."""

    link: str
    document: Optional[ReceiptDocument] = None


class FieldExtractor:
    """Base class for strategies; subclasses implement ``_extract_field``."""

    name: str = "base"
    tier: ConfidenceTier = ConfidenceTier.HINT
    fields: Sequence[ExtractionField] = (VALUE, DATE)

    def extract(
        self,
        source: ExtractionSource,
        fields: Optional[Iterable[ExtractionField]] = None,
    ) -> List[Candidate]:
        wanted = [f for f in (fields if fields is not None else self.fields) if f in self.fields]
        found: List[Candidate] = []
        for field in wanted:
            candidate = self._extract_field(source, field)
            if candidate is not None:
                found.append(candidate)
        return found

    def _extract_field(self, source: ExtractionSource, field: ExtractionField) -> Optional[Candidate]:
        raise NotImplementedError

    def _candidate(self, field: ExtractionField, raw: Optional[str], detail: str = "") -> Optional[Candidate]:
        value = _NORMALIZERS[field](raw)
        if value is None:
            return None
        source = f"{self.name}:{detail}" if detail else self.name
        return Candidate(field=field, value=value, tier=self.tier, source=source, raw=raw or "")


def _first_capture(
    extractor: FieldExtractor,
    field: ExtractionField,
    texts: Sequence[str],
    regexes: Sequence[Pattern[str]],
) -> Optional[Candidate]:
    """Return the first normalizable capture, trying regexes in order."""
    for index, regex in enumerate(regexes):
        for text in texts:
            for match in regex.finditer(text):
                candidate = extractor._candidate(field, match.group(1), f"p{index}")
                if candidate is not None:
                    return candidate
    return None


# ---------------------------------------------------------------------------
# Link channels


class LinkPatternExtractor(FieldExtractor):
    """Regex cascade over the raw link text; no network access."""

    name = "link_pattern"
    tier = ConfidenceTier.LINK_PATTERN

    def _texts(self, link: str) -> List[str]:
        # Decoded first: an encoded separator (%2C) would truncate the amount
        decoded = unquote(link)
        return [link] if decoded == link else [decoded, link]

    def _extract_field(self, source: ExtractionSource, field: ExtractionField) -> Optional[Candidate]:
        texts = self._texts(source.link)
        if field is VALUE:
            # The first pattern yielding a finite number decides, even if the
            # number is then rejected (e.g. a negative amount).
            for index, regex in enumerate(patterns.LINK_VALUE_PATTERNS):
                for text in texts:
                    match = regex.search(text)
                    if match and parse_amount(match.group(1)) is not None:
                        return self._candidate(VALUE, match.group(1), f"p{index}")
            return None
        return _first_capture(self, DATE, texts, patterns.LINK_DATE_PATTERNS)


class UrlParameterExtractor(FieldExtractor):
    """Reads known query parameters of the link parsed as a URL."""

    name = "url_parameter"
    tier = ConfidenceTier.URL_PARAMETER

    def _parameters(self, link: str) -> Dict[str, str]:
        try:
            parts = urlsplit(link)
        except ValueError:
            return {}
        if not parts.netloc:
            return {}
        params: Dict[str, str] = {}
        for chunk in (parts.query, parts.fragment):
            if not chunk or "=" not in chunk:
                continue
            for key, value in parse_qsl(chunk, keep_blank_values=False):
                params.setdefault(key.lower(), value)
        return params

    def _extract_field(self, source: ExtractionSource, field: ExtractionField) -> Optional[Candidate]:
        params = self._parameters(source.link)
        if not params:
            return None
        keys = patterns.VALUE_KEYS if field is VALUE else patterns.DATE_KEYS
        for key in keys:
            raw = params.get(key.lower())
            if raw is None:
                continue
            candidate = self._candidate(field, raw, key)
            if candidate is not None:
                return candidate
        if field is VALUE:
            return self._compact_payload_value(params.get("p"))
        return None

    def _compact_payload_value(self, payload: Optional[str]) -> Optional[Candidate]:
        """Total from a pipe-separated NFC-e ``p=`` payload in offline form.

        Offline-emission QR codes carry eight fields
        (``key|version|env|day|total|digest|csc_id|hash``); online ones
        carry five and no total.
        """
        if not payload:
            return None
        fields = payload.split("|")
        if len(fields) < 8:
            return None
        return self._candidate(VALUE, fields[4], "p")


# ---------------------------------------------------------------------------
# Fetched page channels


def _own_text(element: Tag) -> str:
    """Text placed directly inside ``element`` (not in its children)."""
    chunks = [
        str(child)
        for child in element.children
        if isinstance(child, NavigableString) and not isinstance(child, Comment)
    ]
    return " ".join(" ".join(chunks).split())


def _element_text(element: Tag) -> str:
    return " ".join(element.get_text(" ").split())


def _visible_elements(soup: BeautifulSoup) -> Iterable[Tag]:
    for element in soup.find_all(True):
        if element.name in _SKIPPED_TAGS or element.find_parent(_SKIPPED_TAGS):
            continue
        yield element


class StructuralSelectorExtractor(FieldExtractor):
    """Exact matches against the known receipt portal template."""

    name = "structural"
    tier = ConfidenceTier.STRUCTURAL

    value_captions = ("valor a pagar r$", "valor pago r$", "valor total r$", "valor a pagar", "valor total")
    value_selectors = ("#linhaTotal span.totalNumb.txtMax", "span.totalNumb.txtMax", "#totalNota .txtMax")
    value_holders = ["strong", "span", "b", "td"]
    date_table_caption = "informacoes gerais da nota"
    date_label = "emissao"

    def _extract_field(self, source: ExtractionSource, field: ExtractionField) -> Optional[Candidate]:
        if source.document is None:
            return None
        soup = source.document.soup
        if field is VALUE:
            return self._value_from_caption(soup) or self._value_from_selectors(soup)
        return self._date_from_general_info(soup) or self._date_from_label(soup)

    def _money(self, text: str, detail: str) -> Optional[Candidate]:
        match = patterns.MONEY_TOKEN.search(text)
        return self._candidate(VALUE, match.group(1), detail) if match else None

    def _value_from_caption(self, soup: BeautifulSoup) -> Optional[Candidate]:
        for caption in self.value_captions:
            for label in _visible_elements(soup):
                if fold_text(_element_text(label)).rstrip(":").strip() != caption:
                    continue
                holder = label.find_next_sibling(self.value_holders) or label.find_next(self.value_holders)
                if holder is None:
                    continue
                candidate = self._money(_element_text(holder), "caption")
                if candidate is not None:
                    return candidate
        return None

    def _value_from_selectors(self, soup: BeautifulSoup) -> Optional[Candidate]:
        for selector in self.value_selectors:
            for element in soup.select(selector):
                candidate = self._money(_element_text(element), "selector")
                if candidate is not None:
                    return candidate
        return None

    def _date_from_general_info(self, soup: BeautifulSoup) -> Optional[Candidate]:
        for header in soup.find_all(["th", "td", "caption", "h4", "h5"]):
            if self.date_table_caption not in fold_text(_element_text(header)):
                continue
            for row in header.find_all_next("tr", limit=8):
                cells = row.find_all(["td", "th"], recursive=False)
                if len(cells) != 4:
                    continue
                match = patterns.DATE_TIME_TOKEN.search(_element_text(cells[-1]))
                if match:
                    candidate = self._candidate(DATE, match.group(1), "general_info")
                    if candidate is not None:
                        return candidate
        return None

    def _date_from_label(self, soup: BeautifulSoup) -> Optional[Candidate]:
        for strong in soup.find_all(["strong", "b"]):
            if not fold_text(_element_text(strong)).startswith(self.date_label):
                continue
            container = strong.parent if isinstance(strong.parent, Tag) else strong
            match = patterns.DATE_TOKEN.search(_element_text(container))
            if match:
                candidate = self._candidate(DATE, match.group(1), "label")
                if candidate is not None:
                    return candidate
        return None


class KeywordHeuristicExtractor(FieldExtractor):
    """Keyword-bearing elements, then their next sibling and parent's children."""

    name = "keyword"
    tier = ConfidenceTier.KEYWORD_HEURISTIC

    value_keywords = (
        "Valor pago",
        "Valor Total",
        "Valor a pagar",
        "Valor do Documento",
        "Valor da Nota",
        "Total",
        "Valor final",
        "Valor",
        "R$",
    )
    date_keywords = ("Data de Emissão", "Emissão", "Data")

    def _extract_field(self, source: ExtractionSource, field: ExtractionField) -> Optional[Candidate]:
        if source.document is None:
            return None
        keywords = self.value_keywords if field is VALUE else self.date_keywords
        token = patterns.MONEY_TOKEN if field is VALUE else patterns.DATE_TOKEN
        elements = list(_visible_elements(source.document.soup))
        for keyword in keywords:
            folded_keyword = fold_text(keyword)
            for element in elements:
                own = _own_text(element)
                if folded_keyword not in fold_text(own):
                    continue
                candidate = self._search_around(element, own, field, token)
                if candidate is not None:
                    return candidate
        return None

    def _search_around(self, element: Tag, own: str, field: ExtractionField, token: Pattern[str]) -> Optional[Candidate]:
        texts = [("own", own)]
        following = element.find_next_sibling()
        if following is not None:
            texts.append(("next", _element_text(following)))
        if isinstance(element.parent, Tag):
            texts.extend(("sibling", _element_text(sib)) for sib in element.parent.find_all(True, recursive=False))
        for detail, text in texts:
            for match in token.finditer(text):
                candidate = self._candidate(field, match.group(1), detail)
                if candidate is not None:
                    return candidate
        return None


class RawRegexFallbackExtractor(FieldExtractor):
    """Regexes over the entire fetched page; accepts more false positives."""

    name = "raw_regex"
    tier = ConfidenceTier.RAW_REGEX
    fields = (VALUE, DATE, DOCUMENT_NUMBER)

    def _extract_field(self, source: ExtractionSource, field: ExtractionField) -> Optional[Candidate]:
        if source.document is None:
            return None
        # Visible text first; raw markup catches values held in scripts/attributes
        texts = [source.document.text, source.document.html]
        if field is VALUE:
            return _first_capture(self, VALUE, texts, patterns.PAGE_VALUE_PATTERNS) or self._bare_value(texts[0])
        if field is DATE:
            return _first_capture(self, DATE, texts, patterns.PAGE_DATE_PATTERNS)
        return _first_capture(self, DOCUMENT_NUMBER, texts, patterns.PAGE_DOCUMENT_NUMBER_PATTERNS)

    def _bare_value(self, text: str) -> Optional[Candidate]:
        matches = patterns.PAGE_BARE_VALUE.findall(text)
        for raw in reversed(matches):
            candidate = self._candidate(VALUE, raw, "bare")
            if candidate is not None:
                return candidate
        return None


LINK_STRATEGIES: List[FieldExtractor] = [LinkPatternExtractor(), UrlParameterExtractor()]
HTML_STRATEGIES: List[FieldExtractor] = [
    StructuralSelectorExtractor(),
    KeywordHeuristicExtractor(),
    RawRegexFallbackExtractor(),
]
