"""Fiscal receipt extraction service.

This service turns the link read from a receipt QR code into a
best-effort ``ExtractionResult``. It reconciles three unreliable
channels: the raw link text, the link's query parameters and the portal
page the link points to. The page is fetched once under an explicit
time budget. Should any stage fail the service continues with what the
earlier stages produced, so ``extract`` always returns a result.

Strategy:
1. Normalize the link; it becomes the document identifier.
2. Seed candidates from caller hints, then run the link strategies
   (text patterns, query parameters).
3. Fetch the portal page unless both fields are already known at the
   highest confidence tier.
4. Run the HTML strategies per field, tier by tier, stopping at the first
   tier that yields a valid candidate for that field.
5. Assemble: highest tier wins per field; the identifier is re-asserted.

Diagnostic logging of every candidate can be enabled by setting env var
EXTRACTION_DEBUG=1.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional, Sequence, Union
from urllib.parse import urlsplit

import httpx

from fiscal_receipt.core.cancellation import CancellationToken
from fiscal_receipt.core.config import get_allowed_portal_domains, settings
from fiscal_receipt.core.observability import sentry_set_tags
from fiscal_receipt.models.enums import ConfidenceTier, ExtractionField, PipelineStage
from fiscal_receipt.models.schemas import ExtractionRequest, ExtractionResult, ServiceError
from fiscal_receipt.services.fetcher import fetch_receipt_page
from fiscal_receipt.services.strategies import (
    HTML_STRATEGIES,
    LINK_STRATEGIES,
    Candidate,
    ExtractionSource,
    FieldExtractor,
    ReceiptDocument,
)
from fiscal_receipt.utils.normalizers import normalize_date, normalize_link, normalize_value


logger = logging.getLogger(__name__)

RESULT_FIELDS = (ExtractionField.VALUE, ExtractionField.DATE)
UNKNOWN_PORTAL_ERROR = "Link não pertence a um portal fiscal reconhecido"


def best_candidates(candidates: Iterable[Candidate]) -> Dict[ExtractionField, Candidate]:
    """Highest-tier candidate per field; ties keep the earliest one."""
    best: Dict[ExtractionField, Candidate] = {}
    for candidate in candidates:
        current = best.get(candidate.field)
        if current is None or candidate.tier > current.tier:
            best[candidate.field] = candidate
    return best


def assemble_result(link: str, candidates: Iterable[Candidate]) -> ExtractionResult:
    """Merge candidates into a result whose identifier is always ``link``.

    Document-number candidates from the page are ignored: the
    canonical link is the record key used downstream.
    """
    best = best_candidates(candidates)
    value = best.get(ExtractionField.VALUE)
    date = best.get(ExtractionField.DATE)
    result = ExtractionResult(
        document_identifier=link,
        monetary_value=value.value if value else None,
        emission_date=date.value if date else None,
    )
    return result


class ExtractionService:
    """Runs the extraction pipeline for one request at a time.

    The service holds configuration only; every call builds its own
    candidates, so concurrent calls share no mutable state and retries
    with the same input are side-effect free.
    """

    def __init__(
        self,
        link_strategies: Optional[Sequence[FieldExtractor]] = None,
        html_strategies: Optional[Sequence[FieldExtractor]] = None,
        client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
    ) -> None:
        self.link_strategies = list(link_strategies if link_strategies is not None else LINK_STRATEGIES)
        self.html_strategies = list(html_strategies if html_strategies is not None else HTML_STRATEGIES)
        self.client = client
        self.timeout: float = settings.FETCH_TIMEOUT_SECONDS if timeout is None else timeout
        self.debug: bool = settings.EXTRACTION_DEBUG
        if self.debug:
            logger.info(
                "[extraction:init] link=%s html=%s timeout=%s",
                [s.name for s in self.link_strategies],
                [s.name for s in self.html_strategies],
                self.timeout,
            )

    def _run_strategy(
        self,
        strategy: FieldExtractor,
        source: ExtractionSource,
        fields: Iterable[ExtractionField],
    ) -> List[Candidate]:
        try:
            found = strategy.extract(source, fields)
        except Exception:
            logger.exception("[extraction] strategy %s failed; ignoring", strategy.name)
            return []
        if self.debug:
            for candidate in found:
                logger.info(
                    "[extraction][candidate] %s=%s tier=%s source=%s raw=%r",
                    candidate.field.value,
                    candidate.value,
                    candidate.tier.name,
                    candidate.source,
                    candidate.raw,
                )
        return found

    def _hint_candidates(self, request: ExtractionRequest) -> List[Candidate]:
        hints: List[Candidate] = []
        value = normalize_value(request.hinted_value)
        if value:
            hints.append(Candidate(ExtractionField.VALUE, value, ConfidenceTier.HINT, "hint", request.hinted_value or ""))
        date = normalize_date(request.hinted_date)
        if date:
            hints.append(Candidate(ExtractionField.DATE, date, ConfidenceTier.HINT, "hint", request.hinted_date or ""))
        return hints

    def _open_fields(self, candidates: Iterable[Candidate]) -> List[ExtractionField]:
        """Fields a page strategy could still improve."""
        best = best_candidates(candidates)
        ceiling = max(s.tier for s in self.html_strategies) if self.html_strategies else ConfidenceTier.HINT
        return [f for f in RESULT_FIELDS if f not in best or best[f].tier < ceiling]

    def _should_fetch(self, link: str, candidates: List[Candidate]) -> bool:
        if not settings.FETCH_ENABLED or not self.html_strategies:
            return False
        try:
            if not urlsplit(link).hostname:
                return False
        except ValueError:
            return False
        return bool(self._open_fields(candidates)) or settings.FETCH_WHEN_COMPLETE

    async def _fetch(self, link: str, token: CancellationToken) -> Optional[str]:
        try:
            return await fetch_receipt_page(link, token, client=self.client)
        except Exception:
            logger.exception("[extraction] unexpected fetch failure url=%s", link)
            return None

    def _run_html(self, source: ExtractionSource, candidates: List[Candidate]) -> List[Candidate]:
        pending = self._open_fields(candidates) + [ExtractionField.DOCUMENT_NUMBER]
        found: List[Candidate] = []
        for strategy in self.html_strategies:
            if not pending:
                break
            produced = self._run_strategy(strategy, source, pending)
            found.extend(produced)
            done = {c.field for c in produced}
            pending = [f for f in pending if f not in done]
        return found

    async def extract(self, request: ExtractionRequest, token: Optional[CancellationToken] = None) -> ExtractionResult:
        """Extract value and emission date for ``request``; never raises."""
        stages: List[PipelineStage] = []
        link = normalize_link(request.source_link)
        stages.append(PipelineStage.NORMALIZED)
        try:
            candidates = self._hint_candidates(request)
            source = ExtractionSource(link=link)

            for strategy in self.link_strategies:
                candidates.extend(self._run_strategy(strategy, source, RESULT_FIELDS))
                stages.append(
                    PipelineStage.URL_EXTRACTED
                    if strategy.tier is ConfidenceTier.URL_PARAMETER
                    else PipelineStage.LINK_EXTRACTED
                )

            html: Optional[str] = None
            if self._should_fetch(link, candidates):
                stages.append(PipelineStage.FETCHING)
                html = await self._fetch(link, token or CancellationToken.with_timeout(self.timeout))
            else:
                stages.append(PipelineStage.FETCH_SKIPPED)

            if html:
                source.document = ReceiptDocument(html)
                page_candidates = self._run_html(source, candidates)
                for candidate in page_candidates:
                    if candidate.field is ExtractionField.DOCUMENT_NUMBER:
                        logger.info("[extraction] discarding page document number %s", candidate.value)
                candidates.extend(page_candidates)
                stages.append(PipelineStage.HTML_EXTRACTED)
            else:
                stages.append(PipelineStage.HTML_SKIPPED)
            stages.append(PipelineStage.FIELDS_NORMALIZED)

            result = assemble_result(link, candidates)
        except Exception:
            logger.exception("[extraction] pipeline failed; returning identifier only link=%s", link)
            result = ExtractionResult(document_identifier=link)
        stages.append(PipelineStage.ASSEMBLED)

        logger.info(
            "[extraction] done value=%s date=%s stages=%s",
            result.monetary_value,
            result.emission_date,
            ",".join(s.value for s in stages),
        )
        sentry_set_tags(
            {
                "receipt.value_found": result.monetary_value is not None,
                "receipt.date_found": result.emission_date is not None,
            }
        )
        return result


def is_allowed_portal(link: str, domains: Optional[Sequence[str]] = None) -> bool:
    """True when the link's host is, or is a subdomain of, an allowed domain."""
    try:
        host = (urlsplit(normalize_link(link)).hostname or "").lower()
    except ValueError:
        return False
    if not host:
        return False
    allowed = get_allowed_portal_domains() if domains is None else [d.lower().lstrip(".") for d in domains]
    return any(host == domain or host.endswith("." + domain) for domain in allowed)


async def extract_fiscal_receipt(
    link: str,
    hinted_value: Optional[str] = None,
    hinted_date: Optional[str] = None,
    service: Optional[ExtractionService] = None,
) -> Union[ExtractionResult, ServiceError]:
    """In-process entry point that only accepts known tax-portal hosts.

    Links outside the allow-list short-circuit with a ``ServiceError``
    before any network access.
    """
    if not is_allowed_portal(link):
        logger.info("[extraction] rejected link outside portal allow-list")
        return ServiceError(error=UNKNOWN_PORTAL_ERROR)
    request = ExtractionRequest(source_link=link, hinted_value=hinted_value, hinted_date=hinted_date)
    return await (service or ExtractionService()).extract(request)
