"""Bounded fetch of the receipt portal page.

One GET with browser-like headers, bounded by an explicit
``CancellationToken``. Every failure mode (DNS, TLS, connect/read
errors, non-2xx status, oversize body, timeout, cancellation) is logged
and reported as ``None`` so the pipeline can continue with the data it
already extracted from the link.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Tuple

import httpx

from fiscal_receipt.core.cancellation import CancellationToken, OperationCancelled
from fiscal_receipt.core.config import settings
from fiscal_receipt.core.observability import sentry_breadcrumb, sentry_metric_inc


logger = logging.getLogger(__name__)


def browser_headers() -> Dict[str, str]:
    """Request headers mimicking a common browser to avoid portal blocks."""
    return {
        "User-Agent": settings.FETCH_USER_AGENT,
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
        "Accept-Language": settings.FETCH_ACCEPT_LANGUAGE,
        "Cache-Control": "no-cache",
        "Pragma": "no-cache",
    }


def _outcome(outcome: str, **data) -> None:
    sentry_breadcrumb("fetch", f"portal fetch {outcome}", data={"outcome": outcome, **data})
    sentry_metric_inc("fiscal_receipt.fetch", tags={"outcome": outcome})


async def _download(client: httpx.AsyncClient, url: str, limit: int) -> Tuple[httpx.Response, Optional[bytes]]:
    """Stream the page body, giving up as soon as it grows past ``limit`` bytes.

    The body is ``None`` for non-2xx responses and for oversize bodies.
    """
    async with client.stream("GET", url, headers=browser_headers()) as response:
        if not response.is_success:
            return response, None
        declared = response.headers.get("content-length", "")
        if declared.isdigit() and int(declared) > limit:
            return response, None
        chunks: List[bytes] = []
        size = 0
        async for chunk in response.aiter_bytes():
            size += len(chunk)
            if size > limit:
                return response, None
            chunks.append(chunk)
        return response, b"".join(chunks)


async def fetch_receipt_page(
    url: str,
    token: CancellationToken,
    client: Optional[httpx.AsyncClient] = None,
) -> Optional[str]:
    """Return the page body for ``url`` or ``None`` on any failure.

    ``client`` may be a shared ``httpx.AsyncClient`` (tests inject one
    backed by ``httpx.MockTransport``); otherwise a client is created for
    this call and closed afterwards. At most ``FETCH_MAX_BYTES`` of the
    body are held in memory.
    """
    if token.expired:
        logger.info("[fetch] skipped url=%s reason=%s", url, token.reason)
        _outcome("skipped")
        return None

    owns_client = client is None
    if client is None:
        remaining = token.remaining()
        client = httpx.AsyncClient(
            follow_redirects=True,
            timeout=httpx.Timeout(remaining if remaining is not None else settings.FETCH_TIMEOUT_SECONDS),
        )
    try:
        response, body = await token.run(_download(client, url, settings.FETCH_MAX_BYTES))
    except OperationCancelled as exc:
        logger.warning("[fetch] aborted url=%s reason=%s", url, exc.reason)
        _outcome("timeout")
        return None
    except (httpx.HTTPError, httpx.InvalidURL) as exc:
        logger.warning("[fetch] transport error url=%s err=%s", url, exc)
        _outcome("error", error=type(exc).__name__)
        return None
    finally:
        if owns_client:
            await client.aclose()

    if not response.is_success:
        logger.warning("[fetch] non-2xx url=%s status=%s", url, response.status_code)
        _outcome("http_status", status=response.status_code)
        return None
    if body is None:
        logger.warning("[fetch] body too large url=%s limit=%d", url, settings.FETCH_MAX_BYTES)
        _outcome("too_large", limit=settings.FETCH_MAX_BYTES)
        return None

    logger.info("[fetch] ok url=%s status=%s size=%d", url, response.status_code, len(body))
    _outcome("ok", status=response.status_code)
    return body.decode(response.encoding or "utf-8", errors="replace")
