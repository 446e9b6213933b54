"""API routes for fiscal receipt QR code extraction."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse

from fiscal_receipt.core.config import settings
from fiscal_receipt.models.schemas import (
    MISSING_LINK_ERROR,
    FiscalReceiptMessage,
    FiscalReceiptRequest,
    ServiceError,
)
from fiscal_receipt.services.extraction_service import ExtractionService, extract_fiscal_receipt

logger = logging.getLogger(__name__)

router = APIRouter(prefix=settings.API_PREFIX, tags=["fiscal-receipt"])


def cors_headers(origin: Optional[str] = None) -> Dict[str, str]:
    """CORS headers for ``origin`` according to ``CORS_ALLOW_ORIGINS``.

    A wildcard entry allows every origin; otherwise only a listed origin
    is echoed back and unknown origins get no ``Allow-Origin`` header.
    """
    headers = {
        "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
        "Access-Control-Allow-Headers": "Content-Type, Authorization",
    }
    allowed = list(settings.CORS_ALLOW_ORIGINS or ["*"])
    if "*" in allowed:
        headers["Access-Control-Allow-Origin"] = "*"
    elif origin and origin in allowed:
        headers["Access-Control-Allow-Origin"] = origin
        headers["Vary"] = "Origin"
    return headers


def get_extraction_service() -> ExtractionService:
    """Dependency hook; tests override it with a service using a mock transport."""
    return ExtractionService()


def _json(request: Request, content: Any, status_code: int = 200) -> JSONResponse:
    return JSONResponse(
        content=content,
        status_code=status_code,
        headers=cors_headers(request.headers.get("origin")),
    )


def _missing_link(body: FiscalReceiptRequest) -> bool:
    return not (body.qr_code_link and body.qr_code_link.strip())


@router.options("/fiscal-receipt", include_in_schema=False)
@router.options("/fiscal-receipt-mobile", include_in_schema=False)
async def fiscal_receipt_preflight(request: Request) -> Response:
    """Answer CORS preflight with the same headers as POST."""
    return _json(request, {})


@router.post("/fiscal-receipt")
async def extract_receipt(
    request: Request,
    body: FiscalReceiptRequest,
    service: ExtractionService = Depends(get_extraction_service),
):
    """Extract value and emission date from a scanned receipt link.

    Always answers 200 once a link is present: a body with
    ``numeroDocumento`` when a value or date was found, otherwise a
    ``message`` body so the UI asks for manual entry.
    """
    if _missing_link(body):
        return _json(request, {"error": MISSING_LINK_ERROR}, status_code=400)
    try:
        result = await service.extract(body.to_extraction_request())
    except Exception:
        logger.exception("[api] fiscal receipt extraction failed")
        return _json(request, FiscalReceiptMessage().model_dump())
    if not result.has_data:
        return _json(request, FiscalReceiptMessage().model_dump())
    return _json(request, result.to_response())


@router.post("/fiscal-receipt-mobile")
async def extract_receipt_mobile(
    request: Request,
    body: FiscalReceiptRequest,
    service: ExtractionService = Depends(get_extraction_service),
):
    """Variant for mobile clients; only known tax-portal hosts are fetched."""
    if _missing_link(body):
        return _json(request, {"error": MISSING_LINK_ERROR}, status_code=400)
    outcome = await extract_fiscal_receipt(
        body.qr_code_link or "",
        hinted_value=body.pre_extracted_valor,
        hinted_date=body.pre_extracted_data,
        service=service,
    )
    if isinstance(outcome, ServiceError):
        return _json(request, outcome.model_dump())
    return _json(request, outcome.to_response())
