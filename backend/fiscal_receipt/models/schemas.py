"""Pydantic schemas for request and response models.

Pydantic models are used for validating and serialising data that
crosses the boundary of the API. This module defines both the domain
schemas (``ExtractionRequest``, ``ExtractionResult``) consumed by the
extraction pipeline and the API facing bodies of the fiscal receipt
endpoints.

The wire format keeps the field names the document-registration UI and
the mobile clients already send and expect (``qrCodeLink``,
``numeroDocumento``, ``valor``, ``dataEmissao``); the Python side uses
snake_case attributes with aliases.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


NO_DATA_MESSAGE = "QR Code processado, sem dados extraídos"
MISSING_LINK_ERROR = "Link do QR Code não fornecido"


# ---------------------------------------------------------------------------
# Domain schemas used by the extraction pipeline


class ExtractionRequest(BaseModel):
    """Input of a single extraction run.

    ``hinted_value`` and ``hinted_date`` are values the caller already
    parsed elsewhere. They seed the result at the lowest confidence and
    are replaced by any valid candidate an extractor finds.
    """

    source_link: str = ""
    hinted_value: Optional[str] = None
    hinted_date: Optional[str] = None


class ExtractionResult(BaseModel):
    """Best-effort structured record for a scanned receipt link."""

    model_config = ConfigDict(populate_by_name=True)

    document_identifier: str = Field(serialization_alias="numeroDocumento")
    monetary_value: Optional[str] = Field(default=None, serialization_alias="valor")
    emission_date: Optional[str] = Field(default=None, serialization_alias="dataEmissao")

    @property
    def has_data(self) -> bool:
        return bool(self.monetary_value or self.emission_date)

    def to_response(self) -> Dict[str, Any]:
        """Wire representation; absent fields are omitted."""
        return self.model_dump(by_alias=True, exclude_none=True)


# ---------------------------------------------------------------------------
# API facing schemas


class FiscalReceiptRequest(BaseModel):
    """Body of ``POST /api/fiscal-receipt`` and the mobile variant."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    qr_code_link: Optional[str] = Field(default=None, alias="qrCodeLink")
    pre_extracted_valor: Optional[str] = Field(default=None, alias="preExtractedValor")
    pre_extracted_data: Optional[str] = Field(default=None, alias="preExtractedData")

    def to_extraction_request(self) -> ExtractionRequest:
        return ExtractionRequest(
            source_link=self.qr_code_link or "",
            hinted_value=self.pre_extracted_valor,
            hinted_date=self.pre_extracted_data,
        )


class FiscalReceiptMessage(BaseModel):
    """Returned when nothing beyond the identifier could be extracted."""

    message: str = NO_DATA_MESSAGE


class ServiceError(BaseModel):
    """Short-circuit result of the in-process service function."""

    error: str
