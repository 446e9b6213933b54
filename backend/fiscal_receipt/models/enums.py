"""Enumeration types used throughout the fiscal receipt extraction API.

Enumerations make it easier to constrain the values passed between the
extraction strategies and the result assembler. ``ConfidenceTier`` is an
``IntEnum`` so tiers compare directly: the assembler keeps the candidate
with the highest tier for each field.
"""

from enum import Enum, IntEnum


class ConfidenceTier(IntEnum):
    """Relative trust ranking of candidate sources (higher wins)."""

    HINT = 0
    LINK_PATTERN = 1
    RAW_REGEX = 2
    KEYWORD_HEURISTIC = 3
    STRUCTURAL = 4
    URL_PARAMETER = 5


class ExtractionField(str, Enum):
    """Fields a strategy can propose a candidate for."""

    VALUE = "value"
    DATE = "date"
    DOCUMENT_NUMBER = "document_number"


class PipelineStage(str, Enum):
    """Per-request pipeline states, in the order they are visited."""

    NORMALIZED = "normalized"
    LINK_EXTRACTED = "link_extracted"
    URL_EXTRACTED = "url_extracted"
    FETCHING = "fetching"
    FETCH_SKIPPED = "fetch_skipped"
    HTML_EXTRACTED = "html_extracted"
    HTML_SKIPPED = "html_skipped"
    FIELDS_NORMALIZED = "fields_normalized"
    ASSEMBLED = "assembled"
