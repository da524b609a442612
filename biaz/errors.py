"""Exception types raised by the ingestion pipeline."""

from __future__ import annotations

from enum import Enum


class PipelineError(Exception):
    """Base class for pipeline failures"""
    pass


class AcquisitionError(PipelineError):
    """No fetch strategy could produce article content."""
    pass


class GenerationError(PipelineError):
    """No generative backend produced a response."""
    pass


class RejectionReason(str, Enum):
    NO_SYMBOLS = "no_symbols"
    ADVERTISEMENT = "advertisement"
    NO_IMAGE = "no_image"
    DUPLICATE_TITLE = "duplicate_title"


REJECTION_MESSAGES = {
    RejectionReason.NO_SYMBOLS: "No stock symbols found in article",
    RejectionReason.ADVERTISEMENT: "Article appears to be an advertisement",
    RejectionReason.NO_IMAGE: "No valid unique image URL found for article",
    RejectionReason.DUPLICATE_TITLE: "Article with same title already exists",
}


class IngestionRejected(PipelineError):
    """Admission policy refused a candidate.

    This is a terminal outcome rather than a fault: callers tally on `reason`.
    """

    def __init__(self, reason: RejectionReason, detail: str = ""):
        self.reason = reason
        self.detail = detail
        message = REJECTION_MESSAGES[reason]
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
