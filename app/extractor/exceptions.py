"""
Error taxonomy shared by the extraction pipeline.

Every failure that can reach a request handler derives from PipelineError
and carries a human-readable message plus optional upstream detail.
"""

from typing import Any


class PipelineError(Exception):
    """Base class for pipeline failures surfaced to API callers."""

    def __init__(self, message: str, detail: str | None = None):
        super().__init__(message)
        self.message = message
        self.detail = detail

    def to_payload(self) -> dict[str, Any]:
        """Structured error body returned to clients."""
        payload: dict[str, Any] = {"detail": self.message}
        if self.detail:
            payload["context"] = self.detail
        return payload


class InputError(PipelineError):
    """Missing file, missing/empty schema, or document text below the minimum length."""


class ExtractionFailure(PipelineError):
    """Upstream parsing or completion service failure."""


class SerializationFailure(PipelineError):
    """Spreadsheet building failed; no partial output is produced."""
