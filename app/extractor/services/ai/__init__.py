"""
AI service package for schema-driven data extraction.

This package provides modular AI functionality split into:
- compiler: Schema → structured-output contract and instructions
- extraction: Completion request for one document
- transcription: Vision fallback for PDFs without a text layer

The AIService class binds these modules to a configured OpenAI client.
"""

import logging
from typing import Any

from PIL import Image

from ...config import get_settings
from ...exceptions import ExtractionFailure
from ...models import FieldDefinition, GroupField, NumberField
from .compiler import CompiledSchema, compile_schema
from .extraction import extract_data as _extract_data
from .transcription import transcribe_pages as _transcribe_pages

logger = logging.getLogger(__name__)

__all__ = [
    "AIService",
    "CompiledSchema",
    "compile_schema",
    "get_ai_service",
]

MOCK_GROUP_ITEMS = 2


class AIService:
    """
    Service for AI-powered structured extraction.

    Uses OpenAI structured outputs with a contract compiled from the
    user's schema. Runs in mock mode when no API key is configured.
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        vision_model: str | None = None,
        timeout: float | None = None,
        min_text_length: int | None = None,
        use_mock: bool = False,
        client: Any = None,
    ):
        """
        Initialize the AI service.

        Args:
            api_key: OpenAI API key. If None, reads from config/environment.
            model: Model used for structured extraction.
            vision_model: Model used to transcribe scanned pages.
            timeout: Per-request timeout in seconds.
            min_text_length: Minimum document text length accepted.
            use_mock: If True, return mock data instead of calling OpenAI.
            client: Pre-built async client (takes precedence over api_key).
        """
        settings = get_settings()
        if api_key is None and client is None:
            api_key = settings.openai_api_key

        self.api_key = api_key
        self.model = model or settings.openai_model
        self.vision_model = vision_model or settings.vision_model
        self.timeout = timeout if timeout is not None else settings.completion_timeout_seconds
        self.min_text_length = (
            min_text_length if min_text_length is not None else settings.min_text_length
        )
        self._client = client
        self.use_mock = use_mock or (client is None and not self.api_key)

        if self.use_mock:
            logger.warning(
                "AI Service running in MOCK MODE. Set OPENAI_API_KEY in .env for real extraction."
            )

    @property
    def client(self):
        """Lazy-load the OpenAI client."""
        if self._client is None:
            if not self.api_key:
                raise ExtractionFailure(
                    "OpenAI API key not provided. Set OPENAI_API_KEY environment variable."
                )
            from openai import AsyncOpenAI

            # Single attempt per request; retries are a caller concern
            self._client = AsyncOpenAI(
                api_key=self.api_key,
                timeout=self.timeout,
                max_retries=0,
            )
        return self._client

    async def extract_data(
        self,
        text: str,
        fields: list[FieldDefinition],
    ) -> dict[str, Any]:
        """
        Extract structured data from document text according to a schema.

        Delegates to the extraction module.

        Args:
            text: Full document text.
            fields: Ordered top-level fields.

        Returns:
            The structured result keyed by field name.
        """
        return await _extract_data(
            text,
            fields,
            client=None if self.use_mock else self.client,
            model=self.model,
            timeout=self.timeout,
            min_text_length=self.min_text_length,
            use_mock=self.use_mock,
            get_mock_result=self._get_mock_result if self.use_mock else None,
        )

    async def transcribe_pages(self, images: list[Image.Image]) -> str:
        """
        Transcribe rendered pages of a scanned PDF.

        Args:
            images: Page images in order.

        Returns:
            Plain text of the pages.
        """
        if self.use_mock:
            logger.info("Transcribing %d page(s) (MOCK MODE)", len(images))
            return "\n\n".join(
                f"MOCK TRANSCRIPTION OF PAGE {i}" for i in range(1, len(images) + 1)
            )
        return await _transcribe_pages(
            images,
            client=self.client,
            model=self.vision_model,
            timeout=self.timeout,
        )

    def compile(self, fields: list[FieldDefinition]) -> CompiledSchema:
        """Compile a schema without sending a request."""
        return compile_schema(fields)

    def _get_mock_result(self, fields: list[FieldDefinition]) -> dict[str, Any]:
        """Return a schema-shaped mock result for development."""

        def mock_value(field: FieldDefinition, index: int) -> Any:
            if isinstance(field, GroupField):
                return [
                    {sub.name: mock_value(sub, item) for sub in field.sub_fields}
                    for item in range(1, MOCK_GROUP_ITEMS + 1)
                ]
            if isinstance(field, NumberField):
                return float(42 * index)
            return f"MOCK-{field.name.upper()}-{index:03d}"

        result: dict[str, Any] = {}
        for field in fields:
            if isinstance(field, GroupField):
                result[field.name] = mock_value(field, 1)
            else:
                result[field.name] = [mock_value(field, 1)]
        return result


# =============================================================================
# Singleton Factory
# =============================================================================

_ai_service: AIService | None = None


def get_ai_service() -> AIService:
    """Get or create the AI service singleton."""
    global _ai_service
    if _ai_service is None:
        _ai_service = AIService()
    return _ai_service
