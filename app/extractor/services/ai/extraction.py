"""
Structured-data extraction from document text.

Compiles the schema, sends the instructions and document text to the
completion API with the compiled contract as response format, and returns
the parsed, contract-conforming result. One attempt per call, no retries.
"""

import asyncio
import logging
from typing import Any, Callable

import openai
from pydantic import ValidationError

from ...exceptions import ExtractionFailure, InputError
from ...models import FieldDefinition
from .compiler import CompiledSchema, compile_schema

logger = logging.getLogger(__name__)

DEFAULT_MIN_TEXT_LENGTH = 10
DEFAULT_TIMEOUT_SECONDS = 120.0


def validate_extraction_input(
    text: str | None,
    fields: list[FieldDefinition],
    min_text_length: int = DEFAULT_MIN_TEXT_LENGTH,
) -> str:
    """
    Check the request before any completion call is attempted.

    Raises:
        InputError: If the schema is empty or the text is too short.
    """
    if not fields:
        raise InputError(
            "No text or schema provided",
            detail="The schema must define at least one field",
        )
    if not text or not text.strip():
        raise InputError(
            "No text or schema provided",
            detail="The request must include the text to process",
        )
    if len(text.strip()) < min_text_length:
        raise InputError(
            "Invalid text content",
            detail="The provided text is too short or empty",
        )
    return text


def build_messages(compiled: CompiledSchema, text: str) -> list[dict[str, str]]:
    """System instructions followed by the document text."""
    return [
        {"role": "system", "content": compiled.instructions},
        {"role": "user", "content": text},
    ]


async def _request_completion(
    compiled: CompiledSchema,
    text: str,
    client: Any,
    model: str,
    timeout: float,
) -> Any:
    try:
        return await asyncio.wait_for(
            client.chat.completions.parse(
                model=model,
                messages=build_messages(compiled, text),
                response_format=compiled.model,
                temperature=0,
            ),
            timeout=timeout,
        )
    except asyncio.TimeoutError as e:
        raise ExtractionFailure(
            "Completion request timed out",
            detail=f"No response within {timeout:g} seconds",
        ) from e
    except openai.APITimeoutError as e:
        raise ExtractionFailure("Completion request timed out", detail=str(e)) from e
    except ValidationError as e:
        raise ExtractionFailure(
            "Completion result does not match the schema",
            detail=str(e),
        ) from e
    except openai.OpenAIError as e:
        raise ExtractionFailure("Failed to process text with AI", detail=str(e)) from e


async def extract_data(
    text: str,
    fields: list[FieldDefinition],
    client: Any,  # AsyncOpenAI client
    model: str = "gpt-4o-2024-08-06",
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
    min_text_length: int = DEFAULT_MIN_TEXT_LENGTH,
    use_mock: bool = False,
    get_mock_result: Callable[[list[FieldDefinition]], dict[str, Any]] | None = None,
) -> dict[str, Any]:
    """
    Extract structured data from document text according to a schema.

    Args:
        text: Full document text.
        fields: Ordered top-level fields to extract.
        client: AsyncOpenAI client instance.
        model: Model name to use.
        timeout: Upper bound for the completion call, in seconds.
        min_text_length: Texts shorter than this are rejected.
        use_mock: If True, return a mock result instead of calling OpenAI.
        get_mock_result: Function building the mock result.

    Returns:
        The structured result, keyed by field name in schema order.

    Raises:
        InputError: Text or schema rejected before any request.
        ExtractionFailure: The completion call failed or returned nothing usable.
    """
    validate_extraction_input(text, fields, min_text_length)

    if use_mock and get_mock_result:
        logger.info("Extracting data (MOCK MODE) for %d fields", len(fields))
        return get_mock_result(fields)

    compiled = compile_schema(fields)
    logger.info(
        "Sending extraction request: model=%s, text length=%d, fields=%s",
        model,
        len(text),
        [f.name for f in fields],
    )

    completion = await _request_completion(compiled, text, client, model, timeout)

    if not getattr(completion, "choices", None):
        raise ExtractionFailure("No response received from OpenAI")

    message = completion.choices[0].message
    refusal = getattr(message, "refusal", None)
    if refusal:
        raise ExtractionFailure("The model refused to extract data", detail=refusal)

    parsed = getattr(message, "parsed", None)
    if parsed is None:
        raise ExtractionFailure(
            "Empty result from OpenAI",
            detail="The completion did not contain a parsed result",
        )

    result = parsed.model_dump(by_alias=True)
    logger.info("Successfully extracted %d fields", len(result))
    return result
