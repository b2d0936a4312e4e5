"""
Vision transcription of rendered PDF pages.

Used when a PDF has no text layer (scanned documents): the pages are
rendered to images and the vision model returns their plain text.
"""

import asyncio
import base64
import io
import logging
from typing import Any

from PIL import Image

from ...exceptions import ExtractionFailure

logger = logging.getLogger(__name__)

TRANSCRIPTION_PROMPT = """Transcribe all text on these document pages.

- Keep the reading order of the page (top to bottom, left to right).
- Reproduce tables row by row, separating cells with " | ".
- Keep numbers, currency symbols and dates exactly as printed.
- Do not summarize, translate or add commentary.
- Separate pages with a blank line."""


def _image_to_base64(image: Image.Image) -> str:
    """Convert PIL Image to base64 string for API."""
    buffer = io.BytesIO()
    # Resize if too large (max 2048px on longest side for efficiency)
    max_size = 2048
    if max(image.size) > max_size:
        ratio = max_size / max(image.size)
        new_size = (int(image.size[0] * ratio), int(image.size[1] * ratio))
        image = image.resize(new_size, Image.Resampling.LANCZOS)

    image.save(buffer, format="PNG", optimize=True)
    buffer.seek(0)
    return base64.b64encode(buffer.getvalue()).decode("utf-8")


async def transcribe_pages(
    images: list[Image.Image],
    client: Any,  # AsyncOpenAI client
    model: str = "gpt-4o-2024-08-06",
    timeout: float = 120.0,
) -> str:
    """
    Transcribe page images to plain text.

    Args:
        images: Rendered pages, in order.
        client: AsyncOpenAI client instance.
        model: Vision-capable model name.
        timeout: Upper bound for the call, in seconds.

    Returns:
        The transcribed text (may be empty).

    Raises:
        ExtractionFailure: If the call fails or times out.
    """
    if not images:
        return ""

    content: list[dict[str, Any]] = [{"type": "text", "text": TRANSCRIPTION_PROMPT}]
    for image in images:
        content.append({
            "type": "image_url",
            "image_url": {
                "url": f"data:image/png;base64,{_image_to_base64(image)}",
                "detail": "high",
            },
        })

    logger.info("Transcribing %d page image(s) with %s", len(images), model)

    try:
        response = await asyncio.wait_for(
            client.chat.completions.create(
                model=model,
                messages=[{"role": "user", "content": content}],
                temperature=0,
            ),
            timeout=timeout,
        )
    except asyncio.TimeoutError as e:
        raise ExtractionFailure(
            "Page transcription timed out",
            detail=f"No response within {timeout:g} seconds",
        ) from e
    except Exception as e:
        logger.exception("Page transcription failed")
        raise ExtractionFailure("Page transcription failed", detail=str(e)) from e

    if not response.choices:
        raise ExtractionFailure("No response received from OpenAI")

    return (response.choices[0].message.content or "").strip()
