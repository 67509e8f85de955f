"""
AI-assisted accessibility helpers.

Speech transcription and image alt text are delegated to OpenAI; contrast
analysis is computed locally from the WCAG relative-luminance formula.
"""

from __future__ import annotations

import base64
import io
import logging
from dataclasses import asdict, dataclass
from typing import Dict, Iterable, List, Optional, Sequence

import httpx
import openai
import pikepdf
from pikepdf import PdfImage

from accessly.exceptions import (
    AltTextFailed,
    AuthError,
    BadInput,
    BadRequest,
    ConfigurationError,
    QuotaExceeded,
    TranscriptionFailed,
)
from accessly.settings import AIConfig

logger = logging.getLogger("accessly-ai")

TRANSCRIPTION_PROMPT = "PDF accessibility, WCAG compliance, document analysis"
ALT_TEXT_SYSTEM_PROMPT = (
    "You are an accessibility expert. Generate concise, descriptive alt text for images "
    "in PDF documents. Focus on what is important for understanding the document content. "
    "Keep descriptions under 125 characters when possible."
)
ALT_TEXT_FAILED_PLACEHOLDER = "Image description generation failed"
ALT_TEXT_MAX_TOKENS = 300

COST_PER_UNIT = {
    "altText": 0.02,
    "formLabels": 0.001,
}


def _build_client(config: AIConfig) -> openai.OpenAI:
    if not config.api_key:
        raise ConfigurationError("OPENAI_API_KEY is not configured")
    return openai.OpenAI(
        api_key=config.api_key,
        timeout=config.timeout,
        base_url=config.base_url,
    )


def transcribe_audio(
    audio_bytes: bytes,
    file_name: str = "recording.webm",
    config: Optional[AIConfig] = None,
) -> str:
    """Transcribe an English voice recording."""
    config = config or AIConfig.from_env()
    if not audio_bytes:
        raise BadInput("Audio file is empty")
    client = _build_client(config)
    logger.info("[AI] Transcribing %s (%d bytes) with %s", file_name, len(audio_bytes), config.transcribe_model)
    try:
        transcription = client.audio.transcriptions.create(
            model=config.transcribe_model,
            file=(file_name, audio_bytes),
            language="en",
            prompt=TRANSCRIPTION_PROMPT,
        )
    except openai.RateLimitError as exc:
        raise QuotaExceeded("OpenAI API quota exceeded. Please check your billing.") from exc
    except openai.AuthenticationError as exc:
        raise AuthError("Invalid OpenAI API key") from exc
    except openai.BadRequestError as exc:
        raise BadInput("Invalid audio format or corrupted file") from exc
    except (openai.APIConnectionError, httpx.ConnectError, httpx.TimeoutException) as exc:
        raise TranscriptionFailed(f"AI provider network error: {exc}") from exc
    except openai.APIError as exc:
        raise TranscriptionFailed(f"AI provider API error: {exc}") from exc

    text = (getattr(transcription, "text", None) or "").strip()
    if not text:
        raise TranscriptionFailed("Transcription returned no text")
    logger.info("[AI] Transcription complete (%d chars)", len(text))
    return text


def generate_alt_text(
    image_bytes: bytes,
    context: Optional[str] = None,
    config: Optional[AIConfig] = None,
    client: Optional[openai.OpenAI] = None,
) -> str:
    config = config or AIConfig.from_env()
    client = client or _build_client(config)
    prompt = (
        f"Generate alt text for this image. Context: {context}"
        if context
        else "Generate alt text for this image. Describe what is shown clearly and concisely."
    )
    image_url = "data:image/png;base64," + base64.b64encode(image_bytes).decode("ascii")
    try:
        response = client.chat.completions.create(
            model=config.vision_model,
            max_tokens=ALT_TEXT_MAX_TOKENS,
            messages=[
                {"role": "system", "content": ALT_TEXT_SYSTEM_PROMPT},
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": prompt},
                        {"type": "image_url", "image_url": {"url": image_url, "detail": "low"}},
                    ],
                },
            ],
        )
    except (openai.APIConnectionError, httpx.ConnectError, httpx.TimeoutException) as exc:
        raise AltTextFailed(f"AI provider network error: {exc}") from exc
    except openai.APIError as exc:
        raise AltTextFailed(f"AI provider API error: {exc}") from exc

    if not response.choices:
        raise AltTextFailed("AI returned no choices")
    content = (response.choices[0].message.content or "").strip()
    if not content:
        raise AltTextFailed("AI returned empty alt text")
    return content


@dataclass
class ImageInput:
    id: str
    page: int
    data: bytes


@dataclass
class AltTextResult:
    id: str
    page_num: int
    alt_text: str
    success: bool

    def to_dict(self) -> Dict[str, object]:
        return {
            "id": self.id,
            "pageNum": self.page_num,
            "altText": self.alt_text,
            "success": self.success,
        }


def batch_generate_alt_text(
    images: Sequence[ImageInput], config: Optional[AIConfig] = None
) -> List[AltTextResult]:
    """Describe every image; individual failures degrade to a placeholder."""
    config = config or AIConfig.from_env()
    client = _build_client(config)
    results: List[AltTextResult] = []
    for index, image in enumerate(images, start=1):
        try:
            text = generate_alt_text(
                image.data,
                f"Page {image.page}, Image {index}",
                config=config,
                client=client,
            )
            results.append(AltTextResult(image.id, image.page, text, True))
        except AltTextFailed as exc:
            logger.warning("[AI] Alt text failed for %s: %s", image.id, exc)
            results.append(AltTextResult(image.id, image.page, ALT_TEXT_FAILED_PLACEHOLDER, False))
    return results


def estimate_ai_cost(operation: str, count: int) -> float:
    return round(COST_PER_UNIT.get(operation, 0.0) * max(0, count), 4)


# ---------------------------------------------------------------------------
# Colour contrast
# ---------------------------------------------------------------------------


@dataclass
class RGB:
    r: int
    g: int
    b: int

    @classmethod
    def from_dict(cls, value: Dict[str, object]) -> "RGB":
        try:
            channels = [int(value[key]) for key in ("r", "g", "b")]
        except (KeyError, TypeError, ValueError) as exc:
            raise BadRequest("Colours must provide integer r, g and b channels") from exc
        if any(channel < 0 or channel > 255 for channel in channels):
            raise BadRequest("Colour channels must be between 0 and 255")
        return cls(*channels)


@dataclass
class ContrastResult:
    ratio: float
    passes_aa: bool
    passes_aaa: bool
    suggestion: Optional[Dict[str, object]] = None

    def to_dict(self) -> Dict[str, object]:
        return {
            "ratio": round(self.ratio, 2),
            "passes": {"aa": self.passes_aa, "aaa": self.passes_aaa},
            "suggestion": self.suggestion,
        }


def _channel(value: int) -> float:
    srgb = value / 255
    return srgb / 12.92 if srgb <= 0.03928 else ((srgb + 0.055) / 1.055) ** 2.4


def relative_luminance(color: RGB) -> float:
    return 0.2126 * _channel(color.r) + 0.7152 * _channel(color.g) + 0.0722 * _channel(color.b)


def contrast_ratio(first: RGB, second: RGB) -> float:
    l1, l2 = relative_luminance(first), relative_luminance(second)
    return (max(l1, l2) + 0.05) / (min(l1, l2) + 0.05)


def analyze_color_contrast(foreground: RGB, background: RGB, font_size: float = 12) -> ContrastResult:
    # Text from 14pt is assumed bold, which WCAG counts as large.
    large_text = font_size >= 14
    aa_required = 3.0 if large_text else 4.5
    aaa_required = 4.5 if large_text else 7.0

    ratio = contrast_ratio(foreground, background)
    result = ContrastResult(ratio=ratio, passes_aa=ratio >= aa_required, passes_aaa=ratio >= aaa_required)
    if not result.passes_aa:
        darkened = RGB(*(max(0, channel - 50) for channel in (foreground.r, foreground.g, foreground.b)))
        result.suggestion = {
            "foreground": asdict(darkened),
            "background": asdict(background),
            "ratio": round(contrast_ratio(darkened, background), 2),
        }
    return result


def summarize_contrast(results: Iterable[ContrastResult]) -> Dict[str, int]:
    results = list(results)
    return {
        "aaFailures": sum(1 for item in results if not item.passes_aa),
        "aaaFailures": sum(1 for item in results if not item.passes_aaa),
    }


def extract_images(pdf_bytes: bytes, limit: Optional[int] = None) -> List[ImageInput]:
    """Extract raster images as PNG bytes; ids have the form ``p<page>-<name>``."""
    images: List[ImageInput] = []
    with pikepdf.open(io.BytesIO(pdf_bytes)) as pdf:
        for page_number, page in enumerate(pdf.pages, start=1):
            for name, raw_image in page.images.items():
                try:
                    pil_image = PdfImage(raw_image).as_pil_image()
                    buffer = io.BytesIO()
                    pil_image.save(buffer, format="PNG")
                except Exception as exc:
                    logger.warning("[AI] Skipping unreadable image %s on page %d: %s", name, page_number, exc)
                    continue
                images.append(ImageInput(id=f"p{page_number}-{str(name).lstrip('/')}", page=page_number, data=buffer.getvalue()))
                if limit is not None and len(images) >= limit:
                    return images
    return images
