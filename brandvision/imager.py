"""
imager.py — Renders one marketing visual per creative concept with Gemini.

  resolve_aspect_ratio(tag)   → one of the ratios the image model accepts
  build_image_prompt(concept) → scene instruction, no text / no logos
  ImageGenerator.generate(concept) → "data:<mime>;base64,<payload>"

Images are pure visuals. Headline, copy and CTA stay in the concept and are
never rendered into the picture.
"""

from __future__ import annotations

import base64
from typing import Optional, Sequence, Tuple

from google import genai
from google.genai import types
from rich.console import Console

from .config import DEFAULT_IMAGE_MODEL, DEFAULT_TIMEOUT_SECONDS
from .models import ImageConcept

console = Console()


class ImageGenerationError(Exception):
    """A single concept could not be rendered."""


class EmptyImageError(ImageGenerationError):
    """The image model answered without any image payload."""


# ── Aspect ratio ──────────────────────────────────────────────────────────────

SUPPORTED_RATIOS = ("1:1", "3:4", "4:3", "9:16", "16:9")

RATIO_MAP = {
    "1:1": "1:1",
    "4:5": "3:4",
    "9:16": "9:16",
    "16:9": "16:9",
    "3:4": "3:4",
    "4:3": "4:3",
}


def resolve_aspect_ratio(tag: Optional[str]) -> str:
    """Map a free-form ratio tag onto SUPPORTED_RATIOS; anything unknown is 1:1."""
    if not tag:
        return "1:1"
    return RATIO_MAP.get(tag.strip(), "1:1")


def build_image_prompt(concept: ImageConcept) -> str:
    return (
        f"High-conversion marketing photography/digital art for {concept.platform}. "
        f"Focus: {concept.visual_prompt}. "
        "NO TEXT, NO LOGOS. Clean, professional lighting, modern aesthetic."
    )


# ── Data URIs ─────────────────────────────────────────────────────────────────

def encode_image(data: bytes, mime_type: str = "image/png") -> str:
    return f"data:{mime_type};base64,{base64.b64encode(data).decode('ascii')}"


def decode_image(encoded: str) -> Tuple[str, bytes]:
    """Split a data URI into (mime_type, raw bytes)."""
    if not encoded.startswith("data:") or ";base64," not in encoded:
        raise ValueError("not a base64 data URI")
    header, payload = encoded.split(",", 1)
    mime_type = header[len("data:"):].split(";", 1)[0] or "image/png"
    return mime_type, base64.b64decode(payload)


# ── Generator ─────────────────────────────────────────────────────────────────

# Models tried in order; the next one is used only when a model is unavailable
FALLBACK_MODELS = [
    "gemini-3-pro-image-preview",
]

_UNAVAILABLE_HINTS = ("not found", "permission", "not supported", "invalid")


class ImageGenerator:
    """Generates one image per concept."""

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_IMAGE_MODEL,
        timeout_seconds: int = DEFAULT_TIMEOUT_SECONDS,
        client=None,
        fallback_models: Optional[Sequence[str]] = None,
    ) -> None:
        self.client = client or genai.Client(
            api_key=api_key,
            http_options=types.HttpOptions(timeout=timeout_seconds * 1000),
        )
        ladder = [model] + list(FALLBACK_MODELS if fallback_models is None else fallback_models)
        self.models = list(dict.fromkeys(ladder))

    def _request(self, concept: ImageConcept):
        prompt = build_image_prompt(concept)
        ratio = resolve_aspect_ratio(concept.aspect_ratio)
        last_error: Optional[Exception] = None

        for model in self.models:
            try:
                response = self.client.models.generate_content(
                    model=model,
                    contents=prompt,
                    config=types.GenerateContentConfig(
                        response_modalities=["IMAGE", "TEXT"],
                        image_config=types.ImageConfig(aspect_ratio=ratio),
                    ),
                )
                return model, response
            except Exception as e:
                if any(k in str(e).lower() for k in _UNAVAILABLE_HINTS):
                    last_error = e
                    continue
                raise ImageGenerationError(f"{concept.platform} image request failed: {e}") from e

        raise ImageGenerationError(f"No image model available: {last_error}")

    def generate(self, concept: ImageConcept) -> str:
        """
        Render the concept and return it as a base64 data URI.

        Raises:
            EmptyImageError:      the service returned no image payload
            ImageGenerationError: the request itself failed
        """
        model, response = self._request(concept)

        for candidate in getattr(response, "candidates", None) or []:
            content = getattr(candidate, "content", None)
            for part in getattr(content, "parts", None) or []:
                inline = getattr(part, "inline_data", None)
                if inline and inline.data:
                    data = inline.data
                    if isinstance(data, str):
                        data = base64.b64decode(data)
                    short = model.replace("gemini-", "").replace("-image", "")
                    console.print(f"  [green]✓ {concept.platform}[/green] ({short})")
                    return encode_image(data, getattr(inline, "mime_type", None) or "image/png")

        raise EmptyImageError(f"No image generated for concept {concept.id}")
