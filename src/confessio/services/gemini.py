"""Gemini client for content analysis and image styling.

This module wraps the two generative-AI calls the application makes:

- ``analyze_confession`` asks a text model for a moderation and mood verdict
  and never raises; any failure yields a neutral fallback verdict.
- ``generate_styled_image`` asks an image model to restyle a photo and
  raises ``StylingError`` on failure so callers can show the original.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Final, Literal

import httpx
from pydantic import ValidationError

from confessio.core.settings import settings
from confessio.schemas.confession import SENTIMENTS, AnalysisResult

logger = logging.getLogger(__name__)

StyleName = Literal["cartoon", "sketch", "kawaii", "anime"]

ANALYSIS_PROMPT: Final[str] = """
      Analyze this university student confession.
      1. Check if the content is safe (no hate speech, severe bullying, explicit NSFW, or self-harm). Set isSafe to true or false.
      2. Determine the sentiment (happy, sad, angry, funny, neutral, romantic).
      3. Choose a single emoji that best represents the mood.
      4. Generate 3 short, relevant tags (hashtags without the #).
      5. Suggest a vibrant hex color code that matches the mood.
    """

ANALYSIS_SCHEMA: Final[dict[str, Any]] = {
    "type": "OBJECT",
    "properties": {
        "sentiment": {"type": "STRING", "enum": list(SENTIMENTS)},
        "emoji": {"type": "STRING"},
        "tags": {"type": "ARRAY", "items": {"type": "STRING"}},
        "colorTheme": {"type": "STRING"},
        "isSafe": {"type": "BOOLEAN"},
        "flagReason": {"type": "STRING"},
    },
    "required": ["sentiment", "emoji", "tags", "colorTheme", "isSafe"],
}

STYLE_PROMPTS: Final[dict[str, str]] = {
    "cartoon": (
        "Turn this person into a 3D Pixar-style cartoon character. "
        "High quality, vibrant colors, smooth textures."
    ),
    "sketch": (
        "Turn this photo into a detailed pencil sketch drawing. "
        "Black and white, artistic shading."
    ),
    "kawaii": (
        "Turn this person into a cute 'Kawaii' illustration. "
        "Soft pink pastel colors, big eyes, dreamy aesthetic."
    ),
    "anime": (
        "Turn this person into a high-quality Anime character. "
        "Studio Ghibli style, detailed background."
    ),
}
STYLE_SUFFIX: Final[str] = (
    "Keep the facial expression and composition similar to the original image. "
    "Return ONLY the image."
)


class GeminiError(RuntimeError):
    """Base exception raised for Gemini-related failures."""


class GeminiDisabledError(GeminiError):
    """Raised when a Gemini call is attempted without an API key."""


class StylingError(GeminiError):
    """Raised when the image model does not return a styled image."""


@dataclass(frozen=True)
class GeminiConfig:
    """Immutable configuration for Gemini calls."""

    api_key: str | None
    base_url: str
    analysis_model: str
    image_model: str
    timeout_seconds: float

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)


def load_gemini_config() -> GeminiConfig:
    """Build configuration object from global settings."""

    return GeminiConfig(
        api_key=settings.gemini_api_key,
        base_url=settings.gemini_base_url,
        analysis_model=settings.gemini_analysis_model,
        image_model=settings.gemini_image_model,
        timeout_seconds=float(settings.gemini_http_timeout_seconds),
    )


def strip_data_url(data: str) -> str:
    """Return the base64 payload of a data URL, or ``data`` unchanged."""
    if data.startswith("data:") and "," in data:
        return data.split(",", 1)[1]
    return data


class GeminiClient:
    """HTTP client wrapper for the Gemini ``generateContent`` endpoint."""

    def __init__(
        self,
        config: GeminiConfig | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config or load_gemini_config()
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._client_lock = asyncio.Lock()

    @property
    def enabled(self) -> bool:
        return self.config.enabled

    async def _ensure_client(self) -> httpx.AsyncClient:
        if not self.enabled:
            raise GeminiDisabledError("Gemini API key is not configured")

        async with self._client_lock:
            if self._client is None:
                self._client = httpx.AsyncClient(
                    base_url=self.config.base_url,
                    timeout=httpx.Timeout(self.config.timeout_seconds),
                    transport=self._transport,
                )
        return self._client

    async def generate_content(self, model: str, body: dict[str, Any]) -> dict[str, Any]:
        """POST a ``generateContent`` request and return the decoded payload."""
        client = await self._ensure_client()
        try:
            response = await client.post(
                f"/models/{model}:generateContent",
                json=body,
                headers={"x-goog-api-key": self.config.api_key or ""},
            )
        except httpx.HTTPError as exc:
            raise GeminiError(f"Gemini request failed: {exc}") from exc

        if response.status_code >= 400:
            raise GeminiError(f"Gemini responded with {response.status_code}")
        try:
            payload = response.json()
        except ValueError as exc:
            raise GeminiError("Gemini returned a non-JSON body") from exc
        if not isinstance(payload, dict):
            raise GeminiError("Gemini returned an unexpected payload")
        return payload

    async def analyze_confession(self, text: str, image: str | None = None) -> AnalysisResult:
        """Return the moderation and mood verdict for a confession.

        Never raises: every failure is logged and answered with
        ``AnalysisResult.fallback()``.
        """
        parts: list[dict[str, Any]] = [
            {"text": ANALYSIS_PROMPT},
            {"text": f'Confession Text: "{text}"'},
        ]
        if image:
            parts.append({"inlineData": {"mimeType": "image/jpeg", "data": strip_data_url(image)}})

        body = {
            "contents": [{"parts": parts}],
            "generationConfig": {
                "responseMimeType": "application/json",
                "responseSchema": ANALYSIS_SCHEMA,
            },
        }

        try:
            payload = await self.generate_content(self.config.analysis_model, body)
            raw = _first_text(payload)
            if raw is None:
                raise GeminiError("No response from AI")
            return AnalysisResult.model_validate(json.loads(raw))
        except (GeminiError, ValueError, ValidationError) as exc:
            logger.error("Gemini analysis error: %s", exc)
            return AnalysisResult.fallback()

    async def generate_styled_image(self, image: str, style: StyleName) -> str:
        """Restyle ``image`` and return the result as a data URL.

        Raises:
            StylingError: If the call fails or no image part comes back.
        """
        prompt = STYLE_PROMPTS.get(style)
        if prompt is None:
            raise StylingError(f"Unknown style: {style}")

        body = {
            "contents": [
                {
                    "parts": [
                        {"inlineData": {"data": strip_data_url(image), "mimeType": "image/jpeg"}},
                        {"text": f"{prompt} {STYLE_SUFFIX}"},
                    ]
                }
            ]
        }

        try:
            payload = await self.generate_content(self.config.image_model, body)
            parts = _first_parts(payload)
        except GeminiError as exc:
            logger.error("Gemini image generation error: %s", exc)
            raise StylingError(str(exc)) from exc

        for part in parts:
            inline = part.get("inlineData") or part.get("inline_data")
            if not isinstance(inline, dict):
                continue
            data = inline.get("data")
            if isinstance(data, str) and data:
                mime_type = inline.get("mimeType") or inline.get("mime_type")
                if not isinstance(mime_type, str) or not mime_type:
                    mime_type = "image/png"
                return f"data:{mime_type};base64,{data}"

        logger.error("Gemini image generation error: no image part in response")
        raise StylingError("No image generated")

    async def close(self) -> None:
        """Clean up underlying HTTP client resources."""

        async with self._client_lock:
            if self._client is not None:
                await self._client.aclose()
                self._client = None


def _first_parts(payload: dict[str, Any]) -> list[dict[str, Any]]:
    """Return the parts of the first candidate.

    Raises:
        GeminiError: If the candidate structure is not the documented shape.
    """
    candidates = payload.get("candidates") or []
    if not isinstance(candidates, list):
        raise GeminiError("Malformed candidates in Gemini response")
    if not candidates:
        return []
    candidate = candidates[0]
    if not isinstance(candidate, dict):
        raise GeminiError("Malformed candidate in Gemini response")
    content = candidate.get("content") or {}
    if not isinstance(content, dict):
        raise GeminiError("Malformed content in Gemini response")
    parts = content.get("parts") or []
    if not isinstance(parts, list):
        raise GeminiError("Malformed parts in Gemini response")
    return [part for part in parts if isinstance(part, dict)]


def _first_text(payload: dict[str, Any]) -> str | None:
    texts = [part.get("text") for part in _first_parts(payload) if part.get("text")]
    if any(not isinstance(text, str) for text in texts):
        raise GeminiError("Non-text part in Gemini analysis response")
    return "".join(texts) if texts else None


class _GeminiClientSingleton:
    """Singleton wrapper for GeminiClient."""

    _instance: GeminiClient | None = None

    @classmethod
    def get_instance(cls) -> GeminiClient:
        """Get or create the singleton GeminiClient instance."""
        if cls._instance is None:
            cls._instance = GeminiClient()
        return cls._instance


def get_gemini_client() -> GeminiClient:
    """Return a singleton Gemini client instance."""
    return _GeminiClientSingleton.get_instance()
