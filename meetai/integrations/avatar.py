"""Gemini avatar generation.

Turns a short description into a profile picture with Gemini's image model,
called over the Generative Language REST API. Returns a ``data:`` URI that
can be stored as the user's avatar reference.

Gracefully degrades: returns None on any failure (no API key, timeout,
HTTP error, no image in the response, etc.).
"""

from __future__ import annotations

import base64
import binascii
import logging

import httpx

logger = logging.getLogger(__name__)

_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/models"
AVATAR_MODEL = "gemini-2.0-flash-preview-image-generation"
_TIMEOUT_SECONDS = 60

_PROMPT = (
    "Generate a professional and friendly avatar for a user based on the following "
    "description: {description}. The avatar should be suitable for a professional "
    "profile picture."
)


async def generate_avatar(description: str, api_key: str) -> str | None:
    """Generate an avatar image and return it as ``data:<mime>;base64,<data>``."""
    if not description.strip() or not api_key:
        return None

    body = {
        "contents": [{"parts": [{"text": _PROMPT.format(description=description.strip())}]}],
        "generationConfig": {"responseModalities": ["TEXT", "IMAGE"]},
    }
    try:
        async with httpx.AsyncClient(timeout=_TIMEOUT_SECONDS) as client:
            resp = await client.post(
                f"{_BASE_URL}/{AVATAR_MODEL}:generateContent",
                params={"key": api_key},
                json=body,
            )
            resp.raise_for_status()
            data = resp.json()

        for candidate in data.get("candidates", []):
            for part in candidate.get("content", {}).get("parts", []):
                inline = part.get("inlineData")
                if inline and inline.get("data"):
                    mime = inline.get("mimeType", "image/png")
                    return f"data:{mime};base64,{inline['data']}"

        logger.warning("Avatar response carried no image")
        return None
    except Exception as exc:
        logger.warning("Avatar generation failed: %s", exc)
        return None


def decode_data_uri(uri: str) -> bytes | None:
    """Raw bytes of a base64 ``data:`` URI, or None if it isn't one."""
    header, sep, payload = uri.partition(",")
    if not sep or not header.startswith("data:") or not header.endswith(";base64"):
        return None
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError):
        return None
