"""AI check that a submitted photo matches the claimed activity type.

The verdict is advisory: anything that prevents a clear answer from the
vision model resolves to a permissive default instead of blocking the user.
"""

from __future__ import annotations

import json
import re
from typing import Any, Hashable

import requests
from flask import current_app

from ..utils.generation import RequestGeneration
from ..utils.logger import get_logger

logger = get_logger(__name__)

ACTIVITY_PROMPT_LABELS = {
    "tree_plantation": "tree planting or plantation activity",
    "cleanup": "cleanup drive or waste collection activity",
    "recycling": "recycling or waste sorting activity",
    "eco_habit": "eco-friendly habit such as using reusable items, composting, cycling, or conservation",
}

PROMPT_TEMPLATE = (
    "You are an image verification assistant for an environmental volunteering app. "
    "Your job is to determine whether an uploaded photo shows evidence of a specific "
    "activity type. Be reasonably lenient: the photo doesn't need to be perfect, just "
    "clearly related to the activity.\n\n"
    'Does this image show evidence of "{label}"? Respond with a JSON object containing:\n'
    "- match: boolean (true if image shows the expected activity)\n"
    "- confidence: number (confidence score between 0 and 1)\n"
    "- reason: string (short explanation of your assessment)"
)

FALLBACK_RESULT = {
    "match": True,
    "confidence": 0,
    "reason": "Verification unavailable, allowed by default.",
}

LOW_CONFIDENCE_THRESHOLD = 0.5

_FENCED_JSON_RE = re.compile(r"```json\n([\s\S]*?)\n```")
_BARE_JSON_RE = re.compile(r"\{[\s\S]*\}")
_DATA_URL_RE = re.compile(r"^data:(?P<mime>[\w/+.-]+);base64,")

VERIFICATION_PURPOSES = frozenset({"activity-form"})

verification_generation = RequestGeneration("verification")


class VerificationError(Exception):
    """Verification could not be attempted or the upstream refused it."""

    def __init__(self, message: str, status_code: int = 500):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def split_image_payload(image_base64: str) -> tuple[str, str]:
    """Return ``(mime_type, data)`` for a raw or ``data:`` URL encoded image."""

    match = _DATA_URL_RE.match(image_base64)
    if match:
        return match.group("mime"), image_base64[match.end():]
    if "," in image_base64:
        return "image/jpeg", image_base64.split(",", 1)[1] or image_base64
    return "image/jpeg", image_base64


def build_request_body(image_base64: str, activity_type: str) -> dict:
    label = ACTIVITY_PROMPT_LABELS.get(activity_type, activity_type)
    mime_type, data = split_image_payload(image_base64)
    return {
        "contents": [
            {
                "role": "user",
                "parts": [
                    {"text": PROMPT_TEMPLATE.format(label=label)},
                    {"inlineData": {"mimeType": mime_type, "data": data}},
                ],
            }
        ],
        "generationConfig": {
            "temperature": 1,
            "topK": 40,
            "topP": 0.95,
            "maxOutputTokens": 1024,
        },
    }


def _extract_json(content: str) -> Any:
    try:
        return json.loads(content)
    except ValueError:
        pass
    match = _FENCED_JSON_RE.search(content) or _BARE_JSON_RE.search(content)
    if not match:
        return None
    snippet = match.group(1) if match.re is _FENCED_JSON_RE else match.group(0)
    try:
        return json.loads(snippet)
    except ValueError:
        return None


def _clamp_confidence(value: Any) -> float:
    try:
        confidence = float(value or 0)
    except (TypeError, ValueError):
        return 0.0
    return max(0.0, min(confidence, 1.0))


def parse_model_response(data: Any) -> dict:
    """Turn a generateContent response into ``{match, confidence, reason}``."""

    try:
        content = data["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError):
        content = None
    if not content:
        return dict(FALLBACK_RESULT)

    result = _extract_json(content)
    if not isinstance(result, dict):
        return dict(FALLBACK_RESULT)

    return {
        "match": bool(result.get("match") or False),
        "confidence": _clamp_confidence(result.get("confidence")),
        "reason": result.get("reason") or "Unable to verify image",
    }


def verify_activity_image(image_base64: str, activity_type: str) -> dict:
    """Ask the vision model whether the image shows ``activity_type``.

    Raises :class:`VerificationError` carrying the HTTP status the caller
    should answer with (402, 429 or 500).
    """

    config = current_app.config
    api_key = config.get("GOOGLE_AI_KEY")
    if not api_key:
        raise VerificationError("GOOGLE_AI_KEY is not configured", 500)

    url = f"{config['GOOGLE_AI_ENDPOINT'].rstrip('/')}/{config['GOOGLE_AI_MODEL']}:generateContent"
    try:
        response = requests.post(
            url,
            params={"key": api_key},
            json=build_request_body(image_base64, activity_type),
            timeout=config.get("AI_VERIFICATION_TIMEOUT", 20.0),
        )
    except requests.RequestException as exc:
        logger.warning("[VERIFY] upstream request failed: %s", exc)
        raise VerificationError("AI gateway error", 500) from exc

    if response.status_code == 429:
        raise VerificationError("Rate limit exceeded. Please try again in a moment.", 429)
    if response.status_code == 402:
        raise VerificationError("AI credits exhausted. Please try again later.", 402)
    if not response.ok:
        logger.error("[VERIFY] AI gateway error %s: %s", response.status_code, response.text[:500])
        raise VerificationError("AI gateway error", 500)

    try:
        data = response.json()
    except ValueError:
        logger.warning("[VERIFY] upstream returned non-JSON body")
        return dict(FALLBACK_RESULT)

    result = parse_model_response(data)
    logger.info(
        "[VERIFY] %s -> match=%s confidence=%.2f",
        activity_type,
        result["match"],
        result["confidence"],
    )
    return result


def verify_latest(purpose: Hashable, image_base64: str, activity_type: str) -> dict | None:
    """Like :func:`verify_activity_image` but ``None`` when a newer request
    for the same ``purpose`` started while this one was in flight."""

    token = verification_generation.next(purpose)
    result = verify_activity_image(image_base64, activity_type)
    if not verification_generation.is_current(purpose, token):
        logger.info("[VERIFY] discarding superseded result for %s", purpose)
        return None
    return result


def should_withhold_submission(result: dict | None) -> bool:
    """Only an explicit low-confidence verdict holds a submission back."""

    if not result:
        return False
    confidence = _clamp_confidence(result.get("confidence"))
    return 0 < confidence < LOW_CONFIDENCE_THRESHOLD


__all__ = [
    "ACTIVITY_PROMPT_LABELS",
    "FALLBACK_RESULT",
    "VERIFICATION_PURPOSES",
    "VerificationError",
    "build_request_body",
    "parse_model_response",
    "should_withhold_submission",
    "split_image_payload",
    "verify_activity_image",
    "verify_latest",
]
