"""Gesture vocabulary, analysis prompt and model-output normalization."""

from __future__ import annotations

import json
from typing import List, Union

from pydantic import BaseModel, Field, ValidationError

from ..errors import MalformedResponseError
from ..util.logging import get_logger

logger = get_logger(__name__)

# Authoritative vocabulary. "clap" is deliberately absent until its status is confirmed.
GESTURE_TYPES = (
    "thumbs_up_left",
    "thumbs_up_right",
    "thumbs_down_left",
    "thumbs_down_right",
    "shocked",
    "smile",
    "frown",
    "waving",
)

Number = Union[int, float]


class GestureEvent(BaseModel):
    start_timestamp: str = Field(..., description="HH:mm:ss.SSS")
    end_timestamp: str = Field(..., description="HH:mm:ss.SSS")
    type: str
    position_x: Number = Field(..., description="Overlay X coordinate in pixels")
    position_y: Number = Field(..., description="Overlay Y coordinate in pixels")

    @property
    def is_known_type(self) -> bool:
        return self.type in GESTURE_TYPES


class AnalysisResult(BaseModel):
    gestures: List[GestureEvent]


def build_prompt() -> str:
    """Return the static gesture-detection instruction sent alongside the video."""
    vocabulary = ", ".join(GESTURE_TYPES)
    return (
        "This is a video of a person. You are an expert in gesture detection, helping to build a "
        "gesture-driven video effects tool.\n"
        f"The available gestures are: {vocabulary}.\n\n"
        "Analyze the video and return a JSON object with the following structure, with one entry "
        "per detected gesture:\n\n"
        "{\n"
        '  "gestures": [\n'
        "    {\n"
        '      "start_timestamp": "HH:mm:ss.SSS",\n'
        '      "end_timestamp": "HH:mm:ss.SSS",\n'
        f'      "type": string, one of: {vocabulary},\n'
        '      "position_x": number, the X pixel coordinate where an emoji effect will be overlaid,\n'
        '      "position_y": number, the Y pixel coordinate where an emoji effect will be overlaid\n'
        "    }\n"
        "  ]\n"
        "}\n\n"
        'Timestamps MUST use the "HH:mm:ss.SSS" format. If no gesture is detected, return '
        '{"gestures": []}.\n'
        "Output ONLY the raw JSON object. Do NOT wrap it in code fences and do not add any text "
        "before or after it.\n"
    )


GESTURE_PROMPT = build_prompt()


def _strip_fences(text: str) -> str:
    t = text.strip()
    if t.startswith("```json"):
        t = t[7:]
    elif t.startswith("```"):
        t = t[3:]
    if t.endswith("```"):
        t = t[:-3]
    return t.strip()


def parse_analysis(text: str) -> dict:
    """Parse model text into the ``{"gestures": [...]}`` payload.

    The parsed object is returned as-is once it validates against
    :class:`AnalysisResult`, so callers see exactly what the model produced.
    Raises :class:`MalformedResponseError` carrying the raw text otherwise.
    """
    # Code fences are the only wrapping tolerated; prose around the JSON is rejected.
    try:
        payload = json.loads(_strip_fences(text or ""))
    except json.JSONDecodeError as exc:
        raise MalformedResponseError(f"Invalid JSON from Gemini: {exc}", text) from exc
    if not isinstance(payload, dict):
        raise MalformedResponseError("Gemini JSON is not an object", text)

    try:
        result = AnalysisResult.model_validate(payload)
    except ValidationError as exc:
        raise MalformedResponseError(f"Gemini JSON does not match the gesture schema: {exc}", text) from exc

    unknown = sorted({event.type for event in result.gestures if not event.is_known_type})
    if unknown:
        logger.warning("Model returned gesture types outside the vocabulary: %s", ", ".join(unknown))

    return payload


__all__ = [
    "AnalysisResult",
    "GESTURE_PROMPT",
    "GESTURE_TYPES",
    "GestureEvent",
    "build_prompt",
    "parse_analysis",
]
