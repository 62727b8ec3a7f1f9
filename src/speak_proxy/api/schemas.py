"""
API Request/Response Schemas.

These models document the /speak contract in the OpenAPI schema. The route
itself reads the raw JSON body so that malformed values (a numeric
``text``, ``speed: "fast"``, a JSON array) are normalized instead of being
rejected with a 422: every field is declared ``Any``.

Example Request:
    {
        "text": "Привет, как дела?",
        "voice": "jane",
        "emotion": "good",
        "speed": 1.2
    }
"""
from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class SpeakRequest(BaseModel):
    """
    Speech synthesis request.

    Attributes:
        text: Text to speak. Required; must be a non-empty string. Longer
            than 300 characters is shortened at a word boundary and ends
            with "…".
        voice: One of alena, oksana, jane, filipp, ermil, zahar. Anything
            else falls back to alena.
        emotion: One of neutral, good, evil. Anything else falls back to
            neutral.
        speed: Number (or numeric string), clamped to [0.5, 1.5]. Anything
            non-numeric falls back to 1.0.
    """
    text: Any = Field(None, description="Text to synthesize")
    voice: Any = Field(None, description="Provider voice name")
    emotion: Any = Field(None, description="Voice emotion")
    speed: Any = Field(None, description="Speech rate, clamped to 0.5-1.5")


class ErrorResponse(BaseModel):
    """JSON body of every non-200 /speak response."""
    error: str
