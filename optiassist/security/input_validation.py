"""
Input validation for Optical-Assist

Request models for the public endpoints and light sanitisation of
free text before it reaches the pipelines.
"""

import logging
import re

from pydantic import BaseModel, field_validator

logger = logging.getLogger(__name__)

MAX_QUESTION_LENGTH = 2000

_CONTROL_CHARS = re.compile(r"[\x01-\x08\x0b\x0c\x0e-\x1f\x7f]")


def sanitize(text: str) -> str:
    """Strip null bytes and control characters except newlines and tabs."""
    text = text.replace("\x00", "")
    text = _CONTROL_CHARS.sub("", text)
    return text.strip()


class AskRequest(BaseModel):
    """Validated body of POST /ask."""

    question: str

    @field_validator("question")
    @classmethod
    def validate_question(cls, v: str) -> str:
        v = sanitize(v)
        if not v:
            raise ValueError("Question is required")
        if len(v) > MAX_QUESTION_LENGTH:
            raise ValueError(f"Question must be at most {MAX_QUESTION_LENGTH} characters")
        return v
