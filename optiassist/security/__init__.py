"""
Optical-Assist Security Module

Security components:
- PII detection, redaction and refusal policies
- Input validation and sanitisation
"""

from optiassist.security.input_validation import AskRequest, sanitize
from optiassist.security.pii import (
    REFUSAL_MESSAGE,
    DetectPolicy,
    PIIDecision,
    PIIDetector,
    PIIPolicy,
    PIIRedactor,
    RedactPolicy,
    build_pii_policy,
)

__all__ = [
    "AskRequest",
    "DetectPolicy",
    "PIIDecision",
    "PIIDetector",
    "PIIPolicy",
    "PIIRedactor",
    "REFUSAL_MESSAGE",
    "RedactPolicy",
    "build_pii_policy",
    "sanitize",
]
