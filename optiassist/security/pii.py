"""
PII detection and redaction for Optical-Assist

Best-effort, regex-based privacy gate applied to questions before they are
embedded or forwarded to the language model. False positives and false
negatives are expected; on ambiguous input the policies prefer refusing or
masking over letting text through.

Detection checks (any match flags the text):
- email-like token
- phone-number-like digit grouping, optional separators
- bare 10-digit number (health card placeholder heuristic)

Redaction tokens:
- [NAME] for two consecutive capitalised words
- [PHONE] for phone-number-like digit groupings
"""

import logging
import re
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

# Detection patterns
EMAIL_PATTERN = re.compile(r"\S+@\S+\.\S+")
PHONE_PATTERN = re.compile(r"\d{3}[-.\s]?\d{3}[-.\s]?\d{4}")
# TODO: replace with a province-aware health card check; this flags any 10-digit figure
HEALTH_CARD_PATTERN = re.compile(r"\b\d{10}\b")

DETECTION_PATTERNS: list[tuple[str, re.Pattern[str]]] = [
    ("email", EMAIL_PATTERN),
    ("phone", PHONE_PATTERN),
    ("health_card", HEALTH_CARD_PATTERN),
]

# Redaction patterns, applied in order
NAME_TOKEN = "[NAME]"
PHONE_TOKEN = "[PHONE]"

REDACTION_PATTERNS: list[tuple[str, re.Pattern[str]]] = [
    (NAME_TOKEN, re.compile(r"\b[A-Z][a-z]+\s+[A-Z][a-z]+\b")),
    (PHONE_TOKEN, PHONE_PATTERN),
]

REFUSAL_MESSAGE = (
    "Personal patient information detected.\n\n"
    "For privacy protection, please remove any personal information "
    "(names, phone numbers, addresses, health card numbers, etc.) "
    "and submit your query again."
)


@dataclass
class PIIFinding:
    kind: str
    value: str
    start: int
    end: int


class PIIDetector:
    """Flags text that looks like it carries personal information."""

    def __init__(self) -> None:
        self._patterns = DETECTION_PATTERNS

    def detect(self, text: str) -> list[PIIFinding]:
        """Return every match of every detection pattern."""
        if not text:
            return []

        return [
            PIIFinding(kind=kind, value=match.group(), start=match.start(), end=match.end())
            for kind, pattern in self._patterns
            for match in pattern.finditer(text)
        ]

    def classify(self, text: str) -> bool:
        """Return True if any detection check matches."""
        if not text:
            return False
        return any(pattern.search(text) for _, pattern in self._patterns)


class PIIRedactor:
    """Masks names and phone numbers with placeholder tokens."""

    def __init__(self) -> None:
        self._patterns = REDACTION_PATTERNS

    def redact(self, text: str) -> str:
        """
        Replace detected names and phone numbers with tokens.

        Args:
            text: Input text potentially containing PII.

        Returns:
            Text with matches replaced by [NAME] / [PHONE]; unchanged otherwise.
        """
        if not text:
            return text

        redacted = text
        for token, pattern in self._patterns:
            redacted = pattern.sub(token, redacted)
        return redacted


# ============================================
# Policies
# ============================================


@dataclass
class PIIDecision:
    """Outcome of applying a PII policy to a question."""

    allowed: bool
    text: str
    findings: list[str] = field(default_factory=list)


class PIIPolicy:
    """Strategy deciding what happens to a question before it leaves the service."""

    mode: str = ""

    def apply(self, text: str) -> PIIDecision:
        raise NotImplementedError


class DetectPolicy(PIIPolicy):
    """Refuse any question that trips a detection check."""

    mode = "detect"

    def __init__(self, detector: PIIDetector | None = None) -> None:
        self.detector = detector or PIIDetector()

    def apply(self, text: str) -> PIIDecision:
        findings = sorted({f.kind for f in self.detector.detect(text)})
        if findings:
            logger.info("Question refused, PII detected: %s", ", ".join(findings))
            return PIIDecision(allowed=False, text=text, findings=findings)
        return PIIDecision(allowed=True, text=text)


class RedactPolicy(PIIPolicy):
    """Mask names and phone numbers; refuse if anything detectable survives."""

    mode = "redact"

    def __init__(
        self,
        redactor: PIIRedactor | None = None,
        detector: PIIDetector | None = None,
    ) -> None:
        self.redactor = redactor or PIIRedactor()
        self.detector = detector or PIIDetector()

    def apply(self, text: str) -> PIIDecision:
        masked = self.redactor.redact(text)
        residual = sorted({f.kind for f in self.detector.detect(masked)})
        if residual:
            logger.info("Question refused after masking, PII remains: %s", ", ".join(residual))
            return PIIDecision(allowed=False, text=masked, findings=residual)
        if masked != text:
            logger.debug("Question masked before forwarding")
        return PIIDecision(allowed=True, text=masked)


def build_pii_policy(mode: str) -> PIIPolicy:
    """Select a PII policy by name ("detect" or "redact")."""
    policies: dict[str, type[PIIPolicy]] = {
        DetectPolicy.mode: DetectPolicy,
        RedactPolicy.mode: RedactPolicy,
    }
    try:
        return policies[mode.lower()]()
    except KeyError:
        raise ValueError(f"Unknown PII mode: {mode}") from None
