"""Prompt escaping and response parsing for the semantic matcher.

Models answer in loosely structured text. These helpers turn that text
into numbers the matcher can compare, and never raise: anything that
cannot be understood degrades to a low-confidence "no".

Confidence quantization:

    =====================  =====
    answer                 value
    =====================  =====
    high / yes / true      0.9
    medium / moderate /    0.7
    partial
    low / no / false       0.5
    numeric                clamped to [0, 1]
    anything else          0.5 (logged)
    =====================  =====
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any

from axiom_spine.core.logging import get_logger

logger = get_logger(__name__)

HIGH_CONFIDENCE = 0.9
MEDIUM_CONFIDENCE = 0.7
LOW_CONFIDENCE = 0.5

_JSON_OBJECT = re.compile(r"\{[^}]+\}")
_LEADING_INDEX = re.compile(r"\b(\d+)\b")
_AFFIRMATIVE = re.compile(r"^(yes|true|equivalent|same|match)", re.IGNORECASE)
_NEGATIVE = re.compile(r"^(no|false|different|not equivalent|not the same)", re.IGNORECASE)
_NO_MATCH = re.compile(r"^(none|no match|not found|-1)", re.IGNORECASE)

REFUSAL_PATTERNS = (
    "cannot compare",
    "unable to determine",
    "not enough information",
    "i cannot",
    "i'm unable",
)


@dataclass(frozen=True)
class EquivalenceVerdict:
    equivalent: bool
    confidence: float


@dataclass(frozen=True)
class BatchVerdict:
    """Parsed batch answer; ``index`` is -1 when nothing matched."""

    index: int
    confidence: float

    @property
    def is_malformed_match(self) -> bool:
        """A match without any confidence cannot be trusted."""
        return self.index >= 0 and self.confidence == 0


def escape_for_prompt(text: str) -> str:
    """Quote untrusted text for inclusion in a prompt."""
    escaped = (
        text.replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("\n", "\\n")
        .replace("\r", "\\r")
    )
    return f'"{escaped}"'


def parse_confidence(value: Any) -> float:
    if isinstance(value, bool):
        return HIGH_CONFIDENCE if value else LOW_CONFIDENCE
    if isinstance(value, (int, float)):
        return max(0.0, min(1.0, float(value)))
    if not isinstance(value, str):
        return LOW_CONFIDENCE

    normalized = value.strip().lower()
    if normalized in ("high", "yes", "true"):
        return HIGH_CONFIDENCE
    if normalized in ("medium", "moderate", "partial"):
        return MEDIUM_CONFIDENCE
    if normalized in ("low", "no", "false"):
        return LOW_CONFIDENCE

    try:
        return max(0.0, min(1.0, float(normalized)))
    except ValueError:
        pass

    logger.warning("match_parsing.unparseable_confidence", value=normalized[:50])
    return LOW_CONFIDENCE


def _first_json_object(text: str) -> dict[str, Any] | None:
    match = _JSON_OBJECT.search(text)
    if match is None:
        return None
    try:
        parsed = json.loads(match.group(0))
    except json.JSONDecodeError:
        return None
    return parsed if isinstance(parsed, dict) else None


def parse_equivalence_response(response: str) -> EquivalenceVerdict:
    """Parse ``{"equivalent": bool, "confidence": ...}`` or a yes/no answer."""
    trimmed = response.strip()

    parsed = _first_json_object(trimmed)
    if parsed is not None:
        equivalent = parsed.get("equivalent") in (True, "true", "yes")
        return EquivalenceVerdict(equivalent, parse_confidence(parsed.get("confidence")))

    lowered = trimmed.lower()
    if any(pattern in lowered for pattern in REFUSAL_PATTERNS):
        return EquivalenceVerdict(False, LOW_CONFIDENCE)

    if _AFFIRMATIVE.match(trimmed):
        return EquivalenceVerdict(True, MEDIUM_CONFIDENCE)
    if _NEGATIVE.match(trimmed):
        return EquivalenceVerdict(False, MEDIUM_CONFIDENCE)

    logger.warning("match_parsing.unparseable_equivalence", response=trimmed[:100])
    return EquivalenceVerdict(False, LOW_CONFIDENCE)


def parse_batch_response(response: str, candidate_count: int) -> BatchVerdict | None:
    """Parse a batch answer.

    Returns:
        A ``BatchVerdict`` (index -1 for an explicit no-match), or None when
        the answer is malformed and the caller should compare pairwise.
    """
    trimmed = response.strip()

    parsed = _first_json_object(trimmed)
    if parsed is not None:
        raw_index = parsed.get("bestMatchIndex")
        if raw_index == -1 or raw_index is None or parsed.get("noMatch") is True:
            return BatchVerdict(-1, 0.0)

        try:
            index = int(raw_index)
        except (TypeError, ValueError):
            index = -1
        if isinstance(raw_index, bool) or not 0 <= index < candidate_count:
            logger.warning(
                "match_parsing.invalid_index",
                index=raw_index,
                candidate_count=candidate_count,
                response=trimmed[:100],
            )
            return None

        verdict = BatchVerdict(index, parse_confidence(parsed.get("confidence")))
        if verdict.is_malformed_match:
            logger.warning("match_parsing.match_without_confidence", index=index)
            return None
        return verdict

    if _NO_MATCH.match(trimmed):
        return BatchVerdict(-1, 0.0)

    number = _LEADING_INDEX.search(trimmed)
    if number is not None:
        index = int(number.group(1))
        if 0 <= index < candidate_count:
            return BatchVerdict(index, MEDIUM_CONFIDENCE)

    logger.warning("match_parsing.unparseable_batch", response=trimmed[:100])
    return None
