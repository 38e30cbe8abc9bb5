"""
Turn a provider's free-form answer into a validated prediction.

Models are asked for strict JSON but regularly wrap it in prose or code
fences, or get cut off mid-object. Extraction is an ordered chain of pure
functions (text -> fields or None); the first one that yields a dict with
a "winner" key wins. Each extractor is importable and testable on its own.
"""

import json
import logging
import math
import re
from dataclasses import dataclass
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)

RawFields = dict[str, Any]
Extractor = Callable[[str], Optional[RawFields]]

# Fenced block, closing fence optional (truncated output)
_CODE_BLOCK_RE = re.compile(r"```(?:json)?\s*\n?([\s\S]*?)(?:```|$)")
_WINNER_OBJECT_RE = re.compile(r"\{[^{}]*\"winner\"[^{}]*\}")
_TRIPLE_RE = re.compile(
    r"\{\s*\"winner\"\s*:\s*\"([^\"]+)\"\s*,\s*\"confidence\"\s*:\s*([\d.]+)\s*,"
    r"\s*\"reasoning\"\s*:\s*\"((?:[^\"\\]|\\.)*)\""
)
_WINNER_RE = re.compile(r"\"winner\"\s*:\s*\"([^\"]+)\"")
_CONFIDENCE_RE = re.compile(r"\"confidence\"\s*:\s*([\d.]+)")
# Closing quote optional: truncated reasoning runs to the end of the text
_REASONING_RE = re.compile(r"\"reasoning\"\s*:\s*\"((?:[^\"\\]|\\.)*)(?:\"|$)")
_LEADING_NUMBER_RE = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?")


class ParseError(Exception):
    """Provider output could not be turned into a valid prediction."""

    pass


@dataclass
class ParsedPrediction:
    """Validated prediction: winner is one of the two team names verbatim."""

    winner: str
    confidence: float
    reasoning: str


def _unescape(value: str) -> str:
    return value.replace('\\"', '"').replace("\\n", "\n")


def _loads_object(text: str) -> Optional[RawFields]:
    try:
        parsed = json.loads(text)
    except (json.JSONDecodeError, ValueError):
        return None
    return parsed if isinstance(parsed, dict) else None


def _fields_by_regex(text: str) -> Optional[RawFields]:
    """winner + confidence required, reasoning optional."""
    winner = _WINNER_RE.search(text)
    confidence = _CONFIDENCE_RE.search(text)
    if not (winner and confidence):
        return None
    reasoning = _REASONING_RE.search(text)
    return {
        "winner": winner.group(1),
        "confidence": confidence.group(1),
        "reasoning": _unescape(reasoning.group(1)) if reasoning else "",
    }


# =============================================================================
# EXTRACTORS (in priority order)
# =============================================================================


def extract_whole_json(text: str) -> Optional[RawFields]:
    """The whole response is a JSON object."""
    return _loads_object(text.strip())


def extract_code_block(text: str) -> Optional[RawFields]:
    """First fenced block; regex-repair its fields if the JSON is truncated."""
    match = _CODE_BLOCK_RE.search(text)
    if not match:
        return None
    block = match.group(1).strip()
    parsed = _loads_object(block)
    if parsed is not None:
        return parsed
    return _fields_by_regex(block)


def extract_winner_object(text: str) -> Optional[RawFields]:
    """Smallest brace-delimited object mentioning "winner"."""
    match = _WINNER_OBJECT_RE.search(text)
    if not match:
        return None
    return _loads_object(match.group(0))


def extract_field_triple(text: str) -> Optional[RawFields]:
    """Literal {winner, confidence, reasoning} sequence, even if unparseable as JSON."""
    match = _TRIPLE_RE.search(text)
    if not match:
        return None
    return {
        "winner": match.group(1),
        "confidence": match.group(2),
        "reasoning": _unescape(match.group(3)),
    }


def extract_loose_fields(text: str) -> Optional[RawFields]:
    """winner and confidence anywhere in the text."""
    return _fields_by_regex(text)


EXTRACTORS: tuple[Extractor, ...] = (
    extract_whole_json,
    extract_code_block,
    extract_winner_object,
    extract_field_triple,
    extract_loose_fields,
)


def extract_fields(text: str, extractors: tuple[Extractor, ...] = EXTRACTORS) -> RawFields:
    """Run the extractor chain and return the first result carrying a winner."""
    for extractor in extractors:
        fields = extractor(text)
        if fields is not None and "winner" in fields:
            logger.debug(f"[PARSE] matched via {extractor.__name__}")
            return fields
    raise ParseError("no structured prediction found")


# =============================================================================
# VALIDATION
# =============================================================================


def validate_winner(winner: Any, team_a: str, team_b: str) -> str:
    """
    Map a free-form winner onto one of the two team names.

    Exact case-insensitive match first, then substring either way
    ("Pak" -> "Pakistan", "India national team" -> "India").
    """
    if not isinstance(winner, str) or not winner.strip():
        raise ParseError("winner does not match either team")

    normalized = " ".join(winner.split()).lower()
    a, b = team_a.lower(), team_b.lower()

    if normalized == a:
        return team_a
    if normalized == b:
        return team_b
    if normalized in a or a in normalized:
        return team_a
    if normalized in b or b in normalized:
        return team_b

    raise ParseError("winner does not match either team")


def _to_number(value: Any) -> float:
    if isinstance(value, bool):
        raise ParseError(f"invalid confidence value: {value!r}")
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        match = _LEADING_NUMBER_RE.match(value.strip())
        if match:
            return float(match.group(0))
        try:
            return float(value.strip())
        except ValueError:
            pass
    raise ParseError(f"invalid confidence value: {str(value)[:50]!r}")


def clamp_confidence(value: Any) -> float:
    """Coerce to a finite number and clamp into [0.5, 1.0]."""
    number = _to_number(value)
    if not math.isfinite(number):
        raise ParseError(f"invalid confidence value: {str(value)[:50]!r}")
    return min(1.0, max(0.5, number))


def parse_prediction_response(raw_text: str, team_a: str, team_b: str) -> ParsedPrediction:
    """
    Parse a provider answer into a ParsedPrediction.

    Raises:
        ParseError: no structured object, unknown winner or non-numeric confidence.
    """
    fields = extract_fields(raw_text or "")
    winner = validate_winner(fields.get("winner"), team_a, team_b)
    confidence = clamp_confidence(fields.get("confidence"))
    reasoning = fields.get("reasoning")
    return ParsedPrediction(
        winner=winner,
        confidence=confidence,
        reasoning=reasoning if isinstance(reasoning, str) else "",
    )
