"""
Recover review comments from raw model output.

A small local model frequently wraps its JSON in markdown fences, leaves
trailing commas, puts raw newlines inside strings, or runs out of output
tokens halfway through the array. ``recover`` tries an ordered chain of
strategies, each ``(text, context) -> list | None``, and stops at the first
one that produces a result. It never raises.
"""

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Callable, List, Optional

from reviewer.models.review_schemas import DEFAULT_CATEGORY, DEFAULT_SEVERITY, ReviewComment

logger = logging.getLogger(__name__)

_FENCE_OPEN = re.compile(r"^```(?:json)?\s*", re.IGNORECASE)
_FENCE_CLOSE = re.compile(r"\s*```$")
_CLOSING_BRACKET_AHEAD = re.compile(r"\s*[}\]]")
# Brace groups with at most one level of nesting.
_OBJECT_PATTERN = re.compile(r"\{[^{}]*(?:\{[^{}]*\}[^{}]*)*\}")
_LINE_MARKER = re.compile(r"line\s+(\d+)", re.IGNORECASE)

_SEVERITIES = {"suggestion", "warning", "blocker"}
_SEVERITY_ALIASES = {"info": "suggestion", "error": "blocker", "critical": "blocker"}
_CATEGORIES = {"code-quality", "performance", "security", "best-practices", "documentation"}


@dataclass(frozen=True)
class RecoveryContext:
    default_file_path: str
    was_truncated: bool = False


Strategy = Callable[[str, RecoveryContext], Optional[List[ReviewComment]]]


# ── Mapping ───────────────────────────────────────────────────────────────────

def _coerce_line(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value > 0 else None
    if isinstance(value, float) and value.is_integer():
        return int(value) if value > 0 else None
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip()) or None
    return None


def _to_comment(raw: dict, default_file_path: str) -> ReviewComment:
    file_path = raw.get("file")
    severity = str(raw.get("severity") or DEFAULT_SEVERITY).lower()
    severity = _SEVERITY_ALIASES.get(severity, severity)
    category = str(raw.get("category") or DEFAULT_CATEGORY).lower()
    fix = raw.get("fixSuggestion", raw.get("fix_suggestion"))
    body = raw.get("body")

    return ReviewComment(
        file=file_path if isinstance(file_path, str) and file_path else default_file_path,
        line=_coerce_line(raw.get("line")),
        body=body if isinstance(body, str) else ("" if body is None else str(body)),
        severity=severity if severity in _SEVERITIES else DEFAULT_SEVERITY,
        category=category if category in _CATEGORIES else DEFAULT_CATEGORY,
        fix_suggestion=fix if isinstance(fix, str) else None,
        auto_fixable=bool(raw.get("autoFixable", raw.get("auto_fixable", False))),
    )


def _to_comments(items: List[Any], default_file_path: str) -> List[ReviewComment]:
    return [_to_comment(item, default_file_path) for item in items if isinstance(item, dict)]


def _is_error_sentinel(value: Any) -> bool:
    return isinstance(value, dict) and value.get("error") == "failed"


# ── Text helpers ──────────────────────────────────────────────────────────────

def strip_code_fence(text: str) -> str:
    """Remove a leading ```json / ``` fence and a trailing ``` fence."""
    cleaned = text.strip()
    cleaned = _FENCE_OPEN.sub("", cleaned, count=1)
    cleaned = _FENCE_CLOSE.sub("", cleaned, count=1)
    return cleaned.strip()


def extract_json_array(text: str) -> Optional[str]:
    """
    Return the substring from the first ``[`` to its matching ``]``.

    Brackets inside string literals are ignored. None when there is no
    ``[`` or it never closes.
    """
    start = text.find("[")
    if start == -1:
        return None

    depth = 0
    in_string = False
    escape_next = False
    for i in range(start, len(text)):
        char = text[i]
        if escape_next:
            escape_next = False
            continue
        if char == "\\":
            escape_next = True
            continue
        if char == '"':
            in_string = not in_string
            continue
        if in_string:
            continue
        if char == "[":
            depth += 1
        elif char == "]":
            depth -= 1
            if depth == 0:
                return text[start:i + 1]
    return None


def _strip_comments(text: str) -> str:
    """Drop // and /* */ comments that sit outside string literals."""
    out: List[str] = []
    i = 0
    in_string = False
    escape_next = False
    length = len(text)

    while i < length:
        char = text[i]
        if in_string:
            out.append(char)
            if escape_next:
                escape_next = False
            elif char == "\\":
                escape_next = True
            elif char == '"':
                in_string = False
            i += 1
            continue

        if char == '"':
            in_string = True
            out.append(char)
            i += 1
        elif text.startswith("//", i):
            newline = text.find("\n", i)
            i = length if newline == -1 else newline
        elif text.startswith("/*", i):
            end = text.find("*/", i + 2)
            i = length if end == -1 else end + 2
        else:
            out.append(char)
            i += 1

    return "".join(out)


def _strip_trailing_commas(text: str) -> str:
    """Drop commas that directly precede a closing bracket, outside string literals."""
    out: List[str] = []
    in_string = False
    escape_next = False

    for i, char in enumerate(text):
        if in_string:
            if escape_next:
                escape_next = False
            elif char == "\\":
                escape_next = True
            elif char == '"':
                in_string = False
        elif char == '"':
            in_string = True
        elif char == ",":
            if _CLOSING_BRACKET_AHEAD.match(text, i + 1):
                continue
        out.append(char)

    return "".join(out)


def escape_control_characters(text: str) -> str:
    """Escape raw control characters that appear inside JSON string literals."""
    out: List[str] = []
    in_string = False
    escape_next = False

    for char in text:
        if escape_next:
            out.append(char)
            escape_next = False
            continue
        if char == "\\":
            out.append(char)
            escape_next = True
            continue
        if char == '"':
            in_string = not in_string
            out.append(char)
            continue
        if in_string and ord(char) < 0x20:
            if char == "\n":
                out.append("\\n")
            elif char == "\r":
                out.append("\\r")
            elif char == "\t":
                out.append("\\t")
            else:
                out.append(f"\\u{ord(char):04x}")
            continue
        out.append(char)

    return "".join(out)


def repair_json(text: str) -> str:
    """Conservative fixes only: comments, trailing commas, raw control characters."""
    fixed = _strip_comments(text)
    fixed = _strip_trailing_commas(fixed)
    return escape_control_characters(fixed)


def looks_truncated(text: str) -> bool:
    trimmed = text.strip()
    if not trimmed.endswith(("]", "}")):
        return True
    return trimmed.count("[") != trimmed.count("]") or trimmed.count("{") != trimmed.count("}")


# ── Strategies ────────────────────────────────────────────────────────────────

def parse_strict(text: str, ctx: RecoveryContext) -> Optional[List[ReviewComment]]:
    try:
        parsed = json.loads(text)
    except ValueError:
        return None

    if isinstance(parsed, list):
        return _to_comments(parsed, ctx.default_file_path)
    if isinstance(parsed, dict):
        return _to_comments([parsed], ctx.default_file_path)
    return []


def parse_repaired_array(text: str, ctx: RecoveryContext) -> Optional[List[ReviewComment]]:
    candidate = extract_json_array(text)
    if candidate is None:
        return None
    try:
        parsed = json.loads(repair_json(candidate))
    except ValueError:
        return None
    if not isinstance(parsed, list):
        return None
    logger.info("Recovered %d comment(s) after repairing model JSON", len(parsed))
    return _to_comments(parsed, ctx.default_file_path)


def salvage_truncated(text: str, ctx: RecoveryContext) -> Optional[List[ReviewComment]]:
    if not (ctx.was_truncated or looks_truncated(text)):
        return None

    logger.warning(
        "Model response appears truncated; salvaging complete objects. "
        "Raise the output token budget to avoid losing comments."
    )
    comments: List[ReviewComment] = []
    for match in _OBJECT_PATTERN.findall(text):
        try:
            parsed = json.loads(match)
        except ValueError:
            continue
        if isinstance(parsed, dict) and (parsed.get("body") or parsed.get("file")):
            comments.append(_to_comment(parsed, ctx.default_file_path))

    if comments:
        logger.warning("Extracted %d partial comment(s) from truncated response", len(comments))
        return comments
    # Prose merely looks truncated; let the free-text pass have it
    return [] if ctx.was_truncated else None


def extract_from_text(text: str, ctx: RecoveryContext) -> List[ReviewComment]:
    """Split free text into one comment per ``line N`` block, else one general comment."""
    comments: List[ReviewComment] = []
    current_line: Optional[int] = None
    current_body: List[str] = []

    def flush():
        if current_body:
            comments.append(
                ReviewComment(
                    file=ctx.default_file_path,
                    line=current_line or None,
                    body="\n".join(current_body).rstrip(),
                )
            )

    for line in text.split("\n"):
        match = _LINE_MARKER.search(line)
        if match:
            flush()
            current_line = int(match.group(1))
            current_body = [line]
        elif current_body:
            current_body.append(line)
    flush()

    if not comments and text.strip():
        comments.append(ReviewComment(file=ctx.default_file_path, body=text.strip()))
    return comments


STRATEGIES: List[Strategy] = [parse_strict, parse_repaired_array, salvage_truncated]


def recover(raw_text: Optional[str], default_file_path: str, was_truncated: bool = False) -> List[ReviewComment]:
    """
    Parse raw model output into review comments.

    Args:
        raw_text: Whatever the model produced
        default_file_path: Used for comments that do not name a file
        was_truncated: True when the model reported it stopped before finishing

    Returns:
        Possibly empty list of comments. Never raises.
    """
    raw_text = raw_text or ""
    ctx = RecoveryContext(default_file_path=default_file_path, was_truncated=was_truncated)

    try:
        cleaned = strip_code_fence(raw_text)

        try:
            sentinel = _is_error_sentinel(json.loads(cleaned))
        except ValueError:
            sentinel = False
        if sentinel:
            logger.warning("Model returned its failure sentinel for %s", default_file_path)
            return extract_from_text(raw_text, ctx)

        for strategy in STRATEGIES:
            result = strategy(cleaned, ctx)
            if result is not None:
                if strategy is not parse_strict:
                    logger.info("Model output for %s recovered by %s", default_file_path, strategy.__name__)
                return result

        logger.warning("Falling back to free-text extraction for %s", default_file_path)
        return extract_from_text(raw_text, ctx)
    except Exception:
        logger.exception("Unexpected failure recovering model output for %s", default_file_path)
        return []
