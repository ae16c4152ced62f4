"""
Recover structured review feedback from raw model output.

The review prompt asks the model for a JSON object of the form
``{"issues": [{"line", "issue", "suggestion", "severity"}], "summary"}``,
but what comes back is often only close to that: wrapped in Markdown fences,
missing commas between fields, cut off halfway, or not JSON at all.

``recover_review`` runs an ordered cascade of strategies, each more lenient
than the last, and returns the first result it gets:

1. strip Markdown code fences
2. strict JSON parse
3. strict JSON parse after inserting missing commas between known fields
4. extract individual finding objects (JSON first, then field regexes)
5. line-by-line ``key: value`` scan

It never raises; the worst case is an empty finding list with a fallback
summary.
"""

import json
import logging
import re

from models import (
    DEFAULT_DESCRIPTION,
    DEFAULT_SEVERITY,
    DEFAULT_SUGGESTION,
    DEFAULT_SUMMARY,
    Finding,
    ReviewResult,
)

logger = logging.getLogger(__name__)

FALLBACK_SUMMARY = "Code review completed with parsing issues"

# ---------------------------------------------------------------------------
# Field patterns (shared by object extraction and the line-by-line scan)
# ---------------------------------------------------------------------------
_FIELD_NAMES: dict[str, tuple[str, ...]] = {
    "line": ("line",),
    "description": ("issue", "description"),
    "suggestion": ("suggestion",),
    "severity": ("severity",),
    "summary": ("summary",),
}

# A JSON string body; escapes are kept and decoded afterwards.
_QUOTED = r'"((?:[^"\\]|\\.)*)"'
# Unquoted text up to the end of the line, a closing bracket, or a comma
# that introduces the next quoted key.
_BARE = r"""([^"\s,{}\[\]][^\n{}\[\]]*?)(?=\s*(?:,\s*["']|[}\]]|$))"""


def _key_pattern(names: tuple[str, ...]) -> str:
    return r"""["']?\b(?:%s)\b["']?\s*:\s*""" % "|".join(names)


_KEYS = {
    field: re.compile(_key_pattern(names)) for field, names in _FIELD_NAMES.items()
}
_TEXT_FIELDS = {
    field: re.compile(
        _key_pattern(names) + r"(?:%s|%s)" % (_QUOTED, _BARE), re.MULTILINE
    )
    for field, names in _FIELD_NAMES.items()
    if field != "line"
}
_LINE_FIELD = re.compile(_key_pattern(_FIELD_NAMES["line"]) + r'"?(\d+)')

# "suggestion": "x" "severity": ...  ->  "suggestion": "x", "severity": ...
_REPAIRABLE_KEY = r'"(?:suggestion|issue|description|severity)"\s*:'
_MISSING_COMMA = re.compile(
    r"(%s\s*%s)(?=\s*%s)" % (_REPAIRABLE_KEY, _QUOTED, _REPAIRABLE_KEY)
)

# Keys found past the start of a line must be quoted.
_QUOTED_KEYS = {
    field: re.compile(r"""["'](?:%s)["']\s*:\s*""" % "|".join(names))
    for field, names in _FIELD_NAMES.items()
}

# Innermost brace spans; a candidate finding has a "line" key, then a "severity" key.
_BRACE_SPAN = re.compile(r"\{[^{}]*\}")


# ---------------------------------------------------------------------------
# Value coercion
# ---------------------------------------------------------------------------
def _unescape(raw: str) -> str:
    """Decode JSON escapes in a captured string body, keeping it raw if invalid."""
    try:
        return json.loads(f'"{raw}"')
    except json.JSONDecodeError:
        return raw


def _coerce_line(value) -> int | None:
    """Return *value* as a positive line number, or None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, float):
        if not value.is_integer():
            return None
        value = int(value)
    elif isinstance(value, str):
        try:
            value = int(value.strip())
        except ValueError:
            return None
    if isinstance(value, int) and value > 0:
        return value
    return None


def _coerce_text(value) -> str | None:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str):
        # Lone surrogates from \ud800-style escapes are not valid UTF-8.
        return value.encode("utf-8", errors="replace").decode("utf-8")
    return None


def _finding_from_mapping(data: dict) -> Finding:
    """
    Build a Finding from a loosely shaped dict, defaulting missing fields.

    Empty description and suggestion strings are kept as written; an empty
    severity counts as missing.
    """
    description = _coerce_text(data.get("issue"))
    if description is None:
        description = _coerce_text(data.get("description"))
    suggestion = _coerce_text(data.get("suggestion"))

    return Finding(
        line=_coerce_line(data.get("line")),
        description=DEFAULT_DESCRIPTION if description is None else description,
        suggestion=DEFAULT_SUGGESTION if suggestion is None else suggestion,
        severity=_coerce_text(data.get("severity")) or DEFAULT_SEVERITY,
    )


def _result_from_document(document) -> ReviewResult | None:
    """Convert a decoded JSON document into a ReviewResult, if it has the shape."""
    summary = None

    if isinstance(document, dict):
        if "issues" in document:
            items = document["issues"]
        elif "issue" in document or "description" in document:
            items = [document]
        else:
            items = []
        summary = document.get("summary")
    elif isinstance(document, list) and document and all(
        isinstance(item, dict) for item in document
    ):
        items = document
    else:
        return None

    if not isinstance(items, list):
        items = []

    return ReviewResult(
        findings=[_finding_from_mapping(item) for item in items if isinstance(item, dict)],
        summary=_coerce_text(summary) or DEFAULT_SUMMARY,
    )


def _loads(text: str):
    try:
        return json.loads(text)
    except (ValueError, RecursionError):
        return None


# ---------------------------------------------------------------------------
# Regex field extraction
# ---------------------------------------------------------------------------
def _field_text(field: str, text: str, at_start: bool = False) -> str | None:
    pattern = _TEXT_FIELDS[field]
    match = pattern.match(text) if at_start else pattern.search(text)
    if not match:
        return None

    quoted, bare = match.groups()
    value = _unescape(quoted) if quoted is not None else bare.strip()
    # An empty salvaged value is treated as missing
    return _coerce_text(value) or None


def _field_line(text: str, at_start: bool = False) -> int | None:
    match = _LINE_FIELD.match(text) if at_start else _LINE_FIELD.search(text)
    return _coerce_line(match.group(1)) if match else None


def _finding_from_fields(span: str) -> Finding | None:
    """Regex-extract a finding from a broken object; requires a line number."""
    line = _field_line(span)
    if line is None:
        return None

    return _finding_from_mapping(
        {
            "line": line,
            "description": _field_text("description", span),
            "suggestion": _field_text("suggestion", span),
            "severity": _field_text("severity", span),
        }
    )


# ---------------------------------------------------------------------------
# Recovery stages
# ---------------------------------------------------------------------------
def strip_fences(text: str) -> str:
    """Remove a surrounding Markdown code fence (```json ... ```)."""
    cleaned = text.strip()
    if cleaned.startswith("```json"):
        cleaned = cleaned[7:]
    elif cleaned.startswith("```"):
        cleaned = cleaned[3:]

    if cleaned.endswith("```"):
        cleaned = cleaned[:-3]

    return cleaned.strip()


def repair_delimiters(text: str) -> str:
    """Insert missing commas between adjacent known string fields."""
    return _MISSING_COMMA.sub(r"\1,", text)


def _parse_direct(text: str) -> ReviewResult | None:
    return _result_from_document(_loads(text))


def _parse_repaired(text: str) -> ReviewResult | None:
    logger.debug("Direct parsing failed, attempting to fix missing delimiters")
    return _result_from_document(_loads(repair_delimiters(text)))


def _candidate_spans(text: str) -> list[str]:
    spans = []
    for match in _BRACE_SPAN.finditer(text):
        span = match.group(0)
        line_key = _KEYS["line"].search(span)
        if line_key and _KEYS["severity"].search(span, line_key.end()):
            spans.append(span)
    return spans


def _extract_objects(text: str) -> ReviewResult | None:
    logger.debug("Delimiter repair failed, trying object extraction")
    spans = _candidate_spans(text)
    if not spans:
        return None

    findings: list[Finding] = []
    for span in spans:
        data = _loads(repair_delimiters(span))
        if isinstance(data, dict):
            findings.append(_finding_from_mapping(data))
            continue

        logger.debug("Failed to parse individual issue: %s", span)
        finding = _finding_from_fields(span)
        if finding is not None:
            findings.append(finding)

    return ReviewResult(
        findings=findings,
        summary=_field_text("summary", text) or DEFAULT_SUMMARY,
    )


def _key_start(field: str, line: str) -> int | None:
    """Offset of *field*'s key in *line*: a leading key, else any quoted one."""
    if _KEYS[field].match(line):
        return 0
    match = _QUOTED_KEYS[field].search(line)
    return match.start() if match else None


def _line_value(field: str, line: str) -> str | None:
    start = _key_start(field, line)
    if start is None:
        return None
    return _field_text(field, line[start:], at_start=True)


def _parse_lines(text: str) -> ReviewResult:
    logger.warning(
        "All JSON parsing attempts failed, falling back to line-by-line parsing"
    )
    findings: list[Finding] = []
    current: dict | None = None
    summary = FALLBACK_SUMMARY

    for raw_line in text.splitlines():
        line = raw_line.strip().lstrip("{[,").strip()

        start = _key_start("line", line)
        if start is not None:
            if current is not None:
                findings.append(_finding_from_mapping(current))
            line = line[start:]
            current = {"line": _field_line(line, at_start=True)}

        if current is not None:
            # Compact output can carry the other fields on the same line
            for field in ("description", "suggestion", "severity"):
                value = _line_value(field, line)
                if value is not None:
                    current[field] = value

        summary = _line_value("summary", line) or summary

    if current is not None:
        findings.append(_finding_from_mapping(current))

    return ReviewResult(findings=findings, summary=summary)


_STAGES = (_parse_direct, _parse_repaired, _extract_objects)


def recover_review(text: str) -> ReviewResult:
    """
    Turn raw model output into a ReviewResult.

    Args:
        text: Full text of the model's response to the review prompt

    Returns:
        ReviewResult; findings may be empty, summary is never empty
    """
    if isinstance(text, bytes):
        text = text.decode("utf-8", errors="replace")
    elif not isinstance(text, str):
        text = "" if text is None else str(text)

    cleaned = strip_fences(text)
    for stage in _STAGES:
        result = stage(cleaned)
        if result is not None:
            return result

    return _parse_lines(cleaned)
