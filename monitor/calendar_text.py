"""
Text analysis for calendar headers.

This module provides:
- Month/year token scanning in arbitrary calendar text
- Header parsing into ParsedPeriod
- Navigation direction between two periods
- Confidence scoring of extracted text against a target period
"""

import re
from typing import List, Optional

from monitor.models import (
    MONTH_NAMES,
    UNKNOWN_MONTH,
    CalendarSignal,
    NavigationDirection,
    ParsedPeriod,
    Period,
)

# Full names first so that "september" wins over "sept"/"sep".
_MONTH_ALTERNATION = "|".join(
    MONTH_NAMES + ["jan", "feb", "mar", "apr", "jun", "jul", "aug", "sept", "sep", "oct", "nov", "dec"]
)
_MONTH = rf"(?P<month>{_MONTH_ALTERNATION})"
_YEAR = r"(?P<year>\d{4})"

HEADER_PATTERNS: List[re.Pattern] = [
    re.compile(rf"\b{_MONTH}\s+{_YEAR}\b", re.IGNORECASE),          # "January 2024"
    re.compile(rf"\b{_MONTH},?\s*{_YEAR}\b", re.IGNORECASE),        # "January, 2024"
    re.compile(rf"\b{_MONTH}\s*-\s*{_YEAR}\b", re.IGNORECASE),      # "January - 2024"
    re.compile(rf"\b{_YEAR}\s+{_MONTH}\b", re.IGNORECASE),          # "2024 January"
]

# Confidence weights.
CONFIDENCE_MONTH = 0.4
CONFIDENCE_YEAR = 0.3
CONFIDENCE_EXACT_PATTERN = 0.4
CONFIDENCE_NO_OTHER_MONTHS = 0.2
PENALTY_MANY_OTHER_MONTHS = 0.3
MANY_OTHER_MONTHS = 2


def normalize_month(token: str) -> str:
    """Map a month name or abbreviation to its lower-case full name."""
    token = token.lower()
    if token in MONTH_NAMES:
        return token
    for name in MONTH_NAMES:
        if name.startswith(token[:3]):
            return name
    return UNKNOWN_MONTH


def find_period_token(text: Optional[str]) -> Optional[str]:
    """
    Find the earliest month/year token in a block of text.

    Args:
        text: Arbitrary calendar text

    Returns:
        The matched substring, or None when the text names no period
    """
    if not text:
        return None

    best = None
    for pattern in HEADER_PATTERNS:
        match = pattern.search(text)
        if match and (best is None or match.start() < best.start()):
            best = match
    return best.group(0).strip() if best else None


def parse_month_header(text: Optional[str]) -> ParsedPeriod:
    """
    Parse header text into a month/year pair.

    Patterns are tried in priority order (month-then-year, comma and dash
    variants, year-then-month). Unparsable text yields month "unknown", year 0.
    """
    if not text:
        return ParsedPeriod()

    for pattern in HEADER_PATTERNS:
        match = pattern.search(text)
        if match:
            return ParsedPeriod(
                month=normalize_month(match.group("month")),
                year=int(match.group("year"))
            )
    return ParsedPeriod()


def compute_direction(current: ParsedPeriod, target: Period) -> NavigationDirection:
    """Direction to advance from ``current`` to ``target``; year takes precedence."""
    if current.matches(target):
        return NavigationDirection.ALREADY_THERE

    if current.year < target.target_year:
        return NavigationDirection.FORWARD
    if current.year > target.target_year:
        return NavigationDirection.BACKWARD

    current_index = MONTH_NAMES.index(current.month) if current.month in MONTH_NAMES else -1
    target_index = target.target_month - 1
    return NavigationDirection.FORWARD if current_index < target_index else NavigationDirection.BACKWARD


def _contains_word(text_lower: str, word: str) -> bool:
    return re.search(rf"\b{re.escape(word)}\b", text_lower) is not None


def score_calendar_text(text: Optional[str], period: Period, source_selector: Optional[str] = None) -> CalendarSignal:
    """
    Score how confidently ``text`` names the target period.

    Weighted sum: +0.4 expected month present, +0.3 expected year present,
    +0.4 exact "month year" pattern, +0.2 when no other month name appears,
    -0.3 when more than two other month names appear; clamped to [0, 1].
    """
    text = text or ""
    text_lower = text.lower()
    month = period.month_name
    year = str(period.target_year)

    has_month = _contains_word(text_lower, month)
    has_year = year in text
    other_months = [name for name in MONTH_NAMES if name != month and _contains_word(text_lower, name)]

    exact_patterns = [
        rf"\b{month}\s+{year}\b",
        rf"\b{month},?\s*{year}\b",
        rf"\b{year}\s+{month}\b",
        rf"\b{month[:3]}\s+{year}\b",
    ]
    has_exact_pattern = any(re.search(p, text, re.IGNORECASE) for p in exact_patterns)

    confidence = 0.0
    if has_month:
        confidence += CONFIDENCE_MONTH
    if has_year:
        confidence += CONFIDENCE_YEAR
    if has_exact_pattern:
        confidence += CONFIDENCE_EXACT_PATTERN
    if not other_months:
        confidence += CONFIDENCE_NO_OTHER_MONTHS
    if len(other_months) > MANY_OTHER_MONTHS:
        confidence -= PENALTY_MANY_OTHER_MONTHS
    confidence = round(min(max(confidence, 0.0), 1.0), 4)

    return CalendarSignal(
        extracted_text=text,
        confidence=confidence,
        detected_month=month if has_month else "not_found",
        detected_year=period.target_year if has_year else 0,
        source_selector=source_selector,
        has_exact_pattern=has_exact_pattern,
        other_months_found=len(other_months)
    )
