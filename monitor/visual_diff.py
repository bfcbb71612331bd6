"""
Visual change classification between a baseline screenshot and a fresh one.

The classifier walks both byte buffers four bytes at a time, treating each
group as an RGBA pixel, over the common prefix of the two buffers. Changes
that touch hover/selection styling are discarded as noise; the rest are
split into availability increases and unrelated content changes.

The color bands were tuned against one vendor's rendering and should not be
assumed to generalize to other imagery.
"""

import math
from typing import Optional, Tuple

import structlog

from monitor.models import ComparisonResult, DiffThresholds

logger = structlog.get_logger(__name__)

Pixel = Tuple[int, int, int]

BYTES_PER_PIXEL = 4

# Highlight bands (date hover/selection styling).
HIGHLIGHT_LIGHT_MIN = (200, 200, 240)
HIGHLIGHT_BLUE_MIN = (150, 170, 200)
HIGHLIGHT_GRAY_MAX_SPREAD = 20
HIGHLIGHT_GRAY_MIN_RED = 180

# Availability bands.
NEUTRAL_RED = (215, 240)
NEUTRAL_GREEN = (215, 240)
NEUTRAL_BLUE = (210, 235)
NEUTRAL_MAX_SPREAD = 15
TAN_RED = (210, 235)
TAN_GREEN = (205, 230)
TAN_BLUE = (190, 220)
TAN_RED_OVER_BLUE = 10

BACKGROUND_MIN = 240


def _above(pixel: Pixel, floor: Pixel) -> bool:
    return all(channel > minimum for channel, minimum in zip(pixel, floor))


def _within(value: int, band: Tuple[int, int]) -> bool:
    return band[0] <= value <= band[1]


def color_distance(a: Pixel, b: Pixel) -> float:
    """Euclidean distance between two RGB triples."""
    return math.sqrt((a[0] - b[0]) ** 2 + (a[1] - b[1]) ** 2 + (a[2] - b[2]) ** 2)


def is_highlight(pixel: Pixel) -> bool:
    """Near-white, blue or light gray pixel consistent with hover or selection styling."""
    r, g, b = pixel
    if _above(pixel, HIGHLIGHT_LIGHT_MIN) or _above(pixel, HIGHLIGHT_BLUE_MIN):
        return True
    return abs(r - g) < HIGHLIGHT_GRAY_MAX_SPREAD and abs(g - b) < HIGHLIGHT_GRAY_MAX_SPREAD and r > HIGHLIGHT_GRAY_MIN_RED


def is_neutral_availability(pixel: Pixel) -> bool:
    r, g, b = pixel
    return (
        _within(r, NEUTRAL_RED) and _within(g, NEUTRAL_GREEN) and _within(b, NEUTRAL_BLUE)
        and abs(r - g) < NEUTRAL_MAX_SPREAD and abs(g - b) < NEUTRAL_MAX_SPREAD
    )


def is_tan_availability(pixel: Pixel) -> bool:
    r, g, b = pixel
    return _within(r, TAN_RED) and _within(g, TAN_GREEN) and _within(b, TAN_BLUE) and r > b + TAN_RED_OVER_BLUE


def is_availability_color(pixel: Pixel) -> bool:
    """Pixel inside either of the bookable-cell color bands."""
    return is_neutral_availability(pixel) or is_tan_availability(pixel)


def is_background(pixel: Pixel) -> bool:
    """Near-white empty background."""
    return all(channel > BACKGROUND_MIN for channel in pixel)


class VisualDiffClassifier:
    """Pure comparison of two screenshots into a ComparisonResult."""

    def __init__(self, thresholds: Optional[DiffThresholds] = None):
        self.thresholds = thresholds or DiffThresholds()

    def compare(self, baseline: bytes, current: bytes) -> ComparisonResult:
        """
        Compare ``current`` against ``baseline``.

        Buffers of different length are compared over their common prefix.
        Percentages are 0 when no complete pixel was sampled.
        """
        common = min(len(baseline), len(current))
        total = common // BYTES_PER_PIXEL

        changed = 0
        increase = 0
        discarded = 0
        unrelated = 0

        for offset in range(0, total * BYTES_PER_PIXEL, BYTES_PER_PIXEL):
            cur = (current[offset], current[offset + 1], current[offset + 2])
            base = (baseline[offset], baseline[offset + 1], baseline[offset + 2])

            if color_distance(cur, base) <= self.thresholds.pixel_distance:
                continue

            if is_highlight(cur) or is_highlight(base):
                discarded += 1
                continue

            changed += 1
            current_available = is_availability_color(cur)
            baseline_available = is_availability_color(base)

            if current_available and not baseline_available and not is_background(base):
                increase += 1
            elif not current_available and not baseline_available:
                unrelated += 1

        change_percentage = changed / total * 100 if total else 0.0
        availability_score = increase / total * 100 if total else 0.0

        significant = change_percentage > self.thresholds.significant_change_percent
        likely_new = increase > 0 and availability_score > self.thresholds.availability_score

        result = ComparisonResult(
            total_pixels_sampled=total,
            changed_pixels=changed,
            availability_increase_pixels=increase,
            highlight_discarded_pixels=discarded,
            unrelated_change_pixels=unrelated,
            change_percentage=change_percentage,
            availability_score=availability_score,
            significant_change=significant,
            likely_new_availability=likely_new,
            should_notify=significant and likely_new,
            should_update_baseline=significant
        )

        logger.debug(
            "Visual comparison",
            total_pixels=total,
            changed_pixels=changed,
            change_percentage=round(change_percentage, 3),
            availability_increase=increase,
            highlight_discarded=discarded,
            unrelated_changes=unrelated
        )
        return result


def compare(baseline: bytes, current: bytes, thresholds: Optional[DiffThresholds] = None) -> ComparisonResult:
    """Compare two screenshots with the given (or default) thresholds."""
    return VisualDiffClassifier(thresholds).compare(baseline, current)
