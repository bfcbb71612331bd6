"""
Test cases for the visual diff classifier.
"""

import pytest

from conftest import rgba, solid
from monitor.models import DiffThresholds
from monitor.visual_diff import (
    VisualDiffClassifier,
    color_distance,
    compare,
    is_availability_color,
    is_background,
    is_highlight,
)

GRID = (90, 90, 90)
TAN = (230, 210, 195)
WHITE = (255, 255, 255)
DARK_TEXT = (20, 20, 20)


class TestPixelBands:
    """Test cases for pixel classification helpers."""

    def test_highlight_bands(self):
        """Test light, blue and gray highlight styling."""
        assert is_highlight((210, 210, 250))
        assert is_highlight((160, 180, 210))
        assert is_highlight((190, 195, 200))
        assert not is_highlight(TAN)
        assert not is_highlight(GRID)

    def test_availability_bands(self):
        """Test neutral and tan availability colors."""
        assert is_availability_color(TAN)
        assert is_availability_color((225, 225, 220))
        assert not is_availability_color(GRID)
        assert not is_availability_color(WHITE)

    def test_background(self):
        """Test near-white background detection."""
        assert is_background(WHITE)
        assert not is_background((240, 250, 250))

    def test_color_distance(self):
        """Test Euclidean RGB distance."""
        assert color_distance((0, 0, 0), (3, 4, 0)) == 5.0


class TestVisualDiffClassifier:
    """Test cases for VisualDiffClassifier.compare."""

    def test_identical_images(self):
        """Test an image compared with itself has no change."""
        image = rgba(GRID, TAN, WHITE, DARK_TEXT, (160, 180, 210)) * 20
        result = compare(image, image)

        assert result.change_percentage == 0
        assert result.changed_pixels == 0
        assert result.should_notify is False
        assert result.should_update_baseline is False

    def test_minimal_trigger(self):
        """Test a single pixel turning availability-colored triggers a notification."""
        result = compare(rgba(GRID), rgba(TAN))

        assert result.total_pixels_sampled == 1
        assert result.changed_pixels == 1
        assert result.availability_increase_pixels == 1
        assert result.availability_score == 100
        assert result.change_percentage == 100
        assert result.significant_change is True
        assert result.likely_new_availability is True
        assert result.should_notify is True
        assert result.should_update_baseline is True

    def test_white_to_neutral_is_highlight_noise(self):
        """Test near-white and light gray pixels fall in the highlight bands and are discarded."""
        result = compare(rgba(WHITE), rgba((225, 225, 220)))

        assert result.highlight_discarded_pixels == 1
        assert result.changed_pixels == 0
        assert result.should_notify is False

    @pytest.mark.parametrize("highlight", [(210, 210, 250), (160, 180, 210), (190, 195, 200)])
    def test_noise_immunity(self, highlight):
        """Test any change touching a highlight pixel is excluded regardless of distance."""
        forward = compare(rgba(DARK_TEXT), rgba(highlight))
        backward = compare(rgba(highlight), rgba(DARK_TEXT))

        for result in (forward, backward):
            assert result.changed_pixels == 0
            assert result.highlight_discarded_pixels == 1

    def test_small_distance_is_unchanged(self):
        """Test differences at or below the distance threshold are ignored."""
        result = compare(rgba((100, 100, 100)), rgba((110, 110, 110)))
        assert result.changed_pixels == 0
        assert result.highlight_discarded_pixels == 0

    def test_unrelated_content_change(self):
        """Test text/border changes count as changed but not as availability."""
        result = compare(solid(GRID, 10), rgba(DARK_TEXT) + solid(GRID, 9))

        assert result.changed_pixels == 1
        assert result.unrelated_change_pixels == 1
        assert result.availability_increase_pixels == 0
        assert result.change_percentage == pytest.approx(10.0)
        assert result.significant_change is True
        assert result.should_notify is False
        assert result.should_update_baseline is True

    def test_availability_removed(self):
        """Test availability disappearing is a change but not new availability."""
        result = compare(rgba(TAN), rgba(DARK_TEXT))

        assert result.changed_pixels == 1
        assert result.availability_increase_pixels == 0
        assert result.unrelated_change_pixels == 0
        assert result.should_notify is False

    def test_below_significance(self):
        """Test one availability pixel in a hundred is new availability but not significant."""
        baseline = solid(GRID, 100)
        current = rgba(TAN) + solid(GRID, 99)
        result = compare(baseline, current)

        assert result.change_percentage == pytest.approx(1.0)
        assert result.likely_new_availability is True
        assert result.significant_change is False
        assert result.should_notify is False
        assert result.should_update_baseline is False

    def test_different_lengths_use_common_prefix(self):
        """Test buffers of different length are compared over the shorter one."""
        baseline = solid(GRID, 4)
        current = solid(GRID, 4) + solid(TAN, 10) + b"\x01\x02"
        result = compare(baseline, current)

        assert result.total_pixels_sampled == 4
        assert result.changed_pixels == 0

    def test_partial_trailing_pixel_ignored(self):
        """Test a trailing group shorter than four bytes is not sampled."""
        result = compare(rgba(GRID) + b"\x00\x00", rgba(GRID) + b"\xff\xff")
        assert result.total_pixels_sampled == 1

    def test_empty_buffers(self):
        """Test empty input yields zero percentages instead of an error."""
        result = compare(b"", b"")
        assert result.total_pixels_sampled == 0
        assert result.change_percentage == 0.0
        assert result.should_notify is False

    def test_thresholds_are_configurable(self):
        """Test a higher significance threshold suppresses the notification."""
        classifier = VisualDiffClassifier(DiffThresholds(significant_change_percent=50.0))
        result = classifier.compare(solid(GRID, 4), rgba(TAN) + solid(GRID, 3))

        assert result.change_percentage == pytest.approx(25.0)
        assert result.significant_change is False
        assert result.should_notify is False
