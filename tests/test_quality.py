"""
Tests for live frame analysis and guide mapping (Layer 1).
"""
import numpy as np
import pytest

from conftest import document_frame, draw_outline, landscape_document_frame, rotated_card_frame
from id_scanner.layer1_auto_capture import (
    FrameQualityAnalyzer,
    GuideRegion,
    Rect,
    ValidationReason,
    map_guide_to_source,
)
from id_scanner.layer1_auto_capture.quality import principal_axis_tilt


def evaluate_outline(x, y, width, height, size=(100, 100)):
    edges = draw_outline(size, x, y, width, height)
    luma = edges.astype(np.float32) * 255.0
    return FrameQualityAnalyzer().evaluate(luma, edges)


class TestCoverage:
    """Coverage bounds on the edge bounding box."""

    def test_coverage_at_lower_bound_is_ready(self):
        """Test a centred 55x100 box (coverage 0.55) passes."""
        state, geometry = evaluate_outline(22, 0, 55, 100)
        assert geometry.coverage == pytest.approx(0.55)
        assert state.reason is ValidationReason.READY
        assert state.valid

    def test_coverage_below_bound_is_too_small(self):
        """Test a centred 54x100 box (coverage 0.54) is too small."""
        state, geometry = evaluate_outline(23, 0, 54, 100)
        assert geometry.coverage == pytest.approx(0.54)
        assert state.reason is ValidationReason.TOO_SMALL
        assert state.guidance_key == "capture.guidance.too-small"

    def test_full_frame_is_too_large(self):
        """Test a box filling the frame is too large."""
        state, _ = evaluate_outline(0, 0, 100, 100)
        assert state.reason is ValidationReason.TOO_LARGE


class TestCheckOrder:
    """The first failing check is the one reported."""

    def test_landscape_reported_before_off_center(self):
        """Test a box that is both landscape and off-centre reports landscape."""
        state, geometry = evaluate_outline(20, 30, 80, 70)
        assert geometry.offset_x > 0.14
        assert state.reason is ValidationReason.LANDSCAPE

    def test_off_center_portrait(self):
        """Test a portrait box shifted right is off-centre."""
        state, _ = evaluate_outline(40, 0, 60, 100)
        assert state.reason is ValidationReason.OFF_CENTER

    def test_blurry_document_out_of_focus(self):
        """Test a valid box on a flat luma image is out of focus."""
        edges = draw_outline((100, 100), 20, 0, 60, 100)
        luma = np.full((100, 100), 128.0, dtype=np.float32)
        state, _ = FrameQualityAnalyzer().evaluate(luma, edges)
        assert state.reason is ValidationReason.OUT_OF_FOCUS

    def test_no_edges(self):
        """Test an empty edge mask reports no-edges without geometry."""
        edges = np.zeros((100, 100), dtype=bool)
        state, geometry = FrameQualityAnalyzer().evaluate(edges.astype(np.float32), edges)
        assert state.reason is ValidationReason.NO_EDGES
        assert geometry is None


class TestAnalyze:
    """Full analysis of camera frames."""

    def test_missing_frame(self):
        """Test a None frame reports no-edges."""
        analysis = FrameQualityAnalyzer().analyze(None, GuideRegion.full_frame(400, 600))
        assert analysis.state.reason is ValidationReason.NO_EDGES

    def test_blank_frame(self):
        """Test a uniform frame has no edges."""
        frame = np.zeros((600, 400, 3), dtype=np.uint8)
        analysis = FrameQualityAnalyzer().analyze(frame, GuideRegion.full_frame(400, 600))
        assert analysis.state.reason is ValidationReason.NO_EDGES
        assert analysis.detection is None

    def test_centred_card_is_ready_with_detection(self):
        """Test a centred portrait card is ready and mapped to source pixels."""
        frame = document_frame()
        analysis = FrameQualityAnalyzer().analyze(frame, GuideRegion.full_frame(400, 600))
        assert analysis.state.reason is ValidationReason.READY
        detection = analysis.detection
        assert detection is not None
        assert detection.roi == Rect(0, 0, 400, 600)
        assert 30 <= detection.bbox.x <= 50
        assert 300 <= detection.bbox.width <= 340


class TestGuideMapping:
    """Viewport guide to source rectangle."""

    def test_full_frame_maps_to_itself(self):
        """Test a full-frame guide covers the whole source."""
        assert map_guide_to_source(GuideRegion.full_frame(640, 480), (640, 480)) == Rect(0, 0, 640, 480)

    def test_cover_fit_crops_source(self):
        """Test cover fit maps through the larger scale and offset."""
        # 1000x1000 source shown in a 500x1000 viewport: scale 1, offset -250
        guide = GuideRegion(Rect(100, 100, 300, 800), 500, 1000, fit='cover')
        assert map_guide_to_source(guide, (1000, 1000)) == Rect(350, 100, 300, 800)

    def test_degenerate_guide(self):
        """Test a guide entirely outside the source maps to None."""
        guide = GuideRegion(Rect(-500, -500, 10, 10), 500, 500, fit='cover')
        assert map_guide_to_source(guide, (500, 500)) is None

    def test_contain_fit_adds_letterbox_offsets(self):
        """Test contain fit maps through the smaller scale and the bar offsets."""
        # 800x600 source letterboxed in a 400x400 viewport: scale 0.5, bars of 50 top and bottom
        guide = GuideRegion(Rect(100, 100, 200, 200), 400, 400, fit='contain')
        assert map_guide_to_source(guide, (800, 600)) == Rect(200, 100, 400, 400)

    def test_contain_fit_pillarbox(self):
        """Test side bars shift the mapping horizontally."""
        # 400x600 source in an 800x600 viewport: scale 1, bars of 200 left and right
        guide = GuideRegion(Rect(250, 50, 300, 500), 800, 600, fit='contain')
        assert map_guide_to_source(guide, (400, 600)) == Rect(50, 50, 300, 500)

    def test_guide_inside_letterbox_bar(self):
        """Test a guide lying on the black bar has no source pixels."""
        guide = GuideRegion(Rect(0, 0, 400, 40), 400, 400, fit='contain')
        assert map_guide_to_source(guide, (800, 600)) is None


class TestDefaultGuide:
    """Guide used when the client does not draw one."""

    def test_portrait_source_uses_whole_frame(self):
        """Test a portrait source keeps the full-frame guide."""
        assert GuideRegion.for_source(400, 600) == GuideRegion.full_frame(400, 600)

    def test_landscape_source_gets_portrait_guide(self):
        """Test a landscape source gets a centred portrait guide."""
        guide = GuideRegion.for_source(640, 360)
        roi = map_guide_to_source(guide, (640, 360))
        assert roi.height > roi.width
        assert roi.x + roi.width / 2 == pytest.approx(320, abs=1)
        assert roi.y + roi.height / 2 == pytest.approx(180, abs=1)

    def test_landscape_card_is_ready(self):
        """Test a portrait card in a landscape view is ready with the default guide."""
        frame = landscape_document_frame()
        analyzer = FrameQualityAnalyzer()

        # The whole 16:9 frame dwarfs a portrait card
        assert analyzer.analyze(frame, GuideRegion.full_frame(640, 360)).state.reason is ValidationReason.TOO_SMALL
        analysis = analyzer.analyze(frame, GuideRegion.for_source(640, 360))
        assert analysis.state.reason is ValidationReason.READY
        assert analysis.geometry.coverage >= 0.55


class TestTilt:
    """Principal-axis tilt estimate and the tilt check."""

    @pytest.mark.parametrize("degrees", [0.0, 5.0, 12.0, 30.0])
    def test_line_tilt(self, degrees):
        """Test points along a line report the line's angle from vertical."""
        ys = np.arange(-200, 200, dtype=np.float64)
        xs = ys * np.tan(np.radians(degrees))
        assert principal_axis_tilt(xs, ys) == pytest.approx(degrees, abs=0.01)

    def test_direction_of_tilt_is_ignored(self):
        """Test leaning left and right give the same tilt."""
        ys = np.arange(-200, 200, dtype=np.float64)
        xs = ys * np.tan(np.radians(10))
        assert principal_axis_tilt(-xs, ys) == pytest.approx(principal_axis_tilt(xs, ys))

    def test_too_few_points(self):
        """Test a single point has no tilt."""
        assert principal_axis_tilt(np.array([5]), np.array([5])) == 0.0

    def test_slightly_rotated_card_is_ready(self):
        """Test a card rotated 5 degrees stays within the tilt limit."""
        frame = rotated_card_frame(5)
        analysis = FrameQualityAnalyzer().analyze(frame, GuideRegion.full_frame(400, 600))
        assert analysis.geometry.tilt == pytest.approx(5, abs=2)
        assert analysis.state.reason is ValidationReason.READY

    def test_rotated_card_reports_tilt(self):
        """Test a card rotated 12 degrees is reported as tilted."""
        frame = rotated_card_frame(12)
        analysis = FrameQualityAnalyzer().analyze(frame, GuideRegion.full_frame(400, 600))
        assert analysis.geometry.tilt == pytest.approx(12, abs=2)
        assert analysis.state.reason is ValidationReason.TILT
        assert analysis.state.guidance_key == "capture.guidance.tilt"
