"""
Unit tests for LabelPlacer

Text selection, inline/displaced decisions, overflow policies and
measurement failures. Uses the monospace measurer (6 px per character).
"""
import math

import pytest

from seqmap.config import LabelConfig
from seqmap.layout import AnnularSector, Feature, LabelPlacer, LayoutSession, Rect
from seqmap.layout.labels import is_lower_half


pytestmark = [pytest.mark.unit, pytest.mark.labels]


def feature(feature_id=0, feature_type='CDS', **info):
    return Feature(feature_id=feature_id, type=feature_type, location=(("1", False, "10"),), info=info)


class TestLabelText:
    """Qualifier priority"""

    def test_gene_first(self):
        """gene wins over product and note"""
        placer = LabelPlacer()
        assert placer.label_text(feature(gene='lacZ', product='beta-gal', note='x')) == 'lacZ'

    def test_product_then_note(self):
        """product is used before note"""
        placer = LabelPlacer()
        assert placer.label_text(feature(product='beta-gal', note='x')) == 'beta-gal'
        assert placer.label_text(feature(note='x')) == 'x'

    def test_blank_values_skipped(self):
        """Whitespace-only qualifiers do not count"""
        placer = LabelPlacer()
        assert placer.label_text(feature(gene='  ', product='rep')) == 'rep'

    def test_falls_back_to_type(self):
        """Without qualifiers the feature type is the label"""
        assert LabelPlacer().label_text(feature(feature_type='rep_origin')) == 'rep_origin'

    def test_custom_priority(self):
        """Priority order comes from the config"""
        placer = LabelPlacer(LabelConfig(field_priority=('note', 'gene')))
        assert placer.label_text(feature(gene='lacZ', note='reporter')) == 'reporter'


class TestLinearPlacement:
    """Labels on linear rows"""

    def test_inline_when_text_fits(self, monospace):
        """Text narrower than box width minus padding is centred in the box"""
        placer = LabelPlacer(measure=monospace)
        box = Rect(100.0, 40.0, 100.0, 10.0)
        node = placer.place_linear(feature(gene='lacZ'), 0, box)
        assert not node.displaced
        assert not node.truncated
        assert node.resolved == node.target == node.anchor == box.center
        assert node.measured_width == 24.0

    def test_exact_fit_is_inline(self, monospace):
        """Width equal to the available space still fits"""
        placer = LabelPlacer(measure=monospace)
        node = placer.place_linear(feature(gene='abcde'), 0, Rect(0.0, 0.0, 40.0, 10.0))
        assert not node.displaced

    def test_displaced_below_box(self, monospace):
        """Overflowing text is displaced below the shape and queued for relaxation"""
        session = LayoutSession()
        placer = LabelPlacer(measure=monospace)
        box = Rect(100.0, 40.0, 50.0, 10.0)
        node = placer.place_linear(feature(3, note='a rather long description'), 2, box, session)
        assert node.displaced
        assert node.truncated
        assert node.anchor.as_tuple() == (125.0, 50.0)
        assert node.target.as_tuple() == pytest.approx((125.0, 50.0 + 3.5 + 3.5))
        assert session.nodes_for(2) == [node]

    def test_inline_not_queued(self, monospace):
        """Inline labels are not relaxed"""
        session = LayoutSession()
        placer = LabelPlacer(measure=monospace)
        placer.place_linear(feature(gene='a'), 0, Rect(0.0, 0.0, 100.0, 10.0), session)
        assert session.label_nodes == {}


class TestTruncatePolicy:
    """overflow='truncate'"""

    def test_truncated_inline(self, monospace):
        """Text is shortened with an ellipsis and kept inside the shape"""
        placer = LabelPlacer(LabelConfig(overflow='truncate'), measure=monospace)
        node = placer.place_linear(feature(gene='abcdefghij'), 0, Rect(0.0, 0.0, 40.0, 10.0))
        assert node.text == 'ab...'
        assert node.truncated
        assert not node.displaced
        assert node.measured_width <= 30.0

    def test_nothing_fits(self, monospace):
        """No label is emitted when not even the ellipsis fits"""
        placer = LabelPlacer(LabelConfig(overflow='truncate'), measure=monospace)
        assert placer.place_linear(feature(gene='abcdefghij'), 0, Rect(0.0, 0.0, 20.0, 10.0)) is None

    def test_failing_measurer_while_truncating(self):
        """Ellipsised candidates that fail to measure use the estimate instead of escaping"""
        def measure(text):
            if text.endswith('...'):
                raise RuntimeError("glyph missing")
            return len(text) * 6.0, 7.0

        session = LayoutSession()
        placer = LabelPlacer(LabelConfig(overflow='truncate'), measure=measure)
        node = placer.place_linear(feature(3, gene='abcdefghij'), 0, Rect(0.0, 0.0, 40.0, 10.0), session)
        assert node.text == 'abcd...'
        assert node.measured_width == pytest.approx(7 * 7.0 * 0.6)
        assert session.count('measurement_failure') > 0
        assert {d.feature_id for d in session.diagnostics} == {3}


class TestMeasurementFailure:
    """Failing measurers fall back to the estimate"""

    def test_raising_measurer(self):
        """An exception is reported and the label is displaced"""
        def broken(text):
            raise RuntimeError("no font")

        session = LayoutSession()
        placer = LabelPlacer(measure=broken)
        node = placer.place_linear(feature(7, gene='lacZ'), 0, Rect(0.0, 0.0, 500.0, 10.0), session)
        assert node.displaced
        assert node.measured_width == pytest.approx(4 * 7.0 * 0.6)
        assert session.count('measurement_failure') == 1
        assert session.diagnostics[0].feature_id == 7

    def test_non_finite_measurement(self):
        """NaN sizes count as failures"""
        session = LayoutSession()
        placer = LabelPlacer(measure=lambda text: (float('nan'), 7.0))
        width, height, ok = placer.measure_text('lacZ', session)
        assert not ok
        assert math.isfinite(width)
        assert session.count('measurement_failure') == 1


class TestCircularPlacement:
    """Labels on circular layers"""

    def test_inline_on_arc(self, monospace):
        """Fitting text sits on the arc just inside the mid radius"""
        placer = LabelPlacer(measure=monospace)
        sector = AnnularSector(100.0, 116.0, 0.0, math.pi / 2)
        node = placer.place_circular(feature(gene='lacZ'), 0, sector, 116.0)
        assert not node.displaced
        assert node.rotation == pytest.approx(45.0)
        assert math.hypot(node.resolved.x, node.resolved.y) == pytest.approx(103.0)

    def test_lower_half_flipped(self, monospace):
        """Inline text in the lower half is rotated upright and pushed outward"""
        placer = LabelPlacer(measure=monospace)
        sector = AnnularSector(100.0, 116.0, math.pi, math.pi + 0.5)
        node = placer.place_circular(feature(gene='lacZ'), 0, sector, 116.0)
        assert not node.displaced
        assert node.rotation == pytest.approx(math.degrees(0.25))
        assert math.hypot(node.resolved.x, node.resolved.y) == pytest.approx(103.0 + 7.0 * 0.618)

    def test_displaced_outside_outermost(self, monospace):
        """Overflowing text targets label_distance beyond the outermost radius"""
        session = LayoutSession(mode='circular')
        placer = LabelPlacer(measure=monospace)
        sector = AnnularSector(100.0, 116.0, 0.0, 0.1)
        node = placer.place_circular(feature(gene='a long gene name'), 1, sector, 140.0, session)
        assert node.displaced
        assert math.hypot(node.anchor.x, node.anchor.y) == pytest.approx(116.0)
        assert math.hypot(node.target.x, node.target.y) == pytest.approx(170.0)
        assert session.nodes_for(1) == [node]

    @pytest.mark.parametrize("angle,expected", [
        (0.1, False), (math.pi / 2, False), (math.pi, True), (4.0, True), (3 * math.pi / 2, False),
        (2 * math.pi + math.pi, True),
    ])
    def test_is_lower_half(self, angle, expected):
        """Lower half is strictly between three and nine o'clock"""
        assert is_lower_half(angle) is expected
