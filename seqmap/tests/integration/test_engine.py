"""
Integration tests for full layout passes

Runs LayoutEngine end to end on hand-built features and on the test
records, checking row assignment, geometry, labels and diagnostics
together.
"""
import itertools
import math

import pytest

from seqmap.config import MapConfig
from seqmap.io import SiteReader, read_genbank
from seqmap.layout import (
    AnnularArrow,
    Feature,
    Interval,
    LayoutEngine,
    Line,
    Polygon,
    Rect,
    RowAssigner,
)


pytestmark = pytest.mark.integration


@pytest.fixture
def unit_scale_config():
    """Linear config without side margins: 1 px per base on a 1000 px viewport"""
    config = MapConfig()
    config.linear.margin_left = 0.0
    config.linear.margin_right = 0.0
    return config


class TestLinearScenarios:
    """Row packing and labels on linear maps"""

    def test_overlapping_features_stack(self, make_feature, unit_scale_config):
        """Spans 100..200 and 150..250 go to rows 0 and 1"""
        features = [make_feature(0, [(101, 201)]), make_feature(1, [(151, 251)])]
        result = LayoutEngine(unit_scale_config).layout(features, 1000, 'linear', width=1000, height=400)
        assert result.row_assignment == {0: 0, 1: 1}
        assert result.n_rows == 2

    def test_disjoint_features_share_row(self, make_feature):
        """Spans 0..50, 60..110 and 120..170 all fit on row 0 at 10 px per base"""
        config = MapConfig()
        config.linear.margin_left = 0.0
        config.linear.margin_right = 0.0
        features = [make_feature(0, [(1, 51)]), make_feature(1, [(61, 111)]), make_feature(2, [(121, 171)])]
        result = LayoutEngine(config).layout(features, 1000, 'linear', width=10000, height=400)
        assert result.row_assignment == {0: 0, 1: 0, 2: 0}

    def test_narrow_feature_label_displaced(self, make_feature, unit_scale_config, monospace):
        """A 6 px feature with a long label is displaced and stays near its target"""
        features = [make_feature(i, [(11 + 12 * i, 16 + 12 * i)], feature_type='misc_feature',
                                 note=f"regulatory element {i}") for i in range(5)]
        engine = LayoutEngine(unit_scale_config, measure=monospace)
        result = engine.layout(features, 1000, 'linear', width=1000, height=400)
        limit = unit_scale_config.linear_relaxation.displacement_limit
        for layout in result.features:
            label = layout.label
            assert label.displaced
            assert label.resolved.distance_to(label.target) <= limit + 1e-9
            assert label.leader is not None
            assert label.leader.end == label.anchor

    def test_single_point_feature_min_width(self, unit_scale_config):
        """A lone start token gives a clamped, visible shape"""
        feature = Feature(0, 'misc_feature', (("10", True),))
        result = LayoutEngine(unit_scale_config).layout([feature], 1000, 'linear', width=1000, height=400)
        layout = result.get_feature(0)
        assert (layout.start, layout.end) == (9, 9)
        rect = layout.shapes[0]
        assert isinstance(rect, Rect)
        assert rect.w == pytest.approx(2.0)
        assert result.diagnostics_of('degenerate_geometry')

    def test_relaxation_steps_recorded(self, make_feature, unit_scale_config):
        """Every row reports the fixed number of relaxation steps"""
        features = [make_feature(i, [(1 + 300 * i, 250 + 300 * i)]) for i in range(3)]
        result = LayoutEngine(unit_scale_config).layout(features, 1000, 'linear', width=1000, height=400)
        assert all(row.relaxation_steps == 75 for row in result.rows)


class TestLinearRecord:
    """Decoded linear JSON record"""

    @pytest.fixture
    def result(self, linear_record):
        return LayoutEngine().layout_record(linear_record, width=2000.0, height=600.0)

    def test_mode_from_topology(self, result):
        assert result.mode == 'linear'

    def test_source_hidden_and_malformed_excluded(self, result):
        """source is not drawn and the fully malformed feature is skipped"""
        assert sorted(result.row_assignment) == [1, 2, 3, 4]
        assert result.layout_stats['n_input'] == 6
        assert result.layout_stats['n_displayed'] == 5
        assert result.layout_stats['n_resolved'] == 4

    def test_malformed_diagnostics(self, result):
        """Bad segments and the excluded feature are reported"""
        malformed = result.diagnostics_of('malformed_input')
        assert {d.feature_id for d in malformed} == {4, 5}
        assert len(malformed) == 3

    def test_partial_feature_keeps_valid_segments(self, result):
        """The spliced gene is drawn from its two valid segments"""
        layout = result.get_feature(4)
        polygons = [s for s in layout.shapes if isinstance(s, Polygon)]
        connectors = [s for s in layout.shapes if isinstance(s, Line)]
        assert len(polygons) == 2
        assert len(connectors) == 1
        assert (layout.start, layout.end) == (400, 599)

    def test_row_assignment(self, result):
        """Longest first, first fit"""
        assert result.row_assignment == {1: 0, 2: 1, 3: 0, 4: 0}

    def test_labels(self, result):
        """Short names fit inline, the long note is displaced below its row"""
        assert not result.get_feature(1).label.displaced
        assert result.get_feature(1).label.text == 'alpha'
        assert result.get_feature(2).label.text == 'beta protein'
        note = result.get_feature(3).label
        assert note.displaced
        assert note.target.y > result.rows[0].outer

    def test_rows_do_not_overlap_labels(self, result):
        """Each row starts below the previous row's labels"""
        first, second = result.rows
        assert second.inner >= first.extent
        assert first.extent > first.outer

    def test_no_overlap_invariant(self, result):
        """Features sharing a row keep the safety margin"""
        assigner = RowAssigner(margin=20.0)
        for row in result.rows:
            spans = []
            for layout in result.features_in_row(row.row_index):
                xs = [x for s in layout.shapes if isinstance(s, Rect) for x in (s.x, s.right)]
                xs += [x for s in layout.shapes if isinstance(s, Polygon) for x in s.x_range]
                spans.append(Interval(min(xs), max(xs)))
            for a, b in itertools.combinations(spans, 2):
                assert not assigner.overlaps(a, b)

    def test_deterministic(self, linear_record):
        """Two passes give identical results"""
        engine = LayoutEngine()
        first = engine.layout_record(linear_record, width=2000.0, height=600.0)
        second = engine.layout_record(linear_record, width=2000.0, height=600.0)
        assert first.to_records() == second.to_records()
        assert first.rows == second.rows


class TestCircularPlasmid:
    """Circular GenBank record with restriction sites"""

    @pytest.fixture(scope="class")
    def result(self, genbank_file, sites_file):
        record = read_genbank(genbank_file)
        sites = SiteReader.load_sites(sites_file)
        return LayoutEngine().layout_record(record, width=800.0, height=800.0, sites=sites)

    def test_mode_and_origin(self, result):
        """Circular mode is taken from the topology, centred on the viewport"""
        assert result.mode == 'circular'
        assert result.origin.as_tuple() == (400.0, 400.0)

    def test_all_displayed_features_placed(self, result):
        assert result.n_features == 7
        assert result.get_feature(0) is None

    def test_origin_spanning_feature(self, result):
        """The join across the origin is one unwrapped span"""
        rep = result.get_feature(7)
        assert rep.crosses_origin
        assert (rep.start, rep.end) == (99, 122)

    def test_layers_concentric(self, result):
        """Each layer starts outside everything the previous layer reached"""
        backbone = LayoutEngine().backbone_radius(800.0, 800.0)
        assert result.rows[0].inner > backbone
        for inner_layer, outer_layer in zip(result.rows, result.rows[1:]):
            assert outer_layer.inner > inner_layer.extent
            assert inner_layer.extent >= inner_layer.outer

    def test_no_angular_overlap_within_layer(self, result):
        """Features sharing a layer do not overlap in angle"""
        period = 2 * math.pi
        assigner = RowAssigner(margin=0.0, period=period)
        scale = period / result.sequence_length
        for row in result.rows:
            spans = [Interval(f.start * scale, (f.end + 1) * scale, f.crosses_origin)
                     for f in result.features_in_row(row.row_index)]
            for a, b in itertools.combinations(spans, 2):
                assert not assigner.overlaps(a, b)

    def test_arrow_heads_capped(self, result):
        """Every ring arrow head is at most a third of its arc"""
        for layout in result.features:
            for shape in layout.shapes:
                if isinstance(shape, AnnularArrow):
                    extent = (shape.full_end_angle - shape.full_start_angle) * shape.mid_radius
                    assert shape.arrow_length <= extent / 3 + 1e-9

    def test_sites(self, result):
        """All valid sites are marked; neighbouring labels use separate rows"""
        assert [s.site['enzyme'] for s in result.sites] == ['BamHI', 'PstI', 'EcoRV']
        rows = {s.site['enzyme']: s.row for s in result.sites}
        assert rows['PstI'] != rows['EcoRV']
        bamhi = result.sites[0]
        assert bamhi.cut_position == 17

    def test_site_marks_cross_backbone(self, result):
        """Marks are radial lines through the backbone circle"""
        backbone = LayoutEngine().backbone_radius(800.0, 800.0)
        for site in result.sites:
            r0 = math.hypot(site.mark.start.x, site.mark.start.y)
            r1 = math.hypot(site.mark.end.x, site.mark.end.y)
            assert r0 < backbone < r1

    def test_site_labels_across_origin(self, make_feature):
        """Site labels on both sides of the origin do not share a row"""
        sites = [{'enzyme': 'EcoRI', 'position': 1}, {'enzyme': 'BamHI', 'position': 1000}]
        result = LayoutEngine().layout([make_feature(0, [(100, 200)])], 1000, 'circular',
                                       width=800, height=800, sites=sites)
        first, last = result.sites
        assert first.row != last.row


class TestErrors:
    """Invalid calls and degenerate inputs"""

    def test_unknown_mode(self, make_feature):
        with pytest.raises(ValueError, match="Unknown layout mode"):
            LayoutEngine().layout([make_feature(0, [(1, 10)])], 100, mode='spiral')

    @pytest.mark.parametrize("width,height", [(0, 100), (100, -1)])
    def test_bad_viewport(self, make_feature, width, height):
        with pytest.raises(ValueError, match="Viewport"):
            LayoutEngine().layout([make_feature(0, [(1, 10)])], 100, width=width, height=height)

    def test_empty_feature_list(self):
        """No features gives an empty but valid result"""
        result = LayoutEngine().layout([], 1000)
        assert result.n_features == 0
        assert result.rows == []
        assert result.layout_stats['n_rows'] == 0

    def test_zero_length_sequence(self, make_feature):
        """Positions collapse to the left edge and shapes are clamped to the minimum width"""
        result = LayoutEngine().layout([make_feature(0, [(1, 10)])], 0, width=1000, height=400)
        shape = result.get_feature(0).shapes[0]
        assert shape.x_range == pytest.approx((49.0, 51.0))
        assert result.diagnostics_of('degenerate_geometry')

    def test_malformed_site_reported(self, make_feature):
        """Sites with bad positions are skipped with a diagnostic"""
        sites = [{'enzyme': 'EcoRI', 'position': 'x'}, {'enzyme': 'BamHI', 'position': 20}]
        result = LayoutEngine().layout([make_feature(0, [(1, 10)])], 100, sites=sites)
        assert [s.site['enzyme'] for s in result.sites] == ['BamHI']
        assert len(result.diagnostics_of('malformed_input')) == 1

    def test_identical_features_each_get_a_row(self, make_feature):
        """Feature count + 1 rows always leave room for every feature"""
        features = [make_feature(i, [(1, 100)]) for i in range(3)]
        engine = LayoutEngine()
        result = engine.layout(features, 100, width=1000, height=400)
        assert result.n_rows == 3
        assert not result.diagnostics_of('packing_exhausted')

    def test_unreadable_segment_not_fatal(self):
        """A null segment in a decoded record is dropped, both features are laid out"""
        record = {
            'locus': {'sequenceLength': 1000, 'topology': 'linear'},
            'features': [
                {'type': 'CDS', 'location': [["101", False, "201"]], 'information': {'gene': 'a'}},
                {'type': 'CDS', 'location': [["301", False, "401"], None], 'information': None},
            ],
        }
        result = LayoutEngine().layout_record(record, width=1000, height=400)
        assert sorted(result.row_assignment) == [0, 1]
        assert [d.feature_id for d in result.diagnostics_of('malformed_input')] == [1]
        assert result.get_feature(1).label.text == 'CDS'


class TestWrapped:
    """Base-level layout with the sequence wrapped into lines"""

    @pytest.fixture
    def config(self):
        config = MapConfig()
        config.wrapped.bases_per_line = 10
        return config

    @pytest.fixture
    def result(self, make_feature, config):
        features = [
            make_feature(0, [(5, 25)], gene='lacZ'),
            make_feature(1, [(8, 12)], feature_type='misc_feature'),
            make_feature(2, [(21, 23)], reverse=True, gene='bla'),
        ]
        sites = [{'enzyme': 'EcoRI', 'position': 15}]
        return LayoutEngine(config).layout(features, 30, 'wrapped', width=1000, height=400, sites=sites)

    def test_lines(self, result):
        """Sequence is cut into lines of the configured length"""
        assert result.mode == 'wrapped'
        assert [(line.start, line.end) for line in result.lines] == [(0, 9), (10, 19), (20, 29)]
        assert [row.row_index for row in result.rows] == [0, 1, 2]
        assert result.layout_stats['bases_per_line'] == 10

    def test_segments_clipped_to_lines(self, result):
        """A feature spanning three lines is drawn once per line"""
        assert [(p.line, p.start, p.end) for p in result.pieces_of(0)] == [(0, 4, 9), (1, 10, 19), (2, 20, 24)]
        assert result.layout_stats['n_placed'] == 3
        assert result.layout_stats['n_pieces'] == 6

    def test_tracks_packed_per_line(self, result):
        """Pieces overlapping within a line go to separate tracks, in input order"""
        tracks = {(p.line, p.feature_id): p.row for p in result.features}
        assert tracks == {(0, 0): 0, (0, 1): 1, (1, 0): 0, (1, 1): 1, (2, 0): 0, (2, 2): 1}
        assert [line.n_tracks for line in result.lines] == [2, 2, 2]

    def test_head_only_on_last_piece(self, result, config):
        """Pieces cut at a line end are boxes; the 3' piece keeps the arrow head"""
        first = result.pieces_of(0)[0].shapes[0]
        assert isinstance(first, Rect)
        assert (first.x, first.w) == (48.0, 72.0)
        assert first.y == pytest.approx(config.wrapped.track_top(result.lines[0].top, 0))
        last = result.pieces_of(0)[-1].shapes[0]
        assert isinstance(last, Polygon)
        assert last.x_range == pytest.approx((0.0, 60.0))

    def test_reverse_piece_points_left(self, result):
        """The reverse feature's tip sits on its first base"""
        polygon = result.pieces_of(2)[0].shapes[0]
        tip = polygon.points[3]
        assert tip.x == pytest.approx(0.0)

    def test_line_heights_accumulate(self, result, config):
        """Each line starts where the previous one, labels included, ends"""
        lines = result.lines
        assert lines[0].top == config.wrapped.first_line_offset
        for upper, lower in zip(lines, lines[1:]):
            assert lower.top == pytest.approx(upper.bottom)
        assert all(line.height >= config.wrapped.line_height(2) for line in lines)
        assert result.extent == pytest.approx(lines[-1].bottom)

    def test_labels_on_lines(self, result):
        """Labels belong to the line of their piece"""
        for piece in result.features:
            assert piece.label is not None
            assert piece.label.row == piece.line

    def test_site_on_its_line(self, result, config):
        """Cut marks run through the sequence text of the line holding the cut"""
        site = result.sites[0]
        line = result.lines[1]
        assert site.line == 1
        assert site.cut_position == 14
        assert site.mark.start.x == pytest.approx(48.0)
        assert site.mark.start.y == pytest.approx(line.top)
        assert site.mark.end.y == pytest.approx(line.top + config.wrapped.sequence_height)

    def test_line_length_from_width(self, make_feature):
        """Without a configured length, lines hold as many tens of bases as fit"""
        result = LayoutEngine().layout([make_feature(0, [(1, 10)])], 200, 'wrapped', width=1000, height=400)
        assert result.layout_stats['bases_per_line'] == 80
        assert [(line.start, line.end) for line in result.lines] == [(0, 79), (80, 159), (160, 199)]
        assert result.lines[1].n_tracks == 0
        assert result.lines[1].height == MapConfig().wrapped.line_height(0)

    def test_origin_crossing_continues_on_first_line(self, config):
        """On a circular sequence the part past the origin goes to line 0"""
        feature = Feature(0, 'misc_feature', (("25", False, "5"),))
        result = LayoutEngine(config).layout([feature], 30, 'wrapped', width=1000, height=400,
                                             topology='circular')
        assert [(p.line, p.start, p.end) for p in result.pieces_of(0)] == [(0, 0, 4), (2, 24, 29)]

    def test_zero_length_sequence(self, make_feature):
        """No lines and nothing placed, reported once"""
        result = LayoutEngine().layout([make_feature(0, [(1, 10)])], 0, 'wrapped', width=1000, height=400)
        assert result.lines == []
        assert result.features == []
        assert len(result.diagnostics_of('degenerate_geometry')) == 1
