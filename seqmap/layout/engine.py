"""
Layout Engine for SeqMap
Full layout pass for linear, circular and wrapped sequence maps

Pass structure:
- Resolve feature bounds
- Pack spans into rows (linear) or layers (circular); in wrapped mode clip
  segments to lines and pack each line's pieces into tracks
- Row by row, innermost/topmost first: build shapes, place labels, relax
  displaced labels, then measure the row extent that positions the next row
- Place restriction site marks and pack their labels

Every call starts from a fresh LayoutSession; nothing is carried over
between passes.
"""
from __future__ import annotations
from typing import Dict, List, Optional, Sequence, Tuple
import logging
import math

from ..config import MapConfig
from ..text_metrics import TextMeasurer
from ..types import GenBankRecord, RestrictionSite
from .bounds import FeatureBoundsResolver
from .coordinates import CoordinateMapper, polar_to_cartesian
from .labels import LabelPlacer, Measure
from .relax import LabelRelaxer
from .rows import RowAssigner, SiteLabelPacker, group_by_row, max_occupied_rows
from .session import LayoutSession
from .shapes import BuiltShapes, ShapeGeometryBuilder
from .types import (
    ClippedPiece,
    Feature,
    FeatureLayout,
    Interval,
    Label,
    LabelNode,
    LayoutResult,
    Line,
    Point,
    ResolvedFeature,
    RowGeometry,
    Segment,
    SiteLayout,
    WrappedLine,
)

logger = logging.getLogger(__name__)

MODES = ('linear', 'circular', 'wrapped')


class LayoutEngine:
    """
    Feature and label layout for one sequence map

    Example:
        >>> engine = LayoutEngine(MapConfig())
        >>> result = engine.layout(features, 5386, mode='circular', width=800, height=800)
        >>> result.row_assignment
    """

    def __init__(self, config: Optional[MapConfig] = None, measure: Optional[Measure] = None):
        """
        Initialize layout engine

        Args:
            config: Map configuration
            measure: Label measuring callable text -> (width, height);
                defaults to TextMeasurer on the label configuration
        """
        self.config = config or MapConfig()
        self.measure = measure or TextMeasurer(self.config.labels)
        self.shapes = ShapeGeometryBuilder(self.config.shapes)
        self.labels = LabelPlacer(self.config.labels, self.measure,
                                  self.config.linear, self.config.circular)
        self.site_packer = SiteLabelPacker(self.config.sites)

        logger.debug("LayoutEngine initialized")

    # ============================================================
    # ENTRY POINTS
    # ============================================================

    def layout(self, features: Sequence[Feature], sequence_length: int, mode: str = 'linear',
               width: float = 1000.0, height: float = 800.0,
               sites: Optional[Sequence[RestrictionSite]] = None,
               topology: Optional[str] = None) -> LayoutResult:
        """
        Run a full layout pass

        Args:
            features: Features to lay out
            sequence_length: Sequence length (bp)
            mode: 'linear', 'circular' or 'wrapped'
            width: Viewport width (px)
            height: Viewport height (px)
            sites: Restriction sites to mark
            topology: Topology used to resolve locations; defaults to
                'circular' in circular mode and 'linear' otherwise

        Returns:
            LayoutResult with shapes, labels, rows and diagnostics

        Raises:
            ValueError: Unknown mode or topology, or non-positive viewport
        """
        if mode not in MODES:
            raise ValueError(f"Unknown layout mode '{mode}', expected one of {MODES}")
        if width <= 0 or height <= 0:
            raise ValueError(f"Viewport must be positive, got {width}x{height}")

        logger.info(f"Laying out {len(features)} features on {mode} map "
                    f"({sequence_length} bp, {width:.0f}x{height:.0f} px)")

        session = LayoutSession(mode=mode)
        if sequence_length <= 0:
            logger.warning(f"Sequence length {sequence_length} is not positive, positions collapse to the origin")

        if topology is None:
            topology = 'circular' if mode == 'circular' else 'linear'
        displayed = [f for f in features if self.config.feature_types.is_displayed(f.type)]
        resolver = FeatureBoundsResolver(sequence_length, topology)
        resolved = resolver.resolve_all(displayed, session)

        if mode == 'linear':
            result = self._layout_linear(resolved, sequence_length, width, height, session, sites or [])
        elif mode == 'circular':
            result = self._layout_circular(resolved, sequence_length, width, height, session, sites or [])
        else:
            result = self._layout_wrapped(resolved, resolver, width, height, session, sites or [])

        result.layout_stats.update({
            'n_input': len(features),
            'n_displayed': len(displayed),
            'n_resolved': len(resolved),
            'n_placed': len({f.feature_id for f in result.features}),
            'n_rows': result.n_rows,
            'n_lines': len(result.lines),
            'n_displaced': result.n_displaced,
            'n_sites': len(result.sites),
            'n_diagnostics': len(result.diagnostics),
        })
        logger.info(f"Placed {result.layout_stats['n_placed']}/{len(features)} features on {result.n_rows} rows, "
                    f"{result.n_displaced} displaced labels, {len(result.diagnostics)} diagnostics")
        return result

    def layout_record(self, record: GenBankRecord, mode: Optional[str] = None,
                      width: float = 1000.0, height: float = 800.0,
                      sites: Optional[Sequence[RestrictionSite]] = None) -> LayoutResult:
        """
        Lay out a decoded GenBank record

        Args:
            record: Record with locus and features
            mode: Layout mode; defaults to the record topology
            width: Viewport width (px)
            height: Viewport height (px)
            sites: Restriction sites to mark

        Returns:
            LayoutResult
        """
        locus = record.get('locus', {})
        topology = 'circular' if str(locus.get('topology', '')).lower() == 'circular' else 'linear'
        if mode is None:
            mode = topology
        features = [Feature.from_record(i, raw) for i, raw in enumerate(record.get('features', []))]
        return self.layout(features, int(locus.get('sequenceLength', 0)), mode, width, height, sites,
                           topology=topology if mode == 'wrapped' else None)

    # ============================================================
    # LINEAR
    # ============================================================

    def _layout_linear(self, resolved: List[ResolvedFeature], sequence_length: int,
                       width: float, height: float, session: LayoutSession,
                       sites: Sequence[RestrictionSite]) -> LayoutResult:
        cfg = self.config.linear
        offset = width * cfg.margin_left
        content_width = width * (1.0 - cfg.margin_left - cfg.margin_right)
        mapper = CoordinateMapper.linear(sequence_length, content_width, offset)

        by_id = {r.feature_id: r for r in resolved}
        spans = {
            r.feature_id: Interval(float(mapper.to_pixel(r.start)), float(mapper.to_pixel(r.end + 1)))
            for r in resolved
        }
        assigner = RowAssigner(margin=cfg.row_margin)
        assignment = assigner.assign(spans, session=session)
        ordered = sorted(assignment, key=lambda i: (by_id[i].start, i))

        relaxer = LabelRelaxer(self.config.relaxation_for('linear'))
        layouts: List[FeatureLayout] = []
        rows: List[RowGeometry] = []
        top = cfg.first_row_offset
        for row, ids in group_by_row(assignment, ordered).items():
            built: Dict[int, BuiltShapes] = {}
            nodes: Dict[int, Optional[LabelNode]] = {}
            for feature_id in ids:
                item = by_id[feature_id]
                kind = self.config.feature_types.shape_for(item.feature.type)
                built[feature_id] = self.shapes.build_linear(item, kind, mapper, top, cfg.box_height, session)
                nodes[feature_id] = self.labels.place_linear(item.feature, row, built[feature_id].anchor_box,
                                                             session)

            labels, steps = self._relax_row(row, nodes, relaxer, session)
            bottom = top + cfg.box_height * (1.0 + self.config.shapes.neck_ratio / 2)
            extent = max([bottom] + [l.resolved.y + l.measured_height / 2 for l in labels.values()])
            rows.append(RowGeometry(row, top, top + cfg.box_height, extent, len(ids), steps))
            layouts.extend(self._feature_layouts(ids, by_id, row, built, labels))
            logger.debug(f"Row {row}: {len(ids)} features, y={top:.1f}, extent={extent:.1f}")
            top = max(top + cfg.box_height + cfg.row_spacing, extent + cfg.row_spacing / 2)

        line_y = cfg.first_row_offset / 2
        site_layouts = self._layout_sites_linear(sites, mapper, line_y, sequence_length, session)
        extent = rows[-1].extent if rows else cfg.first_row_offset
        return LayoutResult('linear', sequence_length, width, height, layouts, site_layouts, rows,
                            session.diagnostics, extent, origin=Point(0.0, 0.0))

    def _layout_sites_linear(self, sites: Sequence[RestrictionSite], mapper: CoordinateMapper,
                             line_y: float, sequence_length: int,
                             session: LayoutSession) -> List[SiteLayout]:
        scfg = self.config.sites
        valid = self._valid_sites(sites, sequence_length, session)
        if not valid:
            return []
        measurer = TextMeasurer(self.config.labels, font_size=scfg.font_size)
        rows = self.site_packer.pack(valid, lambda p: float(mapper.to_pixel(p)), measurer.width, session)

        layouts = []
        for index, site in enumerate(valid):
            if index not in rows:
                continue
            cut = self.site_packer.cut_position(site)
            x = float(mapper.to_pixel(cut))
            mark = Line(Point(x, line_y - scfg.mark_length / 2), Point(x, line_y + scfg.mark_length / 2),
                        width=scfg.mark_width)
            text = str(site['enzyme'])
            w, h = measurer(text)
            at = Point(x, line_y - scfg.label_offset - rows[index] * scfg.row_height)
            label = Label(text, w, h, anchor=mark.start, target=at, resolved=at,
                          truncated=False, displaced=False, row=rows[index])
            layouts.append(SiteLayout(site, rows[index], cut, mark, label))
        return layouts

    # ============================================================
    # CIRCULAR
    # ============================================================

    def backbone_radius(self, width: float, height: float) -> float:
        """Radius of the sequence circle for a viewport"""
        cfg = self.config.circular
        return min(width, height) * cfg.radius_fraction * cfg.inner_radius_fraction

    def _layout_circular(self, resolved: List[ResolvedFeature], sequence_length: int,
                         width: float, height: float, session: LayoutSession,
                         sites: Sequence[RestrictionSite]) -> LayoutResult:
        cfg = self.config.circular
        mapper = CoordinateMapper.circular(sequence_length)
        backbone = self.backbone_radius(width, height)

        by_id = {r.feature_id: r for r in resolved}
        spans = {
            r.feature_id: Interval(float(mapper.to_angle(r.start)), float(mapper.to_angle(r.end + 1)),
                                   crosses_origin=r.crosses_origin)
            for r in resolved
        }
        angular_margin = cfg.layer_margin / backbone if backbone > 0 else 0.0
        assigner = RowAssigner(margin=angular_margin, period=2 * math.pi)
        assignment = assigner.assign(spans, session=session)
        ordered = sorted(assignment, key=lambda i: (by_id[i].start, i))

        relaxer = LabelRelaxer(self.config.relaxation_for('circular'))
        layouts: List[FeatureLayout] = []
        rows: List[RowGeometry] = []
        reached = backbone
        for layer, ids in group_by_row(assignment, ordered).items():
            inner = reached + cfg.layer_gap
            outer = inner + cfg.layer_thickness
            built: Dict[int, BuiltShapes] = {}
            nodes: Dict[int, Optional[LabelNode]] = {}
            for feature_id in ids:
                item = by_id[feature_id]
                kind = self.config.feature_types.shape_for(item.feature.type)
                built[feature_id] = self.shapes.build_circular(item, kind, mapper, inner, outer, session)
                nodes[feature_id] = self.labels.place_circular(item.feature, layer, built[feature_id].anchor_box,
                                                               outer, session)

            labels, steps = self._relax_row(layer, nodes, relaxer, session)
            extent = max([outer] + [self._label_radius(l) for l in labels.values()])
            rows.append(RowGeometry(layer, inner, outer, extent, len(ids), steps))
            layouts.extend(self._feature_layouts(ids, by_id, layer, built, labels))
            logger.debug(f"Layer {layer}: {len(ids)} features, r={inner:.1f}-{outer:.1f}, extent={extent:.1f}")
            reached = extent

        site_layouts = self._layout_sites_circular(sites, mapper, backbone, sequence_length, session)
        return LayoutResult('circular', sequence_length, width, height, layouts, site_layouts, rows,
                            session.diagnostics, reached, origin=Point(width / 2, height / 2))

    @staticmethod
    def _label_radius(label: Label) -> float:
        """Farthest distance from the centre reached by a label box"""
        return math.hypot(label.resolved.x, label.resolved.y) + max(label.measured_width, label.measured_height) / 2

    def _layout_sites_circular(self, sites: Sequence[RestrictionSite], mapper: CoordinateMapper,
                               backbone: float, sequence_length: int,
                               session: LayoutSession) -> List[SiteLayout]:
        scfg = self.config.sites
        valid = self._valid_sites(sites, sequence_length, session)
        if not valid:
            return []
        measurer = TextMeasurer(self.config.labels, font_size=scfg.font_size)
        rows = self.site_packer.pack(valid, lambda p: float(mapper.to_angle(p)) * backbone,
                                     measurer.width, session, period=2 * math.pi * backbone)

        layouts = []
        for index, site in enumerate(valid):
            if index not in rows:
                continue
            cut = self.site_packer.cut_position(site)
            angle = float(mapper.to_angle(cut))
            mark = Line(Point(*polar_to_cartesian(backbone - scfg.mark_length / 2, angle)),
                        Point(*polar_to_cartesian(backbone + scfg.mark_length / 2, angle)),
                        width=scfg.mark_width)
            text = str(site['enzyme'])
            w, h = measurer(text)
            radius = max(backbone - scfg.label_offset - rows[index] * scfg.row_height, 0.0)
            at = Point(*polar_to_cartesian(radius, angle))
            label = Label(text, w, h, anchor=mark.start, target=at, resolved=at,
                          truncated=False, displaced=False, row=rows[index])
            layouts.append(SiteLayout(site, rows[index], cut, mark, label))
        return layouts

    # ============================================================
    # WRAPPED
    # ============================================================

    def _layout_wrapped(self, resolved: List[ResolvedFeature], resolver: FeatureBoundsResolver,
                        width: float, height: float, session: LayoutSession,
                        sites: Sequence[RestrictionSite]) -> LayoutResult:
        """
        Base-level layout: the sequence is cut into lines of equal length,
        every segment is clipped to the lines it touches and the pieces of
        each line are packed into tracks below its sequence text. A line
        starts where the previous line (tracks and labels) ends.
        """
        cfg = self.config.wrapped
        sequence_length = resolver.sequence_length
        bases_per_line = cfg.line_length(width)
        n_lines = math.ceil(sequence_length / bases_per_line) if sequence_length > 0 else 0
        if n_lines == 0 and resolved:
            session.report('degenerate_geometry',
                           f"no bases to wrap, {len(resolved)} features not placed")

        by_id = {r.feature_id: r for r in resolved}
        per_line: Dict[int, List[ClippedPiece]] = {}
        for item in resolved:
            for piece in resolver.clip_to_lines(item, bases_per_line):
                per_line.setdefault(piece.line, []).append(piece)

        mapper = CoordinateMapper.linear(bases_per_line, bases_per_line * cfg.char_width)
        relaxer = LabelRelaxer(self.config.relaxation_for('wrapped'))
        layouts: List[FeatureLayout] = []
        rows: List[RowGeometry] = []
        lines: List[WrappedLine] = []
        top = cfg.first_line_offset
        for line in range(n_lines):
            line_start = line * bases_per_line
            line_end = min(line_start + bases_per_line, sequence_length) - 1
            pieces = per_line.get(line, [])

            spans = {i: Interval(float(p.start - line_start), float(p.end - line_start))
                     for i, p in enumerate(pieces)}
            tracks = RowAssigner(margin=cfg.track_margin).assign(spans, order=list(spans))
            for i, piece in enumerate(pieces):
                if i not in tracks:
                    session.report('packing_exhausted', f"piece on line {line} not placed", piece.feature_id)

            built: Dict[int, BuiltShapes] = {}
            nodes: Dict[int, Optional[LabelNode]] = {}
            for i, track in tracks.items():
                piece = pieces[i]
                item = by_id[piece.feature_id]
                kind = self.config.feature_types.shape_for(item.feature.type) if piece.has_head else 'box'
                column = Segment(piece.start - line_start, piece.end - line_start, piece.is_reverse)
                clipped = ResolvedFeature(item.feature, (column,), column.start, column.end)
                y = cfg.track_top(top, track)
                built[i] = self.shapes.build_linear(clipped, kind, mapper, y, cfg.box_height, session)
                nodes[i] = self.labels.place_linear(item.feature, line, built[i].anchor_box, session)

            labels, steps = self._relax_row(line, nodes, relaxer, session)
            n_tracks = max_occupied_rows(tracks)
            bottom = top + cfg.line_height(n_tracks)
            extent = max([bottom] + [l.resolved.y + l.measured_height / 2 for l in labels.values()])
            rows.append(RowGeometry(line, top, bottom, extent, len(tracks), steps))
            lines.append(WrappedLine(line, line_start, line_end, top, extent - top, n_tracks))
            for i in sorted(tracks):
                piece = pieces[i]
                layouts.append(FeatureLayout(
                    feature=by_id[piece.feature_id].feature,
                    row=tracks[i],
                    shapes=built[i].shapes,
                    label=labels.get(i),
                    start=piece.start,
                    end=piece.end,
                    line=line,
                ))
            logger.debug(f"Line {line} ({line_start + 1}-{line_end + 1}): {len(tracks)} pieces on "
                         f"{n_tracks} tracks, y={top:.1f}, height={extent - top:.1f}")
            top = extent

        site_layouts = self._layout_sites_wrapped(sites, mapper, lines, bases_per_line, sequence_length, session)
        result = LayoutResult('wrapped', sequence_length, width, height, layouts, site_layouts, rows,
                              session.diagnostics, top, origin=Point(0.0, 0.0), lines=lines)
        result.layout_stats['bases_per_line'] = bases_per_line
        result.layout_stats['n_pieces'] = len(layouts)
        return result

    def _layout_sites_wrapped(self, sites: Sequence[RestrictionSite], mapper: CoordinateMapper,
                              lines: List[WrappedLine], bases_per_line: int, sequence_length: int,
                              session: LayoutSession) -> List[SiteLayout]:
        scfg = self.config.sites
        valid = self._valid_sites(sites, sequence_length, session)
        if not valid or not lines:
            return []
        measurer = TextMeasurer(self.config.labels, font_size=scfg.font_size)
        by_line: Dict[int, List[RestrictionSite]] = {}
        for site in valid:
            line = min(self.site_packer.cut_position(site) // bases_per_line, len(lines) - 1)
            by_line.setdefault(line, []).append(site)

        layouts = []
        for line, line_sites in sorted(by_line.items()):
            geometry = lines[line]
            def to_x(position: int, offset: int = geometry.start) -> float:
                return float(mapper.to_pixel(position - offset))

            rows = self.site_packer.pack(line_sites, to_x, measurer.width, session)
            for index, site in enumerate(line_sites):
                if index not in rows:
                    continue
                cut = self.site_packer.cut_position(site)
                x = to_x(cut)
                mark = Line(Point(x, geometry.top), Point(x, geometry.top + self.config.wrapped.sequence_height),
                            width=scfg.mark_width)
                text = str(site['enzyme'])
                w, h = measurer(text)
                at = Point(x, geometry.top - scfg.label_offset - rows[index] * scfg.row_height)
                label = Label(text, w, h, anchor=mark.start, target=at, resolved=at,
                              truncated=False, displaced=False, row=rows[index])
                layouts.append(SiteLayout(site, rows[index], cut, mark, label, line=line))
        return layouts

    # ============================================================
    # SHARED
    # ============================================================

    def _relax_row(self, row: int, nodes: Dict[int, Optional[LabelNode]], relaxer: LabelRelaxer,
                   session: LayoutSession) -> Tuple[Dict[int, Label], int]:
        """Relax the row's displaced labels and freeze every label of the row"""
        displaced = session.nodes_for(row)
        steps = relaxer.run(displaced)
        labels = {fid: node.freeze() for fid, node in nodes.items() if node is not None}
        return labels, steps

    @staticmethod
    def _feature_layouts(ids: List[int], by_id: Dict[int, ResolvedFeature], row: int,
                         built: Dict[int, BuiltShapes], labels: Dict[int, Label]) -> List[FeatureLayout]:
        layouts = []
        for feature_id in ids:
            item = by_id[feature_id]
            layouts.append(FeatureLayout(
                feature=item.feature,
                row=row,
                shapes=built[feature_id].shapes,
                label=labels.get(feature_id),
                start=item.start,
                end=item.end,
                crosses_origin=item.crosses_origin,
            ))
        return layouts

    @staticmethod
    def _valid_sites(sites: Sequence[RestrictionSite], sequence_length: int,
                     session: LayoutSession) -> List[RestrictionSite]:
        """Sites with a usable enzyme name and position"""
        valid = []
        for site in sites:
            try:
                position = int(site['position'])
                cut = position - 1 + int(site.get('cutIndexInRecognition', 0))
            except (KeyError, TypeError, ValueError) as e:
                session.report('malformed_input', f"restriction site {site!r} skipped: {e}")
                continue
            if not site.get('enzyme') or position < 1 or not 0 <= cut <= max(sequence_length, 0):
                session.report('malformed_input', f"restriction site {site!r} skipped: out of range")
                continue
            valid.append(site)
        return valid
