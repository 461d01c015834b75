"""
Shape geometry

Boxes and arrows for linear rows, ring sectors and ring arrows for circular
layers, and thin backbone connectors between the parts of spliced features.
All vertices are computed directly from positions, radii and angles.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import List, Optional, Tuple, Union
import logging

from ..config import ShapeConfig
from .coordinates import CoordinateMapper, polar_to_cartesian, tangent
from .session import LayoutSession
from .types import (
    AnnularArrow,
    AnnularSector,
    Arc,
    Line,
    Point,
    Polygon,
    Rect,
    ResolvedFeature,
    Shape,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BuiltShapes:
    """
    Shapes for one feature plus the box its label is measured against

    Attributes:
        shapes: Segment shapes followed by backbone connectors
        anchor_box: Rect (linear) or AnnularSector (circular) covering the
            widest segment
    """
    shapes: Tuple[Shape, ...]
    anchor_box: Union[Rect, AnnularSector]


class ShapeGeometryBuilder:
    """
    Builds shape descriptors for features

    Arrow heads take min(base length, extent * max_arrow_fraction) so a short
    segment is never swallowed by its own head. Shapes narrower than
    min_visible_width are widened around their centre.
    """

    def __init__(self, config: Optional[ShapeConfig] = None):
        """
        Initialize builder

        Args:
            config: Shape configuration
        """
        self.config = config or ShapeConfig()

    def arrow_length(self, base_length: float, extent: float) -> float:
        """Head length capped at a fraction of the segment extent"""
        return max(0.0, min(base_length, extent * self.config.max_arrow_fraction))

    def _clamp_span(self, lo: float, hi: float, minimum: float,
                    session: Optional[LayoutSession], feature_id: Optional[int]) -> Tuple[float, float]:
        """Widen a span around its centre to at least minimum"""
        if hi - lo >= minimum:
            return lo, hi
        if session is not None:
            session.report('degenerate_geometry',
                           f"extent {hi - lo:.4g} below minimum {minimum:.4g}, clamped", feature_id)
        centre = (lo + hi) / 2
        return centre - minimum / 2, centre + minimum / 2

    # ============================================================
    # LINEAR
    # ============================================================

    def linear_box(self, x0: float, x1: float, y: float, height: float,
                   segment_index: int = 0, session: Optional[LayoutSession] = None,
                   feature_id: Optional[int] = None) -> Rect:
        """Rectangle over [x0, x1] at row top y"""
        x0, x1 = self._clamp_span(x0, x1, self.config.min_visible_width, session, feature_id)
        return Rect(x=x0, y=y, w=x1 - x0, h=height, segment_index=segment_index)

    def linear_arrow(self, x0: float, x1: float, y: float, height: float, reverse: bool = False,
                     segment_index: int = 0, session: Optional[LayoutSession] = None,
                     feature_id: Optional[int] = None) -> Polygon:
        """
        Seven-vertex arrow over [x0, x1] at row top y

        The body is a box of the given height; the head overhangs the body by
        neck_ratio * height / 2 above and below and ends at the vertical
        centre of the segment's far end (near end when reverse).
        """
        x0, x1 = self._clamp_span(x0, x1, self.config.min_visible_width, session, feature_id)
        w = x1 - x0
        head = self.arrow_length(height * self.config.arrow_length_ratio, w)
        overhang = height * self.config.neck_ratio / 2
        mid_y = y + height / 2

        if reverse:
            neck_x = x0 + head
            coords = [
                (x1, y), (neck_x, y), (neck_x, y - overhang), (x0, mid_y),
                (neck_x, y + height + overhang), (neck_x, y + height), (x1, y + height),
            ]
        else:
            neck_x = x1 - head
            coords = [
                (x0, y), (neck_x, y), (neck_x, y - overhang), (x1, mid_y),
                (neck_x, y + height + overhang), (neck_x, y + height), (x0, y + height),
            ]
        return Polygon(points=tuple(Point(px, py) for px, py in coords), segment_index=segment_index)

    def linear_backbone(self, spans: List[Tuple[float, float]], y: float, height: float) -> List[Line]:
        """Connectors across the gaps between consecutive segment spans"""
        lines = []
        ordered = sorted(spans)
        mid_y = y + height / 2
        for (_, prev_end), (next_start, _) in zip(ordered, ordered[1:]):
            if next_start > prev_end:
                lines.append(Line(Point(prev_end, mid_y), Point(next_start, mid_y),
                                  width=self.config.backbone_width))
        return lines

    def build_linear(self, resolved: ResolvedFeature, shape_kind: str, mapper: CoordinateMapper,
                     y: float, height: float, session: Optional[LayoutSession] = None) -> BuiltShapes:
        """
        Shapes for a feature on a linear row

        Args:
            resolved: Resolved feature
            shape_kind: 'arrow' or 'box'
            mapper: Position -> pixel mapper
            y: Row top (px)
            height: Box height (px)
            session: Pass session for diagnostics

        Returns:
            BuiltShapes with the widest segment's box as anchor
        """
        shapes: List[Shape] = []
        spans: List[Tuple[float, float]] = []
        anchor: Optional[Rect] = None
        for index, segment in enumerate(resolved.segments):
            x0 = float(mapper.to_pixel(segment.start))
            x1 = float(mapper.to_pixel(segment.end + 1))
            if shape_kind == 'arrow':
                shape = self.linear_arrow(x0, x1, y, height, segment.is_reverse, index,
                                          session, resolved.feature_id)
                lo, hi = shape.x_range
                box = Rect(x=lo, y=y, w=hi - lo, h=height, segment_index=index)
            else:
                shape = box = self.linear_box(x0, x1, y, height, index, session, resolved.feature_id)
            shapes.append(shape)
            spans.append((box.x, box.right))
            if anchor is None or box.w > anchor.w:
                anchor = box
        shapes.extend(self.linear_backbone(spans, y, height))
        return BuiltShapes(shapes=tuple(shapes), anchor_box=anchor)

    # ============================================================
    # CIRCULAR
    # ============================================================

    def annular_sector(self, inner: float, outer: float, start_angle: float, end_angle: float,
                       segment_index: int = 0, session: Optional[LayoutSession] = None,
                       feature_id: Optional[int] = None) -> AnnularSector:
        """Ring sector between two radii and two angles"""
        mid_radius = (inner + outer) / 2
        start_angle, end_angle = self._clamp_span(
            start_angle, end_angle, self.config.min_visible_width / mid_radius, session, feature_id)
        return AnnularSector(inner, outer, start_angle, end_angle, segment_index)

    def annular_arrow(self, inner: float, outer: float, start_angle: float, end_angle: float,
                      reverse: bool = False, segment_index: int = 0,
                      session: Optional[LayoutSession] = None,
                      feature_id: Optional[int] = None) -> AnnularArrow:
        """
        Ring sector with a triangular head

        The end angle (start angle when reverse) is pulled in by
        arrow_length / mid_radius and the tip is placed arrow_length along the
        tangent from the middle of that truncated edge.
        """
        mid_radius = (inner + outer) / 2
        start_angle, end_angle = self._clamp_span(
            start_angle, end_angle, self.config.min_visible_width / mid_radius, session, feature_id)
        arc_length = (end_angle - start_angle) * mid_radius
        head = self.arrow_length((outer - inner) * self.config.circular_arrow_ratio, arc_length)
        offset = head / mid_radius

        if reverse:
            start_angle += offset
            edge = start_angle
        else:
            end_angle -= offset
            edge = end_angle
        ex, ey = polar_to_cartesian(mid_radius, edge)
        tx, ty = tangent(edge, reverse)
        tip = Point(ex + tx * head, ey + ty * head)
        return AnnularArrow(
            inner_radius=inner,
            outer_radius=outer,
            start_angle=start_angle,
            end_angle=end_angle,
            tip_angle_offset=offset,
            tip=tip,
            reverse=reverse,
            arrow_length=head,
            segment_index=segment_index,
        )

    def circular_backbone(self, spans: List[Tuple[float, float]], radius: float) -> List[Arc]:
        """Arcs across the gaps between consecutive segment angles"""
        arcs = []
        ordered = sorted(spans)
        for (_, prev_end), (next_start, _) in zip(ordered, ordered[1:]):
            if next_start > prev_end:
                arcs.append(Arc(radius, prev_end, next_start, width=self.config.backbone_width))
        return arcs

    def build_circular(self, resolved: ResolvedFeature, shape_kind: str, mapper: CoordinateMapper,
                       inner: float, outer: float,
                       session: Optional[LayoutSession] = None) -> BuiltShapes:
        """
        Shapes for a feature on a circular layer

        Args:
            resolved: Resolved feature
            shape_kind: 'arrow' or 'box'
            mapper: Position -> angle mapper
            inner: Layer inner radius (px)
            outer: Layer outer radius (px)
            session: Pass session for diagnostics

        Returns:
            BuiltShapes with the widest segment's sector as anchor
        """
        shapes: List[Shape] = []
        spans: List[Tuple[float, float]] = []
        anchor: Optional[AnnularSector] = None
        for index, segment in enumerate(resolved.segments):
            a0 = float(mapper.to_angle(segment.start))
            a1 = float(mapper.to_angle(segment.end + 1))
            if shape_kind == 'arrow':
                shape = self.annular_arrow(inner, outer, a0, a1, segment.is_reverse, index,
                                           session, resolved.feature_id)
                box = AnnularSector(inner, outer, shape.full_start_angle, shape.full_end_angle, index)
            else:
                shape = box = self.annular_sector(inner, outer, a0, a1, index, session, resolved.feature_id)
            shapes.append(shape)
            spans.append((box.start_angle, box.end_angle))
            if anchor is None or box.angular_width > anchor.angular_width:
                anchor = box
        shapes.extend(self.circular_backbone(spans, (inner + outer) / 2))
        return BuiltShapes(shapes=tuple(shapes), anchor_box=anchor)
