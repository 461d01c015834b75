"""
Label placement

Decides for every feature whether its label fits inside the drawn shape.
Labels that fit are placed inline; the rest become displaced nodes queued on
the session for relaxation with the other labels of their row or layer.
"""
from __future__ import annotations
from typing import Callable, Optional, Tuple
import logging
import math

from ..config import CircularLayoutConfig, LabelConfig, LinearLayoutConfig
from ..text_metrics import TextMeasurer, estimate_width, truncate_text
from .coordinates import polar_to_cartesian
from .session import LayoutSession
from .types import AnnularSector, Feature, LabelNode, Point, Rect

logger = logging.getLogger(__name__)

Measure = Callable[[str], Tuple[float, float]]


def is_lower_half(angle: float) -> bool:
    """Whether an angle points into the bottom half of the circle"""
    a = angle % (2 * math.pi)
    return math.pi / 2 < a < 3 * math.pi / 2


class LabelPlacer:
    """
    Inline-or-displaced label decisions

    Example:
        >>> placer = LabelPlacer(LabelConfig())
        >>> node = placer.place_linear(feature, row=0, box=rect, session=session)
    """

    def __init__(self, config: Optional[LabelConfig] = None, measure: Optional[Measure] = None,
                 linear: Optional[LinearLayoutConfig] = None,
                 circular: Optional[CircularLayoutConfig] = None):
        """
        Initialize label placer

        Args:
            config: Label configuration
            measure: Callable text -> (width, height); defaults to TextMeasurer(config)
            linear: Linear layout configuration (displacement offset)
            circular: Circular layout configuration (arc fit and displacement)
        """
        self.config = config or LabelConfig()
        self.measure = measure or TextMeasurer(self.config)
        self.linear = linear or LinearLayoutConfig()
        self.circular = circular or CircularLayoutConfig()

    # ============================================================
    # TEXT
    # ============================================================

    def label_text(self, feature: Feature) -> str:
        """First non-empty prioritized qualifier, else the feature type"""
        for key in self.config.field_priority:
            value = feature.info.get(key)
            if value is not None and str(value).strip():
                return str(value).strip()
        return feature.type

    def measure_text(self, text: str, session: Optional[LayoutSession] = None,
                     feature_id: Optional[int] = None) -> Tuple[float, float, bool]:
        """
        Measure text, tolerating a failing measurer

        Returns:
            (width, height, ok); on failure the size is the monospace
            estimate and ok is False
        """
        fallback = (estimate_width(text, self.config.font_size, self.config.char_width_ratio),
                    float(self.config.font_size))
        try:
            width, height = self.measure(text)
            width, height = float(width), float(height)
        except Exception as e:
            self._report(session, f"measuring '{text}' failed: {e}", feature_id)
            return fallback[0], fallback[1], False
        if not (math.isfinite(width) and math.isfinite(height)):
            self._report(session, f"measuring '{text}' returned ({width}, {height})", feature_id)
            return fallback[0], fallback[1], False
        return width, height, True

    @staticmethod
    def _report(session: Optional[LayoutSession], message: str, feature_id: Optional[int]) -> None:
        if session is not None:
            session.report('measurement_failure', message, feature_id)
        else:
            logger.warning(f"[measurement_failure] feature {feature_id}: {message}")

    def _fit(self, text: str, available: float, session: Optional[LayoutSession],
             feature_id: Optional[int]) -> Tuple[str, float, float, bool, bool]:
        """
        Fit text into the available width

        Returns:
            (text, width, height, inline, truncated). When the overflow policy
            is 'truncate' the returned text may be shortened; an empty text
            means nothing fits.
        """
        width, height, ok = self.measure_text(text, session, feature_id)
        if ok and width <= available:
            return text, width, height, True, False
        if ok and self.config.overflow == 'truncate':
            short = truncate_text(text, available,
                                  lambda t: self.measure_text(t, session, feature_id)[:2])
            if not short:
                return '', 0.0, height, True, True
            short_width, short_height, _ = self.measure_text(short, session, feature_id)
            return short, short_width, short_height, True, True
        return text, width, height, False, True

    # ============================================================
    # LINEAR
    # ============================================================

    def place_linear(self, feature: Feature, row: int, box: Rect,
                     session: Optional[LayoutSession] = None) -> Optional[LabelNode]:
        """
        Label for a feature on a linear row

        Args:
            feature: Feature to label
            row: Row index
            box: Box of the widest segment
            session: Pass session; displaced nodes are registered on it

        Returns:
            LabelNode, or None when no label is emitted
        """
        text = self.label_text(feature)
        available = box.w - self.config.padding
        text, width, height, inline, truncated = self._fit(text, available, session, feature.feature_id)
        if not text:
            return None

        centre_x = box.x + box.w / 2
        if inline:
            centre = box.center
            return LabelNode(text, width, height, anchor=centre, target=centre, resolved=centre,
                             truncated=truncated, displaced=False, row=row,
                             feature_id=feature.feature_id)

        anchor = Point(centre_x, box.bottom)
        target = Point(centre_x, box.bottom + self.linear.label_offset + height / 2)
        node = LabelNode(text, width, height, anchor=anchor, target=target, resolved=target,
                         truncated=truncated, displaced=True, row=row,
                         feature_id=feature.feature_id)
        if session is not None:
            session.register_label(row, node)
        return node

    # ============================================================
    # CIRCULAR
    # ============================================================

    def place_circular(self, feature: Feature, row: int, sector: AnnularSector,
                       outermost_radius: float,
                       session: Optional[LayoutSession] = None) -> Optional[LabelNode]:
        """
        Label for a feature on a circular layer

        Inline labels follow the arc at the layer mid radius and are turned
        upright in the lower half of the circle. Displaced labels target a
        point radially outside the outermost radius reached so far.

        Args:
            feature: Feature to label
            row: Layer index
            sector: Sector of the widest segment
            outermost_radius: Largest radius used by this and inner layers (px)
            session: Pass session; displaced nodes are registered on it

        Returns:
            LabelNode (coordinates relative to the map centre), or None
        """
        circular = self.circular
        text = self.label_text(feature)
        mid_angle = (sector.start_angle + sector.end_angle) / 2
        text_radius = sector.mid_radius - circular.text_radius_offset
        arc_length = sector.angular_width * max(text_radius, 0.0)
        available = arc_length * circular.arc_fill_ratio - circular.label_padding
        text, width, height, inline, truncated = self._fit(text, available, session, feature.feature_id)
        if not text:
            return None

        if inline:
            rotation = math.degrees(mid_angle % (2 * math.pi))
            radius = text_radius
            if is_lower_half(mid_angle):
                rotation = (rotation + 180.0) % 360.0
                radius = text_radius + self.config.font_size * circular.bottom_half_offset
            centre = Point(*polar_to_cartesian(radius, mid_angle))
            return LabelNode(text, width, height, anchor=centre, target=centre, resolved=centre,
                             truncated=truncated, displaced=False, row=row,
                             feature_id=feature.feature_id, rotation=rotation)

        anchor = Point(*polar_to_cartesian(sector.outer_radius, mid_angle))
        target = Point(*polar_to_cartesian(outermost_radius + circular.label_distance, mid_angle))
        node = LabelNode(text, width, height, anchor=anchor, target=target, resolved=target,
                         truncated=truncated, displaced=True, row=row,
                         feature_id=feature.feature_id)
        if session is not None:
            session.register_label(row, node)
        return node
