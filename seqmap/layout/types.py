"""
Layout types for SeqMap
Data structures for layout engine inputs and results

Value objects are frozen; LabelNode and RowSlot are the only mutable
records and live for a single layout pass.
"""
from dataclasses import dataclass, field
from typing import List, Dict, Tuple, Optional, Literal, Any, ClassVar, Union
import math
import numpy as np

from ..types import RawFeature, RestrictionSite, FeatureRecord


DiagnosticKind = Literal['malformed_input', 'measurement_failure', 'packing_exhausted', 'degenerate_geometry']


@dataclass(frozen=True)
class Feature:
    """
    Annotated interval set as supplied by the caller

    Attributes:
        feature_id: Stable identifier (index in the input list)
        type: Feature type (e.g. 'CDS', 'gene', 'misc_feature')
        location: Raw location segments, [startToken, isReverse?, endToken?]
        info: Qualifiers (gene, product, note, ...)
    """
    feature_id: int
    type: str
    location: Tuple[Tuple[Any, ...], ...]
    info: Dict[str, str] = field(default_factory=dict, hash=False)

    @classmethod
    def from_record(cls, feature_id: int, record: RawFeature) -> 'Feature':
        """
        Build a Feature from a parsed record dict

        Segments that are not lists are kept as they are; the bounds
        resolver drops the unreadable ones. Null qualifiers are left out.
        """
        raw_location = record.get('location') or []
        if not isinstance(raw_location, (list, tuple)):
            raw_location = [raw_location]
        location = tuple(tuple(segment) if isinstance(segment, (list, tuple)) else segment
                         for segment in raw_location)
        information = record.get('information')
        if not isinstance(information, dict):
            information = {}
        info = {str(k): str(v) for k, v in information.items() if v is not None}
        return cls(feature_id=feature_id, type=str(record.get('type', 'misc_feature')),
                   location=location, info=info)


@dataclass(frozen=True)
class Segment:
    """
    One contiguous part of a feature, 0-based inclusive

    Attributes:
        start: First base
        end: Last base; exceeds the sequence length when the segment wraps
        is_reverse: On the complementary strand
        crosses_origin: Wraps the origin of a circular sequence
    """
    start: int
    end: int
    is_reverse: bool = False
    crosses_origin: bool = False

    @property
    def length(self) -> int:
        """Number of bases covered"""
        return self.end - self.start + 1


@dataclass(frozen=True)
class ResolvedFeature:
    """
    Feature with normalized segments and overall span

    Attributes:
        feature: Source feature
        segments: Surviving normalized segments
        start: Minimum segment start
        end: Maximum segment end
        crosses_origin: Any segment wraps the origin
    """
    feature: Feature
    segments: Tuple[Segment, ...]
    start: int
    end: int
    crosses_origin: bool = False

    @property
    def feature_id(self) -> int:
        """Identifier of the source feature"""
        return self.feature.feature_id

    @property
    def span_length(self) -> int:
        """Total span length used to order features for packing"""
        return self.end - self.start

    @property
    def is_reverse(self) -> bool:
        """Majority strand of the segments"""
        reverse = sum(1 for s in self.segments if s.is_reverse)
        return reverse * 2 > len(self.segments)


@dataclass(frozen=True)
class Interval:
    """
    Span in mapped space (pixels or radians)

    Attributes:
        start: Lower bound
        end: Upper bound; beyond the period when the span crosses the origin
        crosses_origin: Span wraps the origin
    """
    start: float
    end: float
    crosses_origin: bool = False

    @property
    def width(self) -> float:
        return self.end - self.start


@dataclass
class RowSlot:
    """
    Occupancy of one row or layer during a pass

    Attributes:
        row_index: Row (linear) or layer (circular) number, 0 innermost/topmost
        occupied: Spans placed so far
        feature_ids: Owners of the spans, parallel to occupied
    """
    row_index: int
    occupied: List[Interval] = field(default_factory=list)
    feature_ids: List[int] = field(default_factory=list)

    def add(self, interval: Interval, feature_id: Optional[int]) -> None:
        self.occupied.append(interval)
        self.feature_ids.append(-1 if feature_id is None else feature_id)


@dataclass(frozen=True)
class Point:
    """2D point in viewport pixels"""
    x: float
    y: float

    def distance_to(self, other: 'Point') -> float:
        """Euclidean distance to another point"""
        return math.hypot(self.x - other.x, self.y - other.y)

    def as_tuple(self) -> Tuple[float, float]:
        return (self.x, self.y)


# ============================================================================
# SHAPES
# ============================================================================

@dataclass(frozen=True)
class Rect:
    """
    Axis-aligned box for a linear segment

    Attributes:
        x: Left edge (px)
        y: Top edge (px)
        w: Width (px)
        h: Height (px)
        segment_index: Index of the segment this shape draws
    """
    kind: ClassVar[str] = 'rect'
    x: float
    y: float
    w: float
    h: float
    segment_index: int = 0

    @property
    def right(self) -> float:
        return self.x + self.w

    @property
    def bottom(self) -> float:
        return self.y + self.h

    @property
    def center(self) -> Point:
        """Centre of the box"""
        return Point(self.x + self.w / 2, self.y + self.h / 2)


@dataclass(frozen=True)
class Polygon:
    """
    Closed polygon, used for linear arrows

    Attributes:
        points: Vertices in drawing order
        segment_index: Index of the segment this shape draws
    """
    kind: ClassVar[str] = 'polygon'
    points: Tuple[Point, ...]
    segment_index: int = 0

    @property
    def x_range(self) -> Tuple[float, float]:
        """(min x, max x) over all vertices"""
        xs = [p.x for p in self.points]
        return min(xs), max(xs)

    @property
    def y_range(self) -> Tuple[float, float]:
        """(min y, max y) over all vertices"""
        ys = [p.y for p in self.points]
        return min(ys), max(ys)


def _arc_points(radius: float, start_angle: float, end_angle: float, resolution: int) -> np.ndarray:
    """Cartesian points along an arc, angle 0 at twelve o'clock, clockwise"""
    angles = np.linspace(start_angle, end_angle, max(resolution, 2))
    return np.column_stack([radius * np.sin(angles), -radius * np.cos(angles)])


@dataclass(frozen=True)
class AnnularSector:
    """
    Ring sector for a circular box feature

    Attributes:
        inner_radius: Inner radius (px)
        outer_radius: Outer radius (px)
        start_angle: Start angle (radians, clockwise from twelve o'clock)
        end_angle: End angle (radians); may exceed 2*pi for wrapping segments
        segment_index: Index of the segment this shape draws
    """
    kind: ClassVar[str] = 'annular_sector'
    inner_radius: float
    outer_radius: float
    start_angle: float
    end_angle: float
    segment_index: int = 0

    @property
    def mid_radius(self) -> float:
        return (self.inner_radius + self.outer_radius) / 2

    @property
    def angular_width(self) -> float:
        return self.end_angle - self.start_angle

    def outline(self, resolution: int = 50) -> np.ndarray:
        """Closed outline as an (N, 2) array: outer arc forward, inner arc back"""
        outer = _arc_points(self.outer_radius, self.start_angle, self.end_angle, resolution)
        inner = _arc_points(self.inner_radius, self.end_angle, self.start_angle, resolution)
        return np.vstack([outer, inner])


@dataclass(frozen=True)
class AnnularArrow:
    """
    Ring sector with a triangular head for a circular directional feature

    The body spans start_angle..end_angle; the head occupies the remaining
    tip_angle_offset on the end side (start side when reverse) and ends in tip.

    Attributes:
        inner_radius: Inner radius (px)
        outer_radius: Outer radius (px)
        start_angle: Body start angle (radians)
        end_angle: Body end angle (radians)
        tip_angle_offset: Angle removed from the body to make room for the head
        tip: Head vertex in cartesian coordinates (px, centred on the map)
        reverse: Head points toward decreasing angle
        arrow_length: Head length along the tangent (px)
        segment_index: Index of the segment this shape draws
    """
    kind: ClassVar[str] = 'annular_arrow'
    inner_radius: float
    outer_radius: float
    start_angle: float
    end_angle: float
    tip_angle_offset: float
    tip: Point
    reverse: bool = False
    arrow_length: float = 0.0
    segment_index: int = 0

    @property
    def mid_radius(self) -> float:
        return (self.inner_radius + self.outer_radius) / 2

    @property
    def head_angle(self) -> float:
        """Angle of the truncated edge the head is built on"""
        return self.start_angle if self.reverse else self.end_angle

    @property
    def full_start_angle(self) -> float:
        """Start of the angular sector the feature covers"""
        return self.start_angle - self.tip_angle_offset if self.reverse else self.start_angle

    @property
    def full_end_angle(self) -> float:
        """End of the angular sector the feature covers"""
        return self.end_angle if self.reverse else self.end_angle + self.tip_angle_offset

    def outline(self, resolution: int = 50) -> np.ndarray:
        """Closed outline as an (N, 2) array including the head vertex"""
        outer = _arc_points(self.outer_radius, self.start_angle, self.end_angle, resolution)
        inner = _arc_points(self.inner_radius, self.end_angle, self.start_angle, resolution)
        tip = np.array([[self.tip.x, self.tip.y]])
        if self.reverse:
            return np.vstack([outer, inner, tip])
        return np.vstack([outer, tip, inner])


@dataclass(frozen=True)
class Line:
    """
    Straight connector or divider

    Attributes:
        start: First endpoint
        end: Second endpoint
        width: Stroke width (px)
    """
    kind: ClassVar[str] = 'line'
    start: Point
    end: Point
    width: float = 1.0

    @property
    def length(self) -> float:
        return self.start.distance_to(self.end)


@dataclass(frozen=True)
class Arc:
    """
    Circular connector between spliced segments

    Attributes:
        radius: Arc radius (px)
        start_angle: Start angle (radians)
        end_angle: End angle (radians)
        width: Stroke width (px)
    """
    kind: ClassVar[str] = 'arc'
    radius: float
    start_angle: float
    end_angle: float
    width: float = 1.0


Shape = Union[Rect, Polygon, AnnularSector, AnnularArrow, Line, Arc]


# ============================================================================
# LABELS
# ============================================================================

@dataclass(frozen=True)
class LeaderLine:
    """Connector from a displaced label back to its shape"""
    start: Point
    end: Point

    @property
    def length(self) -> float:
        return self.start.distance_to(self.end)


@dataclass(frozen=True)
class Label:
    """
    Final label placement

    Attributes:
        text: Text to draw (possibly truncated)
        measured_width: Measured text width (px)
        measured_height: Measured text height (px)
        anchor: Point on the shape the label belongs to
        target: Preferred position before relaxation
        resolved: Final centre position
        truncated: Full text did not fit inside the shape
        displaced: Drawn outside the shape
        row: Row or layer of the owning feature
        feature_id: Owning feature (None for site labels)
        rotation: Text rotation in degrees
        leader: Leader line for displaced labels
    """
    text: str
    measured_width: float
    measured_height: float
    anchor: Point
    target: Point
    resolved: Point
    truncated: bool
    displaced: bool
    row: int
    feature_id: Optional[int] = None
    rotation: float = 0.0
    leader: Optional[LeaderLine] = None

    @property
    def offset(self) -> float:
        """Distance between resolved position and target"""
        return self.resolved.distance_to(self.target)


@dataclass
class LabelNode:
    """
    Label under construction

    Created by LabelPlacer and moved only by LabelRelaxer; frozen into a
    Label when relaxation finishes.
    """
    text: str
    measured_width: float
    measured_height: float
    anchor: Point
    target: Point
    resolved: Point
    truncated: bool = False
    displaced: bool = False
    row: int = 0
    feature_id: Optional[int] = None
    rotation: float = 0.0
    vx: float = 0.0
    vy: float = 0.0

    def freeze(self) -> Label:
        """Immutable label; displaced labels get a leader line to their anchor"""
        leader = LeaderLine(self.resolved, self.anchor) if self.displaced else None
        return Label(
            text=self.text,
            measured_width=self.measured_width,
            measured_height=self.measured_height,
            anchor=self.anchor,
            target=self.target,
            resolved=self.resolved,
            truncated=self.truncated,
            displaced=self.displaced,
            row=self.row,
            feature_id=self.feature_id,
            rotation=self.rotation,
            leader=leader,
        )


# ============================================================================
# RESULTS
# ============================================================================

@dataclass(frozen=True)
class Diagnostic:
    """
    Per-feature problem reported during a pass

    Attributes:
        kind: malformed_input, measurement_failure, packing_exhausted or degenerate_geometry
        message: Human-readable description
        feature_id: Affected feature, if any
    """
    kind: DiagnosticKind
    message: str
    feature_id: Optional[int] = None


@dataclass(frozen=True)
class RowGeometry:
    """
    Placement of one row or layer

    Linear rows: inner/outer are the top/bottom y of the shapes.
    Circular layers: inner/outer are the ring radii.
    Wrapped lines: inner/outer are the top/bottom y of the line.
    extent is the farthest y or radius reached including displaced labels.
    """
    row_index: int
    inner: float
    outer: float
    extent: float
    n_features: int = 0
    relaxation_steps: int = 0

    @property
    def thickness(self) -> float:
        return self.outer - self.inner


@dataclass(frozen=True)
class FeatureLayout:
    """
    Layout of one feature

    Attributes:
        feature: Source feature
        row: Assigned row or layer
        shapes: Shapes for the segments plus backbone connectors
        label: Label placement, None when no label could be emitted
        start: Span start (0-based)
        end: Span end (0-based, unwrapped)
        crosses_origin: Span wraps the origin
        line: Wrapped line the piece belongs to; None outside wrapped mode,
            where row is the track within the line
    """
    feature: Feature
    row: int
    shapes: Tuple[Shape, ...]
    label: Optional[Label]
    start: int
    end: int
    crosses_origin: bool = False
    line: Optional[int] = None

    @property
    def feature_id(self) -> int:
        return self.feature.feature_id


@dataclass(frozen=True)
class ClippedPiece:
    """
    Part of a feature segment falling on one wrapped line

    Attributes:
        feature_id: Owning feature
        segment_index: Segment the piece was cut from
        line: Line index
        start: First base (0-based, within the sequence)
        end: Last base (0-based, within the sequence)
        is_reverse: On the complementary strand
        has_head: The piece holds the 3' end of its segment
    """
    feature_id: int
    segment_index: int
    line: int
    start: int
    end: int
    is_reverse: bool = False
    has_head: bool = True


@dataclass(frozen=True)
class WrappedLine:
    """
    One line of a wrapped layout

    Attributes:
        line_index: Line number, 0 at the top
        start: First base shown (0-based)
        end: Last base shown (0-based)
        top: Top of the sequence text (px)
        height: Line height including its tracks and displaced labels (px)
        n_tracks: Feature tracks packed below the sequence text
    """
    line_index: int
    start: int
    end: int
    top: float
    height: float
    n_tracks: int = 0

    @property
    def bottom(self) -> float:
        return self.top + self.height

    @property
    def n_bases(self) -> int:
        return self.end - self.start + 1


@dataclass(frozen=True)
class SiteLayout:
    """
    Restriction site mark and enzyme label

    Attributes:
        site: Source site record
        row: Label row assigned by the site packer
        cut_position: 0-based cut position
        mark: Divider line across the sequence
        label: Enzyme name label
        line: Wrapped line holding the cut; None outside wrapped mode
    """
    site: RestrictionSite
    row: int
    cut_position: int
    mark: Line
    label: Label
    line: Optional[int] = None


@dataclass
class LayoutResult:
    """
    Complete output of one layout pass

    Attributes:
        mode: 'linear', 'circular' or 'wrapped'
        sequence_length: Sequence length (bp)
        width: Viewport width (px)
        height: Viewport height (px)
        features: Placed features in row order (one entry per clipped piece in wrapped mode)
        sites: Placed restriction sites
        rows: Geometry of every row, layer or wrapped line
        diagnostics: Problems reported during the pass
        extent: Farthest y (linear) or radius (circular) used
        origin: Viewport position of coordinate (0, 0); the map centre in circular mode
        layout_stats: Counters about the pass
        lines: Wrapped lines, empty outside wrapped mode
    """
    mode: str
    sequence_length: int
    width: float
    height: float
    features: List[FeatureLayout]
    sites: List[SiteLayout]
    rows: List[RowGeometry]
    diagnostics: List[Diagnostic]
    extent: float
    origin: Point = Point(0.0, 0.0)
    layout_stats: Dict[str, Any] = field(default_factory=dict)
    lines: List[WrappedLine] = field(default_factory=list)

    @property
    def n_features(self) -> int:
        """Number of placed features"""
        return len(self.features)

    @property
    def n_rows(self) -> int:
        """Number of rows or layers used"""
        return len(self.rows)

    @property
    def n_displaced(self) -> int:
        """Number of displaced labels"""
        return sum(1 for f in self.features if f.label is not None and f.label.displaced)

    @property
    def row_assignment(self) -> Dict[int, int]:
        """Feature id -> row index"""
        return {f.feature_id: f.row for f in self.features}

    def get_feature(self, feature_id: int) -> Optional[FeatureLayout]:
        """Layout for a feature id, None when it was not placed"""
        for layout in self.features:
            if layout.feature_id == feature_id:
                return layout
        return None

    def features_in_row(self, row: int) -> List[FeatureLayout]:
        """Features assigned to a row or layer"""
        return [f for f in self.features if f.row == row]

    def features_in_line(self, line: int) -> List[FeatureLayout]:
        """Clipped pieces laid out on a wrapped line"""
        return [f for f in self.features if f.line == line]

    def pieces_of(self, feature_id: int) -> List[FeatureLayout]:
        """Every placed piece of a feature, in line order"""
        return sorted((f for f in self.features if f.feature_id == feature_id),
                      key=lambda f: (f.line if f.line is not None else -1, f.start))

    def diagnostics_of(self, kind: DiagnosticKind) -> List[Diagnostic]:
        """Diagnostics of one kind"""
        return [d for d in self.diagnostics if d.kind == kind]

    def to_records(self) -> List[FeatureRecord]:
        """Flatten placed features into one dict per feature"""
        records: List[FeatureRecord] = []
        for layout in self.features:
            label = layout.label
            records.append({
                'feature_id': layout.feature_id,
                'type': layout.feature.type,
                'label': label.text if label else '',
                'row': layout.row,
                'line': layout.line,
                'start': layout.start,
                'end': layout.end,
                'crosses_origin': layout.crosses_origin,
                'n_segments': sum(1 for s in layout.shapes if s.kind not in ('line', 'arc')),
                'n_shapes': len(layout.shapes),
                'label_displaced': bool(label and label.displaced),
                'label_truncated': bool(label and label.truncated),
                'label_x': label.resolved.x if label else None,
                'label_y': label.resolved.y if label else None,
            })
        return records
