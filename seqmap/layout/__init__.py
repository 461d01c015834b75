"""
Layout Module for SeqMap
Feature packing, shape geometry and label placement for linear, circular
and wrapped sequence maps

Public API:
    - LayoutEngine: Full layout pass
    - CoordinateMapper: Position <-> pixel / angle mapping
    - FeatureBoundsResolver: Raw locations -> normalized segments
    - RowAssigner: Greedy first-fit row packing
    - ShapeGeometryBuilder: Boxes, arrows, ring sectors and ring arrows
    - LabelPlacer: Inline vs displaced label decisions
    - LabelRelaxer: Fixed-step force relaxation of displaced labels
    - LayoutResult: Complete layout of one pass
"""

from .bounds import FeatureBoundsResolver
from .coordinates import CoordinateMapper, polar_to_cartesian
from .engine import LayoutEngine
from .errors import LayoutError, PackingExhaustedError
from .labels import LabelPlacer
from .relax import LabelRelaxer
from .rows import RowAssigner, SiteLabelPacker
from .session import LayoutSession
from .shapes import ShapeGeometryBuilder
from .types import (
    AnnularArrow,
    AnnularSector,
    Arc,
    ClippedPiece,
    Diagnostic,
    Feature,
    FeatureLayout,
    Interval,
    Label,
    LabelNode,
    LayoutResult,
    LeaderLine,
    Line,
    Point,
    Polygon,
    Rect,
    ResolvedFeature,
    RowGeometry,
    RowSlot,
    Segment,
    SiteLayout,
    WrappedLine,
)

__all__ = [
    'LayoutEngine',
    'CoordinateMapper',
    'polar_to_cartesian',
    'FeatureBoundsResolver',
    'RowAssigner',
    'SiteLabelPacker',
    'ShapeGeometryBuilder',
    'LabelPlacer',
    'LabelRelaxer',
    'LayoutSession',
    'LayoutError',
    'PackingExhaustedError',
    'AnnularArrow',
    'AnnularSector',
    'Arc',
    'ClippedPiece',
    'Diagnostic',
    'Feature',
    'FeatureLayout',
    'Interval',
    'Label',
    'LabelNode',
    'LayoutResult',
    'LeaderLine',
    'Line',
    'Point',
    'Polygon',
    'Rect',
    'ResolvedFeature',
    'RowGeometry',
    'RowSlot',
    'Segment',
    'SiteLayout',
    'WrappedLine',
]
