"""
SeqMap Configuration
Layout, geometry and label parameters for linear and circular sequence maps

All distances are in pixels unless stated otherwise.
"""
from dataclasses import dataclass, field
from typing import Tuple, Literal, Optional


@dataclass
class LinearLayoutConfig:
    """
    Row layout for the linear map

    Rows are stacked top to bottom. Each row's vertical position depends on
    the extent of the row above it, including its displaced labels.
    """

    # ============================================================
    # VIEWPORT
    # ============================================================
    margin_left: float = 0.05
    """Left margin as a fraction of the viewport width"""

    margin_right: float = 0.05
    """Right margin as a fraction of the viewport width"""

    # ============================================================
    # ROWS
    # ============================================================
    box_height: float = 10.0
    """Height of a feature box or arrow body (px)"""

    row_spacing: float = 20.0
    """Vertical gap between consecutive rows (px)"""

    first_row_offset: float = 40.0
    """Distance from the top of the viewport to the first row (px)"""

    row_margin: float = 20.0
    """Safety margin added to both sides of a span before overlap testing (px)"""

    # ============================================================
    # LABELS
    # ============================================================
    label_offset: float = 3.5
    """Gap between the shape bottom and the top of a displaced label (px)"""


@dataclass
class CircularLayoutConfig:
    """
    Concentric layer layout for the circular map

    Layer 0 sits just outside the backbone circle; every further layer starts
    outside the previous layer's outermost extent (shapes and labels).
    """

    # ============================================================
    # RADII
    # ============================================================
    radius_fraction: float = 0.35
    """Outer map radius as a fraction of min(width, height)"""

    inner_radius_fraction: float = 0.8
    """Backbone radius as a fraction of the outer map radius"""

    layer_gap: float = 8.0
    """Radial gap between a layer and whatever lies inside it (px)"""

    layer_thickness: float = 16.0
    """Radial thickness of a feature layer (px)"""

    layer_margin: float = 20.0
    """Safety margin along the backbone before overlap testing (px, converted to radians)"""

    # ============================================================
    # LABELS
    # ============================================================
    label_distance: float = 30.0
    """Radial distance of displaced labels outside the current outermost radius (px)"""

    text_radius_offset: float = 5.0
    """Inline text is measured on the arc this far inside the layer mid radius (px)"""

    arc_fill_ratio: float = 0.9
    """Fraction of the text arc length usable by an inline label"""

    label_padding: float = 0.0
    """Space subtracted from the usable arc length before the fit test (px)"""

    bottom_half_offset: float = 0.618
    """Radial correction for flipped lower-half labels, as a fraction of font size"""


@dataclass
class WrappedLayoutConfig:
    """
    Base-level layout with the sequence wrapped into lines

    Every line shows a fixed number of bases as two strands of text. Feature
    segments are clipped to each line and packed into tracks below the text;
    a line grows with the number of tracks it needs.
    """

    # ============================================================
    # LINES
    # ============================================================
    bases_per_line: Optional[int] = None
    """Bases per line; None derives it from the viewport width"""

    char_width: float = 12.0
    """Width of one base (px)"""

    line_multiple: int = 10
    """Derived line lengths are rounded down to a multiple of this (and never below it)"""

    first_line_offset: float = 20.0
    """Distance from the top of the viewport to the first line (px)"""

    sequence_height: float = 54.0
    """Height of the two strands of sequence text including their padding (px)"""

    # ============================================================
    # TRACKS
    # ============================================================
    box_height: float = 5.0
    """Height of a clipped feature box or arrow body (px)"""

    track_spacing: float = 20.0
    """Gap above every track (px)"""

    bottom_spacing: float = 30.0
    """Gap below the last track of a line (px)"""

    track_margin: float = 0.0
    """Safety margin between pieces sharing a track (bases)"""

    def line_length(self, width: float) -> int:
        """Bases per line for a viewport width"""
        if self.bases_per_line is not None:
            return max(1, int(self.bases_per_line))
        multiple = max(1, self.line_multiple)
        fitting = int(width // self.char_width)
        return max(multiple, fitting // multiple * multiple)

    def line_height(self, n_tracks: int) -> float:
        """Height of a line carrying n_tracks feature tracks (px)"""
        if n_tracks <= 0:
            return self.sequence_height
        return (self.sequence_height + self.track_spacing
                + n_tracks * (self.box_height + self.track_spacing) + self.bottom_spacing)

    def track_top(self, line_top: float, track: int) -> float:
        """Top of a track's boxes (px)"""
        return line_top + self.sequence_height + self.track_spacing + track * (self.box_height + self.track_spacing)


@dataclass
class ShapeConfig:
    """
    Feature shape geometry

    Arrow heads are capped at a fraction of the segment extent so the head
    never consumes the whole shape.
    """

    arrow_length_ratio: float = 1.2
    """Linear arrow head length as a multiple of box height"""

    neck_ratio: float = 0.6
    """Arrow head overhang above and below the body, as a fraction of box height"""

    circular_arrow_ratio: float = 1.0
    """Circular arrow head length as a multiple of layer thickness"""

    max_arrow_fraction: float = 1.0 / 3.0
    """Largest share of a segment extent an arrow head may take"""

    min_visible_width: float = 2.0
    """Narrower shapes are widened to this (px; angular equivalent on circles)"""

    backbone_width: float = 1.0
    """Stroke width of connectors between spliced segments (px)"""

    outline_resolution: int = 50
    """Points per arc when a circular shape is converted to an outline"""


@dataclass
class LabelConfig:
    """
    Label text selection and measurement
    """

    field_priority: Tuple[str, ...] = ('gene', 'product', 'note')
    """Qualifiers tried in order for label text; the feature type is the fallback"""

    font_family: str = 'Arial'
    """Font used for text measurement"""

    font_size: float = 7.0
    """Label font size (px)"""

    measure_method: Literal['estimate', 'path'] = 'estimate'
    """'estimate' uses a fixed character width, 'path' measures glyph outlines"""

    char_width_ratio: float = 0.6
    """Character width as a fraction of font size for the estimate method"""

    padding: float = 10.0
    """Space subtracted from the shape width before the fit test (px)"""

    overflow: Literal['displace', 'truncate'] = 'displace'
    """What to do with labels that do not fit inside their shape"""


@dataclass
class RelaxationConfig:
    """
    Force relaxation of displaced labels

    Runs a fixed number of steps with no convergence test. Forces follow the
    usual many-body / positional / collision model with cooling alpha.
    """

    # ============================================================
    # SIMULATION
    # ============================================================
    iterations: int = 75
    """Number of relaxation steps (always run in full)"""

    alpha: float = 1.0
    """Initial alpha (force scale)"""

    alpha_min: float = 0.001
    """Alpha reached after 300 steps; sets the decay rate"""

    alpha_target: float = 0.0
    """Alpha converges toward this value"""

    velocity_decay: float = 0.5
    """Fraction of velocity lost per step"""

    # ============================================================
    # FORCES
    # ============================================================
    repulsion_strength: float = -1.0
    """Many-body strength (negative repels)"""

    repulsion_distance_min: float = 1.0
    """Distances below this are clamped when computing repulsion (px)"""

    repulsion_distance_max: float = 50.0
    """Nodes farther apart than this do not repel (px)"""

    target_strength: float = 1.0
    """Pull of each node toward its target"""

    collide_padding: float = 5.0
    """Added to half the label width to get the collision radius (px)"""

    collide_strength: float = 1.0
    """Collision resolution strength"""

    collide_iterations: int = 4
    """Collision passes per step"""

    max_displacement: Optional[float] = None
    """Largest allowed distance from target (px); defaults to repulsion_distance_max"""

    @property
    def alpha_decay(self) -> float:
        """Per-step alpha decay"""
        return 1.0 - self.alpha_min ** (1.0 / 300.0)

    @property
    def displacement_limit(self) -> float:
        """Effective maximum distance between a resolved label and its target"""
        if self.max_displacement is None:
            return self.repulsion_distance_max
        return self.max_displacement

    @classmethod
    def linear(cls) -> 'RelaxationConfig':
        """Settings for labels below linear rows"""
        return cls()

    @classmethod
    def circular(cls) -> 'RelaxationConfig':
        """
        Settings for labels outside circular layers

        - Heavier damping
        - Weak, short-range repulsion
        - Fewer collision passes
        """
        return cls(
            velocity_decay=0.7,
            repulsion_strength=-0.1,
            repulsion_distance_max=30.0,
            target_strength=0.5,
            collide_padding=2.0,
            collide_iterations=3,
        )


@dataclass
class SiteConfig:
    """
    Restriction site marks and labels
    """

    font_size: float = 8.0
    """Enzyme name font size (px)"""

    label_offset: float = 10.0
    """Distance of the first label row above the sequence line (px)"""

    row_height: float = 10.0
    """Vertical distance between site label rows (px)"""

    margin: float = 2.0
    """Horizontal gap required between labels on the same row (px)"""

    mark_length: float = 10.0
    """Length of the divider mark across the sequence line (px)"""

    mark_width: float = 2.0
    """Stroke width of the divider mark (px)"""


@dataclass
class FeatureTypeConfig:
    """
    Per feature type display rules
    """

    arrow_types: Tuple[str, ...] = (
        'gene', 'CDS', 'mRNA', 'tRNA', 'rRNA', 'operon', 'promoter', 'terminator',
    )
    """Types drawn as directional arrows; everything else is a box"""

    hidden_types: Tuple[str, ...] = ('source',)
    """Types left out of the layout"""

    def is_displayed(self, feature_type: str) -> bool:
        """Whether features of this type are laid out"""
        return feature_type not in self.hidden_types

    def shape_for(self, feature_type: str) -> Literal['arrow', 'box']:
        """Shape kind for a feature type"""
        return 'arrow' if feature_type in self.arrow_types else 'box'


@dataclass
class MapConfig:
    """
    Complete layout configuration

    Composes the per-concern configs; use the presets for common variants.
    """

    # ============================================================
    # SUB-CONFIGURATIONS
    # ============================================================
    linear: LinearLayoutConfig = field(default_factory=LinearLayoutConfig)
    """Linear row layout"""

    circular: CircularLayoutConfig = field(default_factory=CircularLayoutConfig)
    """Circular layer layout"""

    wrapped: WrappedLayoutConfig = field(default_factory=WrappedLayoutConfig)
    """Wrapped base-level layout"""

    shapes: ShapeConfig = field(default_factory=ShapeConfig)
    """Shape geometry"""

    labels: LabelConfig = field(default_factory=LabelConfig)
    """Label text and measurement"""

    linear_relaxation: RelaxationConfig = field(default_factory=RelaxationConfig.linear)
    """Relaxation used for linear rows"""

    circular_relaxation: RelaxationConfig = field(default_factory=RelaxationConfig.circular)
    """Relaxation used for circular layers"""

    sites: SiteConfig = field(default_factory=SiteConfig)
    """Restriction site marks"""

    feature_types: FeatureTypeConfig = field(default_factory=FeatureTypeConfig)
    """Feature type display rules"""

    def relaxation_for(self, mode: str) -> RelaxationConfig:
        """Relaxation settings for a layout mode; wrapped lines relax like linear rows"""
        if mode == 'circular':
            return self.circular_relaxation
        return self.linear_relaxation

    # ============================================================
    # PRESET CONFIGURATIONS
    # ============================================================

    @classmethod
    def compact(cls) -> 'MapConfig':
        """
        Dense settings for large annotation sets

        - Thinner rows and layers
        - Smaller margins and fonts

        Example:
            >>> config = MapConfig.compact()
            >>> engine = LayoutEngine(config)
        """
        config = cls()
        config.linear.box_height = 8.0
        config.linear.row_spacing = 12.0
        config.linear.row_margin = 10.0
        config.circular.layer_thickness = 12.0
        config.circular.layer_gap = 4.0
        config.circular.layer_margin = 10.0
        config.labels.font_size = 6.0
        config.labels.padding = 6.0
        return config

    @classmethod
    def presentation(cls) -> 'MapConfig':
        """
        Settings for screen viewing

        - Larger fonts measured from glyph outlines
        - Taller rows

        Example:
            >>> config = MapConfig.presentation()
            >>> engine = LayoutEngine(config)
        """
        config = cls()
        config.labels.font_size = 10.0
        config.labels.measure_method = 'path'
        config.linear.box_height = 14.0
        config.linear.row_spacing = 28.0
        config.circular.layer_thickness = 22.0
        config.circular.label_distance = 40.0
        config.sites.font_size = 10.0
        return config

    @classmethod
    def debug(cls) -> 'MapConfig':
        """
        Settings for debugging layout issues

        - Wide safety margins
        - Labels always truncated inline so displacement does not hide shapes

        Example:
            >>> config = MapConfig.debug()
            >>> engine = LayoutEngine(config)
        """
        config = cls()
        config.linear.row_margin = 40.0
        config.linear.row_spacing = 30.0
        config.circular.layer_margin = 40.0
        config.labels.overflow = 'truncate'
        return config

    @classmethod
    def preset(cls, name: str) -> 'MapConfig':
        """Build a configuration by preset name ('default', 'compact', 'presentation', 'debug')"""
        if name == 'default':
            return cls()
        builders = {
            'compact': cls.compact,
            'presentation': cls.presentation,
            'debug': cls.debug,
        }
        if name not in builders:
            raise ValueError(f"Unknown preset '{name}', expected one of: default, {', '.join(builders)}")
        return builders[name]()
