"""SeqMap: feature and label layout for linear and circular sequence maps"""

from .config import MapConfig, LabelConfig, RelaxationConfig, ShapeConfig
from .layout import (
    CoordinateMapper,
    Feature,
    FeatureBoundsResolver,
    LabelPlacer,
    LabelRelaxer,
    LayoutEngine,
    LayoutResult,
    RowAssigner,
    ShapeGeometryBuilder,
)
from .text_metrics import TextMeasurer

__version__ = "0.1.0"
__all__ = ["MapConfig", "LabelConfig", "RelaxationConfig", "ShapeConfig", "LayoutEngine", "LayoutResult",
           "CoordinateMapper", "Feature", "FeatureBoundsResolver", "RowAssigner", "ShapeGeometryBuilder",
           "LabelPlacer", "LabelRelaxer", "TextMeasurer"]
