"""
Text measurement

Label widths either from a fixed character width estimate or from the glyph
outline of the text rendered by matplotlib.
"""

from __future__ import annotations
from functools import lru_cache
from typing import Tuple
import logging

from matplotlib.font_manager import FontProperties
from matplotlib.textpath import TextPath

from .config import LabelConfig

logger = logging.getLogger(__name__)

ELLIPSIS = '...'


def estimate_width(text: str, font_size: float, char_width_ratio: float = 0.6) -> float:
    """Monospace estimate: characters x font size x ratio"""
    return len(text) * font_size * char_width_ratio


@lru_cache(maxsize=4096)
def path_width(text: str, font_size: float, font_family: str) -> float:
    """
    Width of the glyph outline of text

    Args:
        text: Text to measure
        font_size: Font size (px)
        font_family: Font family name

    Returns:
        Width of the outline bounding box (px)
    """
    if not text:
        return 0.0
    prop = FontProperties(family=font_family)
    extents = TextPath((0, 0), text, size=font_size, prop=prop).get_extents()
    return float(extents.width)


class TextMeasurer:
    """
    Callable measuring label text as (width, height)

    Example:
        >>> measure = TextMeasurer(LabelConfig())
        >>> width, height = measure("lacZ")
    """

    def __init__(self, config: LabelConfig = None, font_size: float = None):
        """
        Initialize measurer

        Args:
            config: Label configuration (method, font, size)
            font_size: Overrides the configured font size
        """
        self.config = config or LabelConfig()
        self.font_size = font_size if font_size is not None else self.config.font_size
        if self.config.measure_method not in ('estimate', 'path'):
            raise ValueError(f"Unknown measure method '{self.config.measure_method}'")

    def width(self, text: str) -> float:
        """Text width (px)"""
        if self.config.measure_method == 'path':
            return path_width(text, float(self.font_size), self.config.font_family)
        return estimate_width(text, self.font_size, self.config.char_width_ratio)

    def __call__(self, text: str) -> Tuple[float, float]:
        return self.width(text), float(self.font_size)


def truncate_text(text: str, max_width: float, measure) -> str:
    """
    Shorten text with an ellipsis until it fits max_width

    Args:
        text: Full text
        max_width: Available width (px)
        measure: Callable returning (width, height) for a string

    Returns:
        Text that fits, possibly empty when not even the ellipsis fits
    """
    if measure(text)[0] <= max_width:
        return text
    for cut in range(len(text) - 1, 0, -1):
        candidate = text[:cut] + ELLIPSIS
        if measure(candidate)[0] <= max_width:
            return candidate
    return ''
