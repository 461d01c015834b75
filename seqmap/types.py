"""
Type definitions for SeqMap

Record shapes exchanged with the parsing and restriction-site collaborators.
"""

from __future__ import annotations
from typing import TypedDict, Literal, List, Dict, Union, Optional
from pathlib import Path

# Type aliases
PathLike = Union[str, Path]
"""File path as string or Path object"""

LayoutMode = Literal['linear', 'circular', 'wrapped']
"""Map kind produced by a layout pass"""

ShapeKind = Literal['arrow', 'box']
"""How a feature is drawn"""

LocationToken = Union[str, int, bool, None]
"""One loosely-typed element of a raw location segment"""

RawSegment = List[LocationToken]
"""Raw location segment: [startToken, isReverse?, endToken?]"""


# Structured data types

class LocusInfo(TypedDict, total=False):
    """LOCUS line of a GenBank record"""
    locusName: str
    sequenceLength: int
    moleculeType: str
    topology: str  # 'linear' or 'circular'
    division: str


class RawFeature(TypedDict, total=False):
    """Feature as delivered by the parsing collaborator"""
    type: str
    location: List[RawSegment]
    information: Dict[str, str]


class GenBankRecord(TypedDict, total=False):
    """Decoded GenBank record"""
    locus: LocusInfo
    definition: str
    origin: str
    features: List[RawFeature]


class RestrictionSite(TypedDict):
    """Restriction enzyme site from the site scanner"""
    enzyme: str
    position: int  # 1-based start of the recognition sequence
    cutIndexInRecognition: int
    cutDistance: int
    recognition: str


class FeatureRecord(TypedDict, total=False):
    """Flattened per-feature layout row for tabular output"""
    feature_id: int
    type: str
    label: str
    row: int
    line: Optional[int]
    start: int
    end: int
    crosses_origin: bool
    n_segments: int
    n_shapes: int
    label_displaced: bool
    label_truncated: bool
    label_x: Optional[float]
    label_y: Optional[float]
