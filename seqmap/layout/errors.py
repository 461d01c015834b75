"""
Layout exceptions
"""
from typing import Optional


class LayoutError(Exception):
    """Internal error raised while laying out a single feature"""


class PackingExhaustedError(LayoutError):
    """
    Row search passed its upper bound without finding a free row

    Attributes:
        feature_id: Feature that could not be placed
        max_rows: Number of rows scanned
    """

    def __init__(self, feature_id: Optional[int], max_rows: int):
        self.feature_id = feature_id
        self.max_rows = max_rows
        super().__init__(f"No free row for feature {feature_id} within {max_rows} rows")
