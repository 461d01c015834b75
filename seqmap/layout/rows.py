"""
Row assignment

First-fit greedy interval packing shared by feature rows (linear), feature
layers (circular) and restriction site label rows. The result is not
globally optimal; it only guarantees that spans sharing a row keep the
safety margin apart.
"""
from __future__ import annotations
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple
import logging

from ..config import SiteConfig
from ..types import RestrictionSite
from .errors import PackingExhaustedError
from .session import LayoutSession
from .types import Interval, RowSlot

logger = logging.getLogger(__name__)


class RowAssigner:
    """
    Greedy first-fit packer over spans in mapped space

    Algorithm:
    1. Order spans by descending width, ties by ascending start, then id
    2. For each span scan rows from 0 and take the first row whose occupants
       stay clear of the span widened by the margin on both sides
    3. Stop scanning after max_rows rows and report the feature as unplaced

    With a period (circular layers), spans crossing the origin always
    conflict with each other and are split at the origin when compared
    against other spans.
    """

    def __init__(self, margin: float = 20.0, period: Optional[float] = None,
                 max_rows: Optional[int] = None):
        """
        Initialize row assigner

        Args:
            margin: Safety margin added to both sides of a span (mapped units)
            period: Range period for circular spans (2*pi), None for linear
            max_rows: Upper bound on rows scanned per span; defaults to span count + 1
        """
        if margin < 0:
            raise ValueError(f"margin must be non-negative, got {margin}")
        self.margin = margin
        self.period = period
        self.max_rows = max_rows
        self.slots: List[RowSlot] = []

    # ============================================================
    # OVERLAP
    # ============================================================

    def _plain_overlap(self, a: Tuple[float, float], b: Tuple[float, float]) -> bool:
        m = self.margin
        return not (a[1] + m < b[0] or a[0] > b[1] + m)

    def _pieces(self, interval: Interval) -> List[Tuple[float, float]]:
        """Split a span at the origin into non-wrapping pieces"""
        if self.period is None or not interval.crosses_origin or interval.end <= self.period:
            return [(interval.start, interval.end)]
        return [(interval.start, self.period), (0.0, interval.end - self.period)]

    def overlaps(self, a: Interval, b: Interval) -> bool:
        """Whether two spans come closer than the margin"""
        if self.period is None:
            return self._plain_overlap((a.start, a.end), (b.start, b.end))
        if a.crosses_origin and b.crosses_origin:
            return True
        period = self.period
        for pa in self._pieces(a):
            for pb in self._pieces(b):
                for shift in (0.0, -period, period):
                    if self._plain_overlap((pa[0] + shift, pa[1] + shift), pb):
                        return True
        return False

    def row_is_free(self, slot: RowSlot, interval: Interval) -> bool:
        """Whether a span can join a row"""
        return not any(self.overlaps(interval, other) for other in slot.occupied)

    # ============================================================
    # ASSIGNMENT
    # ============================================================

    @staticmethod
    def processing_order(spans: Mapping[int, Interval]) -> List[int]:
        """Ids ordered by descending width, then ascending start, then id"""
        return sorted(spans, key=lambda i: (-spans[i].width, spans[i].start, i))

    def reset(self) -> None:
        """Forget all rows"""
        self.slots = []

    def assign_one(self, interval: Interval, feature_id: Optional[int] = None,
                   max_rows: Optional[int] = None) -> int:
        """
        Place one span on the first free row

        Args:
            interval: Span to place
            feature_id: Owner id, recorded on the row
            max_rows: Scan bound; defaults to the assigner bound or current rows + 1

        Returns:
            Row index

        Raises:
            PackingExhaustedError: No free row within the bound
        """
        bound = max_rows if max_rows is not None else self.max_rows
        if bound is None:
            bound = len(self.slots) + 1

        for row in range(bound):
            if row == len(self.slots):
                self.slots.append(RowSlot(row_index=row))
            slot = self.slots[row]
            if self.row_is_free(slot, interval):
                slot.add(interval, feature_id)
                return row
        raise PackingExhaustedError(feature_id, bound)

    def assign(self, spans: Mapping[int, Interval], order: Optional[Sequence[int]] = None,
               session: Optional[LayoutSession] = None) -> Dict[int, int]:
        """
        Assign every span to a row

        Args:
            spans: Feature id -> span in mapped space
            order: Processing order; defaults to processing_order(spans)
            session: Pass session; receives the row slots and diagnostics

        Returns:
            Feature id -> row index for every placed feature
        """
        self.reset()
        if order is None:
            order = self.processing_order(spans)
        bound = self.max_rows if self.max_rows is not None else len(spans) + 1

        rows: Dict[int, int] = {}
        for feature_id in order:
            try:
                rows[feature_id] = self.assign_one(spans[feature_id], feature_id, bound)
            except PackingExhaustedError as e:
                if session is not None:
                    session.report('packing_exhausted', str(e), feature_id)
                else:
                    logger.warning(str(e))

        if session is not None:
            session.slots = self.slots
        logger.debug(f"Packed {len(rows)} of {len(spans)} spans into {len(self.slots)} rows")
        return rows


class SiteLabelPacker:
    """
    Rows for restriction site labels

    Site labels are packed by the horizontal extent of their text around the
    cut position, independent of feature overlap, in ascending position order.
    """

    def __init__(self, config: Optional[SiteConfig] = None):
        """
        Initialize site packer

        Args:
            config: Site configuration
        """
        self.config = config or SiteConfig()

    @staticmethod
    def cut_position(site: RestrictionSite) -> int:
        """0-based position of the cut within the sequence"""
        return int(site['position']) - 1 + int(site.get('cutIndexInRecognition', 0))

    def label_spans(self, sites: Sequence[RestrictionSite], to_x: Callable[[int], float],
                    text_width: Callable[[str], float],
                    period: Optional[float] = None) -> Dict[int, Interval]:
        """
        Text extent of every site label, keyed by site index

        With a period, spans starting before 0 are moved up by one period and
        spans reaching past the period are flagged as crossing the origin.
        """
        spans: Dict[int, Interval] = {}
        for index, site in enumerate(sites):
            x = float(to_x(self.cut_position(site)))
            half = text_width(str(site['enzyme'])) / 2
            start, end = x - half, x + half
            if period is None:
                spans[index] = Interval(start, end)
                continue
            if start < 0:
                start, end = start + period, end + period
            spans[index] = Interval(start, end, crosses_origin=end > period)
        return spans

    def pack(self, sites: Sequence[RestrictionSite], to_x: Callable[[int], float],
             text_width: Callable[[str], float],
             session: Optional[LayoutSession] = None,
             period: Optional[float] = None) -> Dict[int, int]:
        """
        Assign label rows to sites

        Args:
            sites: Restriction sites
            to_x: Cut position -> horizontal coordinate (pixels or arc length)
            text_width: Label text -> width in the same units
            session: Pass session for diagnostics
            period: Circumference in to_x units for circular maps, so labels
                on both sides of the origin are tested against each other

        Returns:
            Site index -> label row
        """
        spans = self.label_spans(sites, to_x, text_width, period)
        order = sorted(spans, key=lambda i: (spans[i].start, i))
        assigner = RowAssigner(margin=self.config.margin, period=period)
        rows = assigner.assign(spans, order=order, session=None)
        if session is not None:
            for index in spans:
                if index not in rows:
                    session.report('packing_exhausted', f"site label {index} not placed")
        return rows


def max_occupied_rows(assignment: Mapping[int, int]) -> int:
    """Number of rows used by an assignment"""
    return max(assignment.values()) + 1 if assignment else 0


def group_by_row(assignment: Mapping[int, int], ids: Iterable[int]) -> Dict[int, List[int]]:
    """Ids grouped by assigned row, keeping the given id order within a row"""
    grouped: Dict[int, List[int]] = {}
    for feature_id in ids:
        if feature_id in assignment:
            grouped.setdefault(assignment[feature_id], []).append(feature_id)
    return dict(sorted(grouped.items()))
