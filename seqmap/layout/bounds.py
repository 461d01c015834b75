"""
Feature bounds resolution

Turns loosely-typed location segments into normalized 0-based segments and
an overall span. Malformed segments are dropped and reported; a feature is
excluded only when none of its segments survive.
"""
from __future__ import annotations
from typing import Any, List, Optional, Sequence, Tuple
import logging

from .session import LayoutSession
from .types import ClippedPiece, Feature, ResolvedFeature, Segment

logger = logging.getLogger(__name__)

_PARTIAL_MARKERS = '<>'
_TRUE_FLAGS = ('true', 'complement', 'reverse', '-')
_FALSE_FLAGS = ('false', 'forward', '+', '')


class FeatureBoundsResolver:
    """
    Resolve raw location segments into normalized spans

    Raw segments arrive as [startToken, isReverse?, endToken?] with 1-based
    inclusive tokens that may carry '<' / '>' partial markers. A two-element
    segment whose second element is numeric is read as [startToken, endToken].
    """

    def __init__(self, sequence_length: int, topology: str = 'linear'):
        """
        Initialize resolver

        Args:
            sequence_length: Sequence length (bp)
            topology: 'linear' or 'circular'
        """
        if topology not in ('linear', 'circular'):
            raise ValueError(f"Unknown topology '{topology}', expected 'linear' or 'circular'")
        self.sequence_length = sequence_length
        self.topology = topology

    @property
    def is_circular(self) -> bool:
        return self.topology == 'circular'

    @staticmethod
    def parse_token(token: Any) -> Optional[int]:
        """
        Parse a 1-based coordinate token into a 0-based position

        Partial markers are stripped first. Returns None for missing,
        boolean, non-numeric or non-positive tokens.
        """
        if token is None or isinstance(token, bool):
            return None
        if isinstance(token, int):
            value = token
        elif isinstance(token, float):
            if not token.is_integer():
                return None
            value = int(token)
        else:
            cleaned = str(token).strip().strip(_PARTIAL_MARKERS).strip()
            try:
                value = int(cleaned)
            except ValueError:
                return None
        if value < 1:
            return None
        return value - 1

    @staticmethod
    def parse_flag(flag: Any) -> Optional[bool]:
        """Parse a reverse-strand flag; None when the value is not a flag"""
        if flag is None:
            return False
        if isinstance(flag, bool):
            return flag
        if isinstance(flag, str) and flag.strip().lower() in _TRUE_FLAGS:
            return True
        if isinstance(flag, str) and flag.strip().lower() in _FALSE_FLAGS:
            return False
        return None

    @staticmethod
    def _is_missing(token: Any) -> bool:
        return token is None or (isinstance(token, str) and not token.strip())

    def split_segment(self, raw: Sequence[Any]) -> Tuple[Any, bool, Any]:
        """
        Split a raw segment into (startToken, isReverse, endToken)

        Raises:
            ValueError: Empty segment or unreadable strand flag
        """
        if isinstance(raw, (str, int)):
            raw = [raw]
        if not isinstance(raw, (list, tuple)):
            raise ValueError(f"unreadable location segment {raw!r}")
        if len(raw) == 0:
            raise ValueError("empty location segment")
        start_token = raw[0]
        if len(raw) == 1:
            return start_token, False, None
        if len(raw) == 2:
            second = raw[1]
            if not isinstance(second, bool) and self.parse_token(second) is not None:
                return start_token, False, second
            reverse = self.parse_flag(second)
            if reverse is None:
                raise ValueError(f"unreadable strand flag {second!r}")
            return start_token, reverse, None
        reverse = self.parse_flag(raw[1])
        if reverse is None:
            raise ValueError(f"unreadable strand flag {raw[1]!r}")
        return start_token, reverse, raw[2]

    def resolve_segment(self, raw: Sequence[Any]) -> Segment:
        """
        Normalize one raw segment

        Raises:
            ValueError: Non-numeric or out-of-range bounds
        """
        start_token, reverse, end_token = self.split_segment(raw)
        start = self.parse_token(start_token)
        if start is None:
            raise ValueError(f"non-numeric start {start_token!r}")
        if self._is_missing(end_token):
            end = start
        else:
            end = self.parse_token(end_token)
            if end is None:
                raise ValueError(f"non-numeric end {end_token!r}")

        length = self.sequence_length
        if length > 0 and (start >= length or end >= length):
            raise ValueError(f"bounds {start + 1}..{end + 1} outside sequence of length {length}")

        if start <= end:
            return Segment(start, end, reverse)
        if self.is_circular and length > 0:
            return Segment(start, end + length, reverse, crosses_origin=True)
        return Segment(end, start, reverse)

    def resolve(self, feature: Feature, session: Optional[LayoutSession] = None) -> Optional[ResolvedFeature]:
        """
        Resolve a feature's segments and span

        Args:
            feature: Feature to resolve
            session: Pass session receiving diagnostics

        Returns:
            ResolvedFeature, or None when no segment survives
        """
        segments: List[Segment] = []
        for index, raw in enumerate(feature.location):
            try:
                segments.append(self.resolve_segment(raw))
            except (ValueError, TypeError) as e:
                self._report(session, 'malformed_input',
                             f"segment {index} dropped: {e}", feature.feature_id)

        if not segments:
            self._report(session, 'malformed_input',
                         "no valid location segment, feature excluded", feature.feature_id)
            return None

        crossing = [s for s in segments if s.crosses_origin]
        if crossing:
            segments = self._unwrap(segments, crossing[0].start)
        elif self.is_circular and len(segments) > 1 and self.sequence_length > 0:
            first = self._join_wrap_start(segments)
            if first is not None:
                segments = self._unwrap(segments, first)
                crossing = [s for s in segments if s.crosses_origin]

        start = min(s.start for s in segments)
        end = max(s.end for s in segments)
        return ResolvedFeature(
            feature=feature,
            segments=tuple(segments),
            start=start,
            end=end,
            crosses_origin=bool(crossing) or end >= self.sequence_length > 0,
        )

    def resolve_all(self, features: Sequence[Feature],
                    session: Optional[LayoutSession] = None) -> List[ResolvedFeature]:
        """Resolve every feature, skipping the ones with no valid segment"""
        resolved = []
        for feature in features:
            result = self.resolve(feature, session)
            if result is not None:
                resolved.append(result)
        logger.debug(f"Resolved {len(resolved)} of {len(features)} features")
        return resolved

    def clip_to_lines(self, resolved: ResolvedFeature, bases_per_line: int) -> List[ClippedPiece]:
        """
        Cut a feature's segments at line boundaries

        Unwrapped positions are folded back into the sequence first, so a
        segment running across the origin continues on the first line.
        Pieces come out in segment order, ascending along each segment.

        Args:
            resolved: Resolved feature
            bases_per_line: Line length (bp)

        Returns:
            One ClippedPiece per (segment, line) overlap
        """
        if bases_per_line < 1:
            raise ValueError(f"bases_per_line must be positive, got {bases_per_line}")
        length = self.sequence_length
        pieces: List[ClippedPiece] = []
        for index, segment in enumerate(resolved.segments):
            start, end = segment.start, segment.end
            if length > 0 and start >= length:
                start, end = start - length, end - length
            if length > 0 and end >= length:
                ranges = [(start, length - 1), (0, end - length)]
            else:
                ranges = [(start, end)]
            head_base = ranges[0][0] if segment.is_reverse else ranges[-1][1]
            for lo, hi in ranges:
                for line in range(lo // bases_per_line, hi // bases_per_line + 1):
                    piece_start = max(lo, line * bases_per_line)
                    piece_end = min(hi, (line + 1) * bases_per_line - 1)
                    head = piece_start if segment.is_reverse else piece_end
                    pieces.append(ClippedPiece(resolved.feature_id, index, line, piece_start, piece_end,
                                               segment.is_reverse, head == head_base))
        return pieces

    @staticmethod
    def _join_wrap_start(segments: List[Segment]) -> Optional[int]:
        """
        Start of the first joined part when a join runs across the origin

        Parts are read 5' to 3' (reversed for reverse-strand features); a part
        starting before its predecessor means the join continues past the
        origin. Returns None for joins in ascending order.
        """
        ordered = segments[::-1] if all(s.is_reverse for s in segments) else segments
        for prev, nxt in zip(ordered, ordered[1:]):
            if nxt.start < prev.start:
                return ordered[0].start
        return None

    def _unwrap(self, segments: List[Segment], wrap_start: int) -> List[Segment]:
        """Shift segments lying after the origin so the span stays contiguous"""
        length = self.sequence_length
        unwrapped = []
        for segment in segments:
            if not segment.crosses_origin and segment.start < wrap_start:
                segment = Segment(segment.start + length, segment.end + length,
                                  segment.is_reverse, crosses_origin=True)
            unwrapped.append(segment)
        return unwrapped

    @staticmethod
    def _report(session: Optional[LayoutSession], kind, message: str, feature_id: int) -> None:
        if session is not None:
            session.report(kind, message, feature_id)
        else:
            logger.warning(f"[{kind}] feature {feature_id}: {message}")
