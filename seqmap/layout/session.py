"""
Pass-scoped layout state

A LayoutSession is created at the start of every layout pass and handed to
each stage. Nothing in it outlives the pass.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, List, Optional
import logging

from .types import Diagnostic, DiagnosticKind, LabelNode, RowSlot

logger = logging.getLogger(__name__)

_LOG_LEVELS = {
    'malformed_input': logging.WARNING,
    'measurement_failure': logging.WARNING,
    'packing_exhausted': logging.WARNING,
    'degenerate_geometry': logging.DEBUG,
}


@dataclass
class LayoutSession:
    """
    Mutable state of one layout pass

    Attributes:
        mode: 'linear' or 'circular'
        slots: Row/layer occupancy, indexed by row
        label_nodes: Displaced label nodes awaiting relaxation, by row
        diagnostics: Problems reported so far
    """
    mode: str = 'linear'
    slots: List[RowSlot] = field(default_factory=list)
    label_nodes: Dict[int, List[LabelNode]] = field(default_factory=dict)
    diagnostics: List[Diagnostic] = field(default_factory=list)

    def report(self, kind: DiagnosticKind, message: str, feature_id: Optional[int] = None) -> Diagnostic:
        """Record a diagnostic and log it"""
        diagnostic = Diagnostic(kind=kind, message=message, feature_id=feature_id)
        self.diagnostics.append(diagnostic)
        logger.log(_LOG_LEVELS.get(kind, logging.INFO), f"[{kind}] feature {feature_id}: {message}")
        return diagnostic

    def register_label(self, row: int, node: LabelNode) -> None:
        """Queue a displaced label for relaxation with its row"""
        self.label_nodes.setdefault(row, []).append(node)

    def nodes_for(self, row: int) -> List[LabelNode]:
        """Displaced label nodes queued for a row"""
        return self.label_nodes.get(row, [])

    def count(self, kind: DiagnosticKind) -> int:
        """Number of diagnostics of a kind"""
        return sum(1 for d in self.diagnostics if d.kind == kind)
