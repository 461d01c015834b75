"""
Label relaxation

Spreads displaced labels of one row or layer apart with a small force
simulation: many-body repulsion capped at a maximum distance, attraction
toward each label's target, and collision keyed to half the label width.
Always runs the configured number of steps; there is no convergence test.
Coincident labels are separated by an index-based offset, so results are
deterministic.
"""
from __future__ import annotations
from typing import List, Optional, Sequence
import logging

import numpy as np

from ..config import RelaxationConfig
from .types import Label, LabelNode, Point

logger = logging.getLogger(__name__)

JIGGLE = 1e-6


class LabelRelaxer:
    """
    Fixed-step force relaxation over displaced label nodes

    Per step:
    1. Cool alpha toward alpha_target
    2. Many-body repulsion between nodes closer than repulsion_distance_max
    3. Attraction toward targets along x and y
    4. Collision resolution, collide_iterations passes
    5. Damp velocities, move nodes, keep each node within the displacement
       limit of its target
    """

    def __init__(self, config: Optional[RelaxationConfig] = None):
        """
        Initialize relaxer

        Args:
            config: Relaxation configuration
        """
        self.config = config or RelaxationConfig()
        self.steps_run = 0

    # ============================================================
    # FORCES
    # ============================================================

    @staticmethod
    def _jiggle(n: int) -> np.ndarray:
        """Antisymmetric offsets used in place of zero separations"""
        idx = np.arange(n)
        return (idx[None, :] - idx[:, None]) * JIGGLE

    def _many_body(self, x, y, vx, vy, alpha: float) -> None:
        cfg = self.config
        n = len(x)
        if n < 2 or cfg.repulsion_strength == 0:
            return
        jiggle = self._jiggle(n)
        dx = x[None, :] - x[:, None]
        dy = y[None, :] - y[:, None]
        dx = np.where(dx == 0, jiggle, dx)
        dy = np.where(dy == 0, jiggle, dy)
        l = dx * dx + dy * dy
        np.fill_diagonal(l, 1.0)
        within = l < cfg.repulsion_distance_max ** 2
        np.fill_diagonal(within, False)
        dmin2 = cfg.repulsion_distance_min ** 2
        l = np.where(l < dmin2, np.sqrt(dmin2 * l), l)
        scale = np.where(within, cfg.repulsion_strength * alpha / l, 0.0)
        vx += (dx * scale).sum(axis=1)
        vy += (dy * scale).sum(axis=1)

    def _attract(self, x, y, vx, vy, tx, ty, alpha: float) -> None:
        strength = self.config.target_strength * alpha
        vx += (tx - x) * strength
        vy += (ty - y) * strength

    def _collide(self, x, y, vx, vy, radii) -> None:
        cfg = self.config
        n = len(x)
        if n < 2:
            return
        r2 = radii * radii
        for i in range(n - 1):
            j = np.arange(i + 1, n)
            xi = x[i] + vx[i]
            yi = y[i] + vy[i]
            ddx = xi - x[j] - vx[j]
            ddy = yi - y[j] - vy[j]
            ddx = np.where(ddx == 0, (i - j) * JIGGLE, ddx)
            ddy = np.where(ddy == 0, (i - j) * JIGGLE, ddy)
            l = ddx * ddx + ddy * ddy
            reach = radii[i] + radii[j]
            hit = l < reach * reach
            if not hit.any():
                continue
            dist = np.sqrt(l)
            k = np.where(hit, (reach - dist) / dist * cfg.collide_strength, 0.0)
            ddx = ddx * k
            ddy = ddy * k
            share = r2[j] / (r2[i] + r2[j])
            vx[i] += (ddx * share).sum()
            vy[i] += (ddy * share).sum()
            vx[j] -= ddx * (1 - share)
            vy[j] -= ddy * (1 - share)

    def _clamp(self, x, y, tx, ty) -> None:
        limit = self.config.displacement_limit
        dx = x - tx
        dy = y - ty
        dist = np.hypot(dx, dy)
        over = dist > limit
        if over.any():
            factor = limit / dist[over]
            x[over] = tx[over] + dx[over] * factor
            y[over] = ty[over] + dy[over] * factor

    # ============================================================
    # SIMULATION
    # ============================================================

    def run(self, nodes: Sequence[LabelNode]) -> int:
        """
        Relax nodes in place

        Args:
            nodes: Displaced label nodes of one row or layer

        Returns:
            Number of steps run (always config.iterations)
        """
        cfg = self.config
        x = np.array([n.resolved.x for n in nodes], dtype=float)
        y = np.array([n.resolved.y for n in nodes], dtype=float)
        tx = np.array([n.target.x for n in nodes], dtype=float)
        ty = np.array([n.target.y for n in nodes], dtype=float)
        vx = np.array([n.vx for n in nodes], dtype=float)
        vy = np.array([n.vy for n in nodes], dtype=float)
        radii = np.array([n.measured_width / 2 + cfg.collide_padding for n in nodes], dtype=float)

        alpha = cfg.alpha
        decay = cfg.alpha_decay
        keep = 1.0 - cfg.velocity_decay
        steps = 0
        for _ in range(cfg.iterations):
            alpha += (cfg.alpha_target - alpha) * decay
            self._many_body(x, y, vx, vy, alpha)
            self._attract(x, y, vx, vy, tx, ty, alpha)
            for _ in range(cfg.collide_iterations):
                self._collide(x, y, vx, vy, radii)
            vx *= keep
            vy *= keep
            x += vx
            y += vy
            self._clamp(x, y, tx, ty)
            steps += 1

        for i, node in enumerate(nodes):
            node.resolved = Point(float(x[i]), float(y[i]))
            node.vx = float(vx[i])
            node.vy = float(vy[i])

        self.steps_run = steps
        logger.debug(f"Relaxed {len(nodes)} labels in {steps} steps")
        return steps

    def relax(self, nodes: Sequence[LabelNode]) -> List[Label]:
        """Relax nodes and freeze them into labels with leader lines"""
        self.run(nodes)
        return [node.freeze() for node in nodes]
