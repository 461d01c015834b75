"""
I/O Writers

Writes layout results as tables, JSON shape descriptors and text summaries.
"""

from __future__ import annotations
from dataclasses import asdict
from typing import Any, Dict, List, Sequence
import json
import logging
from pathlib import Path

import pandas as pd

from ..layout.types import FeatureLayout, LayoutResult, ResolvedFeature, Shape, SiteLayout

logger = logging.getLogger(__name__)

FEATURE_COLUMNS = [
    'feature_id', 'type', 'label', 'row', 'line', 'start', 'end', 'crosses_origin',
    'n_segments', 'n_shapes', 'label_displaced', 'label_truncated', 'label_x', 'label_y',
]
BOUNDS_COLUMNS = ['feature_id', 'type', 'start', 'end', 'span', 'crosses_origin', 'n_segments', 'segments']


def shape_to_dict(shape: Shape) -> Dict[str, Any]:
    """Shape descriptor with its kind tag"""
    return {'kind': shape.kind, **asdict(shape)}


def feature_to_dict(layout: FeatureLayout) -> Dict[str, Any]:
    """JSON-ready descriptor of one feature layout"""
    return {
        'feature_id': layout.feature_id,
        'type': layout.feature.type,
        'info': dict(layout.feature.info),
        'row': layout.row,
        'line': layout.line,
        'start': layout.start,
        'end': layout.end,
        'crosses_origin': layout.crosses_origin,
        'shapes': [shape_to_dict(s) for s in layout.shapes],
        'label': asdict(layout.label) if layout.label is not None else None,
    }


def site_to_dict(layout: SiteLayout) -> Dict[str, Any]:
    """JSON-ready descriptor of one restriction site"""
    return {
        'site': dict(layout.site),
        'row': layout.row,
        'line': layout.line,
        'cut_position': layout.cut_position,
        'mark': shape_to_dict(layout.mark),
        'label': asdict(layout.label),
    }


def layout_to_dict(result: LayoutResult) -> Dict[str, Any]:
    """JSON-ready descriptor of a full layout"""
    return {
        'mode': result.mode,
        'sequence_length': result.sequence_length,
        'width': result.width,
        'height': result.height,
        'origin': asdict(result.origin),
        'extent': result.extent,
        'rows': [asdict(r) for r in result.rows],
        'lines': [asdict(l) for l in result.lines],
        'features': [feature_to_dict(f) for f in result.features],
        'sites': [site_to_dict(s) for s in result.sites],
        'diagnostics': [asdict(d) for d in result.diagnostics],
        'layout_stats': dict(result.layout_stats),
    }


class LayoutWriter:
    """Writes layout results"""

    @staticmethod
    def write_table(result: LayoutResult, output_file) -> pd.DataFrame:
        """
        Write one row per placed feature as TSV

        Args:
            result: Layout result
            output_file: Path to output TSV file

        Returns:
            The written table
        """
        Path(output_file).parent.mkdir(parents=True, exist_ok=True)
        table = pd.DataFrame(result.to_records(), columns=FEATURE_COLUMNS)
        table.to_csv(output_file, sep='\t', index=False)
        logger.info(f"Layout table saved to {output_file} ({len(table)} features)")
        return table

    @staticmethod
    def write_json(result: LayoutResult, output_file) -> None:
        """
        Write full shape and label descriptors as JSON

        Args:
            result: Layout result
            output_file: Path to output JSON file
        """
        Path(output_file).parent.mkdir(parents=True, exist_ok=True)
        with open(output_file, 'w') as f:
            json.dump(layout_to_dict(result), f, indent=2)
        logger.info(f"Layout descriptors saved to {output_file}")


def write_layout(result: LayoutResult, table_file, json_file) -> None:
    """Convenience function writing both the table and the JSON descriptors"""
    LayoutWriter.write_table(result, table_file)
    LayoutWriter.write_json(result, json_file)


class BoundsWriter:
    """Writes resolved feature bounds"""

    @staticmethod
    def to_frame(resolved: Sequence[ResolvedFeature]) -> pd.DataFrame:
        """One row per resolved feature, segments as 1-based 'start..end(strand)'"""
        rows: List[Dict[str, Any]] = []
        for item in resolved:
            segments = ','.join(
                f"{s.start + 1}..{s.end + 1}({'-' if s.is_reverse else '+'})" for s in item.segments
            )
            rows.append({
                'feature_id': item.feature_id,
                'type': item.feature.type,
                'start': item.start,
                'end': item.end,
                'span': item.span_length,
                'crosses_origin': item.crosses_origin,
                'n_segments': len(item.segments),
                'segments': segments,
            })
        return pd.DataFrame(rows, columns=BOUNDS_COLUMNS)

    @staticmethod
    def write(resolved: Sequence[ResolvedFeature], output_file) -> None:
        """
        Write resolved bounds as TSV

        Args:
            resolved: Resolved features
            output_file: Path to output TSV file
        """
        Path(output_file).parent.mkdir(parents=True, exist_ok=True)
        BoundsWriter.to_frame(resolved).to_csv(output_file, sep='\t', index=False)
        logger.info(f"Feature bounds saved to {output_file}")


class SummaryWriter:
    """Writes a layout summary in human-readable text format"""

    def write(self, result: LayoutResult, output_file, run_info: Dict[str, Any]) -> None:
        """
        Write layout summary

        Args:
            result: Layout result
            output_file: Path to output summary file
            run_info: Inputs and settings of the run
        """
        Path(output_file).parent.mkdir(parents=True, exist_ok=True)
        stats = result.layout_stats

        with open(output_file, 'w') as f:
            f.write("SeqMap Layout Summary\n")
            f.write("=" * 50 + "\n\n")

            f.write("Run:\n")
            f.write("-" * 20 + "\n")
            for key, value in run_info.items():
                f.write(f"{key}: {value}\n")
            f.write("\n")

            f.write("Layout:\n")
            f.write("-" * 20 + "\n")
            f.write(f"Mode: {result.mode}\n")
            f.write(f"Sequence length: {result.sequence_length} bp\n")
            f.write(f"Viewport: {result.width:.0f} x {result.height:.0f} px\n")
            f.write(f"Input features: {stats.get('n_input', 0)}\n")
            f.write(f"Displayed features: {stats.get('n_displayed', 0)}\n")
            f.write(f"Placed features: {result.n_features}\n")
            f.write(f"Rows/layers: {result.n_rows}\n")
            f.write(f"Displaced labels: {result.n_displaced}\n")
            f.write(f"Restriction sites: {len(result.sites)}\n")
            if result.lines:
                f.write(f"Wrapped lines: {len(result.lines)} x {result.lines[0].n_bases} bp\n")
            unit = 'px radius' if result.mode == 'circular' else 'px'
            f.write(f"Extent: {result.extent:.1f} {unit}\n\n")

            f.write("Rows:\n")
            f.write("-" * 20 + "\n")
            if result.rows:
                for row in result.rows:
                    f.write(f"  {row.row_index}: {row.n_features} features, "
                            f"{row.inner:.1f}-{row.outer:.1f}, extent {row.extent:.1f}, "
                            f"{row.relaxation_steps} relaxation steps\n")
            else:
                f.write("No rows\n")
            f.write("\n")

            f.write("Diagnostics:\n")
            f.write("-" * 20 + "\n")
            if result.diagnostics:
                for d in result.diagnostics:
                    target = f"feature {d.feature_id}" if d.feature_id is not None else "input"
                    f.write(f"  [{d.kind}] {target}: {d.message}\n")
            else:
                f.write("None\n")

        logger.info(f"Layout summary saved to {output_file}")


def write_summary(result: LayoutResult, output_file, run_info: Dict[str, Any]) -> None:
    """Convenience function to write summary"""
    SummaryWriter().write(result, output_file, run_info)
