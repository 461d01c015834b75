"""Bounds subcommand - resolved feature spans"""

from __future__ import annotations
from pathlib import Path
import logging
from argparse import ArgumentParser, Namespace, _SubParsersAction

from ..config import FeatureTypeConfig
from ..io import BoundsWriter
from ..layout import Feature, FeatureBoundsResolver, LayoutSession
from .layout import configure_logging, load_record

logger = logging.getLogger(__name__)


def add_parser(subparsers: _SubParsersAction) -> ArgumentParser:
    """
    Add bounds subcommand parser

    Args:
        subparsers: Subparser action from main argument parser

    Returns:
        Configured ArgumentParser for bounds subcommand
    """
    parser = subparsers.add_parser(
        'bounds',
        help='Resolve feature locations into normalized spans'
    )

    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument('--genbank', metavar='GB_FILE',
                        help='GenBank file with a single record')
    source.add_argument('--json', metavar='JSON_FILE',
                        help='Record already decoded to JSON (locus + features)')

    parser.add_argument('--prefix', required=True,
                        help='Output file prefix')
    parser.add_argument('--output-dir', default='.',
                        help='Output directory (default: current directory)')
    parser.add_argument('--circular', action='store_true',
                        help='Treat the sequence as circular regardless of the record topology')
    parser.add_argument('--all-types', action='store_true',
                        help='Include hidden feature types such as source')

    parser.add_argument('--debug', action='store_true', help='Enable debug logging for troubleshooting')

    return parser  # type: ignore[no-any-return]


def run(args: Namespace) -> LayoutSession:
    """
    Execute bounds subcommand

    Args:
        args: Parsed command-line arguments from argparse

    Returns:
        Session holding the diagnostics of the resolution
    """
    configure_logging(getattr(args, "debug", False))

    output_dir = Path(args.output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    bounds_file = output_dir / f"{args.prefix}.seqmap_bounds.tsv"

    record = load_record(args)
    locus = record.get('locus', {})
    topology = 'circular' if args.circular or str(locus.get('topology', '')).lower() == 'circular' else 'linear'

    types = FeatureTypeConfig()
    features = [Feature.from_record(i, raw) for i, raw in enumerate(record.get('features', []))]
    if not args.all_types:
        features = [f for f in features if types.is_displayed(f.type)]

    session = LayoutSession(mode=topology)
    resolver = FeatureBoundsResolver(int(locus.get('sequenceLength', 0)), topology)
    resolved = resolver.resolve_all(features, session)
    BoundsWriter.write(resolved, bounds_file)

    logger.info(f"Resolved {len(resolved)} of {len(features)} features ({topology})")
    if session.diagnostics:
        logger.warning(f"{len(session.diagnostics)} location problems reported")
    logger.info(f"✓ Bounds saved: {bounds_file}")
    return session
