"""Layout subcommand - full feature and label layout"""

from __future__ import annotations
from typing import List, Optional
from pathlib import Path
import logging
from argparse import ArgumentParser, Namespace, _SubParsersAction

from ..config import MapConfig
from ..io import GenBankReader, LayoutWriter, SiteReader, SummaryWriter, read_record_json
from ..layout import LayoutEngine, LayoutResult
from ..types import GenBankRecord, RestrictionSite

logger = logging.getLogger(__name__)


def add_parser(subparsers: _SubParsersAction) -> ArgumentParser:
    """
    Add layout subcommand parser

    Args:
        subparsers: Subparser action from main argument parser

    Returns:
        Configured ArgumentParser for layout subcommand
    """
    parser = subparsers.add_parser(
        'layout',
        help='Lay out features and labels of an annotated sequence'
    )

    # Input (one of)
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument('--genbank', metavar='GB_FILE',
                        help='GenBank file with a single record')
    source.add_argument('--json', metavar='JSON_FILE',
                        help='Record already decoded to JSON (locus + features)')

    # Output
    parser.add_argument('--prefix', required=True,
                        help='Output file prefix')
    parser.add_argument('--output-dir', default='.',
                        help='Output directory (default: current directory)')

    # Layout
    parser.add_argument('--mode', choices=['linear', 'circular', 'wrapped'],
                        help='Map kind (default: record topology)')
    parser.add_argument('--bases-per-line', type=int,
                        help='Bases per line in wrapped mode (default: derived from --width)')
    parser.add_argument('--width', type=float, default=1000.0,
                        help='Viewport width in px (default: 1000)')
    parser.add_argument('--height', type=float, default=800.0,
                        help='Viewport height in px (default: 800)')
    parser.add_argument('--preset', choices=['default', 'compact', 'presentation', 'debug'],
                        default='default',
                        help='Configuration preset (default: default)')
    parser.add_argument('--sites', metavar='TSV_FILE',
                        help='Restriction site table to mark on the map')

    # Debug flag
    parser.add_argument('--debug', action='store_true', help='Enable debug logging for troubleshooting')

    return parser  # type: ignore[no-any-return]


def configure_logging(debug: bool) -> None:
    """Root logging setup shared by the subcommands"""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        force=True
    )

    # Silence very noisy third-party loggers (matplotlib font discovery etc.)
    for noisy in ("matplotlib", "matplotlib.font_manager", "PIL", "PIL.Image", "fontTools"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    logging.getLogger("seqmap").setLevel(logging.DEBUG if debug else logging.INFO)


def load_record(args: Namespace) -> GenBankRecord:
    """Read the input record named on the command line"""
    input_file = args.genbank or args.json
    if not Path(input_file).exists():
        raise FileNotFoundError(f"Input file not found: {input_file}")
    if args.genbank:
        return GenBankReader.load_record(input_file)
    return read_record_json(input_file)


def run(args: Namespace) -> LayoutResult:
    """
    Execute layout subcommand

    Args:
        args: Parsed command-line arguments from argparse

    Returns:
        The computed layout
    """
    configure_logging(getattr(args, "debug", False))

    output_dir = Path(args.output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    table_file = output_dir / f"{args.prefix}.seqmap_layout.tsv"
    json_file = output_dir / f"{args.prefix}.seqmap_layout.json"
    summary_file = output_dir / f"{args.prefix}.seqmap_summary.txt"

    logger.info(f"Prefix: {args.prefix}")
    logger.info(f"Input: {args.genbank or args.json}")
    logger.info(f"Output directory: {output_dir}")

    record = load_record(args)

    sites: Optional[List[RestrictionSite]] = None
    if args.sites:
        sites = SiteReader.load_sites(args.sites)

    config = MapConfig.preset(args.preset)
    if getattr(args, 'bases_per_line', None):
        config.wrapped.bases_per_line = args.bases_per_line
    engine = LayoutEngine(config)
    result = engine.layout_record(record, mode=args.mode, width=args.width,
                                  height=args.height, sites=sites)

    LayoutWriter.write_table(result, table_file)
    LayoutWriter.write_json(result, json_file)
    SummaryWriter().write(result, summary_file, {
        'Input': args.genbank or args.json,
        'Locus': record.get('locus', {}).get('locusName', ''),
        'Definition': record.get('definition', ''),
        'Preset': args.preset,
        'Restriction sites file': args.sites or 'none',
    })

    logger.info(f"✓ Layout saved: {table_file}")
    return result
