"""
SeqMap CLI

Command-line interface with subcommands for sequence map layout.
"""

import argparse
import sys
from .cli import bounds, layout


def main():
    parser = argparse.ArgumentParser(
        prog='seqmap',
        description='SeqMap: feature and label layout for linear and circular sequence maps'
    )

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    # Add subcommand parsers
    layout.add_parser(subparsers)
    bounds.add_parser(subparsers)

    # Parse arguments
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    # Execute the appropriate subcommand
    if args.command == 'layout':
        layout.run(args)
    elif args.command == 'bounds':
        bounds.run(args)


if __name__ == "__main__":
    main()
