"""Subcommands of the seqmap command-line interface"""
