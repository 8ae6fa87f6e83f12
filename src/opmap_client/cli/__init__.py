"""CLI module - the ``opmap`` command line."""

from opmap_client.cli.main import main
from opmap_client.cli.parser import build_parser, parse_arguments

__all__ = ["build_parser", "main", "parse_arguments"]
