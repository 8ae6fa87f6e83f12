"""Argument parsing for the ``opmap`` command."""

from __future__ import annotations

import argparse

from opmap_client.core.constants import DEFAULT_BATCH_SIZE
from opmap_client.core.version import __version__


def key_value(text: str) -> tuple[str, str]:
    """Parse a ``name=value`` argument."""
    name, sep, value = text.partition("=")
    if not sep or not name.strip():
        raise argparse.ArgumentTypeError(f"expected name=value, got {text!r}")
    return name.strip(), value


def _add_call_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("operation", metavar="KEY", help="Operation key, e.g. Change.Get")
    parser.add_argument(
        "-p",
        "--param",
        dest="params",
        type=key_value,
        action="append",
        default=[],
        metavar="NAME=VALUE",
        help="Placeholder value (repeatable)",
    )
    parser.add_argument(
        "--query", type=key_value, action="append", default=[], metavar="K=V", help="Extra query parameter"
    )
    parser.add_argument("--header", type=key_value, action="append", default=[], metavar="K=V", help="Extra header")
    parser.add_argument("--retry-count", type=int, metavar="N", help="Retries after the first attempt")
    parser.add_argument("--retry-delay", type=float, metavar="SEC", help="Initial backoff delay in seconds")
    parser.add_argument("--timeout", type=float, metavar="SEC", help="Per-request timeout in seconds")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="opmap",
        description="opmap - invoke REST operations declared in an operation map",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # One-time setup
  opmap config set InstanceBaseUri https://example.service-now.com
  opmap token set

  # Fetch one record, printing only the "result" object
  opmap invoke Change.Get -p sys_id=abc123 --result

  # Page through up to 500 records as CSV
  opmap list Change.List --max-records 500 --format csv

  # Structured logs for every HTTP attempt
  opmap --log-level INFO --log-format json invoke Change.Get -p sys_id=abc123
""",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        type=str.upper,
        help="Logging level (default: LOG_LEVEL env var, else WARNING)",
    )
    parser.add_argument("--log-format", choices=["text", "json"], default="text", help="Log output format")
    parser.add_argument("--log-file", metavar="PATH", help="Also write logs to a rotating file")
    parser.add_argument("--config-file", metavar="PATH", help="Settings file (default: ~/.opmap/config.json)")
    parser.add_argument("--operations-file", metavar="PATH", help="Operations map (default: bundled map)")
    parser.add_argument("--no-keyring", action="store_true", help="Do not use the OS keyring for the token")
    parser.add_argument("--no-color", action="store_true", help="Disable colored output")

    commands = parser.add_subparsers(dest="command", metavar="COMMAND", required=True)

    invoke = commands.add_parser("invoke", help="Invoke one operation and print the JSON response")
    _add_call_arguments(invoke)
    invoke.add_argument("--expect-status", type=int, metavar="CODE", help="Fail unless the response has this status")
    invoke.add_argument("--result", action="store_true", help='Print only the "result" member of the response')

    list_parser = commands.add_parser("list", help="Page through a list operation")
    _add_call_arguments(list_parser)
    list_parser.add_argument("--batch-size", type=int, default=DEFAULT_BATCH_SIZE, metavar="N")
    list_parser.add_argument("--max-records", type=int, default=0, metavar="N", help="0 means no limit")
    list_parser.add_argument("--format", choices=["json", "csv"], default="json")
    list_parser.add_argument("--quiet", action="store_true", help="Hide the progress bar")

    commands.add_parser("operations", help="List operation keys in the operations map")

    token = commands.add_parser("token", help="Manage the bearer token")
    token_commands = token.add_subparsers(dest="token_command", metavar="ACTION", required=True)
    token_set = token_commands.add_parser("set", help="Store a token (prompts when omitted)")
    token_set.add_argument("token", nargs="?")
    token_commands.add_parser("remove", help="Remove the stored token")
    token_commands.add_parser("status", help="Show which source provides the token")

    config = commands.add_parser("config", help="Read or change settings")
    config_commands = config.add_subparsers(dest="config_command", metavar="ACTION", required=True)
    config_get = config_commands.add_parser("get", help="Print a setting")
    config_get.add_argument("key", metavar="KEY")
    config_set = config_commands.add_parser("set", help="Store a setting (JSON values are parsed)")
    config_set.add_argument("key", metavar="KEY")
    config_set.add_argument("value", metavar="VALUE")
    config_unset = config_commands.add_parser("unset", help="Remove a setting")
    config_unset.add_argument("key", metavar="KEY")

    return parser


def parse_arguments(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments"""
    return build_parser().parse_args(argv)
