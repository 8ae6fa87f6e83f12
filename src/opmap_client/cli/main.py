"""Entry point for the ``opmap`` command."""

from __future__ import annotations

import argparse
import getpass
import json
import logging
import os
import sys
from typing import Any

from opmap_client.api.dispatcher import OperationDispatcher
from opmap_client.api.pagination import fetch_all, records_to_dataframe
from opmap_client.api.registry import OperationRegistry
from opmap_client.cli.parser import parse_arguments
from opmap_client.core.colors import ConsoleColors
from opmap_client.core.config import CallOptions
from opmap_client.core.credentials import KeyringSecretStore, TokenProvider
from opmap_client.core.exceptions import OpMapError
from opmap_client.core.logging import setup_logging
from opmap_client.core.metrics import get_metrics
from opmap_client.core.settings import SettingsStore, get_settings, set_default_settings
from opmap_client.resources.changes import unwrap_result

CLI_DEFAULT_LOG_LEVEL = "WARNING"


def _print_json(value: Any) -> None:
    print(json.dumps(value, indent=2, ensure_ascii=False, default=str))


def _parse_setting_value(raw: str) -> Any:
    """Store numbers, booleans, lists and objects typed; anything else as text."""
    try:
        return json.loads(raw)
    except ValueError:
        return raw


def _mask(token: str) -> str:
    return f"****{token[-4:]}" if len(token) > 8 else "****"


def _token_provider(args: argparse.Namespace, settings: SettingsStore, logger: logging.Logger) -> TokenProvider:
    secret_store = None if args.no_keyring else KeyringSecretStore()
    return TokenProvider(settings=settings, secret_store=secret_store, logger=logger)


def build_dispatcher(args: argparse.Namespace, settings: SettingsStore, logger: logging.Logger) -> OperationDispatcher:
    """Create a dispatcher from global CLI flags."""
    registry = OperationRegistry(args.operations_file, logger=logger) if args.operations_file else None
    return OperationDispatcher(
        registry=registry,
        settings=settings,
        token_provider=_token_provider(args, settings, logger),
        logger=logger,
    )


def _call_params(args: argparse.Namespace) -> dict[str, str]:
    return dict(args.params or [])


def cmd_invoke(args: argparse.Namespace, settings: SettingsStore, logger: logging.Logger) -> int:
    with build_dispatcher(args, settings, logger) as dispatcher:
        response = dispatcher.invoke(args.operation, _call_params(args), CallOptions.from_args(args))
    _print_json(unwrap_result(response) if args.result else response)
    logger.debug(get_metrics().get_summary())
    return 0


def cmd_list(args: argparse.Namespace, settings: SettingsStore, logger: logging.Logger) -> int:
    with build_dispatcher(args, settings, logger) as dispatcher:
        records = fetch_all(
            args.operation,
            _call_params(args),
            CallOptions.from_args(args),
            batch_size=args.batch_size,
            max_records=args.max_records,
            dispatcher=dispatcher,
            quiet=args.quiet,
        )
    if args.format == "csv":
        records_to_dataframe(records).to_csv(sys.stdout, index=False)
    else:
        _print_json(records)
    logger.debug(get_metrics().get_summary())
    return 0


def cmd_operations(args: argparse.Namespace, settings: SettingsStore, logger: logging.Logger) -> int:
    registry = OperationRegistry(args.operations_file, logger=logger)
    for key in registry.keys():
        definition = registry.resolve(key)
        print(f"{key:30s} {definition.method.value:6s} {registry.base_path}{definition.path}")
    return 0


def cmd_token(args: argparse.Namespace, settings: SettingsStore, logger: logging.Logger) -> int:
    provider = _token_provider(args, settings, logger)
    if args.token_command == "set":
        token = args.token or getpass.getpass("Bearer token: ")
        location = provider.set_token(token)
        print(ConsoleColors.success(f"✓ Token stored ({location})"))
    elif args.token_command == "remove":
        location = provider.remove_token()
        print(ConsoleColors.success(f"✓ Token removed ({location})"))
    else:
        token, source = provider.resolve_token()
        print(f"Token {_mask(token)} from {source}")
    return 0


def cmd_config(args: argparse.Namespace, settings: SettingsStore, logger: logging.Logger) -> int:
    if args.config_command == "get":
        value = settings.get(args.key)
        if value is None:
            print(ConsoleColors.warning(f"'{args.key}' is not set"), file=sys.stderr)
            return 1
        print(value if isinstance(value, str) else json.dumps(value))
    elif args.config_command == "set":
        settings.set(args.key, _parse_setting_value(args.value))
        print(ConsoleColors.success(f"✓ {args.key} saved to {settings.path}"))
    elif not settings.remove(args.key):
        print(ConsoleColors.warning(f"'{args.key}' was not set"), file=sys.stderr)
    else:
        print(ConsoleColors.success(f"✓ {args.key} removed"))
    return 0


COMMANDS = {
    "invoke": cmd_invoke,
    "list": cmd_list,
    "operations": cmd_operations,
    "token": cmd_token,
    "config": cmd_config,
}


def main(argv: list[str] | None = None) -> int:
    """Run the CLI; returns the process exit code."""
    args = parse_arguments(argv)
    if args.no_color:
        ConsoleColors.set_enabled(False)

    log_level = args.log_level or os.environ.get("LOG_LEVEL") or CLI_DEFAULT_LOG_LEVEL
    logger = setup_logging(log_level, args.log_format, args.log_file)

    if args.config_file:
        settings = SettingsStore(args.config_file, logger=logger)
        set_default_settings(settings)
    else:
        settings = get_settings()

    try:
        return COMMANDS[args.command](args, settings, logger)
    except (OpMapError, ValueError) as e:
        print(ConsoleColors.error(f"ERROR: {e!s}"), file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print(ConsoleColors.warning("Interrupted"), file=sys.stderr)
        return 130


if __name__ == "__main__":
    sys.exit(main())
