#!/usr/bin/env python3
"""
Asset registry CLI

Works directly on a local data directory, or serves it over HTTP.

Usage:
  assetreg create --as <name> --title <t> --size <n> --description <d> -t <tag> [-t <tag> ...]
  assetreg describe <id>
  assetreg access <id> <accessor>
  assetreg tags <id>
  assetreg transfer <id> <new-creator> --as <name>
  assetreg update <id> --as <name> --title <t> --size <n> --description <d> -t <tag> ...
  assetreg delete <id> --as <name>
  assetreg principal create <name>
  assetreg principal list
  assetreg serve [--host H] [--port P] [--no-signatures]
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .config import RegistryConfig
from .errors import Result
from .server import RegistryServer


def load_config(args) -> RegistryConfig:
    """Config file (if any) with command-line overrides applied."""
    config = RegistryConfig.from_file(args.config) if args.config else RegistryConfig()
    if args.data_dir:
        config.data_dir = Path(args.data_dir).expanduser()
    return config


def _emit(result: Result, key: str = None) -> int:
    """Print a result as JSON. Returns the exit status."""
    if not result.success:
        print(f"Error: {result.error.kind.value}: {result.error.message}", file=sys.stderr)
        return 1
    if key is None:
        print(json.dumps({"status": "ok"}))
    else:
        print(json.dumps({key: result.value}))
    return 0


def cmd_create(args, config: RegistryConfig) -> int:
    registry = config.open_registry()
    result = registry.create(args.caller, args.title, args.size, args.description, args.tag)
    return _emit(result, "asset_id")


def cmd_describe(args, config: RegistryConfig) -> int:
    return _emit(config.open_registry().read_description(args.asset_id), "description")


def cmd_access(args, config: RegistryConfig) -> int:
    authorized = config.open_registry().check_access(args.asset_id, args.accessor)
    print(json.dumps({"authorized": authorized}))
    return 0


def cmd_tags(args, config: RegistryConfig) -> int:
    return _emit(config.open_registry().count_tags(args.asset_id), "count")


def cmd_transfer(args, config: RegistryConfig) -> int:
    registry = config.open_registry()
    return _emit(registry.transfer_ownership(args.caller, args.asset_id, args.new_creator))


def cmd_update(args, config: RegistryConfig) -> int:
    registry = config.open_registry()
    result = registry.update_metadata(
        args.caller, args.asset_id,
        args.title, args.size, args.description, args.tag,
    )
    return _emit(result)


def cmd_delete(args, config: RegistryConfig) -> int:
    return _emit(config.open_registry().delete(args.caller, args.asset_id))


def cmd_principal(args, config: RegistryConfig) -> int:
    principals = config.open_principals()
    if args.principal_command == "create":
        try:
            principal = principals.create(args.name)
        except ValueError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
        print(json.dumps({"name": principal.name, "key_id": principal.key_id}))
    else:
        for principal in principals.list():
            print(principal.name)
    return 0


def cmd_serve(args, config: RegistryConfig) -> int:
    server_config = config.server
    server = RegistryServer(
        registry=config.open_registry(),
        principals=config.open_principals(),
        host=args.host or server_config.host,
        port=args.port if args.port is not None else server_config.port,
        require_signatures=server_config.require_signatures and not args.no_signatures,
        signature_max_age=server_config.signature_max_age,
    )
    server.start()
    return 0


def _add_metadata_args(parser: argparse.ArgumentParser):
    parser.add_argument("--title", required=True, help="Title (1-64 characters)")
    parser.add_argument("--size", type=int, required=True, help="Size (1-999999999)")
    parser.add_argument("--description", required=True, help="Description (1-128 characters)")
    parser.add_argument("-t", "--tag", action="append", default=[],
                        help="Tag (1-32 characters), repeat for up to 10")


def _add_caller_arg(parser: argparse.ArgumentParser):
    parser.add_argument("--as", dest="caller", required=True, help="Calling identity")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="assetreg",
        description="Asset metadata registry",
    )
    parser.add_argument("--config", help="YAML config file")
    parser.add_argument("--data-dir", help="Data directory (overrides config)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose logging")
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    create_parser = subparsers.add_parser("create", help="Register an asset")
    _add_caller_arg(create_parser)
    _add_metadata_args(create_parser)

    describe_parser = subparsers.add_parser("describe", help="Print an asset's description")
    describe_parser.add_argument("asset_id", type=int)

    access_parser = subparsers.add_parser("access", help="Check an access grant")
    access_parser.add_argument("asset_id", type=int)
    access_parser.add_argument("accessor")

    tags_parser = subparsers.add_parser("tags", help="Count an asset's tags")
    tags_parser.add_argument("asset_id", type=int)

    transfer_parser = subparsers.add_parser("transfer", help="Transfer ownership")
    transfer_parser.add_argument("asset_id", type=int)
    transfer_parser.add_argument("new_creator")
    _add_caller_arg(transfer_parser)

    update_parser = subparsers.add_parser("update", help="Replace an asset's metadata")
    update_parser.add_argument("asset_id", type=int)
    _add_caller_arg(update_parser)
    _add_metadata_args(update_parser)

    delete_parser = subparsers.add_parser("delete", help="Delete an asset")
    delete_parser.add_argument("asset_id", type=int)
    _add_caller_arg(delete_parser)

    principal_parser = subparsers.add_parser("principal", help="Manage principals")
    principal_sub = principal_parser.add_subparsers(dest="principal_command", required=True)
    principal_create = principal_sub.add_parser("create", help="Create a principal with a new key pair")
    principal_create.add_argument("name")
    principal_sub.add_parser("list", help="List principals")

    serve_parser = subparsers.add_parser("serve", help="Serve the registry over HTTP")
    serve_parser.add_argument("--host", help="Host to bind to")
    serve_parser.add_argument("--port", type=int, help="Port to bind to")
    serve_parser.add_argument("--no-signatures", action="store_true",
                              help="Trust the X-Principal header without a signature")

    return parser


COMMANDS = {
    "create": cmd_create,
    "describe": cmd_describe,
    "access": cmd_access,
    "tags": cmd_tags,
    "transfer": cmd_transfer,
    "update": cmd_update,
    "delete": cmd_delete,
    "principal": cmd_principal,
    "serve": cmd_serve,
}


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command not in COMMANDS:
        parser.print_help()
        return 1

    try:
        config = load_config(args)
    except (OSError, ValueError) as e:
        print(f"Error: invalid config: {e}", file=sys.stderr)
        return 1

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else config.log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    return COMMANDS[args.command](args, config)


if __name__ == "__main__":
    sys.exit(main())
