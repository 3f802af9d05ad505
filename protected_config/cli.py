"""
Command line interface for protected configuration files.

    protected-config generate-key --key-file config.key
    protected-config protect appsettings.json --key-file config.key
    protected-config show appsettings.json --key-file config.key --reveal
    protected-config status appsettings.json
"""

import argparse
import sys
from pathlib import Path
from typing import List, Optional

from .config.builder import ProtectedConfigurationBuilder
from .config.policy import resolve_purpose
from .config.protect import ConfigFormat, detect_format, get_protection_status, protect_file
from .crypto.data_protection import (
    DataProtectionBuilder,
    generate_master_key,
    load_or_create_key_file,
)
from .exceptions import ProtectedConfigError
from .logging_config import get_logger, setup_logging

logger = get_logger('cli')

MASK = "********"


def _add_key_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument('--key-file', '-k', required=True, help='Master key file path')
    purpose_group = parser.add_mutually_exclusive_group()
    purpose_group.add_argument('--purpose', '-p', help='Purpose the values are protected with')
    purpose_group.add_argument('--key-number', '-n', type=int, help='Numbered key to use')
    parser.add_argument('--application-name', help='Application name mixed into key derivation')


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='protected-config',
        description='Protected Configuration Management',
    )
    parser.add_argument('--verbose', '-v', action='store_true', help='Enable debug logging')
    parser.add_argument('--json-logs', action='store_true', help='Log in JSON format')

    subparsers = parser.add_subparsers(dest='command', required=True)

    generate = subparsers.add_parser('generate-key', help='Generate a master key')
    generate.add_argument('--key-file', '-k', help='Write the key to this file instead of stdout')

    protect = subparsers.add_parser('protect', help='Encrypt Protect:{...} tokens in a file')
    protect.add_argument('config_file', help='Configuration file path')
    _add_key_arguments(protect)
    protect.add_argument('--no-backup', action='store_true', help='Do not create a backup')

    show = subparsers.add_parser('show', help='Print the decrypted configuration keys')
    show.add_argument('config_file', help='Configuration file path')
    _add_key_arguments(show)
    show.add_argument('--reveal', action='store_true', help='Print decrypted values')

    status = subparsers.add_parser('status', help='Show protection status of a file')
    status.add_argument('config_file', help='Configuration file path')

    return parser


def _configure_data_protection(args: argparse.Namespace):
    def configure(builder: DataProtectionBuilder) -> None:
        builder.persist_keys_to_file(args.key_file)
        if args.application_name:
            builder.set_application_name(args.application_name)
    return configure


def _require_key_file(key_file: str) -> None:
    if not Path(key_file).exists():
        raise FileNotFoundError(f"Key file not found: {key_file}")


def cmd_generate_key(args: argparse.Namespace) -> int:
    if args.key_file:
        if Path(args.key_file).exists():
            print(f"Key file already exists: {args.key_file}")
            return 1
        load_or_create_key_file(args.key_file)
        print(f"Generated key file: {args.key_file}")
    else:
        print(generate_master_key().decode("ascii"))
    return 0


def cmd_protect(args: argparse.Namespace) -> int:
    _require_key_file(args.key_file)

    data_protection = DataProtectionBuilder()
    _configure_data_protection(args)(data_protection)
    protector = data_protection.build().create_protector(
        resolve_purpose(args.purpose, args.key_number)
    )

    if protect_file(args.config_file, protector, backup=not args.no_backup):
        print(f"Protected: {args.config_file}")
    else:
        print(f"Nothing to protect: {args.config_file}")
    return 0


def cmd_show(args: argparse.Namespace) -> int:
    _require_key_file(args.key_file)

    builder = ProtectedConfigurationBuilder(
        configure=_configure_data_protection(args),
        purpose=args.purpose,
        key_number=args.key_number,
    )

    config_format = detect_format(Path(args.config_file))
    if config_format == ConfigFormat.JSON:
        builder.add_json_file(args.config_file)
    elif config_format == ConfigFormat.YAML:
        builder.add_yaml_file(args.config_file)
    else:
        builder.add_ini_file(args.config_file)

    config = builder.build()
    for key, value in config.as_dict().items():
        print(f"{key} = {value if args.reveal else MASK}")
    return 0


def cmd_status(args: argparse.Namespace) -> int:
    status = get_protection_status(args.config_file)
    print(f"File: {args.config_file}")
    print(f"  Exists: {status['exists']}")
    print(f"  Protected values: {status['protected']}")
    print(f"  Values awaiting protection: {status['unprotected']}")
    return 0 if status['exists'] else 1


COMMANDS = {
    'generate-key': cmd_generate_key,
    'protect': cmd_protect,
    'show': cmd_show,
    'status': cmd_status,
}


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(verbose=args.verbose, json_format=args.json_logs)

    try:
        return COMMANDS[args.command](args)
    except (ProtectedConfigError, FileNotFoundError, ValueError) as e:
        logger.debug("Command failed", exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == '__main__':
    sys.exit(main())
