#!/usr/bin/env python3
"""Create keys and certificates for certnames, signed by the remote CA."""

import argparse
import logging
import sys
from pathlib import Path

from ca_client.lib.alt_names import parse_alt_names
from ca_client.lib.config import load_settings
from ca_client.lib.errors import CAClientError, ValidationError
from ca_client.lib.logging_config import LOGGER
from ca_client.lib.provisioner import CertificateProvisioner, validate_certnames


def comma_list(value: str) -> list[str]:
    """Split ``a,b,c`` into certnames, dropping empty entries."""
    return [name.strip() for name in value.split(",") if name.strip()]


def reject_flag_certnames(argv: list[str]) -> None:
    """Reject ``--certname`` followed by something that looks like a flag.

    argparse would otherwise report a missing argument instead of naming
    the offending value.
    """
    for option, value in zip(argv, argv[1:]):
        if option == "--certname" and value.startswith("-"):
            validate_certnames(comma_list(value))


def build_parser() -> argparse.ArgumentParser:
    """Argument parser for the create action."""
    parser = argparse.ArgumentParser(
        prog="ca-client create",
        description="Create a key pair and signed certificate for each certname",
    )
    parser.add_argument(
        "--certname",
        dest="certnames",
        type=comma_list,
        default=[],
        help="Comma separated list of certnames to create",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to puppet.conf (default: built-in Puppet paths)",
    )
    parser.add_argument(
        "--subject-alt-names",
        default="",
        help="Comma separated alt names added to every certificate request",
    )
    return parser


def main(argv: list[str] | None = None, logger: logging.Logger = LOGGER) -> int:
    """Create and download certificates for the requested certnames.

    Returns:
        Exit code (0 when every certificate was saved, 1 otherwise)
    """
    argv = sys.argv[1:] if argv is None else list(argv)
    try:
        reject_flag_certnames(argv)
    except ValidationError as e:
        logger.error("%s", e)
        return 1

    parser = build_parser()
    try:
        args = parser.parse_args(argv)
    except SystemExit as e:
        return 0 if e.code == 0 else 1

    try:
        validate_certnames(args.certnames)
        parse_alt_names(args.subject_alt_names)
    except ValidationError as e:
        logger.error("%s", e)
        return 1

    try:
        settings = load_settings(args.config)
        provisioner = CertificateProvisioner(settings, logger=logger)
        alt_names = args.subject_alt_names or settings.subject_alt_names
        return provisioner.run(args.certnames, alt_names)

    except CAClientError as e:
        logger.error("Error: %s", e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
