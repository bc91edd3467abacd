#!/usr/bin/env python3
"""Generate a root and intermediate CA for the local CA server."""

import argparse
import logging
import sys
from pathlib import Path

from ca_client.lib.alt_names import choose_alt_names
from ca_client.lib.ca_manager import CAManager
from ca_client.lib.config import load_settings
from ca_client.lib.errors import CAClientError
from ca_client.lib.logging_config import LOGGER


def build_parser() -> argparse.ArgumentParser:
    """Argument parser for the generate action."""
    parser = argparse.ArgumentParser(
        prog="ca-client generate",
        description="Generate a root and intermediate signing CA for Puppet Server",
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
        help="Comma separated alt names for the intermediate CA certificate",
    )
    return parser


def main(argv: list[str] | None = None, logger: logging.Logger = LOGGER) -> int:
    """Generate the CA hierarchy.

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    parser = build_parser()
    try:
        args = parser.parse_args(argv)
    except SystemExit as e:
        return 0 if e.code == 0 else 1

    try:
        settings = load_settings(args.config)
        alt_names = choose_alt_names(args.subject_alt_names, settings.subject_alt_names)

        result = CAManager(settings, logger).generate(alt_names)

        logger.info("Root CA serial: %s", result.root_serial)
        logger.info("Intermediate CA serial: %s", result.intermediate_serial)
        logger.info("Generation succeeded. Find your files in %s", result.cadir)
        return 0

    except CAClientError as e:
        logger.error("Error: %s", e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
