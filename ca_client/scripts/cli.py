#!/usr/bin/env python3
"""``ca-client <action>`` entry point dispatching to the action scripts."""

import logging
import sys

from ca_client.lib.logging_config import LOGGER
from ca_client.scripts import create_certs, generate_ca

ACTIONS = {
    "create": create_certs.main,
    "generate": generate_ca.main,
}

USAGE = "Usage: ca-client <action> [options]\n\nAvailable actions: " + ", ".join(
    sorted(ACTIONS)
)


def main(argv: list[str] | None = None, logger: logging.Logger = LOGGER) -> int:
    """Run the named action with the remaining arguments.

    Returns:
        The action's exit code, or 1 for a missing or unknown action
    """
    args = list(sys.argv[1:] if argv is None else argv)
    if not args or args[0] in ("-h", "--help"):
        print(USAGE)
        return 0 if args else 1

    action, rest = args[0], args[1:]
    if action not in ACTIONS:
        logger.error("Unknown action: %s", action)
        print(USAGE, file=sys.stderr)
        return 1

    return ACTIONS[action](rest, logger)


if __name__ == "__main__":
    sys.exit(main())
