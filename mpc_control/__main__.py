"""
Main entry point when running the mpc_control module with python -m.
"""

import argparse
import asyncio
import logging
import sys

from .component_modes import parse_component_flags
from .config import WS_HOST, WS_PORT
from .server import main, setup_logging


def run() -> None:
    # Parse component flags first, the rest goes to the main parser
    component_mode, remaining_args = parse_component_flags()

    parser = argparse.ArgumentParser(
        description="MPC steering and throttle server for the driving simulator"
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable verbose logging with timestamps"
    )
    parser.add_argument("--host", default=WS_HOST, help=f"Interface to bind (default: {WS_HOST})")
    parser.add_argument(
        "--port", type=int, default=WS_PORT, help=f"Port to listen on (default: {WS_PORT})"
    )
    parser.add_argument(
        "--no-log", action="store_true", help="Do not write per-cycle CSV files under results/"
    )
    args = parser.parse_args(remaining_args)

    setup_logging(args.verbose)

    try:
        asyncio.run(
            main(
                component_mode=component_mode,
                host=args.host,
                port=args.port,
                log_data=not args.no_log,
            )
        )
    except KeyboardInterrupt:
        logging.info("\nExiting...")
        sys.exit(0)


if __name__ == "__main__":
    run()
