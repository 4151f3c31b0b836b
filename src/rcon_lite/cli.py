"""rcon-lite CLI entry point.

Usage: rcon-lite exec [--host H] [--port P] [--password PW] COMMAND...

Connection defaults come from RCON_HOST, RCON_PORT, RCON_PASSWORD,
RCON_TIMEOUT and RCON_MAX_PENDING.
"""
import argparse
import asyncio
import logging
import sys

from rcon_lite.client.connection import Rcon
from rcon_lite.config import RconConfig
from rcon_lite.protocol.errors import RconError

log = logging.getLogger(__name__)


def _add_exec_parser(subparsers: argparse._SubParsersAction) -> None:
    p = subparsers.add_parser(
        "exec",
        help="Run one or more commands on the server and print the responses.",
    )
    p.add_argument("commands", nargs="+", metavar="COMMAND")
    p.add_argument("--host", help="Server address (default: $RCON_HOST or 127.0.0.1)")
    p.add_argument("--port", type=int, help="RCON port (default: $RCON_PORT or 25575)")
    p.add_argument("--password", help="RCON password (default: $RCON_PASSWORD)")
    p.add_argument(
        "--timeout", type=int,
        help="Per-request timeout in milliseconds (default: $RCON_TIMEOUT or 2000)",
    )


def build_config(args: argparse.Namespace, base: RconConfig | None = None) -> RconConfig:
    """Apply command line flags on top of the environment config."""
    config = base if base is not None else RconConfig.from_env()
    overrides = {
        name: getattr(args, name)
        for name in ("host", "port", "password", "timeout")
        if getattr(args, name) is not None
    }
    return config.with_overrides(**overrides) if overrides else config


async def run_commands(config: RconConfig, commands: list[str]) -> list[str]:
    """Connect, run each command in order, return the responses."""
    async with Rcon(config) as rcon:
        responses = []
        for command in commands:
            log.debug("Running %r", command)
            responses.append(await rcon.send(command))
        return responses


def _run_exec(args: argparse.Namespace) -> int:
    try:
        config = build_config(args)
        responses = asyncio.run(run_commands(config, args.commands))
    except (RconError, ValueError) as exc:
        print(f"rcon-lite: {exc}", file=sys.stderr)
        return 1
    for response in responses:
        print(response)
    return 0


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="rcon-lite",
        description="RCON client -- asyncio, one connection, correlated replies.",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Log protocol traffic at DEBUG level.",
    )
    subparsers = parser.add_subparsers(dest="command")

    _add_exec_parser(subparsers)

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if args.command is None:
        parser.print_help()
        sys.exit(0)

    if args.command == "exec":
        sys.exit(_run_exec(args))
