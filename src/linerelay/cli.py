"""Command line entry point: ``linerelay PORT``."""

from __future__ import annotations

import argparse
import asyncio
import sys
from typing import NoReturn, Sequence

from linerelay import logger

from .config import RelayConfig, load_config
from .server import RelayServer


class FatalError(Exception):
    """Ends the process with exit status 1 and one line on stderr."""


class _ArgumentParser(argparse.ArgumentParser):
    def error(self, message: str) -> NoReturn:
        raise FatalError(message)


def _parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(
        prog="linerelay",
        description="Relay newline-terminated lines between TCP clients on 127.0.0.1.",
        add_help=False,
    )
    parser.add_argument("port", help="TCP port to listen on")
    return parser


def parse_port(argv: Sequence[str]) -> int:
    if len(argv) != 1:
        raise FatalError("Wrong number of arguments")
    args = _parser().parse_args(argv)
    try:
        port = int(args.port)
    except ValueError:
        raise FatalError(f"Invalid port: {args.port!r}") from None
    if not 0 <= port <= 65535:
        raise FatalError(f"Invalid port: {port}")
    return port


def _fail(message: str | None) -> int:
    sys.stderr.write(f"{message or 'Fatal error'}\n")
    sys.stderr.flush()
    return 1


def main(argv: Sequence[str] | None = None) -> int:
    if argv is None:
        argv = sys.argv[1:]

    try:
        port = parse_port(argv)
        config = load_config().with_port(port)
        config.logging.apply()
        asyncio.run(RelayServer(config).serve())
    except FatalError as e:
        return _fail(str(e))
    except (OSError, ValueError) as e:
        return _fail(str(e))
    except MemoryError:
        return _fail(None)
    except KeyboardInterrupt:
        logger.info("Interrupted")
    return 0


if __name__ == "__main__":
    sys.exit(main())
