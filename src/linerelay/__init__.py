"""linerelay - a line-oriented TCP chat relay.

Clients connect to one loopback port and send ``\\n``-terminated lines. Each
completed line is relayed to every other connected client as
``client <id>: <line>``, and arrivals and departures are announced as
``server: client <id> just arrived`` / ``just left``.

Basic usage:
    from linerelay import RelayConfig, RelayServer

    async def main():
        await RelayServer(RelayConfig(port=8080)).serve()

Or from a shell:
    linerelay 8080
"""

from .broadcast import BroadcastResult, Broadcaster
from .config import LoggingConfig, RelayConfig, discover_config, load_config
from .framing import Framer, FrameTooLong, LineFramer
from .registry import Connection, ConnectionRegistry, RegistryFull
from .server import RelayServer

__version__ = "0.1.0"

__all__ = [
    "BroadcastResult",
    "Broadcaster",
    "Connection",
    "ConnectionRegistry",
    "FrameTooLong",
    "Framer",
    "LineFramer",
    "LoggingConfig",
    "RegistryFull",
    "RelayConfig",
    "RelayServer",
    "discover_config",
    "load_config",
]
