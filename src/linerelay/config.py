"""TOML-based configuration for the relay.

Provides ``load_config`` / ``discover_config`` for loading ``linerelay.toml``
and the frozen dataclasses holding server limits and logging settings. The
listening port never comes from the file; it is always supplied on the
command line.
"""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Literal, TypeAlias

from linerelay import logger


__all__ = [
    "CONFIG_FILENAME",
    "LogFormat",
    "LoggingConfig",
    "RelayConfig",
    "discover_config",
    "load_config",
]


CONFIG_FILENAME = "linerelay.toml"

LogFormat: TypeAlias = Literal["verbose", "compact", "minimal"]


@dataclass(frozen=True)
class LoggingConfig:
    """Operational log settings.

    Parameters
    ----------
    level : str
        One of ``"debug"``, ``"info"``, ``"warn"``, ``"error"`` or ``"off"``.
    format : LogFormat
        Line layout: ``"verbose"``, ``"compact"`` or ``"minimal"``.
    colors : bool
        Emit ANSI colors.

    Examples
    --------
    >>> LoggingConfig(level="debug")
    LoggingConfig(level='debug', format='compact', colors=False)
    """

    level: str = "info"
    format: LogFormat = "compact"
    colors: bool = False

    def __post_init__(self) -> None:
        logger.Level.parse(self.level)
        logger.formatters.named(self.format)

    def apply(self) -> None:
        """Install these settings on the ``linerelay`` logger."""
        logger.set_level(logger.Level.parse(self.level))
        logger.set_formatter(logger.formatters.named(self.format))
        logger.set_colors(self.colors)


@dataclass(frozen=True)
class RelayConfig:
    """Server settings.

    Parameters
    ----------
    port : int
        TCP port to listen on. ``0`` asks the OS for an ephemeral port.
    host : str
        Address to bind. Loopback only by default.
    backlog : int
        ``listen()`` backlog.
    read_size : int
        Maximum bytes requested by a single read on a connection.
    capacity : int
        Maximum number of simultaneously connected clients.
    max_pending : int | None
        Maximum bytes of an incomplete line held for one connection.
        ``None`` leaves partial lines unbounded.
    max_write_buffer : int
        Maximum bytes queued for delivery to one slow client before it is
        disconnected.
    logging : LoggingConfig
        Operational log settings.

    Examples
    --------
    >>> RelayConfig(port=8080, capacity=16)
    RelayConfig(port=8080, host='127.0.0.1', backlog=128, ...)
    """

    port: int = 0
    host: str = "127.0.0.1"
    backlog: int = 128
    read_size: int = 4096
    capacity: int = 1024
    max_pending: int | None = 65536
    max_write_buffer: int = 1024 * 1024
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def __post_init__(self) -> None:
        if not 0 <= self.port <= 65535:
            msg = f"port must be in 0..65535, got {self.port}"
            raise ValueError(msg)
        if self.backlog <= 0:
            raise ValueError("backlog must be > 0")
        if self.read_size <= 0:
            raise ValueError("read_size must be > 0")
        if self.capacity <= 0:
            raise ValueError("capacity must be > 0")
        if self.max_pending is not None and self.max_pending <= 0:
            raise ValueError("max_pending must be > 0 or None")
        if self.max_write_buffer <= 0:
            raise ValueError("max_write_buffer must be > 0")

    def with_port(self, port: int) -> RelayConfig:
        return replace(self, port=port)


def discover_config(start: Path | None = None) -> Path | None:
    """Walk up from *start* (default: cwd) looking for ``linerelay.toml``.

    Parameters
    ----------
    start : Path | None
        Directory to start searching from.

    Returns
    -------
    Path | None
        Path to the discovered config file, or ``None`` if not found.
    """
    current = start or Path.cwd()
    current = current.resolve()
    while True:
        candidate = current / CONFIG_FILENAME
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            return None
        current = parent


def load_config(path: Path | None = None) -> RelayConfig:
    """Load a ``RelayConfig`` from a TOML file.

    If *path* is ``None``, auto-discovers ``linerelay.toml`` by walking up
    from the current working directory. Returns the default config if no
    file is found.

    Parameters
    ----------
    path : Path | None
        Explicit path to a TOML config file.

    Returns
    -------
    RelayConfig

    Raises
    ------
    FileNotFoundError
        If an explicit *path* is given but does not exist.
    ValueError
        If a value is out of range.

    Examples
    --------
    >>> config = load_config(Path("linerelay.toml"))
    >>> config.capacity
    1024
    """
    if path is None:
        discovered = discover_config()
        if discovered is None:
            return RelayConfig()
        path = discovered

    if not path.exists():
        msg = f"Config file not found: {path}"
        raise FileNotFoundError(msg)

    with path.open("rb") as f:
        raw = tomllib.load(f)

    server_raw: dict[str, Any] = dict(raw.get("server", {}))
    server_raw.pop("port", None)
    # 0 in the file means "no bound"; TOML has no null.
    if server_raw.get("max_pending") == 0:
        server_raw["max_pending"] = None

    logging_config = LoggingConfig(**raw.get("logging", {}))
    return RelayConfig(**server_raw, logging=logging_config)
