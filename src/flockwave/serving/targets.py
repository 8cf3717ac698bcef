"""Listen targets describing where a server should accept incoming
connections: a TCP port (with an optional host) or a Unix domain socket path.
"""

import os

from dataclasses import dataclass
from typing import Optional, Union

from trio.abc import Listener

from .factory import Factory
from .servers import open_tcp_listener, open_unix_listener

__all__ = (
    "ListenTarget",
    "PortTarget",
    "SocketPathTarget",
    "create_listen_target",
)


@dataclass(frozen=True)
class PortTarget:
    """Listen target that binds to a TCP port on a given host."""

    port: int = 0
    """The port number to bind to; zero means that the OS chooses a random
    ephemeral port.
    """

    host: Optional[str] = None
    """The IP address or hostname to bind to; ``None`` or an empty string
    means all interfaces.
    """

    def __post_init__(self):
        if (
            not isinstance(self.port, int)
            or isinstance(self.port, bool)
            or self.port < 0
            or self.port > 65535
        ):
            raise ValueError(
                f"port must be an integer between 0 and 65535, got {self.port!r}"
            )

    async def open_listener(self, backlog: Optional[int] = None) -> Listener:
        """Opens a Trio listener bound to this target."""
        return await open_tcp_listener(self.port, host=self.host, backlog=backlog)

    def __str__(self) -> str:
        return f"{self.host or ''}:{self.port}"


@dataclass(frozen=True)
class SocketPathTarget:
    """Listen target that binds to a Unix domain socket at a given path."""

    path: str
    """The filesystem path of the socket; stored as an absolute path."""

    mode: int = 0o666
    """The permissions of the newly created socket."""

    def __post_init__(self):
        if not self.path:
            raise ValueError("socket path must not be empty")
        object.__setattr__(self, "path", os.path.abspath(self.path))

    async def open_listener(self, backlog: Optional[int] = None) -> Listener:
        """Opens a Trio listener bound to this target."""
        return await open_unix_listener(self.path, mode=self.mode, backlog=backlog)

    def __str__(self) -> str:
        return self.path


ListenTarget = Union[PortTarget, SocketPathTarget]


def _create_port_target(host: Optional[str] = None, port: int = 0) -> PortTarget:
    return PortTarget(port=port, host=host)


create_listen_target = Factory[ListenTarget]()
"""Singleton listen target factory.

Examples::

    create_listen_target("tcp://localhost:8080")
    create_listen_target("tcp://:0")
    create_listen_target("unix:/run/app.sock?mode=384")
"""

create_listen_target.register("tcp", _create_port_target)
create_listen_target.register("unix", SocketPathTarget)
