"""Package that creates the network listener of a server process.

A server listens either on a TCP port or on a Unix domain socket, optionally
terminating TLS on the accepted connections. `create_server()` removes stale
Unix domain sockets, opens the listener and waits until it is either
listening or has failed to bind, and then returns the listener together with
the address where it can be reached::

    async with open_nursery() as nursery:
        result = await create_server("tcp://localhost:8080", app, nursery=nursery)
        print(result.address)

Listeners have a standard lifecycle. They start from the "closed" state, move
to "preparing" while the socket is being bound, then to "open" when they are
accepting connections. When they are closed, they transition to "closing" and
then back to "closed".
"""

from .address import ensure_address
from .bootstrap import BootstrapResult, create_server, open_server
from .errors import AddressError, NoAddressError, UnknownListenTargetTypeError
from .listener import ListenerState, ServerListener
from .outcome import ListenOutcome, ListenOutcomeState, handle_listener_error
from .reconcile import handle_socket_unlink_error, reconcile_socket_path
from .targets import (
    ListenTarget,
    PortTarget,
    SocketPathTarget,
    create_listen_target,
)
from .transport import (
    PlainTransport,
    TLSMaterial,
    TLSTransport,
    Transport,
    build_transport,
    create_ssl_context,
)

__all__ = (
    "AddressError",
    "BootstrapResult",
    "ListenOutcome",
    "ListenOutcomeState",
    "ListenTarget",
    "ListenerState",
    "NoAddressError",
    "PlainTransport",
    "PortTarget",
    "ServerListener",
    "SocketPathTarget",
    "TLSMaterial",
    "TLSTransport",
    "Transport",
    "UnknownListenTargetTypeError",
    "build_transport",
    "create_listen_target",
    "create_server",
    "create_ssl_context",
    "ensure_address",
    "handle_listener_error",
    "handle_socket_unlink_error",
    "open_server",
    "reconcile_socket_path",
)
