"""Functions that create a listening server for an application on a TCP port
or a Unix domain socket.
"""

import logging

from contextlib import asynccontextmanager
from dataclasses import dataclass
from trio import Nursery, open_nursery
from typing import Any, AsyncIterator, Optional, Union

from .address import ensure_address
from .listener import ConnectionHandler, ServerListener
from .outcome import ListenOutcome
from .reconcile import reconcile_socket_path
from .targets import (
    ListenTarget,
    PortTarget,
    SocketPathTarget,
    create_listen_target,
)
from .transport import TLSMaterial, build_transport

__all__ = ("BootstrapResult", "create_server", "open_server")


log = logging.getLogger(__name__.rpartition(".")[0])


@dataclass(frozen=True)
class BootstrapResult:
    """Result of a successful `create_server()` call."""

    app: Any
    """The application handle that serves the accepted connections."""

    listener: ServerListener
    """The listener; the caller is responsible for closing it."""

    address: str
    """Human-readable URI where the listener can be reached."""


async def create_server(
    target: Union[ListenTarget, str, dict[str, Any]],
    app: ConnectionHandler,
    *,
    nursery: Nursery,
    tls: Optional[TLSMaterial] = None,
    backlog: Optional[int] = None,
) -> BootstrapResult:
    """Creates a listener for the given application and waits until it is
    listening on the given target.

    Stale Unix domain sockets at the target path are removed first. Errors
    during the removal are logged and the listener tries to bind anyway.

    Parameters:
        target: the TCP port or Unix domain socket to listen on, or its
            specification in any of the formats that `create_listen_target()`
            accepts
        app: the application handler that will be called with every accepted
            connection
        nursery: the nursery that will own the task serving the connections
        tls: certificate and private key to use for terminating TLS on the
            accepted connections; ``None`` means plaintext connections
        backlog: the listen backlog, or ``None`` for a good default

    Returns:
        the application, the listening listener and its address

    Raises:
        OSError: the original error if the socket could not be bound
        ssl.SSLError: the original error if the TLS certificate or key
            could not be used
    """
    if not isinstance(target, (PortTarget, SocketPathTarget)):
        target = create_listen_target(target)

    if isinstance(target, SocketPathTarget):
        await reconcile_socket_path(target.path)

    listener = ServerListener(app, nursery=nursery, transport=build_transport(tls))

    outcome = ListenOutcome()
    outcome.attach(listener)
    listener.listen(target, backlog)

    await outcome.wait()

    address = ensure_address(listener)
    log.info("Listening on %s", address)

    return BootstrapResult(app=app, listener=listener, address=address)


@asynccontextmanager
async def open_server(
    target: Union[ListenTarget, str, dict[str, Any]],
    app: ConnectionHandler,
    *,
    tls: Optional[TLSMaterial] = None,
    backlog: Optional[int] = None,
) -> AsyncIterator[BootstrapResult]:
    """Async context manager that creates a listener for the given application
    with `create_server()` and closes it when the context is exited.

    Startup errors and errors raised in the body of the context are
    propagated as they are, not wrapped in an exception group.
    """
    error: Optional[Exception] = None

    async with open_nursery() as nursery:
        try:
            result = await create_server(
                target, app, nursery=nursery, tls=tls, backlog=backlog
            )
        except Exception as ex:
            error = ex
        else:
            try:
                yield result
            except Exception as ex:
                error = ex
            finally:
                await result.listener.close()

    # Raised after the nursery exits, unwrapped
    if error is not None:
        raise error
