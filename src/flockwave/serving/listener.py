"""Stateful server listener that accepts incoming connections on a listen
target and passes them to an application handler.
"""

import logging

from blinker import Signal
from enum import Enum
from trio import CancelScope, Nursery, serve_listeners
from trio.abc import Listener, Stream
from trio_util import AsyncBool
from typing import Any, Awaitable, Callable, Optional

from .targets import ListenTarget
from .transport import Transport, build_transport

__all__ = ("ListenerState", "ServerListener")


log = logging.getLogger(__name__.rpartition(".")[0])


class ListenerState(Enum):
    CLOSED = "CLOSED"
    PREPARING = "PREPARING"
    OPEN = "OPEN"
    CLOSING = "CLOSING"

    @property
    def is_transitioning(self) -> bool:
        return self in (ListenerState.PREPARING, ListenerState.CLOSING)


ConnectionHandler = Callable[[Stream], Awaitable[Any]]


class ServerListener:
    """Listener that accepts incoming connections on a TCP port or a Unix
    domain socket and calls an application handler for each of them.

    Listener objects may be in one of the following four states:

        - ``CLOSED``: the listener is closed and not listening for incoming
          connections

        - ``PREPARING``: the listener is binding its socket

        - ``OPEN``: the listener is open and is actively listening for
          incoming connections

        - ``CLOSING``: the listener is being closed

    Starting to listen is asynchronous: `listen()` returns immediately and the
    outcome is reported later with signals. ``opened`` is sent when the
    listener enters the ``OPEN`` state. ``error`` is sent when binding the
    socket fails (while the listener is still ``PREPARING``) and also for
    every error that happens after the listener became open, e.g. when the
    application handler raises an exception. ``closed`` is sent when the
    listener returns to the ``CLOSED`` state. ``state_changed`` is sent for
    every state change.

    The listener needs a Trio nursery that owns the task serving the incoming
    connections. The nursery has to be provided to the constructor or, after
    construction, in the `nursery` property.
    """

    opened = Signal(
        doc="Signal sent after the listener started listening for incoming connections."
    )
    closed = Signal(
        doc="Signal sent after the listener stopped listening for incoming connections."
    )
    error = Signal(
        doc="""\
        Signal sent when the listener fails to start listening or when an
        error happens while it is serving connections.

        Parameters:
            error: the exception that was raised
        """
    )
    state_changed = Signal(
        doc="""\
        Signal sent whenever the state of the listener changes.

        Parameters:
            new_state: the new state
            old_state: the old state
        """
    )

    handler: Optional[ConnectionHandler]
    nursery: Optional[Nursery]

    _cancel_scope: Optional[CancelScope]
    _listener: Optional[Listener]
    _transport: Transport

    def __init__(
        self,
        handler: Optional[ConnectionHandler] = None,
        *,
        nursery: Optional[Nursery] = None,
        transport: Optional[Transport] = None,
    ):
        """Constructor.

        Parameters:
            handler: the application handler that will be called for every
                connection that was accepted
            nursery: the Trio nursery that will be the owner of the listener
                task spawned by this instance
            transport: the transport that opens the underlying Trio listener;
                defaults to a plaintext transport
        """
        self.handler = handler
        self.nursery = nursery

        self._transport = transport or build_transport()
        self._state = ListenerState.CLOSED

        self._is_open = AsyncBool(False)
        self._is_closed = AsyncBool(True)

        self._cancel_scope = None
        self._listener = None

    @property
    def address(self):
        """The address of the bound socket as reported by the operating
        system, or ``None`` if the listener is not bound.

        The address is a host-port tuple for TCP sockets and a path for Unix
        domain sockets.
        """
        listener = self._listener
        if listener is None:
            return None

        if hasattr(listener, "transport_listener"):
            listener = listener.transport_listener

        # Unix domain sockets are bound to a temporary name and then renamed
        path = getattr(listener, "path", None)
        if path is not None:
            return path

        sock = getattr(listener, "socket", None)
        return sock.getsockname() if sock is not None else None

    @property
    def is_closed(self) -> bool:
        """Returns whether the listener is closed (and not closing and
        not preparing)."""
        return self._state is ListenerState.CLOSED

    @property
    def is_open(self) -> bool:
        """Returns whether the listener is open."""
        return self._state is ListenerState.OPEN

    @property
    def is_secure(self) -> bool:
        """Returns whether the listener terminates TLS on the accepted
        connections.
        """
        return self._transport.is_secure

    @property
    def is_transitioning(self) -> bool:
        """Returns whether the listener is currently transitioning."""
        return self._state.is_transitioning

    @property
    def listener(self) -> Optional[Listener]:
        """The underlying Trio listener while the listener is open."""
        return self._listener

    @property
    def state(self) -> ListenerState:
        """The state of the listener."""
        return self._state

    def listen(self, target: ListenTarget, backlog: Optional[int] = None) -> None:
        """Starts listening on the given target.

        This function returns immediately. Connect to the ``opened`` and
        ``error`` signals before calling it to learn whether the listener
        could be opened.

        Parameters:
            target: the TCP port or Unix domain socket to listen on
            backlog: the listen backlog, or ``None`` for a good default

        Raises:
            RuntimeError: if the listener has no nursery or it is not closed
        """
        if self.nursery is None:
            raise RuntimeError(
                "You must assign a nursery to a {!r} before opening it".format(
                    self.__class__
                )
            )

        if self._state is not ListenerState.CLOSED:
            raise RuntimeError("listener is already listening")

        self._cancel_scope = CancelScope()
        self._set_state(ListenerState.PREPARING)

        self.nursery.start_soon(self._run, target, backlog)

    async def close(self) -> None:
        """Closes the listener. No-op if the listener is closed already."""
        if self._state is ListenerState.CLOSED:
            return

        if self._state is not ListenerState.CLOSING:
            self._set_state(ListenerState.CLOSING)
            if self._cancel_scope:
                self._cancel_scope.cancel()

        await self.wait_until_closed()

    async def wait_until_open(self) -> None:
        """Blocks the execution until the listener becomes open."""
        await self._is_open.wait_value(True)

    async def wait_until_closed(self) -> None:
        """Blocks the execution until the listener becomes closed."""
        await self._is_closed.wait_value(True)

    def _emit_error(self, ex: Exception) -> None:
        """Sends the given exception on the ``error`` signal, or logs it if
        nobody is interested in errors of this listener.
        """
        if not self.error.send(self, error=ex):
            log.error("Unhandled error in server listener", exc_info=ex)

    async def _handle_connection(self, stream: Stream) -> None:
        if self.handler is None:
            await stream.aclose()
            return

        try:
            await self.handler(stream)
        except Exception as ex:
            self._emit_error(ex)

    async def _run(self, target: ListenTarget, backlog: Optional[int]) -> None:
        """Executes the task that binds the socket and serves the incoming
        connections until the listener is closed.
        """
        assert self._cancel_scope is not None

        try:
            with self._cancel_scope:
                try:
                    self._listener = await self._transport(target, backlog)
                except Exception as ex:
                    self._emit_error(ex)
                    return

                if self._state is not ListenerState.PREPARING:
                    # close() was called while the socket was being bound
                    return

                self._set_state(ListenerState.OPEN)

                try:
                    await serve_listeners(self._handle_connection, [self._listener])
                except Exception as ex:
                    self._emit_error(ex)
        finally:
            if self._listener is not None:
                with CancelScope(shield=True):
                    await self._listener.aclose()
                self._listener = None

            self._cancel_scope = None
            self._set_state(ListenerState.CLOSED)

    def _set_state(self, new_state: ListenerState) -> None:
        """Sets the state of the listener to a new value and sends the
        appropriate signals.
        """
        old_state = self._state
        if new_state == old_state:
            return

        self._state = new_state

        self.state_changed.send(self, old_state=old_state, new_state=new_state)

        if not self._is_open.value and new_state is ListenerState.OPEN:
            self._is_open.value = True
            self.opened.send(self)

        if not self._is_closed.value and new_state is ListenerState.CLOSED:
            self._is_closed.value = True
            self.closed.send(self)

        if self._is_open.value and new_state is not ListenerState.OPEN:
            self._is_open.value = False

        if self._is_closed.value and new_state is not ListenerState.CLOSED:
            self._is_closed.value = False

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_value, traceback):
        await self.close()
