"""Bridge that turns the ``opened`` and ``error`` signals of a single listen
attempt into exactly one outcome.
"""

import logging

from enum import Enum
from traceback import format_exception
from trio import Event
from typing import Callable, Optional

from .listener import ServerListener

__all__ = ("ListenOutcome", "ListenOutcomeState", "handle_listener_error")


log = logging.getLogger(__name__.rpartition(".")[0])


class ListenOutcomeState(Enum):
    PENDING = "PENDING"
    READY = "READY"
    FAILED = "FAILED"


def _format_stack(error: BaseException) -> str:
    lines = format_exception(type(error), error, error.__traceback__)
    return "".join(lines).rstrip()


def handle_listener_error(
    resolved: bool, error: Exception, reject: Callable[[Exception], None]
) -> None:
    """Handles an error emitted by a listener.

    Errors that arrive before the listen attempt was resolved are startup
    errors and are passed to ``reject``. Errors that arrive afterwards are
    operational errors of a running listener and are logged.

    Parameters:
        resolved: whether the listen attempt was already resolved
        error: the error emitted by the listener
        reject: function to call with the error if it is a startup error
    """
    if resolved:
        log.error("http server error: %s %s", error, _format_stack(error))
    else:
        reject(error)


class ListenOutcome:
    """Single-settlement outcome of a listen attempt.

    The outcome starts in the ``PENDING`` state and moves to ``READY`` when
    the listener sends its ``opened`` signal, or to ``FAILED`` when the
    listener sends its ``error`` signal first. Once settled, it never changes
    again; errors emitted by the listener after it became ready are logged.

    Attach the outcome to the listener *before* asking the listener to listen
    so no signal is lost::

        outcome = ListenOutcome()
        outcome.attach(listener)
        listener.listen(target)
        await outcome.wait()
    """

    _error: Optional[Exception]
    _event: Event
    _listener: Optional[ServerListener]
    _resolved: bool
    _state: ListenOutcomeState

    def __init__(self):
        """Constructor."""
        self._error = None
        self._event = Event()
        self._listener = None
        self._resolved = False
        self._state = ListenOutcomeState.PENDING

    @property
    def listener(self) -> Optional[ServerListener]:
        """The listener that the outcome is attached to."""
        return self._listener

    @property
    def state(self) -> ListenOutcomeState:
        """The state of the outcome."""
        return self._state

    def attach(self, listener: ServerListener) -> None:
        """Subscribes to the signals of the given listener.

        The outcome detaches itself automatically when the listener is closed.

        Raises:
            RuntimeError: if the outcome is already attached to a listener
        """
        if self._listener is not None:
            raise RuntimeError("outcome is already attached to a listener")

        self._listener = listener

        # Strong references; nobody else holds on to the outcome once the
        # listener is ready
        listener.opened.connect(self._on_opened, sender=listener, weak=False)
        listener.error.connect(self._on_error, sender=listener, weak=False)
        listener.closed.connect(self._on_closed, sender=listener, weak=False)

    def detach(self) -> None:
        """Unsubscribes from the signals of the listener that the outcome is
        attached to. No-op if the outcome is not attached.
        """
        listener = self._listener
        if listener is None:
            return

        listener.opened.disconnect(self._on_opened)
        listener.error.disconnect(self._on_error)
        listener.closed.disconnect(self._on_closed)

    def done(self) -> bool:
        """Returns whether the outcome is settled."""
        return self._resolved

    def reject(self, error: Exception) -> None:
        """Settles the outcome as failed with the given error. No-op if the
        outcome is already settled.
        """
        if self._resolved:
            return

        self._resolved = True
        self._error = error
        self._state = ListenOutcomeState.FAILED
        self._event.set()

    def resolve(self) -> None:
        """Settles the outcome as ready. No-op if the outcome is already
        settled.
        """
        if self._resolved:
            return

        self._resolved = True
        self._state = ListenOutcomeState.READY
        self._event.set()

    async def wait(self) -> ServerListener:
        """Waits until the outcome is settled.

        Returns:
            the listener if it became ready

        Raises:
            Exception: the original error emitted by the listener if the
                listen attempt failed
        """
        await self._event.wait()
        if self._error is not None:
            raise self._error

        assert self._listener is not None
        return self._listener

    def _on_opened(self, sender: ServerListener) -> None:
        self.resolve()

    def _on_error(self, sender: ServerListener, error: Exception) -> None:
        handle_listener_error(self._resolved, error, self.reject)

    def _on_closed(self, sender: ServerListener) -> None:
        self.detach()
