"""Removal of stale Unix domain socket files left behind by earlier
instances of the server.
"""

import logging
import os

from errno import ENOENT
from trio import to_thread

__all__ = ("handle_socket_unlink_error", "reconcile_socket_path")


log = logging.getLogger(__name__.rpartition(".")[0])


def handle_socket_unlink_error(error: BaseException) -> None:
    """Handles an error that happened while removing a stale socket file.

    A missing file is the normal case and is ignored. Any other error is
    logged with its message, or the error object itself if it has no message.
    """
    if getattr(error, "errno", None) == ENOENT:
        return

    message = str(error)
    log.error(message or error)


async def reconcile_socket_path(path: str) -> None:
    """Removes whatever exists at the given path so a Unix domain socket can
    be bound there.

    Never raises; errors are passed to `handle_socket_unlink_error()` and
    binding the socket is expected to fail on its own if the path is
    unusable.
    """
    try:
        await to_thread.run_sync(os.unlink, path)
    except Exception as ex:
        handle_socket_unlink_error(ex)
