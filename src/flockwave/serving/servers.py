"""Low-level functions that open a single Trio listener on a TCP port or on a
Unix domain socket.
"""

import os
import socket as stdlib_socket
import stat

from math import inf
from typing import Optional
from uuid import uuid4

from trio import SocketListener, SocketStream, fail_after, to_thread
from trio.abc import Listener
from trio.socket import from_stdlib_socket

__all__ = ("open_tcp_listener", "open_unix_listener", "UnixSocketListener")


# Same default as the one used by Trio's own open_tcp_listeners()
def _compute_backlog(backlog: Optional[int]) -> int:
    if backlog is None:
        backlog = inf
    return min(backlog, 0xFFFF)


def _create_tcp_socket(
    host: Optional[str], port: int, backlog: int
) -> stdlib_socket.socket:
    """Creates a listening TCP socket bound to the given host and port.

    Exactly one socket is created. When no host is given, the socket is bound
    to all interfaces, using a dual-stack IPv6 socket where the platform
    supports it.
    """
    if not host:
        if stdlib_socket.has_dualstack_ipv6():
            return stdlib_socket.create_server(
                ("::", port),
                family=stdlib_socket.AF_INET6,
                backlog=backlog,
                dualstack_ipv6=True,
            )
        else:
            return stdlib_socket.create_server(("0.0.0.0", port), backlog=backlog)

    family, _, _, _, address = stdlib_socket.getaddrinfo(
        host,
        port,
        type=stdlib_socket.SOCK_STREAM,
        flags=stdlib_socket.AI_PASSIVE,
    )[0]
    return stdlib_socket.create_server(address, family=family, backlog=backlog)


async def open_tcp_listener(
    port: int, *, host: Optional[str] = None, backlog: Optional[int] = None
) -> SocketListener:
    """Creates a single :class:`SocketListener` object that listens on the
    given TCP port.

    Unlike :func:`trio.open_tcp_listeners()`, this function never binds more
    than one socket; when the host name resolves to multiple addresses, the
    first one is used.

    Args:
        port: the port to listen on; zero means an OS-assigned ephemeral port
        host: the host name or IP address to bind to; ``None`` or an empty
            string means all interfaces
        backlog: the listen backlog to use, or ``None`` for a good default

    Raises:
        OSError: if the socket cannot be bound, e.g. because the address is
            already in use or the port is privileged
    """
    sock = await to_thread.run_sync(
        _create_tcp_socket, host, port, _compute_backlog(backlog)
    )
    return SocketListener(from_stdlib_socket(sock))


class UnixSocketListener(Listener[SocketStream]):
    """Specialized SocketListener_ that unlinks the associated socket after
    the listener is closed.
    """

    def __init__(self, socket, path: str, inode: int):
        self._wrapped_listener = SocketListener(from_stdlib_socket(socket))

        self.path = path
        self.inode = inode

    @staticmethod
    def _create(path: str, mode: int, backlog: int) -> "UnixSocketListener":
        try:
            from socket import AF_UNIX
        except ImportError:
            raise RuntimeError(
                "UNIX domain sockets are not supported on this platform"
            ) from None

        if os.path.exists(path) and not stat.S_ISSOCK(os.stat(path).st_mode):
            raise FileExistsError(f"Existing file is not a socket: {path}")

        sock = stdlib_socket.socket(AF_UNIX)
        try:
            # Bind with a restrictive umask to a temporary name first so
            # nobody can connect before the permissions are set
            tmp_path = f"{path}.{uuid4().hex[:8]}"
            old_mask = os.umask(0o777)
            try:
                sock.bind(tmp_path)
            finally:
                os.umask(old_mask)
            try:
                inode = os.stat(tmp_path).st_ino
                os.chmod(tmp_path, mode)  # os.fchmod doesn't work on sockets on MacOS
                sock.listen(backlog)
                os.rename(tmp_path, path)
            except BaseException:
                os.unlink(tmp_path)
                raise
        except BaseException:
            sock.close()
            raise
        return UnixSocketListener(sock, path, inode)

    @staticmethod
    async def create(
        path: str, *, mode: int = 0o666, backlog: Optional[int] = None
    ) -> "UnixSocketListener":
        return await to_thread.run_sync(
            UnixSocketListener._create, path, mode, _compute_backlog(backlog)
        )

    async def accept(self) -> SocketStream:
        return await self._wrapped_listener.accept()

    async def aclose(self) -> None:
        with fail_after(1) as cleanup:
            cleanup.shield = True
            await self._wrapped_listener.aclose()
            self._remove_socket_file()

    @property
    def socket(self):
        return self._wrapped_listener.socket

    def _remove_socket_file(self) -> None:
        """Removes the socket file unless another process has replaced it
        with its own socket in the meanwhile.
        """
        try:
            if self.inode == os.stat(self.path).st_ino:
                os.unlink(self.path)
        except OSError:
            # Already removed or replaced by someone else
            pass


async def open_unix_listener(
    path: str, *, mode: int = 0o666, backlog: Optional[int] = None
) -> UnixSocketListener:
    """Creates a :class:`UnixSocketListener` object that listens on a Unix
    domain socket.

    Args:
        path: the path to listen on. It must not exist or it must already be
            a socket; the old socket is replaced atomically. The socket is
            bound to a temporary name in the same directory first, which is
            9 characters longer than the path, so the path must be at least
            that much shorter than the platform limit for socket addresses
            (usually 108 bytes on Linux and 104 on macOS).
        mode: the permissions of the Unix domain socket
        backlog: the listen backlog to use, or ``None`` for a good default

    Raises:
        FileExistsError: if the path exists and is not a socket
        OSError: if the socket cannot be bound for any other reason
    """
    return await UnixSocketListener.create(path, mode=mode, backlog=backlog)
