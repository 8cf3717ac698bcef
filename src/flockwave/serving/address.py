"""Formatting of the address where a listener can be reached."""

from .errors import NoAddressError

__all__ = ("ensure_address",)


def ensure_address(listener) -> str:
    """Returns a human-readable URI describing where the given listener can
    be reached.

    String addresses (e.g., Unix domain socket paths) are prefixed with
    ``http://`` unless they already contain a scheme. Host-port pairs are
    formatted as ``http://<host>:<port>`` with the host exactly as reported
    by the operating system; e.g., a dual-stack socket bound to all
    interfaces yields ``http://:::8080``.

    Parameters:
        listener: the listener whose address is to be formatted; it must have
            an ``address`` property that returns the name of the underlying
            socket or ``None`` if it is not bound

    Raises:
        NoAddressError: if the listener is not bound to any address
    """
    address = listener.address
    if not address:
        raise NoAddressError()

    if isinstance(address, str):
        return address if "://" in address else f"http://{address}"

    host, port = address[:2]
    return f"http://{host}:{port}"
