"""Factory object that allows listen targets to be constructed from a simple
string or dict representation.

See :meth:`Factory.create()`_ for more information about the two
specification formats.
"""

from __future__ import annotations

from functools import partial
from typing import Any, Callable, Generic, TypeVar, Union
from urllib.parse import parse_qs, urlparse

from .errors import UnknownListenTargetTypeError

__all__ = ("Factory",)

T = TypeVar("T")


class Factory(Generic[T]):
    """Registry-based factory that creates objects from a URL-like string
    representation or a simple dict representation.
    """

    _registry: dict[str, Callable[..., T]]
    """Dictionary mapping type names to factory functions."""

    def __init__(self):
        """Constructor."""
        self._registry = {}

    @staticmethod
    def _url_specification_to_dict(specification: str) -> dict[str, Any]:
        """Converts a URL-styled specification to a dict-styled
        specification.

        Parameters:
            specification: the URL-styled specification to convert

        Returns:
            dict: the dict-styled specification
        """
        parts = urlparse(specification, allow_fragments=False)
        if not parts.scheme:
            # No ":" in specification; the entire string is the type
            return {"type": specification}

        # Split the netloc into hostname and port if needed
        netloc = parts.netloc.rpartition("@")[2]
        if netloc.endswith("]") or ":" not in netloc:
            host, port = netloc, ""
        else:
            host, _, port = netloc.rpartition(":")

        # IPv6 literals are written in brackets in URLs
        if host.startswith("[") and host.endswith("]"):
            host = host[1:-1]

        raw_parameters = parse_qs(parts.query) if parts.query else {}
        parameters: dict[str, Union[int, str]] = {}
        for k, v in raw_parameters.items():
            if len(v) > 1:
                raise ValueError("repeated parameters are not supported")
            v = v[0]
            try:
                v = int(v)
            except ValueError:
                pass
            parameters[k] = v

        result: dict[str, Any] = {"type": parts.scheme, "parameters": parameters}
        if host:
            result["host"] = host
        if port:
            result["port"] = int(port)
        if parts.path:
            result["path"] = parts.path

        return result

    def create(self, specification: Union[str, dict[str, Any]]) -> T:
        """Creates an object from its specification. The specification may be
        written in one of two forms: a single URL-style string or a dictionary
        with prescribed keys and values.

        When the specification is a string, it must follow the following
        URL-like format::

            scheme:[//host:port]/path?param1=value1&param2=value2&...

        where ``scheme`` defines the registered name of the class (e.g.,
        ``tcp`` for TCP ports or ``unix`` for Unix domain sockets), ``path``
        defines the filesystem path where it makes sense, ``host`` and ``port``
        define the address to bind to and the remaining parameters are passed
        as additional keyword arguments. For instance, assuming that the
        ``unix`` scheme resolves to the SocketPathTarget_ class, the
        following URL::

            unix:/run/app.sock?mode=384

        is resolved to the following call::

            SocketPathTarget(path="/run/app.sock", mode=384)

        Parameter values that contain digits and positive/negative signs only
        are cast to an integer.

        The other possible specification is a dictionary like the one below::

            {
                "type": "tcp",
                "host": "localhost",
                "port": 8080,
                "parameters": {}
            }

        ``host``, ``port``, ``path`` and ``parameters`` are all optional. No
        automatic type conversion is performed on the members of the
        ``parameters`` dict.

        Raises:
            UnknownListenTargetTypeError: if the type is not known to the
                factory
        """
        if isinstance(specification, str):
            specification = self._url_specification_to_dict(specification)

        target_type = specification["type"]
        func = self._registry.get(target_type)
        if func is None:
            raise UnknownListenTargetTypeError(target_type)

        parameters = {}
        for name in ("host", "port", "path"):
            if name in specification:
                parameters[name] = specification[name]
        parameters.update(specification.get("parameters", {}))

        return func(**parameters)

    def register(self, name: str, klass=None):
        """Registers the given class for this factory with the given name, or
        returns a decorator that will register an arbitrary class with the given
        name (if no class is specified).
        """
        if klass is None:
            return partial(self.register, name)
        else:
            self._registry[name] = klass
            return klass

    def unregister(self, name: str) -> None:
        """Unregisters the class identified with the given name from this
        factory.
        """
        del self._registry[name]

    def __call__(self, *args, **kwds):
        """Forwards the invocation to the `create()`_ method."""
        return self.create(*args, **kwds)
