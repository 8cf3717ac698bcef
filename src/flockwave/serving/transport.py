"""Transports that open plaintext or TLS-terminating listeners for a
listen target.
"""

import os
import ssl

from abc import ABCMeta, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from tempfile import TemporaryDirectory
from typing import Optional, Union

from trio import SSLListener, to_thread
from trio.abc import Listener

from .targets import ListenTarget

__all__ = (
    "PlainTransport",
    "TLSMaterial",
    "TLSTransport",
    "Transport",
    "build_transport",
    "create_ssl_context",
)


@dataclass(frozen=True)
class TLSMaterial:
    """Certificate, private key and optional passphrase of the key, used to
    terminate TLS connections on a listener.
    """

    certificate: bytes
    """The certificate chain in PEM format."""

    key: bytes
    """The private key in PEM format."""

    passphrase: Optional[Union[str, bytes]] = None
    """The passphrase of the private key; ``None`` or empty if the key is not
    encrypted.
    """

    def __post_init__(self):
        if not self.certificate or not self.key:
            raise ValueError("TLS certificate and key must be given together")

    @classmethod
    def from_files(
        cls,
        certificate: Union[str, os.PathLike],
        key: Union[str, os.PathLike],
        passphrase: Optional[Union[str, bytes]] = None,
    ) -> "TLSMaterial":
        """Reads the certificate and the private key from the given files."""
        return cls(
            certificate=Path(certificate).read_bytes(),
            key=Path(key).read_bytes(),
            passphrase=passphrase,
        )

    @classmethod
    def from_options(
        cls,
        certificate: Optional[bytes] = None,
        key: Optional[bytes] = None,
        passphrase: Optional[Union[str, bytes]] = None,
    ) -> Optional["TLSMaterial"]:
        """Creates a TLSMaterial_ from optional configuration values.

        Returns:
            ``None`` if neither the certificate nor the key is given

        Raises:
            ValueError: if only one of the certificate and the key is given
        """
        if certificate is None and key is None:
            return None
        return cls(
            certificate=certificate or b"", key=key or b"", passphrase=passphrase
        )


def create_ssl_context(material: TLSMaterial) -> ssl.SSLContext:
    """Creates a server-side SSL context that uses the given certificate and
    private key.

    The standard library can load certificates and keys from files only, so
    the blobs are written to a private temporary directory that is removed
    immediately after loading.

    Raises:
        ssl.SSLError: if the certificate or the key is invalid, they do not
            match or the passphrase is wrong
    """
    context = ssl.create_default_context(ssl.Purpose.CLIENT_AUTH)
    passphrase = material.passphrase or b""

    with TemporaryDirectory() as tmp_dir:
        cert_file = Path(tmp_dir) / "cert.pem"
        key_file = Path(tmp_dir) / "key.pem"
        cert_file.write_bytes(material.certificate)
        key_file.touch(mode=0o600)
        key_file.write_bytes(material.key)
        context.load_cert_chain(str(cert_file), str(key_file), password=passphrase)

    return context


class Transport(metaclass=ABCMeta):
    """Base class for transports.

    A transport is an async callable that opens a Trio listener for a listen
    target.
    """

    is_secure: bool = False

    @abstractmethod
    async def __call__(
        self, target: ListenTarget, backlog: Optional[int] = None
    ) -> Listener:
        raise NotImplementedError


class PlainTransport(Transport):
    """Transport that accepts plaintext connections."""

    async def __call__(
        self, target: ListenTarget, backlog: Optional[int] = None
    ) -> Listener:
        return await target.open_listener(backlog)


class TLSTransport(Transport):
    """Transport that terminates TLS on the accepted connections.

    The SSL context is created when the listener is opened, so problems with
    the certificate or the key are reported at listen time.
    """

    is_secure = True

    def __init__(self, material: TLSMaterial):
        self._material = material

    @property
    def material(self) -> TLSMaterial:
        return self._material

    async def __call__(
        self, target: ListenTarget, backlog: Optional[int] = None
    ) -> Listener:
        context = await to_thread.run_sync(create_ssl_context, self._material)
        listener = await target.open_listener(backlog)
        return SSLListener(listener, context, https_compatible=True)


def build_transport(tls: Optional[TLSMaterial] = None) -> Transport:
    """Returns a transport that opens plaintext listeners if no TLS material
    is given, or TLS-terminating listeners otherwise.
    """
    return PlainTransport() if tls is None else TLSTransport(tls)
