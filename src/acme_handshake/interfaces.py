"""ACME interfaces."""
import abc
import typing

import josepy as jose

if typing.TYPE_CHECKING:
    from acme_handshake import client  # pragma: no cover


class Signer(metaclass=abc.ABCMeta):
    """Signing capability used to authenticate requests.

    Implementations hold (or have access to) the account private key.
    The protocol code only relies on the three members below, so keys
    may live in memory, in an HSM or in a remote key vault.

    """

    @property
    @abc.abstractmethod
    def alg(self) -> str:
        """JWS algorithm identifier, e.g. ``"RS256"``."""

    @abc.abstractmethod
    def sign(self, msg: bytes) -> bytes:
        """Sign ``msg`` and return the raw signature."""

    @abc.abstractmethod
    def public_jwk(self) -> jose.JWK:
        """Public key as a JSON Web Key."""


class Transport(metaclass=abc.ABCMeta):
    """HTTP transport capability.

    Responses with an error status are returned, not raised: the
    returned `.ProtocolResponse` has its ``error`` set instead. Only
    failures that produced no response at all are raised.

    """

    @abc.abstractmethod
    def get(self, url: str) -> 'client.ProtocolResponse':
        """Send GET request."""

    @abc.abstractmethod
    def post(self, url: str, data: bytes,
             content_type: str) -> 'client.ProtocolResponse':
        """Send POST request with ``data`` as body."""

    def close(self) -> None:
        """Release resources held by the transport."""
