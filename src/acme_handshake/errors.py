"""ACME errors."""
import typing
from typing import Any
from typing import Mapping
from typing import Optional

# We import acme_handshake.client and acme_handshake.messages only during type
# check to avoid circular dependencies. Type references must be quoted.
if typing.TYPE_CHECKING:
    from acme_handshake import client  # pragma: no cover
    from acme_handshake import messages  # pragma: no cover


class Error(Exception):
    """Generic ACME error."""


class UninitializedClientError(Error):
    """Client used before a successful `.Client.initialize`."""

    def __str__(self) -> str:
        return 'Client is not initialized'


class MissingRegistrationError(Error):
    """Operation requires a registration, but the client has none."""

    def __str__(self) -> str:
        return 'Client is missing registration info'


class SigningError(Error):
    """The signer could not produce a signed request."""


class ProtocolError(Error):
    """Server response violates the protocol.

    Raised when a required piece of a response (initial nonce,
    registration ``Location``, decodable body) is missing. Either the
    server is not compliant, or something between the client and the
    server interferes with the exchange.

    """


class MissingNonce(ProtocolError):
    """Missing nonce error.

    According to the ACME draft an "ACME server MUST include an
    Replay-Nonce header field in each successful response to a POST it
    provides to a client (...)".

    :ivar headers: Mapping of HTTP headers

    """
    def __init__(self, headers: Mapping[str, str], *args: Any) -> None:
        super().__init__(*args)
        self.headers = dict(headers)

    def __str__(self) -> str:
        return ('Missing initial replay-nonce header, headers: {0} '
                '(This may be a service outage)'.format(self.headers))


class ClientError(Error):
    """Network error."""


class NetworkError(ClientError):
    """Request failed before any response was received."""


class ServerError(ClientError):
    """Server answered with an error status.

    :ivar .ProtocolResponse response: Full server response.
    :ivar Exception error: Transport error that flagged the response.
    :ivar .messages.Error problem: Problem document carried by the
        response body, or ``None``.

    """
    default_message = 'Unexpected error'

    def __init__(self, response: 'client.ProtocolResponse',
                 problem: Optional['messages.Error'] = None,
                 message: Optional[str] = None) -> None:
        self.response = response
        self.error = response.error
        self.problem = problem
        self.message = self.default_message if message is None else message
        super().__init__(self.message)

    @property
    def status_code(self) -> int:
        """HTTP status code of the response."""
        return self.response.status_code

    def __str__(self) -> str:
        result = f'{self.message} (HTTP {self.status_code})'
        if self.problem is not None:
            result += f': {self.problem}'
        return result


class ConflictError(ServerError):
    """Error for when the server returns a 409 (Conflict) HTTP status.

    On registration this means the account key is already registered.
    The ``Location`` header of the response, if any, points to the
    existing registration.

    :ivar str location: URI of the existing registration or ``None``.

    """
    default_message = 'Conflict due to previously registered public key'

    def __init__(self, response: 'client.ProtocolResponse',
                 problem: Optional['messages.Error'] = None,
                 message: Optional[str] = None) -> None:
        super().__init__(response, problem, message)
        self.location = response.headers.get('Location')
