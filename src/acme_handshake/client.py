"""ACME client API."""
import http.client as http_client
import json
import logging
import re
import threading
from types import TracebackType
from typing import Any
from typing import Dict
from typing import List
from typing import Mapping
from typing import Optional
from typing import Sequence
from typing import Type
from urllib.parse import urljoin
from urllib.parse import urlsplit

import josepy as jose
import requests
from requests.adapters import HTTPAdapter
from requests.structures import CaseInsensitiveDict

from acme_handshake import errors
from acme_handshake import interfaces
from acme_handshake import jws
from acme_handshake import messages
from acme_handshake import nonce
from acme_handshake import util

logger = logging.getLogger(__name__)

DEFAULT_NETWORK_TIMEOUT = 45

DEFAULT_USER_AGENT = 'acme-handshake-python'

JSON_CONTENT_TYPE = 'application/json'


class ProtocolResponse:
    """Normalized HTTP response.

    :ivar int status_code: HTTP status code.
    :ivar headers: Response headers (case-insensitive mapping; repeated
        headers are joined with commas).
    :ivar bytes content: Raw response body.
    :ivar Exception error: Error that flagged this response as failed,
        e.g. `requests.HTTPError` for 4xx and 5xx statuses.

    """
    def __init__(self, status_code: int, headers: Optional[Mapping[str, str]] = None,
                 content: bytes = b'', error: Optional[Exception] = None) -> None:
        self.status_code = status_code
        self.headers: CaseInsensitiveDict = CaseInsensitiveDict(headers or {})
        self.content = content
        self.error = error

    @classmethod
    def from_requests(cls, response: requests.Response) -> 'ProtocolResponse':
        """Capture a `requests.Response`."""
        error: Optional[Exception] = None
        try:
            response.raise_for_status()
        except requests.exceptions.HTTPError as http_error:
            error = http_error
        return cls(response.status_code, response.headers, response.content, error)

    @property
    def is_error(self) -> bool:
        """Whether the exchange failed."""
        return self.error is not None or self.status_code >= 400

    @property
    def text(self) -> str:
        """Body decoded as UTF-8."""
        return self.content.decode('utf-8', 'replace')

    def json(self) -> Any:
        """Body decoded as JSON.

        :raises ValueError: if the body is not valid JSON.

        """
        return json.loads(self.text)

    def header_values(self, name: str) -> List[str]:
        """All values of header ``name``."""
        return util.split_header_values(self.headers.get(name))

    def __repr__(self) -> str:
        return f'<{self.__class__.__name__} [{self.status_code}]>'


class ClientNetwork(interfaces.Transport):
    """Wrapper around requests that captures responses.

    Also adds user agent, and handles Content-Type.

    :param str user_agent: String to send as User-Agent header.
    :param int timeout: Timeout for requests.
    """
    def __init__(self, user_agent: str = DEFAULT_USER_AGENT,
                 timeout: int = DEFAULT_NETWORK_TIMEOUT) -> None:
        self.user_agent = user_agent
        self.session = requests.Session()
        self._default_timeout = timeout
        adapter = HTTPAdapter()

        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)

    def __del__(self) -> None:
        # Try to close the session, but don't show exceptions to the
        # user if the call to close() fails.
        try:
            self.session.close()
        except Exception:  # pylint: disable=broad-except
            pass

    def close(self) -> None:
        self.session.close()

    def _send_request(self, method: str, url: str, *args: Any, **kwargs: Any) -> ProtocolResponse:
        """Send HTTP request.

        Logs request and response (with headers). For allowed parameters
        please see `requests.request`.

        :param str method: method for the new `requests.Request` object
        :param str url: URL for the new `requests.Request` object

        :raises .NetworkError: if no response was received

        :returns: HTTP Response
        :rtype: `.ProtocolResponse`

        """
        if method == "POST":
            logger.debug('Sending POST request to %s:\n%s',
                         url, kwargs['data'])
        else:
            logger.debug('Sending %s request to %s.', method, url)
        kwargs.setdefault('headers', {})
        kwargs['headers'].setdefault('User-Agent', self.user_agent)
        kwargs.setdefault('timeout', self._default_timeout)
        try:
            response = self.session.request(method, url, *args, **kwargs)
        except requests.exceptions.RequestException as error:
            # The requests library emits exceptions with a lot of extra text,
            # e.g. "HTTPSConnectionPool(host='example.com', port=443): Max
            # retries exceeded with url: /acme/new-reg (Caused by ...
            # [Errno 111] Connection refused'))". Keep the readable part.
            err_regex = r".*host='(\S*)'.*Max retries exceeded with url\: (\/[\w\-/]*).*(\[Errno \d+\])([A-Za-z ]*)"
            match = re.match(err_regex, str(error))
            if match is None:
                raise errors.NetworkError(error) from error
            host, path, _err_no, err_msg = match.groups()
            raise errors.NetworkError(f"Requesting {host}{path}:{err_msg}") from error

        # We set response.encoding so response.text knows the response is
        # UTF-8 encoded instead of trying to guess the encoding.
        response.encoding = "utf-8"
        logger.debug('Received response:\nHTTP %d\n%s\n\n%s',
                     response.status_code,
                     "\n".join("{0}: {1}".format(k, v)
                               for k, v in response.headers.items()),
                     response.text)
        return ProtocolResponse.from_requests(response)

    def get(self, url: str) -> ProtocolResponse:
        """Send GET request."""
        return self._send_request('GET', url)

    def post(self, url: str, data: bytes,
             content_type: str = JSON_CONTENT_TYPE) -> ProtocolResponse:
        """Send POST request."""
        return self._send_request('POST', url, data=data,
                                  headers={'Content-Type': content_type})


# Per-operation interpretation of error statuses. Any error status not
# listed maps to `errors.ServerError`.
REGISTRATION_ERRORS: Dict[int, Type[errors.ServerError]] = {
    http_client.CONFLICT: errors.ConflictError,
}
AUTHORIZATION_ERRORS: Dict[int, Type[errors.ServerError]] = {}
DIRECTORY_ERRORS: Dict[int, Type[errors.ServerError]] = {}


class Client:
    """ACME client for the registration and authorization handshake.

    The client owns the replay-nonce state of one session with one
    server, and at most one account (`registration`). Operations are
    blocking and serialized: a lock makes sure only one signed request is
    in flight at a time, since each request consumes the current nonce.

    Typical use::

        client = Client('https://acme.example.com/', jws.JWKSigner(key))
        client.initialize()
        client.register(['mailto:admin@example.com'])
        client.agree_to_tos()
        authzr = client.authorize_domain('example.com')

    :ivar str root_url: Base URL of the ACME server.
    :ivar .interfaces.Signer signer: Account key signer.
    :ivar .interfaces.Transport net: Client network.
    :ivar .NonceTracker nonces: Replay nonce state.
    :ivar .RegistrationResource registration: Current account, if any.

    """
    ROOT_PATH = '/'
    DIRECTORY_PATH = '/acme/directory'
    NEW_REG_PATH = '/acme/new-reg'
    NEW_AUTHZ_PATH = '/acme/new-authz'

    def __init__(self, root_url: str, signer: interfaces.Signer,
                 net: Optional[interfaces.Transport] = None) -> None:
        self.root_url = root_url
        self.signer = signer
        self.net = ClientNetwork() if net is None else net
        self.nonces = nonce.NonceTracker()
        self.registration: Optional[messages.RegistrationResource] = None
        self._request_signer = jws.RequestSigner(signer)
        self._initialized = False
        self._lock = threading.RLock()

    def __enter__(self) -> 'Client':
        return self

    def __exit__(self, exc_type: Optional[Type[BaseException]],
                 exc_value: Optional[BaseException],
                 traceback: Optional[TracebackType]) -> None:
        self.close()

    @property
    def initialized(self) -> bool:
        """Whether `initialize` succeeded."""
        return self._initialized

    def initialize(self) -> None:
        """Fetch the initial replay nonce from the server root.

        :raises .MissingNonce: if the response carries no nonce.

        """
        with self._lock:
            self._fetch_nonce()
            self._initialized = True

    def close(self) -> None:
        """Close the transport and return to the uninitialized state."""
        with self._lock:
            self.net.close()
            self.nonces.clear()
            self._initialized = False

    def get_directory(self) -> messages.Directory:
        """Retrieve the server directory.

        :rtype: `.messages.Directory`

        """
        with self._lock:
            self._assert_initialized()
            response = self.net.get(self._url(self.DIRECTORY_PATH))
            self.nonces.update(response.headers)
            self._check_response(response, DIRECTORY_ERRORS)
            try:
                return messages.Directory.from_json(self._json_body(response))
            except jose.DeserializationError as error:
                raise errors.ProtocolError(f'Malformed directory: {error}') from error

    def register(self, contacts: Sequence[str] = ()) -> messages.RegistrationResource:
        """Register a new account for the signer's key.

        :param contacts: Contact URIs, e.g. ``mailto:admin@example.com``.

        :raises .ConflictError: if the key is already registered.
        :raises .ServerError: on any other error status.
        :raises .ProtocolError: if the server does not return the
            registration URI.

        :returns: Registration Resource, also stored as `registration`.
        :rtype: `.RegistrationResource`

        """
        with self._lock:
            self._assert_initialized()
            new_reg = messages.NewRegistration(contact=tuple(contacts))
            response = self._post(self._url(self.NEW_REG_PATH), new_reg)
            self._check_response(response, REGISTRATION_ERRORS)

            uri = response.headers.get('Location')
            if not uri:
                raise errors.ProtocolError(
                    'server did not provide a registration URI in the response')
            self.registration = self._regr_from_response(response, uri)
            return self.registration

    def update_registration(self, use_root_url: bool = False, agree_to_tos: bool = False,
                            contacts: Optional[Sequence[str]] = None
                            ) -> messages.RegistrationResource:
        """Update the current registration.

        :param bool use_root_url: Send the update to the registration
            URI's path on `root_url` instead of the stored URI, for
            servers that moved to another host.
        :param bool agree_to_tos: Agree to the terms of service linked
            from the last registration response.
        :param contacts: New contact URIs. ``None`` keeps the current
            ones, an empty sequence removes them.

        :returns: Updated Registration Resource, also stored as
            `registration`.
        :rtype: `.RegistrationResource`

        """
        with self._lock:
            self._assert_initialized()
            regr = self._assert_registration()

            kwargs: Dict[str, Any] = {}
            if contacts is not None:
                kwargs['contact'] = tuple(contacts)
            if agree_to_tos and regr.terms_of_service and regr.terms_of_service.strip():
                kwargs['agreement'] = regr.terms_of_service
            update = messages.UpdateRegistration(**kwargs)

            url = regr.uri
            if use_root_url:
                url = self._url(_path_and_query(regr.uri))

            response = self._post(url, update)
            self._check_response(response, REGISTRATION_ERRORS)
            # Servers do not necessarily send Location on update; the
            # registration URI never changes.
            self.registration = self._regr_from_response(response, regr.uri)
            return self.registration

    def agree_to_tos(self) -> messages.RegistrationResource:
        """Agree to the terms of service of the current registration."""
        return self.update_registration(agree_to_tos=True)

    def authorize_domain(self, domain: str) -> messages.AuthorizationResource:
        """Start authorization of a domain name.

        :param str domain: Domain name to be challenged.

        :raises .ServerError: on any error status.

        :returns: Authorization Resource with the offered challenges.
        :rtype: `.AuthorizationResource`

        """
        with self._lock:
            self._assert_initialized()
            self._assert_registration()
            new_authz = messages.NewAuthorization(identifier=messages.Identifier(
                typ=messages.IDENTIFIER_FQDN, value=domain))
            response = self._post(self._url(self.NEW_AUTHZ_PATH), new_authz)
            self._check_response(response, AUTHORIZATION_ERRORS)
            try:
                body = messages.Authorization.from_json(self._json_body(response))
            except jose.DeserializationError as error:
                raise errors.ProtocolError(f'Malformed authorization: {error}') from error
            return messages.AuthorizationResource(
                body=body, uri=response.headers.get('Location'))

    def _url(self, path: str) -> str:
        return urljoin(self.root_url, path)

    def _assert_initialized(self) -> None:
        if not self._initialized:
            raise errors.UninitializedClientError()

    def _assert_registration(self) -> messages.RegistrationResource:
        if self.registration is None:
            raise errors.MissingRegistrationError()
        return self.registration

    def _fetch_nonce(self) -> str:
        response = self.net.get(self._url(self.ROOT_PATH))
        fresh = self.nonces.update(response.headers)
        if fresh is None:
            raise errors.MissingNonce(response.headers)
        return fresh

    def _next_nonce(self) -> str:
        current = self.nonces.take()
        if current is None:
            # The previous response did not carry a nonce.
            logger.debug('Requesting fresh nonce')
            current = self._fetch_nonce()
            self.nonces.take()
        return current

    def _post(self, url: str, obj: jose.JSONDeSerializable) -> ProtocolResponse:
        """Sign ``obj`` with the next nonce and POST it to ``url``.

        The nonce tracker is updated from the response whatever its
        status.

        """
        data = self._request_signer.sign(obj, self._next_nonce())
        response = self.net.post(url, data.json_dumps(indent=2).encode(),
                                 content_type=JSON_CONTENT_TYPE)
        self.nonces.update(response.headers)
        return response

    @classmethod
    def _check_response(cls, response: ProtocolResponse,
                        error_statuses: Mapping[int, Type[errors.ServerError]]) -> None:
        """Raise the error mapped to the status of a failed response."""
        if not response.is_error:
            return
        error_cls = error_statuses.get(response.status_code, errors.ServerError)
        raise error_cls(response, cls._problem(response)) from response.error

    @classmethod
    def _problem(cls, response: ProtocolResponse) -> Optional[messages.Error]:
        try:
            jobj = response.json()
            if isinstance(jobj, dict):
                return messages.Error.from_json(jobj)
        except (ValueError, jose.DeserializationError):
            pass
        logger.debug('Error response does not carry a problem document')
        return None

    @classmethod
    def _json_body(cls, response: ProtocolResponse) -> Any:
        try:
            jobj = response.json()
        except ValueError as error:
            raise errors.ProtocolError(f'Response body is not JSON: {error}') from error
        if not isinstance(jobj, dict):
            raise errors.ProtocolError('Response body is not a JSON object')
        return jobj

    def _regr_from_response(self, response: ProtocolResponse,
                            uri: str) -> messages.RegistrationResource:
        links = response.header_values('Link')
        try:
            body = messages.Registration.from_json(self._json_body(response))
        except jose.DeserializationError as error:
            raise errors.ProtocolError(f'Malformed registration: {error}') from error
        return messages.RegistrationResource(
            body=body.update(key=self.signer.public_jwk()),
            uri=uri,
            links=tuple(links),
            terms_of_service=util.terms_of_service_link(links))


def _path_and_query(uri: str) -> str:
    parts = urlsplit(uri)
    path = parts.path or '/'
    if parts.query:
        path += '?' + parts.query
    return path
