"""ACME protocol messages."""
import datetime
from collections.abc import Hashable
from typing import Any
from typing import Dict
from typing import Mapping
from typing import Optional
from typing import Tuple

import josepy as jose

from acme_handshake import errors
from acme_handshake import fields

ERROR_PREFIX = "urn:acme:error:"

ERROR_CODES = {
    'badCSR': 'The CSR is unacceptable (e.g., due to a short key)',
    'badNonce': 'The client sent an unacceptable anti-replay nonce',
    'connection': ('The server could not connect to the client to verify the'
                   ' domain'),
    'dnssec': 'The server could not validate a DNSSEC signed domain',
    'invalidEmail': 'The provided email for a registration was invalid',
    'malformed': 'The request message was malformed',
    'rateLimited': 'There were too many requests of a given type',
    'serverInternal': 'The server experienced an internal error',
    'tls': 'The server experienced a TLS error during domain verification',
    'unauthorized': 'The client lacks sufficient authorization',
    'unknownHost': 'The server could not resolve a domain name',
}


class Error(jose.JSONObjectWithFields, errors.Error):
    """Problem document carried by an error response.

    https://tools.ietf.org/html/draft-ietf-appsawg-http-problem-00

    :ivar str typ: Problem type URI, ``urn:acme:error:<code>`` for ACME
        errors.
    :ivar str title:
    :ivar str detail: Human readable explanation from the server.

    """
    typ: str = jose.field('type', omitempty=True, default='about:blank')
    title: str = jose.field('title', omitempty=True)
    detail: str = jose.field('detail', omitempty=True)

    @property
    def code(self) -> Optional[str]:
        """ACME error code (e.g. ``badNonce``) or ``None`` for other types."""
        if not str(self.typ).startswith(ERROR_PREFIX):
            return None
        code = self.typ[len(ERROR_PREFIX):]
        return code if code in ERROR_CODES else None

    @property
    def description(self) -> Optional[str]:
        """Canned description of the ACME error code, if known."""
        code = self.code
        return None if code is None else ERROR_CODES[code]

    def __str__(self) -> str:
        return b' :: '.join(
            part.encode('ascii', 'backslashreplace') for part in
            (self.typ, self.description, self.detail, self.title)
            if part is not None).decode()


class _Constant(jose.JSONDeSerializable, Hashable):
    """ACME constant."""
    __slots__ = ('name',)
    POSSIBLE_NAMES: Dict[str, '_Constant'] = NotImplemented

    def __init__(self, name: str) -> None:
        super().__init__()
        self.POSSIBLE_NAMES[name] = self  # pylint: disable=unsupported-assignment-operation
        self.name = name

    def to_partial_json(self) -> str:
        return self.name

    @classmethod
    def from_json(cls, jobj: str) -> '_Constant':
        if jobj not in cls.POSSIBLE_NAMES:  # pylint: disable=unsupported-membership-test
            raise jose.DeserializationError(f'{cls.__name__} not recognized')
        return cls.POSSIBLE_NAMES[jobj]

    def __repr__(self) -> str:
        return f'{self.__class__.__name__}({self.name})'

    def __eq__(self, other: Any) -> bool:
        return isinstance(other, type(self)) and other.name == self.name

    def __hash__(self) -> int:
        return hash((self.__class__, self.name))


class Status(_Constant):
    """ACME "status" field."""
    POSSIBLE_NAMES: Dict[str, _Constant] = {}


STATUS_UNKNOWN = Status('unknown')
STATUS_PENDING = Status('pending')
STATUS_PROCESSING = Status('processing')
STATUS_VALID = Status('valid')
STATUS_INVALID = Status('invalid')
STATUS_REVOKED = Status('revoked')


class IdentifierType(_Constant):
    """ACME identifier type."""
    POSSIBLE_NAMES: Dict[str, _Constant] = {}


IDENTIFIER_FQDN = IdentifierType('dns')  # IdentifierDNS in Boulder


class Identifier(jose.JSONObjectWithFields):
    """ACME identifier.

    :ivar IdentifierType typ:
    :ivar str value:

    """
    typ: IdentifierType = jose.field('type', decoder=IdentifierType.from_json)
    value: str = jose.field('value')


class Directory(jose.JSONDeSerializable):
    """Server directory.

    Maps resource types (``"new-reg"``, ``"new-authz"``, ...) to their
    URIs. Entries can be looked up by type or as attributes, with
    dashes spelled as underscores (``directory.new_reg``).
    """

    class Meta(jose.JSONObjectWithFields):
        """Directory Meta."""
        terms_of_service: str = jose.field('terms-of-service', omitempty=True)
        website: str = jose.field('website', omitempty=True)
        caa_identities: Tuple[str, ...] = jose.field('caa-identities', omitempty=True)

    def __init__(self, jobj: Mapping[str, Any]) -> None:
        self._jobj = dict(jobj)

    def __getattr__(self, name: str) -> Any:
        try:
            return self[name.replace('_', '-')]
        except KeyError as error:
            raise AttributeError(str(error))

    def __getitem__(self, name: str) -> Any:
        try:
            return self._jobj[name]
        except KeyError:
            raise KeyError(f'Directory field "{name}" not found')

    def __contains__(self, name: str) -> bool:
        return name in self._jobj

    def to_partial_json(self) -> Dict[str, Any]:
        return dict(self._jobj)

    @classmethod
    def from_json(cls, jobj: Mapping[str, Any]) -> 'Directory':
        jobj = dict(jobj)
        jobj['meta'] = cls.Meta.from_json(jobj.pop('meta', None) or {})
        return cls(jobj)


class Resource(jose.JSONObjectWithFields):
    """ACME Resource.

    :ivar acme_handshake.messages.ResourceBody body: Resource body.

    """
    body: "ResourceBody" = jose.field('body')


class ResourceWithURI(Resource):
    """ACME Resource with URI.

    :ivar str uri: Location of the resource.

    """
    uri: str = jose.field('uri')


class ResourceBody(jose.JSONObjectWithFields):
    """ACME Resource Body."""


class Registration(ResourceBody):
    """Registration Resource Body.

    ``contact`` is sent whenever it was passed explicitly, even when
    empty, so that an update can clear the contacts on file. It is left
    out of requests that do not mention it.

    :ivar jose.JWK key: Public key.
    :ivar tuple contact: Contact URIs (``mailto:``, ``tel:``),
        `tuple` of `str`.
    :ivar str agreement: URI of the accepted terms of service.
    :ivar str authorizations: URI of the authorizations collection.
    :ivar str certificates: URI of the certificates collection.

    """
    # the server derives the key from JWS.signature.combined.jwk
    key: jose.JWK = jose.field('key', omitempty=True, decoder=jose.JWK.from_json)
    contact: Tuple[str, ...] = jose.field('contact', omitempty=True, default=())
    agreement: str = jose.field('agreement', omitempty=True)
    authorizations: str = jose.field('authorizations', omitempty=True)
    certificates: str = jose.field('certificates', omitempty=True)

    phone_prefix = 'tel:'
    email_prefix = 'mailto:'

    def __init__(self, **kwargs: Any) -> None:
        if kwargs.get('contact') is None:
            # "contact": null reads the same as an absent member
            kwargs.pop('contact', None)
        else:
            kwargs['contact'] = tuple(kwargs['contact'])
            object.__setattr__(self, '_send_contact', True)
        super().__init__(**kwargs)

    def _filter_contact(self, prefix: str) -> Tuple[str, ...]:
        return tuple(
            detail[len(prefix):] for detail in self.contact  # pylint: disable=not-an-iterable
            if detail.startswith(prefix))

    def fields_to_partial_json(self) -> Dict[str, Any]:
        jobj = super().fields_to_partial_json()
        if getattr(self, '_send_contact', False):
            jobj['contact'] = self.encode('contact')
        return jobj

    @property
    def phones(self) -> Tuple[str, ...]:
        """All phones found in the ``contact`` field."""
        return self._filter_contact(self.phone_prefix)

    @property
    def emails(self) -> Tuple[str, ...]:
        """All emails found in the ``contact`` field."""
        return self._filter_contact(self.email_prefix)


class NewRegistration(Registration):
    """New registration."""
    resource_type = 'new-reg'
    resource: str = fields.resource(resource_type)


class UpdateRegistration(Registration):
    """Update registration."""
    resource_type = 'reg'
    resource: str = fields.resource(resource_type)


class RegistrationResource(ResourceWithURI):
    """Registration Resource.

    This is the account state held by the client: the server-assigned
    registration URI, the registration body as last returned by the
    server, and the metadata found in the response headers.

    :ivar acme_handshake.messages.Registration body:
    :ivar tuple links: Raw ``Link`` header values of the last response.
    :ivar str terms_of_service: URL for the CA TOS.

    """
    body: Registration = jose.field('body', decoder=Registration.from_json)
    links: Tuple[str, ...] = jose.field('links', omitempty=True, default=())
    terms_of_service: str = jose.field('terms_of_service', omitempty=True)

    @property
    def public_key(self) -> jose.JWK:
        """Account public key."""
        return self.body.key  # pylint: disable=no-member

    @property
    def contacts(self) -> Tuple[str, ...]:
        """Contacts registered with the server."""
        return self.body.contact  # pylint: disable=no-member

    @property
    def terms_of_service_agreement(self) -> Optional[str]:
        """URI of the terms of service the account agreed to, if any."""
        return self.body.agreement  # pylint: disable=no-member

    @property
    def authorizations_uri(self) -> Optional[str]:
        """URI of the authorizations collection."""
        return self.body.authorizations  # pylint: disable=no-member

    @property
    def certificates_uri(self) -> Optional[str]:
        """URI of the certificates collection."""
        return self.body.certificates  # pylint: disable=no-member


class Authorization(ResourceBody):
    """Authorization Resource Body.

    Challenges are kept as the JSON objects sent by the server; solving
    them is up to the caller.

    :ivar acme_handshake.messages.Identifier identifier:
    :ivar tuple challenges: `tuple` of `dict`
    :ivar tuple combinations: Challenge combinations (`tuple` of `tuple`
        of `int`, indices into ``challenges``).
    :ivar acme_handshake.messages.Status status:
    :ivar datetime.datetime expires:

    """
    identifier: Identifier = jose.field('identifier', decoder=Identifier.from_json, omitempty=True)
    challenges: Tuple[Dict[str, Any], ...] = jose.field('challenges', omitempty=True,
                                                          default=())
    combinations: Tuple[Tuple[int, ...], ...] = jose.field('combinations', omitempty=True)

    status: Status = jose.field('status', omitempty=True, decoder=Status.from_json)
    expires: datetime.datetime = fields.rfc3339('expires', omitempty=True)

    # Mypy does not understand the josepy magic happening here, and falsely claims
    # that challenges is redefined. Let's ignore the type check here.
    @challenges.decoder  # type: ignore
    def challenges(value: Any) -> Tuple[Dict[str, Any], ...]:  # type: ignore[misc]  # pylint: disable=no-self-argument,missing-function-docstring
        return tuple(dict(chall) for chall in value)

    @combinations.decoder  # type: ignore
    def combinations(value: Any) -> Tuple[Tuple[int, ...], ...]:  # type: ignore[misc]  # pylint: disable=no-self-argument,missing-function-docstring
        return tuple(tuple(combo) for combo in value)

    def challenges_of_type(self, typ: str) -> Tuple[Dict[str, Any], ...]:
        """Offered challenges of the given ``type``, e.g. ``"http-01"``."""
        return tuple(chall for chall in self.challenges  # pylint: disable=not-an-iterable
                     if chall.get('type') == typ)


class NewAuthorization(Authorization):
    """New authorization."""
    resource_type = 'new-authz'
    resource: str = fields.resource(resource_type)


class AuthorizationResource(ResourceWithURI):
    """Authorization Resource.

    :ivar acme_handshake.messages.Authorization body:

    """
    body: Authorization = jose.field('body', decoder=Authorization.from_json)
