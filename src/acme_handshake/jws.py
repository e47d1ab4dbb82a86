"""ACME-specific JWS.

The JWS implementation in josepy only implements the base JOSE standard. In
order to support the ``nonce`` header field defined in ACME, this module
defines some ACME-specific classes that layer on top of josepy, as well as
`RequestSigner` which produces the signed envelope of every request.
"""
import logging
from typing import Optional

import josepy as jose

from acme_handshake import errors
from acme_handshake import interfaces

logger = logging.getLogger(__name__)


class Header(jose.Header):
    """ACME-specific JOSE Header. Implements nonce.

    The nonce is kept exactly as issued by the server (an opaque token).
    """
    nonce: Optional[str] = jose.field('nonce', omitempty=True)


class Signature(jose.Signature):
    """ACME-specific Signature. Uses ACME-specific Header for customer fields."""
    __slots__ = jose.Signature._orig_slots  # type: ignore[attr-defined]  # pylint: disable=protected-access,no-member

    header_cls = Header
    header: Header = jose.field(
        'header', omitempty=True, default=header_cls(),
        decoder=header_cls.from_json)

    @classmethod
    def signing_input(cls, protected: str, payload: bytes) -> bytes:
        """Bytes covered by the signature (``protected.payload``)."""
        return jose.b64encode(protected.encode('utf-8')) + b'.' + jose.b64encode(payload)


class JWS(jose.JWS):
    """ACME-specific JWS. Includes nonce in protected header."""
    signature_cls = Signature
    __slots__ = jose.JWS._orig_slots  # type: ignore[attr-defined]  # pylint: disable=protected-access


class JWKSigner(interfaces.Signer):
    """Signer backed by a private `josepy.JWK`.

    :param josepy.JWK key: Account private key.
    :param josepy.JWASignature alg: Algorithm to use in signing JWS.

    """
    def __init__(self, key: jose.JWK, alg: jose.JWASignature = jose.RS256) -> None:
        if not isinstance(key, alg.kty):
            raise ValueError(f'{alg.name} can not be used with {type(key).__name__}')
        self.key = key
        self._alg = alg

    @property
    def alg(self) -> str:
        return self._alg.name

    def sign(self, msg: bytes) -> bytes:
        return self._alg.sign(self.key.key, msg)

    def public_jwk(self) -> jose.JWK:
        return self.key.public_key()


class RequestSigner:
    """Wraps request bodies in flattened JWS envelopes.

    The protected header carries only the replay nonce; algorithm and
    public key travel in the unprotected header.

    :ivar .interfaces.Signer signer: Signing capability.

    """
    def __init__(self, signer: interfaces.Signer) -> None:
        self.signer = signer

    def sign(self, obj: jose.JSONDeSerializable, nonce: str) -> JWS:
        """Wrap ``obj`` in a signed `.JWS`.

        :param josepy.JSONDeSerializable obj: Request body.
        :param str nonce: Replay nonce to embed.

        :raises .SigningError: if the signer fails.

        """
        payload = obj.json_dumps(indent=2).encode()
        logger.debug('JWS payload:\n%s', payload)
        protected = Header(nonce=nonce).json_dumps()
        try:
            header = Header(alg=jose.JWASignature.from_json(self.signer.alg),
                            jwk=self.signer.public_jwk())
            signature = self.signer.sign(Signature.signing_input(protected, payload))
        except Exception as error:  # pylint: disable=broad-except
            raise errors.SigningError(f'Could not sign request: {error}') from error
        return JWS(payload=payload, signatures=(
            Signature(protected=protected, header=header, signature=signature),))
