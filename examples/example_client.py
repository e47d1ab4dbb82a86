"""Example script showing how to use the acme_handshake client API.

Workflow:
    - Create account key
    - Fetch the initial nonce and the server directory
    - Register account and accept TOS
    - Start authorization of a domain name and list offered challenges
"""
import logging

from cryptography.hazmat.primitives.asymmetric import rsa
import josepy as jose

from acme_handshake import client
from acme_handshake import errors
from acme_handshake import jws

logging.basicConfig(level=logging.DEBUG)

# Boulder running locally, speaking the draft (v1) protocol.
ROOT_URL = 'http://localhost:4000/'
USER_AGENT = 'acme-handshake-example'
BITS = 2048  # minimum for Boulder
DOMAIN = 'example1.com'  # example.com is ignored by Boulder
CONTACTS = ('mailto:admin@example1.com',)

key = jose.JWKRSA(key=rsa.generate_private_key(public_exponent=65537, key_size=BITS))
net = client.ClientNetwork(user_agent=USER_AGENT)

with client.Client(ROOT_URL, jws.JWKSigner(key), net=net) as acme:
    acme.initialize()
    logging.debug(acme.get_directory().to_json())

    try:
        regr = acme.register(CONTACTS)
    except errors.ConflictError as error:
        raise SystemExit(f'Key already registered at {error.location}')
    logging.info('Auto-accepting TOS: %s', regr.terms_of_service)
    regr = acme.agree_to_tos()
    logging.debug(regr)

    authzr = acme.authorize_domain(DOMAIN)
    for chall in authzr.body.challenges:
        logging.info('Offered %s challenge at %s', chall.get('type'), chall.get('uri'))
