"""ACME handshake client.

This package implements the registration and authorization handshake of
the `ACME protocol`_: signed requests, replay-nonce bookkeeping, account
registration and domain authorization initiation.

.. _`ACME protocol`: https://datatracker.ietf.org/doc/html/draft-ietf-acme-acme-01

"""
