"""ACME utilities."""
import re
from typing import Iterable
from typing import List
from typing import Optional

LINK_HEADER_REGEX = re.compile(r'<(.+)>;rel="(.+)"')
"""Matches ``<URI>;rel="relation-name"`` link header values."""

TOS_LINK_REL = 'terms-of-service'


def split_header_values(value: Optional[str]) -> List[str]:
    """Split a combined (comma separated) header into its values."""
    if not value:
        return []
    return [part.strip() for part in value.split(',') if part.strip()]


def find_link(values: Iterable[str], rel: str) -> Optional[str]:
    """Find the URI of the first ``Link`` value with relation ``rel``.

    :param values: ``Link`` header values, e.g.
        ``<https://example.com/acme/terms>;rel="terms-of-service"``.
    :param str rel: Relation name, compared exactly.

    :returns: Linked URI or ``None`` if no value matches.
    :rtype: str

    """
    for value in values:
        match = LINK_HEADER_REGEX.match(value.strip())
        if match is not None and match.group(2) == rel:
            return match.group(1)
    return None


def terms_of_service_link(values: Iterable[str]) -> Optional[str]:
    """Find the terms-of-service URI among ``Link`` header values."""
    return find_link(values, TOS_LINK_REL)
