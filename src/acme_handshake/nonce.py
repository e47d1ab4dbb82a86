"""Replay nonce bookkeeping."""
import logging
import threading
from typing import Mapping
from typing import Optional

logger = logging.getLogger(__name__)


class NonceTracker:
    """Holds the single replay nonce to embed in the next signed request.

    Every server response may carry a fresh nonce in its ``Replay-Nonce``
    header, which replaces the current one. Taking the nonce for a request
    empties the slot, so the same value is never signed twice.

    """
    REPLAY_NONCE_HEADER = 'Replay-Nonce'

    def __init__(self) -> None:
        self._nonce: Optional[str] = None
        self._lock = threading.Lock()

    @property
    def current(self) -> Optional[str]:
        """Nonce to be used by the next request, if any."""
        with self._lock:
            return self._nonce

    def update(self, headers: Mapping[str, str]) -> Optional[str]:
        """Store the nonce found in response ``headers``.

        Header names are matched case-insensitively. Missing or empty
        values leave the tracker untouched.

        :returns: The stored nonce, or ``None`` if there was none.

        """
        wanted = self.REPLAY_NONCE_HEADER.lower()
        for name, value in headers.items():
            if name.lower() == wanted and value:
                logger.debug('Storing nonce: %s', value)
                with self._lock:
                    self._nonce = value
                return value
        return None

    def take(self) -> Optional[str]:
        """Remove and return the current nonce."""
        with self._lock:
            nonce, self._nonce = self._nonce, None
        return nonce

    def clear(self) -> None:
        """Forget the current nonce."""
        with self._lock:
            self._nonce = None
