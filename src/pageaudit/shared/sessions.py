"""Session exposure registry — makes in-memory HTML reachable by URL.

Lighthouse only audits pages it can navigate to, so raw markup is published
under a random session id and served back by the
``GET /__session-exposure/{session_id}`` route for the duration of one audit.
"""

from __future__ import annotations

import logging
import threading
import uuid
from collections.abc import Iterator
from contextlib import contextmanager

from pageaudit.errors import SessionNotFound

logger = logging.getLogger(__name__)

EXPOSURE_PATH = "/__session-exposure"


class SessionRegistry:
    """Thread-safe mapping from session id to published HTML.

    Usage::

        with registry.exposed(html) as session_id:
            url = registry.url_for(base_url, session_id)
            ...  # the session is revoked on every exit path
    """

    def __init__(self) -> None:
        self._sessions: dict[str, str] = {}
        self._lock = threading.Lock()

    def publish(self, html: str) -> str:
        """Store ``html`` under a new unique id and return the id."""
        session_id = uuid.uuid4().hex
        with self._lock:
            self._sessions[session_id] = html
        logger.debug("Published session %s (%d chars)", session_id, len(html))
        return session_id

    def resolve(self, session_id: str) -> str:
        with self._lock:
            try:
                return self._sessions[session_id]
            except KeyError:
                raise SessionNotFound(session_id) from None

    def revoke(self, session_id: str) -> None:
        with self._lock:
            removed = self._sessions.pop(session_id, None)
        if removed is not None:
            logger.debug("Revoked session %s", session_id)

    @contextmanager
    def exposed(self, html: str) -> Iterator[str]:
        """Publish ``html`` for the duration of the block."""
        session_id = self.publish(html)
        try:
            yield session_id
        finally:
            self.revoke(session_id)

    @staticmethod
    def url_for(base_url: str, session_id: str) -> str:
        return f"{base_url.rstrip('/')}{EXPOSURE_PATH}/{session_id}"

    def __contains__(self, session_id: object) -> bool:
        with self._lock:
            return session_id in self._sessions

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
