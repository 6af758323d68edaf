"""Exception taxonomy for the analysis pipeline."""

from __future__ import annotations


class PageAuditError(Exception):
    """Base class for all pageaudit errors."""


class InvalidRequest(PageAuditError):
    """Missing or conflicting input. Surfaced to the caller as a 400."""


class LoadFailure(PageAuditError):
    """The content could not be set on the page or navigated to."""


class ScanFailure(PageAuditError):
    """The rule engine or an in-page evaluation threw."""


class AuditUnavailable(PageAuditError):
    """The performance-audit tool could not produce a usable report."""


class SessionNotFound(PageAuditError):
    """The session id is unknown or has already been revoked."""

    def __init__(self, session_id: str) -> None:
        super().__init__(f"Session not found: {session_id}")
        self.session_id = session_id
