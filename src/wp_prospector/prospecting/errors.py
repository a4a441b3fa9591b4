"""Typed failures raised by prospecting components."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class ProspectingError(Exception):
    """Base prospecting error with an HTTP-compatible status code."""

    message: str
    code: str = "prospecting_error"
    status_code: int = 500
    details: tuple[str, ...] = ()

    def __str__(self) -> str:
        return self.message


@dataclass(slots=True)
class InputValidationError(ProspectingError):
    """Caller input rejected before any side effect."""

    code: str = "validation_error"
    status_code: int = 400


@dataclass(slots=True)
class DuplicateLinkError(ProspectingError):
    """Link already stored for this user."""

    code: str = "duplicate_link"
    status_code: int = 409


@dataclass(slots=True)
class ResultNotFoundError(ProspectingError):
    """No stored result matched the lookup."""

    code: str = "not_found"
    status_code: int = 404


@dataclass(slots=True)
class InvalidTransitionError(ProspectingError):
    """Processing-state change not allowed from the current state."""

    code: str = "invalid_transition"
    status_code: int = 409


@dataclass(slots=True)
class StoreError(ProspectingError):
    """Storage write or read failed."""

    code: str = "store_error"
    status_code: int = 500


@dataclass(slots=True)
class ProviderNotConfiguredError(ProspectingError):
    """Search provider credentials are missing."""

    code: str = "provider_not_configured"
    status_code: int = 500


@dataclass(slots=True)
class SearchProviderError(ProspectingError):
    """One provider page request failed; the cycle keeps earlier pages."""

    code: str = "provider_error"
    status_code: int = 502
    start_offset: int | None = None


@dataclass(slots=True)
class ScanDispatchError(ProspectingError):
    """Scan service rejected or did not answer a scan request."""

    code: str = "scan_dispatch_error"
    status_code: int = 502


@dataclass(slots=True)
class CallbackAuthError(ProspectingError):
    """Scan callback did not carry the shared secret."""

    code: str = "unauthorized"
    status_code: int = 401
