"""Exception hierarchy for clusterdash."""

from __future__ import annotations


class ClusterDashError(Exception):
    """Base class for all clusterdash errors."""


class ApiError(ClusterDashError):
    """A control-plane query failed."""


class ApiUnavailable(ApiError):
    """The control-plane (or metrics) endpoint could not be reached."""


class ApiForbidden(ApiError):
    """The calling identity lacks permission for the query."""


class ApiTimeout(ApiError):
    """The query exceeded its deadline."""


class ProbeError(ClusterDashError):
    """A single health probe did not succeed. Never escapes the prober."""


class ProbeFailure(ProbeError):
    """Non-2xx response or transport error."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ProbeTimeout(ProbeError):
    """The probe exceeded its own timeout or the cycle ceiling."""


class ConfigInvalid(ClusterDashError, ValueError):
    """Configuration could not be loaded. Fatal at startup."""
