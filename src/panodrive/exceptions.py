"""Custom exception hierarchy for panodrive."""

from __future__ import annotations


class PanoDriveError(Exception):
    """Base exception for all panodrive errors."""


class PanoDriveConfigError(PanoDriveError):
    """Invalid or missing configuration."""


class ViewerError(PanoDriveError):
    """The external panorama viewer failed to perform an operation.

    Viewer implementations raise this for anything that went wrong on
    their side (position rejected, view source gone, lookup failed).
    The transition engine and the pre-cache manager absorb it and
    reduce it to a ``False`` / ``None`` result.
    """

    def __init__(self, message: str, *, operation: str = "") -> None:
        self.operation = operation
        super().__init__(message)


class TileFetchError(PanoDriveError):
    """HTTP-level failure while fetching an imagery tile."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        url: str = "",
    ) -> None:
        self.status_code = status_code
        self.url = url
        super().__init__(message)
