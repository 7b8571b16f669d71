"""Custom exceptions for media services."""


class MediaBackendError(Exception):
    """Base exception for media backend errors."""

    pass


class MediaFetchError(MediaBackendError):
    """Raised when a search/download attempt produced no file."""

    pass


class MediaTrimError(MediaBackendError):
    """Raised when a trim (re-slice) could not be produced."""

    pass
