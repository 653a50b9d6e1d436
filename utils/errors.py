"""
Harvester exception hierarchy.

Fatal kinds (AuthError, ParseError, ConfigError, FetchError at the listing
stage) abort the run. PersistError, UploadError and per-record FetchError are
caught at the per-record boundary and only logged.
"""

from typing import Any, Dict, Optional


class HarvesterError(Exception):
    """Base class for every error raised by the harvester."""

    def __init__(
        self,
        message: str,
        error_code: str = "HARVESTER_ERROR",
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Args:
            message: Human-readable error description
            error_code: Stable machine-readable code
            details: Extra context (record id, url, status...)
        """
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)


class ConfigError(HarvesterError):
    """Required configuration is missing or invalid."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, error_code="CONFIG_ERROR", details=details)


class AuthError(HarvesterError):
    """Token request or login was rejected."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, error_code="AUTH_ERROR", details=details)


class FetchError(HarvesterError):
    """A listing page or an artifact could not be retrieved."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, error_code="FETCH_ERROR", details=details)


class ParseError(HarvesterError):
    """A response envelope could not be decoded."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, error_code="PARSE_ERROR", details=details)


class PersistError(HarvesterError):
    """A local write failed."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, error_code="PERSIST_ERROR", details=details)


class UploadError(HarvesterError):
    """The remote store rejected an upload or is not usable."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, error_code="UPLOAD_ERROR", details=details)
