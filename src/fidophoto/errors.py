"""Exceptions for fidophoto.

Verification and token validation never raise; these cover environment
problems around them (configuration, upstream token fetches).
"""

from typing import Any, Optional


class FidoPhotoError(Exception):
    """Base exception for fidophoto."""

    def __init__(self, code: str, message: str, details: Optional[dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": self.details}


class ConfigurationError(FidoPhotoError):
    """Required configuration is missing or invalid."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__("CONFIGURATION_ERROR", message, details)


class TokenFetchError(FidoPhotoError):
    """An upstream access token could not be obtained."""

    def __init__(
        self,
        message: str = "Unable to get access_token - check server logs for details",
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__("TOKEN_FETCH_ERROR", message, details)
