"""Opaque user access tokens.

A token is the base64url (unpadded) of ``token_cipher.encrypt(account_id,
secret)``. Tokens carry no expiry: they stay valid for as long as the
secret does, and revocation is the caller's job (replace the stored value
and compare). Even with the secret, a token only ever names the account
it was issued for.
"""

from dataclasses import dataclass
from typing import Optional, Union

from pydantic import SecretStr

from . import cbor_utils, token_cipher
from .config import Settings, get_settings
from .errors import ConfigurationError
from .logging import get_logger

logger = get_logger(__name__)


def issue_access_token(account_id: str, secret: str) -> str:
    """Issue an access token for an account.

    Args:
        account_id: Account identifier to embed
        secret: Server-held token passphrase

    Returns:
        Opaque base64url token

    Raises:
        ValueError: If account_id is empty
    """
    if not account_id:
        raise ValueError("account_id must not be empty")
    return cbor_utils.b64url_encode(token_cipher.encrypt(account_id, secret))


def resolve_access_token(token: str, secret: str) -> Optional[str]:
    """Recover the account id from an access token.

    Never raises for a bad token.

    Returns:
        The account id, or None if the token is malformed, corrupted or was
        not issued under this secret
    """
    try:
        return token_cipher.decrypt(cbor_utils.b64url_decode(token), secret)
    except (ValueError, TypeError, AttributeError) as e:
        logger.info("access_token_unreadable", error_type=type(e).__name__)
        return None


@dataclass(frozen=True)
class Authenticated:
    """A request carrying a valid access token."""

    account_id: str


@dataclass(frozen=True)
class Anonymous:
    """A request without a usable access token."""


AuthResult = Union[Authenticated, Anonymous]


class AccessTokenManager:
    """Issues and validates access tokens under one server secret."""

    def __init__(self, secret: Union[str, SecretStr]):
        if isinstance(secret, SecretStr):
            secret = secret.get_secret_value()
        if not secret:
            raise ConfigurationError("Access token secret must not be empty")
        self._secret = secret

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "AccessTokenManager":
        """Create a manager from configuration.

        Raises:
            ConfigurationError: If FIDOPHOTO_SECRET is not set
        """
        settings = settings or get_settings()
        if settings.secret is None:
            raise ConfigurationError(
                "FIDOPHOTO_SECRET is not set", details={"setting": "secret"}
            )
        return cls(settings.secret)

    def issue(self, account_id: str) -> str:
        return issue_access_token(account_id, self._secret)

    def authenticate(self, token: Optional[str]) -> AuthResult:
        """Map a presented token to Authenticated or Anonymous.

        An invalid token is not an error: the request is simply anonymous.
        """
        if not token:
            return Anonymous()
        account_id = resolve_access_token(token, self._secret)
        if account_id is None:
            return Anonymous()
        return Authenticated(account_id)

    def authenticate_header(self, authorization: Optional[str]) -> AuthResult:
        """Authenticate from an ``Authorization: Bearer <token>`` header value."""
        if not authorization:
            return Anonymous()
        scheme, _, token = authorization.strip().partition(" ")
        if scheme.lower() != "bearer":
            return Anonymous()
        return self.authenticate(token.strip())
