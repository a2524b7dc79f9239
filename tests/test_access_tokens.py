"""Tests for opaque user access tokens."""

import base64

import pytest
from pydantic import SecretStr
from structlog.testing import capture_logs

from fidophoto import (
    AccessTokenManager,
    Anonymous,
    Authenticated,
    issue_access_token,
    resolve_access_token,
)
from fidophoto.cbor_utils import b64url_decode, b64url_encode
from fidophoto.config import Settings
from fidophoto.errors import ConfigurationError


class TestIssueResolve:
    """Issuing and resolving tokens."""

    @pytest.mark.parametrize("account_id", ["user-123", "a", "ünïcødé@example.com", "x" * 300])
    def test_round_trip(self, token_secret, account_id) -> None:
        """Test that a token resolves to the account it was issued for."""
        token = issue_access_token(account_id, token_secret)

        assert resolve_access_token(token, token_secret) == account_id

    def test_token_is_unpadded_base64url(self, token_secret) -> None:
        """Test the token alphabet."""
        for i in range(20):
            token = issue_access_token(f"user-{i}", token_secret)
            assert "=" not in token
            assert "+" not in token
            assert "/" not in token

    def test_issuance_is_randomized(self, token_secret) -> None:
        """Test that the same account gets a different token each time."""
        tokens = {issue_access_token("user-123", token_secret) for _ in range(10)}

        assert len(tokens) == 10
        assert all(resolve_access_token(t, token_secret) == "user-123" for t in tokens)

    def test_empty_account_rejected(self, token_secret) -> None:
        """Test that an empty account id cannot be issued."""
        with pytest.raises(ValueError, match="must not be empty"):
            issue_access_token("", token_secret)

    def test_wrong_secret(self, token_secret) -> None:
        """Test that another secret never resolves the token."""
        token = issue_access_token("user-123", token_secret)

        assert resolve_access_token(token, token_secret + "x") is None
        assert resolve_access_token(token, "") is None

    def test_padded_token_accepted(self, token_secret) -> None:
        """Test that a token with its base64 padding restored still resolves."""
        raw = b64url_decode(issue_access_token("user-1234", token_secret))
        padded = base64.urlsafe_b64encode(raw).decode("ascii")

        assert resolve_access_token(padded, token_secret) == "user-1234"

    @pytest.mark.parametrize(
        "token",
        ["", "!!!!", "a", "AAAA", "A" * 43, "A" * 86, "A" * 128, None, 12345],
    )
    def test_malformed_tokens(self, token_secret, token) -> None:
        """Test that malformed tokens resolve to None without raising."""
        assert resolve_access_token(token, token_secret) is None


class TestTamperResistance:
    """Single-bit modifications never yield a valid account id."""

    def test_every_bit_flip_rejected(self, token_secret) -> None:
        """Flip each bit of 20 tokens (over 10,000 modifications)."""
        flips = 0
        with capture_logs():
            for i in range(20):
                account_id = f"user-{i:04d}"
                raw = b64url_decode(issue_access_token(account_id, token_secret))
                assert len(raw) == 64

                for position in range(len(raw) * 8):
                    tampered = bytearray(raw)
                    tampered[position // 8] ^= 1 << (position % 8)
                    result = resolve_access_token(b64url_encode(bytes(tampered)), token_secret)
                    assert result is None, f"token {i} bit {position} resolved to {result!r}"
                    flips += 1

        assert flips >= 10_000

    def test_every_token_character_bit_flip_rejected(self, token_secret) -> None:
        """Flip each bit of each character of 20 token strings."""
        flips = 0
        with capture_logs():
            for i in range(20):
                token = issue_access_token(f"user-{i:04d}", token_secret)
                assert len(token) == 86

                for index, char in enumerate(token):
                    for bit in range(8):
                        tampered = token[:index] + chr(ord(char) ^ (1 << bit)) + token[index + 1 :]
                        result = resolve_access_token(tampered, token_secret)
                        assert result is None, f"token {i} char {index} bit {bit} resolved to {result!r}"
                        flips += 1

        assert flips >= 10_000

    def test_every_token_character_substitution_rejected(self, token_secret) -> None:
        """Replace each character of a token with every other base64url character."""
        alphabet = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789-_"
        token = issue_access_token("user-0001", token_secret)

        with capture_logs():
            for index, char in enumerate(token):
                for replacement in alphabet.replace(char, ""):
                    tampered = token[:index] + replacement + token[index + 1 :]
                    assert resolve_access_token(tampered, token_secret) is None, f"char {index} -> {replacement}"

    def test_last_character_trailing_bits(self, token_secret) -> None:
        """Test that the unused low bits of the final character are not ignored."""
        token = issue_access_token("user-0001", token_secret)
        alphabet = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789-_"
        last = alphabet.index(token[-1])

        # 64 bytes leave 4 unused bits in the last of 86 characters
        for low in range(1, 16):
            tampered = token[:-1] + alphabet[last ^ low]
            assert resolve_access_token(tampered, token_secret) is None

    def test_truncated_and_extended(self, token_secret) -> None:
        """Test that removing or appending blocks is rejected."""
        raw = b64url_decode(issue_access_token("user-0001", token_secret))

        assert resolve_access_token(b64url_encode(raw[:-16]), token_secret) is None
        assert resolve_access_token(b64url_encode(raw + bytes(16)), token_secret) is None
        assert resolve_access_token(b64url_encode(raw[16:]), token_secret) is None


class TestAccessTokenManager:
    """Tests for AccessTokenManager."""

    def test_authenticate(self, token_secret) -> None:
        """Test the authenticated and anonymous outcomes."""
        manager = AccessTokenManager(token_secret)
        token = manager.issue("user-123")

        assert manager.authenticate(token) == Authenticated("user-123")
        assert manager.authenticate("garbage") == Anonymous()
        assert manager.authenticate("") == Anonymous()
        assert manager.authenticate(None) == Anonymous()

    def test_authenticate_with_other_manager(self, token_secret) -> None:
        """Test that tokens do not cross secrets."""
        token = AccessTokenManager(token_secret).issue("user-123")

        assert AccessTokenManager("another-secret").authenticate(token) == Anonymous()

    @pytest.mark.parametrize("scheme", ["Bearer", "bearer", "BEARER"])
    def test_authenticate_header(self, token_secret, scheme) -> None:
        """Test the Authorization header form."""
        manager = AccessTokenManager(token_secret)
        token = manager.issue("user-123")

        assert manager.authenticate_header(f"{scheme} {token}") == Authenticated("user-123")
        assert manager.authenticate_header(f"  {scheme}   {token}  ") == Authenticated("user-123")

    @pytest.mark.parametrize("header", [None, "", "Bearer", "Basic dXNlcjpwYXNz", "token-only"])
    def test_authenticate_header_anonymous(self, token_secret, header) -> None:
        """Test headers that carry no usable bearer token."""
        assert AccessTokenManager(token_secret).authenticate_header(header) == Anonymous()

    def test_secret_str(self, token_secret) -> None:
        """Test that a pydantic SecretStr is accepted."""
        manager = AccessTokenManager(SecretStr(token_secret))

        assert resolve_access_token(manager.issue("u"), token_secret) == "u"

    @pytest.mark.parametrize("secret", ["", SecretStr("")])
    def test_empty_secret(self, secret) -> None:
        """Test that an empty secret is a configuration error."""
        with pytest.raises(ConfigurationError):
            AccessTokenManager(secret)

    def test_from_settings(self, token_secret) -> None:
        """Test building a manager from settings."""
        manager = AccessTokenManager.from_settings(Settings(secret=token_secret, _env_file=None))

        assert resolve_access_token(manager.issue("user-9"), token_secret) == "user-9"

    def test_from_environment(self, token_secret, monkeypatch) -> None:
        """Test building a manager from FIDOPHOTO_SECRET."""
        monkeypatch.setenv("FIDOPHOTO_SECRET", token_secret)

        manager = AccessTokenManager.from_settings()

        assert manager.authenticate(issue_access_token("u", token_secret)) == Authenticated("u")

    def test_from_settings_without_secret(self, monkeypatch) -> None:
        """Test that a missing secret is reported."""
        monkeypatch.delenv("FIDOPHOTO_SECRET", raising=False)

        with pytest.raises(ConfigurationError) as exc_info:
            AccessTokenManager.from_settings(Settings(_env_file=None))

        assert exc_info.value.details == {"setting": "secret"}
