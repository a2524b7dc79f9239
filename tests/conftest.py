"""Pytest configuration and shared fixtures for fidophoto tests."""

import base64
import os
from typing import Any

import cbor2
import pytest
import structlog
from cryptography.hazmat.primitives.asymmetric import ec, rsa

from fidophoto.config import get_settings
from fidophoto.cose_keys import cose_key_encode, cose_key_from_public_key

# P-256 private scalar used by the photo signing tool's sample credential
FIXED_PRIVATE_KEY_HEX = "2f42aa624ccda8d6550b8ebd206c7bdbda3fda6189f88b9bf816b721f76d7ba6"

RP_ID = "example.test"
CONTENT_HASH_HEX = "deadbeef" * 8  # 32 bytes


@pytest.fixture(scope="session")
def fixed_private_key_hex() -> str:
    return FIXED_PRIVATE_KEY_HEX


@pytest.fixture(scope="session")
def fixed_private_key() -> ec.EllipticCurvePrivateKey:
    """The fixed P-256 test key."""
    return ec.derive_private_key(int(FIXED_PRIVATE_KEY_HEX, 16), ec.SECP256R1())


@pytest.fixture(scope="session")
def fixed_cose_key_map(fixed_private_key: ec.EllipticCurvePrivateKey) -> dict[int, Any]:
    """COSE_Key map for the fixed P-256 public key."""
    return cose_key_from_public_key(fixed_private_key.public_key())


@pytest.fixture(scope="session")
def fixed_cose_key_b64(fixed_cose_key_map: dict[int, Any]) -> str:
    """Base64 CBOR COSE_Key for the fixed P-256 public key."""
    return cose_key_encode(fixed_cose_key_map)


@pytest.fixture(scope="session")
def rsa_private_key() -> rsa.RSAPrivateKey:
    """A 2048-bit RSA key for testing."""
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture
def rp_id() -> str:
    return RP_ID


@pytest.fixture
def content_hash_hex() -> str:
    return CONTENT_HASH_HEX


@pytest.fixture
def credential_id() -> bytes:
    return bytes(range(1, 33))


@pytest.fixture
def token_secret() -> str:
    return "b6Yk4t2Jw9Qe1Rz7Lp3Xv8Nc5Hs0Dm"


@pytest.fixture
def encode_key():
    """CBOR-encode a raw COSE map (any labels, any values) and base64 it."""

    def _encode(key_map: dict[Any, Any]) -> str:
        return base64.b64encode(cbor2.dumps(key_map)).decode("ascii")

    return _encode


@pytest.fixture(autouse=True)
def reset_environment():
    """Reset environment variables, cached settings and logging for each test."""
    original_env = os.environ.copy()
    get_settings.cache_clear()
    yield
    os.environ.clear()
    os.environ.update(original_env)
    get_settings.cache_clear()
    structlog.reset_defaults()


def pytest_configure(config):
    """Configure pytest with custom settings."""
    config.addinivalue_line("markers", "unit: fast, isolated unit test")
    config.addinivalue_line("markers", "integration: end-to-end test across modules")
