"""Passphrase-based AES encryption with an embedded digest check.

Layout of the output bytes::

    salt (16) || iv (16) || AES-256-CBC(PKCS7, digest_prefix (22) || plaintext)

``digest_prefix`` is the base64url of the left-most half of
sha256(plaintext). On decryption it is recomputed; a mismatch means the
data was not encrypted under this passphrase or was corrupted. The two
cases are indistinguishable to the caller.

The digest prefix is the only integrity check and PBKDF2 runs only 100
iterations; this is not authenticated encryption. The parameters are fixed
so that existing tokens stay readable.
"""

import hashlib
import hmac
import secrets
from typing import Optional

from cryptography.hazmat.primitives import hashes, padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from . import cbor_utils
from .logging import get_logger

logger = get_logger(__name__)

SALT_SIZE = 16
IV_SIZE = 16
KEY_SIZE = 32
KDF_ITERATIONS = 100
DIGEST_PREFIX_LENGTH = 22
BLOCK_SIZE_BITS = 128


def digest_prefix(message: bytes) -> bytes:
    """Base64url of the left-most half of sha256(message); always 22 bytes."""
    digest = hashlib.sha256(message).digest()
    left_half = digest[: (len(digest) + 1) // 2]
    return cbor_utils.b64url_encode(left_half).encode("ascii")


def derive_key(passphrase: str, salt: bytes) -> bytes:
    """Derive the 256-bit AES key for a passphrase and salt."""
    kdf = PBKDF2HMAC(
        # SHA-1 is the PBKDF2 default of the library the tokens were first minted with
        algorithm=hashes.SHA1(),
        length=KEY_SIZE,
        salt=salt,
        iterations=KDF_ITERATIONS,
    )
    return kdf.derive(passphrase.encode("utf-8"))


def encrypt(plaintext: str, passphrase: str) -> bytes:
    """Encrypt a short plaintext under a passphrase.

    Args:
        plaintext: Text to protect
        passphrase: Server-held secret

    Returns:
        salt || iv || ciphertext
    """
    salt = secrets.token_bytes(SALT_SIZE)
    iv = secrets.token_bytes(IV_SIZE)
    key = derive_key(passphrase, salt)

    message = plaintext.encode("utf-8")
    padder = padding.PKCS7(BLOCK_SIZE_BITS).padder()
    padded = padder.update(digest_prefix(message) + message) + padder.finalize()

    encryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).encryptor()
    ciphertext = encryptor.update(padded) + encryptor.finalize()

    return salt + iv + ciphertext


def decrypt(data: bytes, passphrase: str) -> Optional[str]:
    """Decrypt data produced by ``encrypt``.

    Args:
        data: salt || iv || ciphertext
        passphrase: Server-held secret

    Returns:
        The plaintext, or None if the passphrase is wrong or the data is
        corrupted or truncated
    """
    data = bytes(data)
    ciphertext = data[SALT_SIZE + IV_SIZE :]
    if not ciphertext or len(ciphertext) % (BLOCK_SIZE_BITS // 8) != 0:
        logger.debug("token_decrypt_rejected", reason="bad_length", length=len(data))
        return None

    salt = data[:SALT_SIZE]
    iv = data[SALT_SIZE : SALT_SIZE + IV_SIZE]
    key = derive_key(passphrase, salt)

    decryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).decryptor()
    padded = decryptor.update(ciphertext) + decryptor.finalize()

    unpadder = padding.PKCS7(BLOCK_SIZE_BITS).unpadder()
    try:
        decrypted = unpadder.update(padded) + unpadder.finalize()
    except ValueError:
        logger.debug("token_decrypt_rejected", reason="bad_padding")
        return None

    if len(decrypted) <= DIGEST_PREFIX_LENGTH:
        logger.debug("token_decrypt_rejected", reason="too_short")
        return None

    stored_prefix = decrypted[:DIGEST_PREFIX_LENGTH]
    message = decrypted[DIGEST_PREFIX_LENGTH:]
    if not hmac.compare_digest(stored_prefix, digest_prefix(message)):
        logger.debug("token_decrypt_rejected", reason="digest_mismatch")
        return None

    try:
        return message.decode("utf-8")
    except UnicodeDecodeError:
        logger.debug("token_decrypt_rejected", reason="not_utf8")
        return None
