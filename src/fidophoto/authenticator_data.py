"""Signature base string construction.

A content signature covers a WebAuthn-style authenticator data prefix
followed by the content hash:

    sha256(rp_id) (32) || flags (1) || counter (4, big-endian) || content hash

In a browser ceremony the trailing hash would be the client data hash. For
photos it is the hash of the image recomputed by the verifier, so the
signer and the verifier must build these bytes identically.
"""

import hashlib
from dataclasses import dataclass

FLAG_USER_PRESENT = 0x01
FLAG_USER_VERIFIED = 0x04

RP_ID_HASH_LENGTH = 32
AUTHENTICATOR_DATA_LENGTH = RP_ID_HASH_LENGTH + 1 + 4

MAX_COUNTER = 0xFFFFFFFF


@dataclass(frozen=True)
class AuthenticatorData:
    """Parsed authenticator data prefix."""

    rp_id_hash: bytes
    flags: int
    counter: int

    @property
    def user_present(self) -> bool:
        return bool(self.flags & FLAG_USER_PRESENT)

    @property
    def user_verified(self) -> bool:
        return bool(self.flags & FLAG_USER_VERIFIED)

    def matches_rp_id(self, rp_id: str) -> bool:
        return self.rp_id_hash == rp_id_hash(rp_id)


def rp_id_hash(rp_id: str) -> bytes:
    """SHA-256 of the relying party id's UTF-8 bytes."""
    return hashlib.sha256(rp_id.encode("utf-8")).digest()


def build_flags(user_present: bool, user_verified: bool) -> int:
    return (FLAG_USER_PRESENT if user_present else 0x00) | (
        FLAG_USER_VERIFIED if user_verified else 0x00
    )


def build_authenticator_data(
    rp_id: str, user_present: bool, user_verified: bool, counter: int
) -> bytes:
    """Build the 37-byte authenticator data prefix.

    Args:
        rp_id: Relying party id the credential is scoped to
        user_present: Set the UP flag (0x01)
        user_verified: Set the UV flag (0x04)
        counter: Signature counter; the photo signer uses epoch seconds

    Returns:
        Authenticator data bytes

    Raises:
        ValueError: If the counter does not fit in 4 unsigned bytes
    """
    if isinstance(counter, bool) or not isinstance(counter, int):
        raise ValueError(f"Counter must be an integer, got {type(counter).__name__}")
    if counter < 0 or counter > MAX_COUNTER:
        raise ValueError(f"Counter out of range for 4 bytes: {counter}")

    return (
        rp_id_hash(rp_id)
        + bytes([build_flags(user_present, user_verified)])
        + counter.to_bytes(4, byteorder="big")
    )


def build_signature_base(
    rp_id: str,
    user_present: bool,
    user_verified: bool,
    counter: int,
    content_hash_hex: str,
) -> str:
    """Build the hex signature base string for a content hash.

    Returns:
        hex(authenticator data) followed by ``content_hash_hex`` as given
    """
    authenticator_data = build_authenticator_data(rp_id, user_present, user_verified, counter)
    return authenticator_data.hex() + content_hash_hex


def parse_authenticator_data(data: bytes) -> AuthenticatorData:
    """Split authenticator data into rp id hash, flags and counter.

    Trailing bytes (attested credential data, extensions) are ignored.

    Raises:
        ValueError: If fewer than 37 bytes are given
    """
    if len(data) < AUTHENTICATOR_DATA_LENGTH:
        raise ValueError(
            f"Authenticator data too short: {len(data)} bytes, need {AUTHENTICATOR_DATA_LENGTH}"
        )
    return AuthenticatorData(
        rp_id_hash=bytes(data[:RP_ID_HASH_LENGTH]),
        flags=data[RP_ID_HASH_LENGTH],
        counter=int.from_bytes(data[RP_ID_HASH_LENGTH + 1 : AUTHENTICATOR_DATA_LENGTH], byteorder="big"),
    )
