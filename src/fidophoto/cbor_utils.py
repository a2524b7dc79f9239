"""CBOR utilities module.

This module provides a unified interface for CBOR operations, isolating the
underlying CBOR library implementation, and the byte-shape normalization
used when reading COSE key records.

Currently uses cbor2 as the underlying implementation.
"""

import base64
import binascii
from collections.abc import Mapping
from typing import Any, Optional

import cbor2

CBORDecodeError = cbor2.CBORDecodeError


def encode(obj: Any, canonical: bool = False) -> bytes:
    """Encode an object to CBOR bytes.

    Args:
        obj: The object to encode
        canonical: Whether to use canonical encoding (deterministic)

    Returns:
        CBOR-encoded bytes
    """
    return cbor2.dumps(obj, canonical=canonical)


def decode(data: bytes) -> Any:
    """Decode CBOR bytes to an object.

    Args:
        data: CBOR-encoded bytes

    Returns:
        The decoded object

    Raises:
        CBORDecodeError: If the data is not valid CBOR
    """
    return cbor2.loads(data)


def b64decode_lenient(text: str) -> bytes:
    """Decode base64 text in either the standard or URL-safe alphabet.

    Padding is optional. Registries hand out credential material in both
    alphabets, sometimes with the padding stripped.

    Raises:
        ValueError: If the text is not valid base64
    """
    cleaned = "".join(text.split()).rstrip("=")
    cleaned = cleaned.replace("-", "+").replace("_", "/")
    cleaned += "=" * (-len(cleaned) % 4)
    try:
        return base64.b64decode(cleaned, validate=True)
    except binascii.Error as e:
        raise ValueError(f"Invalid base64 data: {e}") from e


def b64url_encode(data: bytes) -> str:
    """Base64url encode without padding."""
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def b64url_decode(text: str) -> bytes:
    """Base64url decode, restoring any stripped padding.

    Only the canonical encoding is accepted: characters outside the URL-safe
    alphabet and non-zero unused trailing bits are rejected, so each byte
    string has exactly one accepted text form (padding aside).

    Raises:
        ValueError: If the text is not canonical base64url
    """
    stripped = text.rstrip("=")
    padded = stripped + "=" * (-len(stripped) % 4)
    try:
        decoded = base64.b64decode(padded, altchars=b"-_", validate=True)
    except binascii.Error as e:
        raise ValueError(f"Invalid base64url data: {e}") from e
    if b64url_encode(decoded) != stripped:
        raise ValueError("Invalid base64url data: not canonically encoded")
    return decoded


def normalize_bytes(value: Any) -> Optional[bytes]:
    """Normalize a decoded byte-string value to ``bytes``.

    Byte strings reach the key decoder in several shapes depending on how
    the record travelled before it got here:

    - ``bytes`` / ``bytearray`` straight out of the CBOR decoder
    - a list of ints (JSON round trip of a byte array)
    - a Node ``{"type": "Buffer", "data": [...]}`` object
    - an index-keyed map, ``{0: 46, 1: 214}`` or ``{"0": 46, "1": 214}``
      (JSON round trip of a typed array)

    Args:
        value: The value to normalize

    Returns:
        The bytes in index order, or None if the value is not a byte string
        in any of the recognised shapes
    """
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)

    if isinstance(value, Mapping):
        if value.get("type") == "Buffer" and "data" in value:
            return normalize_bytes(value["data"])
        indices = [_index_key(k) for k in value]
        if any(i is None for i in indices):
            return None
        indexed = sorted(zip(indices, value.values()), key=lambda item: item[0])
        if [i for i, _ in indexed] != list(range(len(indexed))):
            return None
        return normalize_bytes([v for _, v in indexed])

    if isinstance(value, (list, tuple)):
        if not all(isinstance(b, int) and not isinstance(b, bool) for b in value):
            return None
        try:
            return bytes(value)
        except ValueError:
            return None

    return None


def _index_key(key: Any) -> Optional[int]:
    """Return the array index an index-keyed map entry stands for.

    Only ints and plain decimal digit strings are indices; floats, bools,
    signed or padded strings are not.
    """
    if isinstance(key, bool):
        return None
    if isinstance(key, int):
        return key
    if isinstance(key, str) and key.isascii() and key.isdigit():
        return int(key)
    return None


def normalize_labels(mapping: Mapping[Any, Any]) -> dict[int, Any]:
    """Convert COSE map labels to ints.

    JSON round-tripped COSE keys carry their labels as decimal strings
    (``"1"``, ``"-2"``). Labels that are not integers are dropped.
    """
    result: dict[int, Any] = {}
    for label, value in mapping.items():
        if isinstance(label, bool):
            continue
        if isinstance(label, int):
            result[label] = value
            continue
        if isinstance(label, str):
            try:
                result[int(label)] = value
            except ValueError:
                continue
    return result
