"""COSE Key decoding for registered FIDO2 credential public keys.

See https://tools.ietf.org/html/rfc8152 and
https://www.iana.org/assignments/cose/cose.xhtml
"""

import base64
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, ClassVar, Optional, Union

from cryptography.hazmat.primitives.asymmetric import ec, rsa

from . import cbor_utils
from .algorithms import (
    EC2_ALGORITHMS,
    OKP_ALGORITHMS,
    OKP_CURVES,
    RSA_ALGORITHMS,
    CoseEllipticCurve,
    CoseKeyType,
    curve_for,
    curve_id_for,
)
from .logging import get_logger

logger = get_logger(__name__)

# COSE key map labels
LABEL_KTY = 1
LABEL_ALG = 3
LABEL_CRV = -1
LABEL_X = -2
LABEL_Y = -3
LABEL_N = -1
LABEL_E = -2


@dataclass(frozen=True)
class EC2Key:
    """Decoded EC2 public key."""

    key_type: ClassVar[CoseKeyType] = CoseKeyType.EC2

    algorithm: int
    curve: CoseEllipticCurve
    x: bytes
    y: bytes

    def to_public_key(self) -> ec.EllipticCurvePublicKey:
        """Build the cryptography public key for this point.

        Raises:
            ValueError: If the point is not on the curve
        """
        curve = curve_for(self.curve)
        if curve is None:
            raise ValueError(f"Unsupported curve: {self.curve}")
        public_numbers = ec.EllipticCurvePublicNumbers(
            int.from_bytes(self.x, byteorder="big"),
            int.from_bytes(self.y, byteorder="big"),
            curve,
        )
        return public_numbers.public_key()

    def to_dict(self) -> dict[str, Any]:
        return {
            "kty": int(self.key_type),
            "alg": int(self.algorithm),
            "crv": int(self.curve),
            "x": self.x.hex(),
            "y": self.y.hex(),
        }


@dataclass(frozen=True)
class RSAKey:
    """Decoded RSA public key."""

    key_type: ClassVar[CoseKeyType] = CoseKeyType.RSA

    algorithm: int
    n: bytes
    e: bytes

    def to_public_key(self) -> rsa.RSAPublicKey:
        """Build the cryptography public key for this modulus/exponent.

        Raises:
            ValueError: If the numbers do not form a valid RSA public key
        """
        public_numbers = rsa.RSAPublicNumbers(
            int.from_bytes(self.e, byteorder="big"),
            int.from_bytes(self.n, byteorder="big"),
        )
        return public_numbers.public_key()

    def to_dict(self) -> dict[str, Any]:
        return {
            "kty": int(self.key_type),
            "alg": int(self.algorithm),
            "n": self.n.hex(),
            "e": self.e.hex(),
        }


CoseKey = Union[EC2Key, RSAKey]


def cose_key_decode(public_key_b64: str) -> Optional[CoseKey]:
    """Decode a base64 CBOR COSE_Key as stored by the credential registry.

    Args:
        public_key_b64: Base64 (standard or URL-safe) of the CBOR COSE_Key

    Returns:
        The decoded key, or None if the record is malformed or unsupported
    """
    try:
        raw = cbor_utils.b64decode_lenient(public_key_b64)
    except (TypeError, ValueError, AttributeError):
        logger.warning("cose_key_invalid_base64", public_key=repr(public_key_b64))
        return None
    return cose_key_decode_bytes(raw)


def cose_key_decode_bytes(raw: bytes) -> Optional[CoseKey]:
    """Decode raw CBOR COSE_Key bytes.

    Returns:
        The decoded key, or None if the record is malformed or unsupported
    """
    try:
        key_map = cbor_utils.decode(raw)
    except (cbor_utils.CBORDecodeError, ValueError, TypeError, EOFError) as e:
        logger.warning("cose_key_invalid_cbor", cbor=bytes(raw).hex(), error=str(e))
        return None
    return cose_key_from_mapping(key_map)


def cose_key_from_mapping(key_map: Any) -> Optional[CoseKey]:
    """Build a typed COSE key from a decoded COSE_Key map.

    Accepts int labels (CBOR) or their decimal string forms (JSON), and any
    of the byte-string shapes handled by ``cbor_utils.normalize_bytes``.

    Returns:
        EC2Key or RSAKey, or None if the map is malformed or unsupported
    """
    if not isinstance(key_map, Mapping):
        logger.warning("cose_key_not_a_map", structure=repr(key_map))
        return None

    k = cbor_utils.normalize_labels(key_map)
    kty = k.get(LABEL_KTY)
    alg = k.get(LABEL_ALG)

    if kty == CoseKeyType.OKP:
        _log_okp_rejection(k, alg)
        return None
    if kty == CoseKeyType.EC2:
        return _decode_ec2(k, alg)
    if kty == CoseKeyType.RSA:
        return _decode_rsa(k, alg)

    logger.warning("cose_key_unsupported_key_type", kty=repr(kty), structure=_describe(k))
    return None


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _decode_ec2(k: dict[int, Any], alg: Any) -> Optional[EC2Key]:
    if not _is_int(alg) or alg not in EC2_ALGORITHMS:
        logger.warning("cose_key_invalid_algorithm", kty="EC2", alg=repr(alg), structure=_describe(k))
        return None

    crv = k.get(LABEL_CRV)
    if not _is_int(crv) or curve_for(crv) is None:
        logger.warning("cose_key_invalid_curve", kty="EC2", crv=repr(crv), structure=_describe(k))
        return None

    x = cbor_utils.normalize_bytes(k.get(LABEL_X))
    y = cbor_utils.normalize_bytes(k.get(LABEL_Y))
    if not x or not y:
        logger.warning("cose_key_invalid_coordinates", kty="EC2", structure=_describe(k))
        return None

    return EC2Key(algorithm=alg, curve=CoseEllipticCurve(crv), x=x, y=y)


def _decode_rsa(k: dict[int, Any], alg: Any) -> Optional[RSAKey]:
    if not _is_int(alg) or alg not in RSA_ALGORITHMS:
        logger.warning("cose_key_invalid_algorithm", kty="RSA", alg=repr(alg), structure=_describe(k))
        return None

    n = cbor_utils.normalize_bytes(k.get(LABEL_N))
    e = cbor_utils.normalize_bytes(k.get(LABEL_E))
    if not n or not e:
        logger.warning("cose_key_invalid_modulus_or_exponent", kty="RSA", structure=_describe(k))
        return None

    return RSAKey(algorithm=alg, n=n, e=e)


def _log_okp_rejection(k: dict[int, Any], alg: Any) -> None:
    # EdDSA keys are recognised but not supported
    if alg not in OKP_ALGORITHMS:
        logger.warning("cose_key_invalid_algorithm", kty="OKP", alg=repr(alg), structure=_describe(k))
    elif k.get(LABEL_CRV) in OKP_CURVES:
        logger.warning("cose_key_eddsa_unsupported", crv=k.get(LABEL_CRV), structure=_describe(k))
    else:
        logger.warning("cose_key_invalid_curve", kty="OKP", crv=repr(k.get(LABEL_CRV)), structure=_describe(k))


def _describe(k: dict[int, Any]) -> dict[str, Any]:
    """JSON-safe rendering of a COSE map for log lines."""
    described: dict[str, Any] = {}
    for label, value in k.items():
        if isinstance(value, (bytes, bytearray)):
            described[str(label)] = bytes(value).hex()
        elif isinstance(value, (int, str, float)) or value is None:
            described[str(label)] = value
        else:
            described[str(label)] = repr(value)
    return described


def cose_key_from_public_key(
    public_key: Union[ec.EllipticCurvePublicKey, rsa.RSAPublicKey],
    algorithm: Optional[int] = None,
) -> dict[int, Any]:
    """Convert a cryptography public key to a COSE_Key map.

    Args:
        public_key: EC (P-256/P-384/P-521) or RSA public key
        algorithm: COSE algorithm to declare; defaults to ES256/ES384/ES512
            by curve for EC keys and RS256 for RSA keys

    Returns:
        COSE key dictionary with integer labels

    Raises:
        ValueError: If the key type or curve is unsupported
    """
    if isinstance(public_key, ec.EllipticCurvePublicKey):
        crv = curve_id_for(public_key.curve)
        if crv is None:
            raise ValueError(f"Unsupported curve: {public_key.curve.name}")
        if algorithm is None:
            algorithm = {
                CoseEllipticCurve.P256: -7,
                CoseEllipticCurve.P384: -35,
                CoseEllipticCurve.P521: -36,
            }[crv]
        size = (public_key.curve.key_size + 7) // 8
        numbers = public_key.public_numbers()
        return {
            LABEL_KTY: int(CoseKeyType.EC2),
            LABEL_ALG: algorithm,
            LABEL_CRV: int(crv),
            LABEL_X: numbers.x.to_bytes(size, byteorder="big"),
            LABEL_Y: numbers.y.to_bytes(size, byteorder="big"),
        }

    if isinstance(public_key, rsa.RSAPublicKey):
        numbers = public_key.public_numbers()
        return {
            LABEL_KTY: int(CoseKeyType.RSA),
            LABEL_ALG: -257 if algorithm is None else algorithm,
            LABEL_N: numbers.n.to_bytes((numbers.n.bit_length() + 7) // 8, byteorder="big"),
            LABEL_E: numbers.e.to_bytes((numbers.e.bit_length() + 7) // 8, byteorder="big"),
        }

    raise ValueError(f"Unsupported key type: {type(public_key)}")


def cose_key_encode(key_map: dict[int, Any]) -> str:
    """Encode a COSE_Key map as base64 CBOR, the registry's storage format."""
    return base64.b64encode(cbor_utils.encode(key_map)).decode("ascii")
