"""COSE algorithm, key type and curve registry.

See https://www.iana.org/assignments/cose/cose.xhtml for the identifiers.
Only the subset needed to verify registered FIDO2 credentials is listed.
"""

from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Optional

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec


class CoseKeyType(IntEnum):
    """COSE key types (label 1)."""

    OKP = 1
    EC2 = 2
    RSA = 3


class CoseAlgorithm(IntEnum):
    """COSE algorithm identifiers (label 3)."""

    ES256 = -7
    EdDSA = -8
    ES384 = -35
    ES512 = -36
    PS256 = -37
    PS384 = -38
    PS512 = -39
    RS256 = -257
    RS384 = -258
    RS512 = -259
    RS1 = -65535


class CoseEllipticCurve(IntEnum):
    """COSE elliptic curve identifiers (label -1)."""

    P256 = 1
    P384 = 2
    P521 = 3  # 521, not 512
    Ed25519 = 6
    Ed448 = 7


class SignatureScheme(str, Enum):
    """Signature schemes a COSE algorithm can resolve to."""

    ECDSA = "ECDSA"
    RSA_PKCS1 = "RSASSA-PKCS1-v1_5"
    RSA_PSS = "RSASSA-PSS"


@dataclass(frozen=True)
class AlgorithmDescriptor:
    """Signature scheme and hash for one COSE algorithm id."""

    identifier: int
    name: str
    scheme: SignatureScheme
    hash_algorithm: type[hashes.HashAlgorithm]

    def new_hash(self) -> hashes.HashAlgorithm:
        return self.hash_algorithm()


_ALGORITHMS: dict[int, AlgorithmDescriptor] = {
    d.identifier: d
    for d in (
        AlgorithmDescriptor(CoseAlgorithm.ES256, "ES256", SignatureScheme.ECDSA, hashes.SHA256),
        AlgorithmDescriptor(CoseAlgorithm.ES384, "ES384", SignatureScheme.ECDSA, hashes.SHA384),
        AlgorithmDescriptor(CoseAlgorithm.ES512, "ES512", SignatureScheme.ECDSA, hashes.SHA512),
        AlgorithmDescriptor(CoseAlgorithm.PS256, "PS256", SignatureScheme.RSA_PSS, hashes.SHA256),
        AlgorithmDescriptor(CoseAlgorithm.PS384, "PS384", SignatureScheme.RSA_PSS, hashes.SHA384),
        AlgorithmDescriptor(CoseAlgorithm.PS512, "PS512", SignatureScheme.RSA_PSS, hashes.SHA512),
        AlgorithmDescriptor(CoseAlgorithm.RS256, "RS256", SignatureScheme.RSA_PKCS1, hashes.SHA256),
        AlgorithmDescriptor(CoseAlgorithm.RS384, "RS384", SignatureScheme.RSA_PKCS1, hashes.SHA384),
        AlgorithmDescriptor(CoseAlgorithm.RS512, "RS512", SignatureScheme.RSA_PKCS1, hashes.SHA512),
        AlgorithmDescriptor(CoseAlgorithm.RS1, "RS1", SignatureScheme.RSA_PKCS1, hashes.SHA1),
    )
}

# Algorithms a decoded key of each type may declare
EC2_ALGORITHMS = frozenset({CoseAlgorithm.ES256, CoseAlgorithm.ES384, CoseAlgorithm.ES512})
RSA_ALGORITHMS = frozenset(
    {
        CoseAlgorithm.PS256,
        CoseAlgorithm.PS384,
        CoseAlgorithm.PS512,
        CoseAlgorithm.RS256,
        CoseAlgorithm.RS384,
        CoseAlgorithm.RS512,
        CoseAlgorithm.RS1,
    }
)
OKP_ALGORITHMS = frozenset({CoseAlgorithm.EdDSA})

_CURVES: dict[int, type[ec.EllipticCurve]] = {
    CoseEllipticCurve.P256: ec.SECP256R1,
    CoseEllipticCurve.P384: ec.SECP384R1,
    CoseEllipticCurve.P521: ec.SECP521R1,
}

OKP_CURVES = frozenset({CoseEllipticCurve.Ed25519, CoseEllipticCurve.Ed448})


def describe(algorithm_id: int) -> Optional[AlgorithmDescriptor]:
    """Look up the descriptor for a COSE algorithm id.

    Args:
        algorithm_id: COSE algorithm identifier (e.g. -7)

    Returns:
        The descriptor, or None if the algorithm is not supported
    """
    if isinstance(algorithm_id, bool) or not isinstance(algorithm_id, int):
        return None
    return _ALGORITHMS.get(algorithm_id)


def curve_for(curve_id: int) -> Optional[ec.EllipticCurve]:
    """Return a cryptography curve instance for a COSE EC2 curve id."""
    if isinstance(curve_id, bool) or not isinstance(curve_id, int):
        return None
    curve_cls = _CURVES.get(curve_id)
    return curve_cls() if curve_cls is not None else None


def curve_id_for(curve: ec.EllipticCurve) -> Optional[CoseEllipticCurve]:
    """Map a cryptography curve back to its COSE curve id."""
    for curve_id, curve_cls in _CURVES.items():
        if isinstance(curve, curve_cls):
            return CoseEllipticCurve(curve_id)
    return None


def coordinate_size(curve_id: int) -> int:
    """Byte length of one coordinate on a COSE EC2 curve."""
    curve = curve_for(curve_id)
    if curve is None:
        raise ValueError(f"Unsupported curve: {curve_id}")
    return (curve.key_size + 7) // 8


def supported_algorithms() -> list[AlgorithmDescriptor]:
    """All descriptors in the registry, ordered by identifier (descending)."""
    return sorted(_ALGORITHMS.values(), key=lambda d: d.identifier, reverse=True)
