"""Signature verification for registered FIDO2 credentials.

This module provides:
- verify_signature: checks a signature over a hex signature base string
  against a decoded COSE key
- PhotoVerifier: verifies the signature info carried by a photo against
  the registered credential it names

Verification fails closed: every failure is a plain ``False`` (or a
``failed`` result) for the caller, and a warning log line carrying all the
inputs so the failure can be replayed offline.
"""

from dataclasses import dataclass
from typing import Any, Optional, Union

from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.hazmat.primitives.asymmetric import ec, padding, rsa, utils

from .algorithms import AlgorithmDescriptor, CoseAlgorithm, SignatureScheme, describe
from .authenticator_data import parse_authenticator_data
from .cose_keys import CoseKey, cose_key_decode
from .credentials import CredentialResolver, RegisteredCredential
from .logging import get_logger
from .signers import SignatureInfo

logger = get_logger(__name__)


def verify_signature(
    signature_base_hex: str,
    cose_key: Optional[CoseKey],
    signature_hex: str,
    algorithm: int = CoseAlgorithm.ES256,
) -> bool:
    """Verify a signature over a hex signature base string.

    Args:
        signature_base_hex: Hex of the exact bytes that were signed
        cose_key: Decoded public key (None if decoding failed)
        signature_hex: Hex signature; DER for ECDSA (raw r||s also accepted)
        algorithm: COSE algorithm identifier, ES256 by default

    Returns:
        True if the signature is valid, False otherwise. Never raises.
    """
    result = False
    descriptor = describe(algorithm)

    if descriptor is None:
        logger.warning("unsupported_algorithm", algorithm=repr(algorithm))
    elif cose_key is None:
        logger.warning("missing_public_key", algorithm=int(algorithm))
    else:
        try:
            message = bytes.fromhex(signature_base_hex)
            signature = bytes.fromhex(signature_hex)
            result = _verify(descriptor, cose_key, message, signature)
        except InvalidSignature:
            result = False
        except (ValueError, TypeError, UnsupportedAlgorithm) as e:
            logger.warning("signature_verification_error", error=str(e))
            result = False

    if not result:
        logger.warning(
            "signature_verification_failed",
            signature_base=signature_base_hex,
            cose_key=cose_key.to_dict() if cose_key is not None else None,
            signature=signature_hex,
            algorithm=repr(algorithm),
        )

    return result


def _verify(descriptor: AlgorithmDescriptor, cose_key: CoseKey, message: bytes, signature: bytes) -> bool:
    public_key = cose_key.to_public_key()

    if descriptor.scheme is SignatureScheme.ECDSA:
        if not isinstance(public_key, ec.EllipticCurvePublicKey):
            logger.warning("key_type_mismatch", algorithm=descriptor.name, kty=int(cose_key.key_type))
            return False
        for candidate in _ecdsa_der_candidates(signature, public_key):
            try:
                public_key.verify(candidate, message, ec.ECDSA(descriptor.new_hash()))
            except InvalidSignature:
                continue
            return True
        return False

    if not isinstance(public_key, rsa.RSAPublicKey):
        logger.warning("key_type_mismatch", algorithm=descriptor.name, kty=int(cose_key.key_type))
        return False

    if descriptor.scheme is SignatureScheme.RSA_PSS:
        hash_algorithm = descriptor.new_hash()
        pad: padding.AsymmetricPadding = padding.PSS(
            mgf=padding.MGF1(hash_algorithm),
            salt_length=hash_algorithm.digest_size,
        )
    else:
        pad = padding.PKCS1v15()

    public_key.verify(signature, message, pad, descriptor.new_hash())
    return True


def _ecdsa_der_candidates(signature: bytes, public_key: ec.EllipticCurvePublicKey) -> list[bytes]:
    """Return the DER encodings a signature may stand for.

    A signature that parses as DER is tried as is. One of exactly twice the
    coordinate size is also tried as raw r||s, since a raw r can start with
    0x30 and happen to look like a DER header.
    """
    candidates: list[bytes] = []
    try:
        utils.decode_dss_signature(signature)
    except ValueError:
        pass
    else:
        candidates.append(signature)

    size = (public_key.curve.key_size + 7) // 8
    if len(signature) == 2 * size:
        r = int.from_bytes(signature[:size], byteorder="big")
        s = int.from_bytes(signature[size:], byteorder="big")
        candidates.append(utils.encode_dss_signature(r, s))

    return candidates or [signature]


@dataclass(frozen=True)
class PhotoVerificationResult:
    """Outcome of a photo signature check."""

    status: str
    credential: Optional[RegisteredCredential] = None
    reason: Optional[str] = None
    counter: Optional[int] = None

    @property
    def ok(self) -> bool:
        return self.status == "ok"

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"status": self.status}
        if self.credential is not None:
            reg: dict[str, Any] = {"credentialId": self.credential.credential_id.hex()}
            if self.credential.nickname is not None:
                reg["nickname"] = self.credential.nickname
            if self.credential.user_id is not None:
                reg["userId"] = self.credential.user_id
            if self.credential.metadata is not None:
                reg["metadata"] = dict(self.credential.metadata)
            if self.counter is not None:
                reg["counter"] = self.counter
            result["reg"] = reg
        return result


class PhotoVerifier:
    """Verifies photo signature info against registered credentials."""

    def __init__(self, credential_resolver: CredentialResolver, rp_id: str):
        """Initialize photo verifier.

        Args:
            credential_resolver: Function that takes a credential id and
                returns the RegisteredCredential, raising ValueError if unknown
            rp_id: Relying party the credentials must be registered for
        """
        self.credential_resolver = credential_resolver
        self.rp_id = rp_id

    def verify(
        self, content_hash_hex: str, signature_info: Union[SignatureInfo, str, bytes]
    ) -> PhotoVerificationResult:
        """Verify the signature carried by a photo.

        Args:
            content_hash_hex: Hex hash of the image, recomputed by the caller
            signature_info: SignatureInfo or its JSON text (MakerNote)

        Returns:
            PhotoVerificationResult with status "ok" or "failed"
        """
        if not content_hash_hex or not _is_hex(content_hash_hex):
            return self._failed("invalid_content_hash")

        if not isinstance(signature_info, SignatureInfo):
            try:
                signature_info = SignatureInfo.from_json(signature_info)
            except (ValueError, TypeError) as e:
                return self._failed("invalid_signature_info", error=str(e))

        try:
            credential_id = bytes.fromhex(signature_info.credential_id)
            authenticator_data = parse_authenticator_data(
                bytes.fromhex(signature_info.authenticator_data)
            )
        except ValueError as e:
            return self._failed("invalid_signature_info", error=str(e))

        try:
            credential = self.credential_resolver(credential_id)
        except ValueError as e:
            return self._failed("unknown_credential", error=str(e))

        if credential.rp_id != self.rp_id:
            return self._failed("rp_id_mismatch", credential_rp_id=credential.rp_id)
        if not credential.enabled:
            return self._failed("credential_disabled", credential_id=credential_id.hex())
        if not authenticator_data.matches_rp_id(self.rp_id):
            return self._failed("invalid_authenticator_data", credential_id=credential_id.hex())

        cose_key = cose_key_decode(credential.public_key)
        if cose_key is None:
            return self._failed("invalid_public_key", credential_id=credential_id.hex())

        signature_base_hex = signature_info.authenticator_data + content_hash_hex
        if not verify_signature(
            signature_base_hex, cose_key, signature_info.signature, cose_key.algorithm
        ):
            return self._failed("signature_mismatch", credential_id=credential_id.hex())

        logger.info(
            "photo_signature_verified",
            credential_id=credential_id.hex(),
            counter=authenticator_data.counter,
        )
        return PhotoVerificationResult(
            status="ok", credential=credential, counter=authenticator_data.counter
        )

    def _failed(self, reason: str, **context: Any) -> PhotoVerificationResult:
        logger.warning("photo_verification_failed", reason=reason, rp_id=self.rp_id, **context)
        return PhotoVerificationResult(status="failed", reason=reason)


def _is_hex(text: str) -> bool:
    try:
        bytes.fromhex(text)
    except (ValueError, TypeError):
        return False
    return True
