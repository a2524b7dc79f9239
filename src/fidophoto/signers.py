"""Content signing with a FIDO2-like signature.

This is the capture side of photo verification: the device holding the
credential's private key signs the hash of the image, and the resulting
signature info travels with the image (as JSON in the EXIF MakerNote).
"""

import json
import time
from dataclasses import dataclass
from typing import Any, Optional, Union

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec

from .authenticator_data import build_authenticator_data
from .cose_keys import cose_key_encode, cose_key_from_public_key


@dataclass(frozen=True)
class SignatureInfo:
    """Signature information presented alongside signed content (all hex)."""

    credential_id: str
    authenticator_data: str
    signature: str

    def to_dict(self) -> dict[str, str]:
        return {
            "credentialId": self.credential_id,
            "authenticatorData": self.authenticator_data,
            "signature": self.signature,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_dict(cls, data: Any) -> "SignatureInfo":
        """Parse the MakerNote signature info object.

        Raises:
            ValueError: If a field is missing or not a string
        """
        if not isinstance(data, dict):
            raise ValueError("Signature info must be a JSON object")
        fields = {}
        for name in ("credentialId", "authenticatorData", "signature"):
            value = data.get(name)
            if not isinstance(value, str) or not value:
                raise ValueError(f"Signature Info JSON missing {name}")
            fields[name] = value
        return cls(
            credential_id=fields["credentialId"],
            authenticator_data=fields["authenticatorData"],
            signature=fields["signature"],
        )

    @classmethod
    def from_json(cls, text: Union[str, bytes]) -> "SignatureInfo":
        """Parse signature info JSON text.

        Raises:
            ValueError: If the text is not valid JSON or a field is missing
        """
        return cls.from_dict(json.loads(text))


_CURVE_HASHES: dict[type[ec.EllipticCurve], type[hashes.HashAlgorithm]] = {
    ec.SECP256R1: hashes.SHA256,
    ec.SECP384R1: hashes.SHA384,
    ec.SECP521R1: hashes.SHA512,
}


class ContentSigner:
    """Signs content hashes with a credential's EC private key."""

    def __init__(self, private_key: ec.EllipticCurvePrivateKey, credential_id: bytes, rp_id: str):
        """Initialize content signer.

        Args:
            private_key: Credential private key (P-256, P-384 or P-521)
            credential_id: Registered credential id
            rp_id: Relying party id the credential is registered for

        Raises:
            ValueError: If the key's curve is not supported
        """
        hash_cls = _CURVE_HASHES.get(type(private_key.curve))
        if hash_cls is None:
            raise ValueError(f"Unsupported curve: {private_key.curve.name}")
        self.private_key = private_key
        self.credential_id = credential_id
        self.rp_id = rp_id
        self._hash_cls = hash_cls

    @classmethod
    def from_private_key_hex(
        cls, private_key_hex: str, credential_id: bytes, rp_id: str
    ) -> "ContentSigner":
        """Create a signer from a raw P-256 private scalar in hex."""
        private_value = int(private_key_hex, 16)
        private_key = ec.derive_private_key(private_value, ec.SECP256R1())
        return cls(private_key, credential_id, rp_id)

    def public_cose_key(self) -> str:
        """Base64 CBOR COSE_Key of the public half, as the registry stores it."""
        return cose_key_encode(cose_key_from_public_key(self.private_key.public_key()))

    def sign(
        self,
        content_hash_hex: str,
        counter: Optional[int] = None,
        user_present: bool = False,
        user_verified: bool = False,
    ) -> SignatureInfo:
        """Sign a content hash.

        Args:
            content_hash_hex: Hex hash of the content being vouched for
            counter: Signature counter; defaults to the current epoch seconds
            user_present: Set the UP flag
            user_verified: Set the UV flag

        Returns:
            SignatureInfo with a DER ECDSA signature
        """
        if counter is None:
            counter = int(time.time())

        authenticator_data_hex = build_authenticator_data(
            self.rp_id, user_present, user_verified, counter
        ).hex()
        signature_base_hex = authenticator_data_hex + content_hash_hex

        signature_der = self.private_key.sign(
            bytes.fromhex(signature_base_hex),
            ec.ECDSA(self._hash_cls()),
        )

        return SignatureInfo(
            credential_id=self.credential_id.hex(),
            authenticator_data=authenticator_data_hex,
            signature=signature_der.hex(),
        )
