"""Registered FIDO2 credentials and credential resolvers.

Credentials are owned by the external identity registry. This module only
reads them: it parses the registry's registration records and builds
lookup functions keyed by credential id.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from . import cbor_utils

CredentialResolver = Callable[[bytes], "RegisteredCredential"]


@dataclass(frozen=True)
class RegisteredCredential:
    """A credential as registered with the identity service."""

    credential_id: bytes
    public_key: str  # base64 CBOR COSE_Key
    rp_id: str
    enabled: bool = True
    counter: int = 0
    registration_id: Optional[str] = None
    user_id: Optional[str] = None
    nickname: Optional[str] = None
    # icon and description, present only when the registry holds both
    metadata: Optional[dict[str, str]] = field(default=None, hash=False)

    @classmethod
    def from_registration(cls, record: Mapping[str, Any]) -> "RegisteredCredential":
        """Parse one entry of the registry's ``fido2`` registration list.

        The registry stores ``attributes.credentialId`` as base64url.

        Raises:
            ValueError: If required attributes are missing or malformed
        """
        attributes = record.get("attributes")
        if not isinstance(attributes, Mapping):
            raise ValueError("Registration record missing attributes")

        credential_id = attributes.get("credentialId")
        public_key = attributes.get("credentialPublicKey")
        rp_id = attributes.get("rpId")
        if not credential_id or not public_key or not rp_id:
            raise ValueError(
                "Registration record requires credentialId, credentialPublicKey and rpId"
            )

        return cls(
            credential_id=cbor_utils.b64url_decode(credential_id),
            public_key=public_key,
            rp_id=rp_id,
            enabled=bool(record.get("enabled", True)),
            counter=int(attributes.get("counter") or 0),
            registration_id=record.get("id"),
            user_id=record.get("userId"),
            nickname=attributes.get("nickname"),
            metadata=_metadata(attributes),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "credentialId": self.credential_id.hex(),
            "rpId": self.rp_id,
            "enabled": self.enabled,
            "counter": self.counter,
            "registrationId": self.registration_id,
            "userId": self.user_id,
            "nickname": self.nickname,
            "metadata": self.metadata,
        }


def _metadata(attributes: Mapping[str, Any]) -> Optional[dict[str, str]]:
    icon = attributes.get("icon")
    description = attributes.get("description")
    if icon is None or description is None:
        return None
    return {"icon": icon, "description": description}


def credentials_from_registrations(payload: Mapping[str, Any]) -> list[RegisteredCredential]:
    """Parse a registry search response (``{"fido2": [...]}``).

    Raises:
        ValueError: If the payload or any record is malformed
    """
    records = payload.get("fido2")
    if not isinstance(records, list):
        raise ValueError("Registration payload missing fido2 list")
    return [RegisteredCredential.from_registration(record) for record in records]


def credential_id_resolver(
    credentials: Iterable[RegisteredCredential], rp_id: Optional[str] = None
) -> CredentialResolver:
    """Create a resolver function for credentials based on credential id.

    Args:
        credentials: Registered credentials to serve
        rp_id: Only serve credentials registered for this relying party

    Returns:
        Resolver function that takes a credential id and returns the
        corresponding RegisteredCredential

    Raises:
        ValueError: If resolver is called with an id that doesn't match any
            credential
    """
    by_id: dict[bytes, RegisteredCredential] = {}
    for credential in credentials:
        if rp_id is not None and credential.rp_id != rp_id:
            continue
        by_id[credential.credential_id] = credential

    def resolve_credential(credential_id: bytes) -> RegisteredCredential:
        if credential_id not in by_id:
            raise ValueError(f"Unknown credentialId: {credential_id.hex()[:16]}...")
        return by_id[credential_id]

    return resolve_credential
