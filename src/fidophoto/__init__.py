"""fidophoto: FIDO2 credential signature verification for photos and user access tokens."""

__version__ = "0.1.0"

# Hide module imports
from . import (
    access_tokens,
    algorithms,
    authenticator_data,
    cose_keys,
    credentials,
    signers,
    token_cache,
    token_cipher,
    verifiers,
)
from .access_tokens import (
    AccessTokenManager,
    Anonymous,
    Authenticated,
    AuthResult,
    issue_access_token,
    resolve_access_token,
)
from .algorithms import (
    AlgorithmDescriptor,
    CoseAlgorithm,
    CoseEllipticCurve,
    CoseKeyType,
    SignatureScheme,
    describe,
)
from .authenticator_data import (
    AuthenticatorData,
    build_authenticator_data,
    build_signature_base,
    parse_authenticator_data,
)
from .cose_keys import (
    CoseKey,
    EC2Key,
    RSAKey,
    cose_key_decode,
    cose_key_decode_bytes,
    cose_key_encode,
    cose_key_from_mapping,
    cose_key_from_public_key,
)
from .credentials import (
    RegisteredCredential,
    credential_id_resolver,
    credentials_from_registrations,
)
from .signers import ContentSigner, SignatureInfo
from .token_cache import CachedToken, TokenCache
from .token_cipher import decrypt, encrypt
from .verifiers import PhotoVerificationResult, PhotoVerifier, verify_signature

del access_tokens, algorithms, authenticator_data, cose_keys, credentials
del signers, token_cache, token_cipher, verifiers


__all__ = [
    "__version__",
    # COSE keys
    "CoseKey",
    "EC2Key",
    "RSAKey",
    "cose_key_decode",
    "cose_key_decode_bytes",
    "cose_key_from_mapping",
    "cose_key_from_public_key",
    "cose_key_encode",
    # Algorithm registry
    "AlgorithmDescriptor",
    "CoseAlgorithm",
    "CoseEllipticCurve",
    "CoseKeyType",
    "SignatureScheme",
    "describe",
    # Signature base string
    "AuthenticatorData",
    "build_authenticator_data",
    "build_signature_base",
    "parse_authenticator_data",
    # Verification
    "verify_signature",
    "PhotoVerifier",
    "PhotoVerificationResult",
    # Signing
    "ContentSigner",
    "SignatureInfo",
    # Registered credentials
    "RegisteredCredential",
    "credential_id_resolver",
    "credentials_from_registrations",
    # Token cipher and access tokens
    "encrypt",
    "decrypt",
    "issue_access_token",
    "resolve_access_token",
    "AccessTokenManager",
    "Authenticated",
    "Anonymous",
    "AuthResult",
    # Admin token cache
    "CachedToken",
    "TokenCache",
]
