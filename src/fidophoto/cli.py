"""Command-line interface for fidophoto."""

import argparse
import json
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import Optional

from . import __version__
from .access_tokens import AccessTokenManager, Authenticated
from .config import get_settings
from .cose_keys import cose_key_decode
from .credentials import RegisteredCredential, credential_id_resolver
from .errors import ConfigurationError
from .logging import configure_logging
from .signers import ContentSigner, SignatureInfo
from .verifiers import PhotoVerifier


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="fidophoto",
        description="Verify FIDO2-signed photos and manage user access tokens",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument("--log-level", help="Log level (default from FIDOPHOTO_LOG_LEVEL)")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Decode-key subcommand
    decode_parser = subparsers.add_parser("decode-key", help="Decode a base64 COSE public key")
    decode_parser.add_argument("public_key", help="Base64 CBOR COSE_Key")

    # Sign subcommand
    sign_parser = subparsers.add_parser("sign", help="Sign a content hash")
    sign_parser.add_argument("--private-key-hex", required=True, help="P-256 private scalar (hex)")
    sign_parser.add_argument("--credential-id", required=True, help="Credential id (hex)")
    sign_parser.add_argument("--content-hash", required=True, help="Content hash (hex)")
    sign_parser.add_argument("--rp-id", help="Relying party id (default from FIDOPHOTO_RP_ID)")
    sign_parser.add_argument("--counter", type=int, help="Signature counter (default: epoch seconds)")
    sign_parser.add_argument("--user-present", action="store_true", help="Set the UP flag")
    sign_parser.add_argument("--user-verified", action="store_true", help="Set the UV flag")

    # Verify subcommand
    verify_parser = subparsers.add_parser("verify", help="Verify signature info against a public key")
    verify_parser.add_argument("--public-key", required=True, help="Base64 CBOR COSE_Key")
    verify_parser.add_argument(
        "--signature-info", required=True, help="Signature info JSON, or @path to a JSON file"
    )
    verify_parser.add_argument("--content-hash", required=True, help="Content hash (hex)")
    verify_parser.add_argument("--rp-id", help="Relying party id (default from FIDOPHOTO_RP_ID)")

    # Token subcommands
    issue_parser = subparsers.add_parser("issue-token", help="Issue an access token for an account")
    issue_parser.add_argument("account_id", help="Account identifier")
    issue_parser.add_argument("--secret", help="Token secret (default from FIDOPHOTO_SECRET)")

    resolve_parser = subparsers.add_parser("resolve-token", help="Resolve an access token")
    resolve_parser.add_argument("token", help="Access token")
    resolve_parser.add_argument("--secret", help="Token secret (default from FIDOPHOTO_SECRET)")

    return parser


def _read_signature_info(value: str) -> str:
    if value.startswith("@"):
        return Path(value[1:]).read_text()
    return value


def _token_manager(secret: Optional[str]) -> AccessTokenManager:
    if secret:
        return AccessTokenManager(secret)
    return AccessTokenManager.from_settings(get_settings())


def cmd_decode_key(args: argparse.Namespace) -> int:
    key = cose_key_decode(args.public_key)
    if key is None:
        print("Invalid or unsupported COSE key", file=sys.stderr)
        return 1
    print(json.dumps(key.to_dict(), indent=2))
    return 0


def cmd_sign(args: argparse.Namespace) -> int:
    rp_id = args.rp_id or get_settings().rp_id
    try:
        signer = ContentSigner.from_private_key_hex(
            args.private_key_hex, bytes.fromhex(args.credential_id), rp_id
        )
        info = signer.sign(
            args.content_hash,
            counter=args.counter,
            user_present=args.user_present,
            user_verified=args.user_verified,
        )
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    print(info.to_json())
    return 0


def cmd_verify(args: argparse.Namespace) -> int:
    rp_id = args.rp_id or get_settings().rp_id
    try:
        info = SignatureInfo.from_json(_read_signature_info(args.signature_info))
        credential_id = bytes.fromhex(info.credential_id)
    except (OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    credential = RegisteredCredential(
        credential_id=credential_id, public_key=args.public_key, rp_id=rp_id
    )
    verifier = PhotoVerifier(credential_id_resolver([credential]), rp_id)
    result = verifier.verify(args.content_hash, info)

    print(json.dumps({"status": result.status, "reason": result.reason, "counter": result.counter}))
    return 0 if result.ok else 1


def cmd_issue_token(args: argparse.Namespace) -> int:
    try:
        print(_token_manager(args.secret).issue(args.account_id))
    except (ConfigurationError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


def cmd_resolve_token(args: argparse.Namespace) -> int:
    try:
        manager = _token_manager(args.secret)
    except ConfigurationError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    result = manager.authenticate(args.token)
    if not isinstance(result, Authenticated):
        print("Invalid token", file=sys.stderr)
        return 1
    print(result.account_id)
    return 0


COMMANDS = {
    "decode-key": cmd_decode_key,
    "sign": cmd_sign,
    "verify": cmd_verify,
    "issue-token": cmd_issue_token,
    "resolve-token": cmd_resolve_token,
}


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main CLI entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    settings = get_settings()
    configure_logging(args.log_level or settings.log_level, json_output=settings.log_json)

    return COMMANDS[args.command](args)


if __name__ == "__main__":
    sys.exit(main())
