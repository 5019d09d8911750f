"""Key generation, JWK import/export and did:key encoding for Ed25519 and P-256.

Issuers sign with these keys; holders put their public key in ``cnf`` or in the
key-binding token header (as a JWK or a did:key ``kid``).

CLI Usage:
    python -m sdjwt.keys --help
    python -m sdjwt.keys generate --algorithm ES256
    python -m sdjwt.keys convert --input key.jwk --format did-key
"""

import argparse
import json
import sys
from pathlib import Path

import base58
from cryptography.hazmat.primitives.asymmetric.ec import (
    SECP256R1,
    EllipticCurvePrivateKey,
    EllipticCurvePrivateNumbers,
    EllipticCurvePublicKey,
    EllipticCurvePublicNumbers,
    generate_private_key,
)
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)
from cryptography.hazmat.primitives.serialization import (
    Encoding,
    NoEncryption,
    PrivateFormat,
    PublicFormat,
)
from sdjwt.digests import b64url_decode, b64url_encode

# Multicodec prefixes (varint-encoded)
_ED25519_MULTICODEC_PREFIX = b"\xed\x01"  # ed25519-pub 0xed
_P256_MULTICODEC_PREFIX = b"\x80\x24"  # p256-pub 0x1200

_DID_KEY_PREFIX = "did:key:"

# Union type for keys supported by this module
PrivateKey = Ed25519PrivateKey | EllipticCurvePrivateKey
PublicKeyType = Ed25519PublicKey | EllipticCurvePublicKey


# ---------------------------------------------------------------------------
# Ed25519 keys
# ---------------------------------------------------------------------------


def generate_ed25519_keypair() -> tuple[Ed25519PrivateKey, Ed25519PublicKey]:
    """Generate a fresh Ed25519 key pair."""
    private_key = Ed25519PrivateKey.generate()
    return private_key, private_key.public_key()


def keypair_to_jwk(private_key: Ed25519PrivateKey) -> dict:
    """Export an Ed25519 private key as a JWK dict (OKP/Ed25519)."""
    raw_private = private_key.private_bytes(
        Encoding.Raw, PrivateFormat.Raw, NoEncryption()
    )
    return {**public_key_to_jwk(private_key.public_key()), "d": b64url_encode(raw_private)}


def public_key_to_jwk(public_key: Ed25519PublicKey) -> dict:
    """Export an Ed25519 public key as a JWK dict (OKP/Ed25519)."""
    raw_public = public_key.public_bytes(Encoding.Raw, PublicFormat.Raw)
    return {
        "kty": "OKP",
        "crv": "Ed25519",
        "x": b64url_encode(raw_public),
    }


# ---------------------------------------------------------------------------
# P-256 (ES256) keys
# ---------------------------------------------------------------------------


def generate_p256_keypair() -> tuple[EllipticCurvePrivateKey, EllipticCurvePublicKey]:
    """Generate a fresh P-256 (secp256r1) key pair."""
    private_key = generate_private_key(SECP256R1())
    return private_key, private_key.public_key()


def p256_keypair_to_jwk(private_key: EllipticCurvePrivateKey) -> dict:
    """Export a P-256 private key as a JWK dict (EC/P-256)."""
    numbers = private_key.private_numbers()
    return {
        **p256_public_key_to_jwk(private_key.public_key()),
        "d": b64url_encode(numbers.private_value.to_bytes(32, "big")),
    }


def p256_public_key_to_jwk(public_key: EllipticCurvePublicKey) -> dict:
    """Export a P-256 public key as a JWK dict (EC/P-256)."""
    numbers = public_key.public_numbers()
    return {
        "kty": "EC",
        "crv": "P-256",
        "x": b64url_encode(numbers.x.to_bytes(32, "big")),
        "y": b64url_encode(numbers.y.to_bytes(32, "big")),
    }


# ---------------------------------------------------------------------------
# Generic JWK conversion
# ---------------------------------------------------------------------------


def to_public_jwk(public_key: PublicKeyType) -> dict:
    """Export either supported public key type as a JWK dict."""
    if isinstance(public_key, EllipticCurvePublicKey):
        return p256_public_key_to_jwk(public_key)
    if isinstance(public_key, Ed25519PublicKey):
        return public_key_to_jwk(public_key)
    raise TypeError(f"Unsupported key type: {type(public_key)}")


def jwk_to_private_key(jwk: dict) -> PrivateKey:
    """Import a private JWK dict (EC/P-256 or OKP/Ed25519)."""
    if jwk.get("kty") == "EC" and jwk.get("crv") == "P-256":
        public_numbers = _p256_public_numbers(jwk)
        d = int.from_bytes(_b64url_member(jwk, "d"), "big")
        return EllipticCurvePrivateNumbers(d, public_numbers).private_key()
    elif jwk.get("kty") == "OKP" and jwk.get("crv") == "Ed25519":
        return Ed25519PrivateKey.from_private_bytes(_b64url_member(jwk, "d"))
    raise ValueError(f"Unsupported key type: {jwk.get('kty')}/{jwk.get('crv')}")


def jwk_to_public_key(jwk: dict) -> PublicKeyType:
    """Import a public JWK dict (EC/P-256 or OKP/Ed25519)."""
    if jwk.get("kty") == "EC" and jwk.get("crv") == "P-256":
        return _p256_public_numbers(jwk).public_key()
    elif jwk.get("kty") == "OKP" and jwk.get("crv") == "Ed25519":
        return Ed25519PublicKey.from_public_bytes(_b64url_member(jwk, "x"))
    raise ValueError(f"Unsupported key type: {jwk.get('kty')}/{jwk.get('crv')}")


def _p256_public_numbers(jwk: dict) -> EllipticCurvePublicNumbers:
    x = int.from_bytes(_b64url_member(jwk, "x"), "big")
    y = int.from_bytes(_b64url_member(jwk, "y"), "big")
    return EllipticCurvePublicNumbers(x, y, SECP256R1())


def _b64url_member(jwk: dict, name: str) -> bytes:
    value = jwk.get(name)
    if not isinstance(value, str):
        raise ValueError(f"JWK is missing required member {name!r}")
    return b64url_decode(value)


# ---------------------------------------------------------------------------
# did:key
# ---------------------------------------------------------------------------


def public_key_to_did_key(public_key: PublicKeyType) -> str:
    """Derive a did:key identifier (z6Mk... for Ed25519, zDn... for P-256)."""
    if isinstance(public_key, Ed25519PublicKey):
        raw = public_key.public_bytes(Encoding.Raw, PublicFormat.Raw)
        multicodec = _ED25519_MULTICODEC_PREFIX + raw
    elif isinstance(public_key, EllipticCurvePublicKey):
        # Compressed SEC1 encoding (33 bytes)
        compressed = public_key.public_bytes(
            Encoding.X962, PublicFormat.CompressedPoint
        )
        multicodec = _P256_MULTICODEC_PREFIX + compressed
    else:
        raise TypeError(f"Unsupported key type: {type(public_key)}")
    return _DID_KEY_PREFIX + "z" + base58.b58encode(multicodec).decode()


def did_key_to_public_key(did: str) -> PublicKeyType:
    """Resolve a did:key identifier (with or without #fragment) to its public key.

    Raises:
        ValueError: If ``did`` is not a did:key for Ed25519 or P-256.
    """
    if not did.startswith(_DID_KEY_PREFIX):
        raise ValueError(f"Not a did:key identifier: {did!r}")
    multibase = did[len(_DID_KEY_PREFIX) :].split("#", 1)[0]
    if not multibase.startswith("z"):
        raise ValueError(f"did:key must use base58btc multibase: {did!r}")
    decoded = base58.b58decode(multibase[1:])

    if decoded.startswith(_ED25519_MULTICODEC_PREFIX):
        return Ed25519PublicKey.from_public_bytes(
            decoded[len(_ED25519_MULTICODEC_PREFIX) :]
        )
    if decoded.startswith(_P256_MULTICODEC_PREFIX):
        return EllipticCurvePublicKey.from_encoded_point(
            SECP256R1(), decoded[len(_P256_MULTICODEC_PREFIX) :]
        )
    raise ValueError(f"Unsupported did:key multicodec in {did!r}")


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------


def main():
    """CLI entry point for key operations."""
    parser = argparse.ArgumentParser(
        prog="sdjwt.keys",
        description="SD-JWT Key Management CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m sdjwt.keys generate --algorithm ES256 --output key.jwk
  python -m sdjwt.keys generate --algorithm EdDSA --public-only
  python -m sdjwt.keys convert --input key.jwk --format did-key
        """,
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    gen_parser = subparsers.add_parser(
        "generate",
        help="Generate a new keypair (Ed25519 or P-256)",
        description="Generate a keypair for issuer or holder signing.",
    )
    gen_parser.add_argument(
        "--algorithm",
        "-a",
        choices=["ES256", "EdDSA"],
        default="ES256",
        help="Algorithm: ES256 (P-256) or EdDSA (Ed25519). Default: ES256",
    )
    gen_parser.add_argument("--output", "-o", help="Output file for JWK (default: stdout)")
    gen_parser.add_argument(
        "--public-only", action="store_true", help="Output only public key"
    )

    conv_parser = subparsers.add_parser(
        "convert",
        help="Convert a JWK to its public JWK or did:key form",
        description="Convert between key representations.",
    )
    conv_parser.add_argument("--input", "-i", required=True, help="Input key file (JWK)")
    conv_parser.add_argument(
        "--format",
        "-f",
        choices=["jwk", "did-key"],
        default="did-key",
        help="Output format. Default: did-key",
    )

    args = parser.parse_args()

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    if args.command == "generate":
        if args.algorithm == "ES256":
            priv, pub = generate_p256_keypair()
            jwk = p256_public_key_to_jwk(pub) if args.public_only else p256_keypair_to_jwk(priv)
        else:  # EdDSA
            priv, pub = generate_ed25519_keypair()
            jwk = public_key_to_jwk(pub) if args.public_only else keypair_to_jwk(priv)

        output = json.dumps(jwk, indent=2)
        if args.output:
            Path(args.output).write_text(output)
            print(f"Key written to {args.output}", file=sys.stderr)
        else:
            print(output)

    elif args.command == "convert":
        jwk = json.loads(Path(args.input).read_text())
        try:
            pub = jwk_to_public_key(jwk)
        except ValueError as e:
            print(str(e), file=sys.stderr)
            sys.exit(1)
        if args.format == "did-key":
            print(public_key_to_did_key(pub))
        else:
            print(json.dumps(to_public_jwk(pub), indent=2))


if __name__ == "__main__":
    main()
