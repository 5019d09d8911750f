"""Shared cryptographic helpers for JOSE key import and algorithm resolution.

Internal module, used by signer, kb_jwt, verifier and the sd_jwt CLI.
"""

import json
from collections.abc import Collection
from pathlib import Path

from cryptography.hazmat.primitives.asymmetric.ec import (
    EllipticCurvePrivateKey,
    EllipticCurvePublicKey,
)
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)
from joserfc import jws
from joserfc.jwk import ECKey, OKPKey
from sdjwt.keys import (
    PrivateKey,
    PublicKeyType,
    jwk_to_private_key,
    jwk_to_public_key,
    keypair_to_jwk,
    p256_keypair_to_jwk,
    p256_public_key_to_jwk,
    public_key_to_jwk,
)

# Headers carrying a jwk or did:key kid exceed joserfc's 512 byte default
MAX_HEADER_LENGTH = 8192


def import_private_key(private_key: PrivateKey) -> ECKey | OKPKey:
    """Import a cryptography private key into a joserfc JWK."""
    if isinstance(private_key, EllipticCurvePrivateKey):
        return ECKey.import_key(p256_keypair_to_jwk(private_key))
    elif isinstance(private_key, Ed25519PrivateKey):
        return OKPKey.import_key(keypair_to_jwk(private_key))
    raise TypeError(f"Unsupported key type: {type(private_key)}")


def import_public_key(public_key: PublicKeyType) -> ECKey | OKPKey:
    """Import a cryptography public key into a joserfc JWK."""
    if isinstance(public_key, EllipticCurvePublicKey):
        return ECKey.import_key(p256_public_key_to_jwk(public_key))
    elif isinstance(public_key, Ed25519PublicKey):
        return OKPKey.import_key(public_key_to_jwk(public_key))
    raise TypeError(f"Unsupported key type: {type(public_key)}")


def resolve_private_key_alg(private_key: PrivateKey, alg: str | None) -> str:
    """Determine the JWS algorithm from a private key type."""
    if alg is not None:
        return alg
    if isinstance(private_key, EllipticCurvePrivateKey):
        return "ES256"
    if isinstance(private_key, Ed25519PrivateKey):
        return "EdDSA"
    raise TypeError(f"Unsupported key type: {type(private_key)}")


def jws_registry(algorithms: Collection[str] | None = None) -> jws.JWSRegistry:
    """Build a JWS registry restricted to ``algorithms`` with a larger header limit."""
    registry = jws.JWSRegistry(algorithms=list(algorithms) if algorithms else None)
    registry.max_header_length = MAX_HEADER_LENGTH
    return registry


def load_private_key(jwk_path: str) -> PrivateKey:
    """Load a private key from a JWK file."""
    return jwk_to_private_key(json.loads(Path(jwk_path).read_text()))


def load_public_key(jwk_path: str) -> PublicKeyType:
    """Load a public key from a JWK file."""
    return jwk_to_public_key(json.loads(Path(jwk_path).read_text()))
