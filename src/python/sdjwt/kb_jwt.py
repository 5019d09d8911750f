"""Key Binding JWT (KB-JWT) for holder-bound SD-JWT presentations.

The holder signs ``{nonce, aud, iat, sd_hash}`` with the key the credential is
bound to. ``sd_hash`` covers the whole presentation up to and including the
``~`` before the KB-JWT, so disclosures cannot be swapped after signing.
"""

import time
from typing import TYPE_CHECKING, Any

from sdjwt.errors import HolderBindingError
from sdjwt.keys import PrivateKey, to_public_jwk
from sdjwt.signer import Jwt, build_header

if TYPE_CHECKING:
    from sdjwt.sd_jwt import SdJwt

KB_JWT_TYP = "kb+jwt"


def compute_sd_hash(sd_jwt: "SdJwt") -> str:
    """Digest of ``<issuer-jwt>~<disclosure>~...~`` under the token's ``_sd_alg``."""
    return sd_jwt.hash_alg.digest(sd_jwt.serialize_without_kb())


def create_kb_jwt(
    sd_jwt: "SdJwt",
    holder_private_key: PrivateKey,
    *,
    nonce: str,
    audience: str,
    iat: int | None = None,
    kid: str | None = None,
    include_jwk: bool = False,
    alg: str | None = None,
) -> Jwt:
    """Create a signed Key Binding JWT for ``sd_jwt``.

    Args:
        sd_jwt: The presentation being bound (its own KB-JWT, if any, is ignored).
        holder_private_key: Holder's private key.
        nonce: Verifier-provided nonce for replay protection.
        audience: Verifier identifier (DID or URL).
        iat: Issued-at time. Default: now.
        kid: Key ID for the header, e.g. the holder's did:key.
        include_jwk: Put the holder's public JWK in the header.
        alg: Algorithm override. Default: ES256 for P-256, EdDSA for Ed25519.

    Returns:
        The signed KB-JWT.
    """
    kb_payload = {
        "nonce": nonce,
        "aud": audience,
        "iat": int(time.time()) if iat is None else iat,
        "sd_hash": compute_sd_hash(sd_jwt),
    }
    jwk = to_public_jwk(holder_private_key.public_key()) if include_jwk else None
    header = build_header(KB_JWT_TYP, kid=kid, jwk=jwk)
    return Jwt(header, kb_payload).sign(holder_private_key, alg)


def verify_kb_jwt_claims(
    sd_jwt: "SdJwt",
    kb_claims: dict[str, Any],
    *,
    expected_nonce: str,
    expected_audience: str,
) -> None:
    """Check nonce, audience and ``sd_hash`` of an already signature-checked KB-JWT.

    Raises:
        HolderBindingError: If any claim does not match.
    """
    actual_nonce = kb_claims.get("nonce")
    if actual_nonce != expected_nonce:
        raise HolderBindingError(
            f"Nonce mismatch: expected {expected_nonce!r}, got {actual_nonce!r}"
        )

    actual_aud = kb_claims.get("aud")
    if isinstance(actual_aud, list):
        audience_ok = expected_audience in actual_aud
    else:
        audience_ok = actual_aud == expected_audience
    if not audience_ok:
        raise HolderBindingError(
            f"Audience mismatch: expected {expected_audience!r}, got {actual_aud!r}"
        )

    actual_sd_hash = kb_claims.get("sd_hash")
    if actual_sd_hash is None:
        raise HolderBindingError("Key binding JWT is missing sd_hash")
    if actual_sd_hash != compute_sd_hash(sd_jwt):
        raise HolderBindingError("sd_hash mismatch")
