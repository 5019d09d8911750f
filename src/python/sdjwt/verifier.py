"""Verify SD-JWTs: issuer signature, validity window, holder binding, disclosures.

Verification runs in fixed order and stops at the first failure:

1. the issuer JWT's ``alg`` must be in the caller's allow-list (never ``none``);
2. the issuer signature must verify against the caller's issuer key;
3. ``exp``/``nbf``/``iat`` in the signed payload must hold at ``now``;
4. with holder binding required, a KB-JWT must be present, allowed, validly
   signed by the holder key and carry the expected nonce, audience and sd_hash;
5. disclosures are applied to give the accepted claims.
"""

import logging
from collections.abc import Callable, Collection
from dataclasses import dataclass
from enum import Enum
from typing import Any

from joserfc import jws
from joserfc.errors import ClaimError, JoseError
from joserfc.jwt import JWTClaimsRegistry
from sdjwt._crypto import import_public_key as _import_public_key
from sdjwt._crypto import jws_registry as _jws_registry
from sdjwt.errors import (
    AlgorithmNotAllowedError,
    HolderBindingError,
    SignatureInvalidError,
    TemporalClaimError,
)
from sdjwt.kb_jwt import KB_JWT_TYP, verify_kb_jwt_claims
from sdjwt.keys import PublicKeyType, did_key_to_public_key, jwk_to_public_key
from sdjwt.sd_jwt import SdJwt
from sdjwt.signer import Jwt
from sdjwt.unblinder import unblind

logger = logging.getLogger(__name__)

NONE_ALGORITHM = "none"
_TEMPORAL_CLAIMS = ("exp", "nbf", "iat")


class HolderBindingOption(Enum):
    """Whether a presentation must carry a valid key-binding JWT."""

    VERIFY = "verify"
    SKIP = "skip"


@dataclass(frozen=True)
class VerificationOptions:
    """Verifier configuration.

    Args:
        issuer_public_key: Key the issuer JWT must verify against.
        supported_algorithms: Allowed JWS algorithms. Required; ``none`` is
            rejected even when listed.
        holder_binding: Whether a key-binding JWT is required.
        expected_nonce: Required KB-JWT nonce (needed with ``VERIFY``).
        expected_audience: Required KB-JWT audience (needed with ``VERIFY``).
        key_binding_public_key: Holder key. Default: resolved from ``cnf.jwk``
            or the KB-JWT header.
        now: Current time as a Unix timestamp or a callable returning one.
            Default: the system clock.
        leeway: Seconds of clock skew tolerated on ``exp``/``nbf``/``iat``.
    """

    issuer_public_key: PublicKeyType
    supported_algorithms: Collection[str]
    holder_binding: HolderBindingOption
    expected_nonce: str | None = None
    expected_audience: str | None = None
    key_binding_public_key: PublicKeyType | None = None
    now: int | Callable[[], int] | None = None
    leeway: int = 0

    def __post_init__(self):
        object.__setattr__(self, "supported_algorithms", frozenset(self.supported_algorithms))
        if not self.supported_algorithms:
            raise ValueError("supported_algorithms must name at least one algorithm")
        if self.holder_binding is HolderBindingOption.VERIFY and (
            self.expected_nonce is None or self.expected_audience is None
        ):
            raise ValueError(
                "expected_nonce and expected_audience are required for holder binding"
            )


def verify_sd_jwt(sd_jwt: SdJwt | str, options: VerificationOptions) -> dict[str, Any]:
    """Verify an SD-JWT and return its disclosed claims.

    Args:
        sd_jwt: Parsed container or its wire form.
        options: Verifier configuration.

    Returns:
        Always-visible claims plus every claim whose disclosure was presented.

    Raises:
        VerificationError: If any verification step fails (see subclasses).
        SdJwtError: If the token or its disclosures are malformed.
    """
    if isinstance(sd_jwt, str):
        sd_jwt = SdJwt.parse(sd_jwt)

    payload = verify_jwt_signature(
        sd_jwt.issuer_jwt, options.issuer_public_key, options.supported_algorithms
    )
    logger.debug("Issuer signature verified (alg=%s)", sd_jwt.issuer_jwt.alg)

    _validate_temporal_claims(payload, options, "SD-JWT")
    logger.debug("Issuer JWT temporal claims valid")

    if options.holder_binding is HolderBindingOption.VERIFY:
        _verify_holder_binding(sd_jwt, options)
        logger.debug("Holder binding verified")
    else:
        logger.debug("Holder binding check skipped")

    claims = unblind(sd_jwt)
    logger.debug("SD-JWT accepted with %d disclosures", len(sd_jwt.disclosures))
    return claims


def verify_jwt_signature(
    token: Jwt, public_key: PublicKeyType, supported_algorithms: Collection[str]
) -> dict[str, Any]:
    """Check ``token``'s algorithm against the allow-list and verify its signature.

    Returns:
        The token claims.

    Raises:
        AlgorithmNotAllowedError: If ``alg`` is missing, ``none`` or not allowed.
        SignatureInvalidError: If the signature does not verify.
    """
    alg = token.alg
    if alg is None or alg == NONE_ALGORITHM or alg not in supported_algorithms:
        logger.debug("Rejecting JWT with alg=%r (allowed: %s)", alg, sorted(supported_algorithms))
        raise AlgorithmNotAllowedError(f"Algorithm {alg!r} is not allowed")

    key = _import_public_key(public_key)
    try:
        jws.deserialize_compact(token.serialize(), key, registry=_jws_registry([alg]))
    except JoseError as e:
        logger.debug("Signature check failed: %s", e)
        raise SignatureInvalidError(f"JWS verification failed: {e}") from e

    return token.claims


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _validate_temporal_claims(
    claims: dict[str, Any], options: VerificationOptions, what: str
) -> None:
    registry = JWTClaimsRegistry(now=options.now, leeway=options.leeway)
    temporal = {k: claims[k] for k in _TEMPORAL_CLAIMS if k in claims}
    try:
        registry.validate(temporal)
    except ClaimError as e:
        logger.debug("%s temporal claim check failed: %s", what, e)
        raise TemporalClaimError(f"{what}: {e.description}") from e


def _verify_holder_binding(sd_jwt: SdJwt, options: VerificationOptions) -> None:
    kb_jwt = sd_jwt.key_binding_jwt
    if kb_jwt is None:
        raise HolderBindingError("Holder binding required but no key binding JWT present")

    typ = kb_jwt.header.get("typ")
    if typ != KB_JWT_TYP:
        raise HolderBindingError(
            f"Unexpected KB-JWT typ: expected {KB_JWT_TYP!r}, got {typ!r}"
        )

    holder_key = _resolve_holder_key(sd_jwt, options)
    kb_claims = verify_jwt_signature(kb_jwt, holder_key, options.supported_algorithms)
    _validate_temporal_claims(kb_claims, options, "KB-JWT")
    verify_kb_jwt_claims(
        sd_jwt,
        kb_claims,
        expected_nonce=options.expected_nonce,
        expected_audience=options.expected_audience,
    )


def _resolve_holder_key(sd_jwt: SdJwt, options: VerificationOptions) -> PublicKeyType:
    """Caller key, then issuer ``cnf.jwk``, then KB-JWT header ``jwk``, then did:key ``kid``."""
    if options.key_binding_public_key is not None:
        return options.key_binding_public_key

    cnf = sd_jwt.claims.get("cnf")
    kb_header = sd_jwt.key_binding_jwt.header
    try:
        if isinstance(cnf, dict) and isinstance(cnf.get("jwk"), dict):
            return jwk_to_public_key(cnf["jwk"])
        if isinstance(kb_header.get("jwk"), dict):
            return jwk_to_public_key(kb_header["jwk"])
        kid = kb_header.get("kid")
        if isinstance(kid, str) and kid.startswith("did:key:"):
            return did_key_to_public_key(kid)
    except (KeyError, ValueError) as e:
        raise HolderBindingError(f"Cannot load holder key: {e}") from e

    raise HolderBindingError("No holder key available to verify the key binding JWT")
