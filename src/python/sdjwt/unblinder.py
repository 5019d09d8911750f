"""Rebuild the disclosed claim tree from an SD-JWT's payload and disclosures.

Each ``_sd`` digest and ``{"...": digest}`` placeholder is matched against the
supplied disclosures. Matched digests are replaced by their claims; digests
with no disclosure (decoys or withheld claims) are dropped without error.
"""

import logging
from typing import TYPE_CHECKING, Any, NamedTuple

from sdjwt.digests import (
    ARRAY_DIGEST_KEY,
    RESERVED_CLAIM_NAMES,
    SD_ALG_CLAIM,
    SD_CLAIM,
    HashAlgorithm,
    resolve_hash_alg,
)
from sdjwt.disclosure import ArrayDisclosure, Disclosure, ObjectDisclosure
from sdjwt.errors import (
    ClaimCollisionError,
    DuplicateDigestError,
    InsertionPointError,
    MalformedStructureError,
)

if TYPE_CHECKING:
    from sdjwt.sd_jwt import SdJwt

logger = logging.getLogger(__name__)


class UnblindResult(NamedTuple):
    """Disclosed claims plus diagnostics about what stayed hidden.

    ``undisclosed_digest_count`` covers decoys and withheld claims alike; it
    cannot tell them apart. ``unused_disclosure_count`` counts supplied
    disclosures whose digest was never reached, such as a nested disclosure
    presented without its parent. Those claims stay hidden.
    """

    claims: dict[str, Any]
    undisclosed_digest_count: int
    unused_disclosure_count: int = 0


def unblind(sd_jwt: "SdJwt") -> dict[str, Any]:
    """Return the claims of ``sd_jwt`` with every supplied disclosure applied.

    Signatures are not checked; see :func:`sdjwt.verifier.verify_sd_jwt`.
    """
    return unblind_with_report(sd_jwt).claims


def unblind_with_report(sd_jwt: "SdJwt") -> UnblindResult:
    """Like :func:`unblind`, also reporting unmatched digests and unused disclosures."""
    return unblind_claims(sd_jwt.claims, sd_jwt.disclosures)


def unblind_claims(
    claims: dict[str, Any],
    disclosures: "tuple[Disclosure, ...] | list[Disclosure]",
    hash_alg: HashAlgorithm | None = None,
) -> UnblindResult:
    """Unblind a raw payload dict against ``disclosures``.

    Args:
        claims: SD-JWT payload with ``_sd`` arrays and ``...`` placeholders.
        disclosures: Disclosures to apply.
        hash_alg: Digest hash. Default: resolved from ``claims["_sd_alg"]``.

    Raises:
        UnsupportedHashError: If ``_sd_alg`` is not a string or is unknown.
        MalformedStructureError: If ``_sd`` or a placeholder is malformed.
        InsertionPointError: If a disclosure kind does not match its site.
        DuplicateDigestError: If a disclosed digest is referenced twice.
        ClaimCollisionError: If a disclosed name already exists in its object.
    """
    if hash_alg is None:
        hash_alg = resolve_hash_alg(claims)

    walker = _Unblinder({d.digest(hash_alg): d for d in disclosures})
    result = walker.unblind_object(claims)
    result.pop(SD_ALG_CLAIM, None)
    unused = len(set(walker.index) - walker.consumed)

    logger.debug(
        "Applied %d disclosures, %d digests left undisclosed, %d disclosures unused",
        len(walker.consumed),
        walker.unmatched,
        unused,
    )
    return UnblindResult(result, walker.unmatched, unused)


class _Unblinder:
    """Depth-first walk over one payload, tracking digest consumption."""

    def __init__(self, index: dict[str, Disclosure]):
        self.index = index
        self.consumed: set[str] = set()
        self.unmatched = 0

    def unblind_value(self, value: Any) -> Any:
        if isinstance(value, dict):
            return self.unblind_object(value)
        if isinstance(value, list):
            return self.unblind_array(value)
        return value

    def unblind_object(self, obj: dict[str, Any]) -> dict[str, Any]:
        result: dict[str, Any] = {}
        for key, value in obj.items():
            if key == SD_CLAIM:
                continue
            if key == ARRAY_DIGEST_KEY:
                raise MalformedStructureError(
                    f"'{ARRAY_DIGEST_KEY}' is only allowed in array element placeholders"
                )
            result[key] = self.unblind_value(value)

        if SD_CLAIM not in obj:
            return result

        digests = obj[SD_CLAIM]
        if not isinstance(digests, list):
            raise MalformedStructureError(f"{SD_CLAIM} must be an array")

        for digest in digests:
            if not isinstance(digest, str):
                raise MalformedStructureError(f"{SD_CLAIM} entries must be strings")
            disclosure = self._consume(digest)
            if disclosure is None:
                continue
            if not isinstance(disclosure, ObjectDisclosure):
                raise InsertionPointError(
                    f"Array element disclosure referenced from {SD_CLAIM}"
                )
            name = disclosure.claim_name
            if name in RESERVED_CLAIM_NAMES:
                raise MalformedStructureError(f"Disclosure uses reserved claim name {name!r}")
            if name in result:
                raise ClaimCollisionError(f"Claim {name!r} is already present")
            result[name] = self.unblind_value(disclosure.claim_value)
        return result

    def unblind_array(self, array: list) -> list:
        result = []
        for element in array:
            if not (isinstance(element, dict) and ARRAY_DIGEST_KEY in element):
                result.append(self.unblind_value(element))
                continue

            if len(element) != 1:
                raise MalformedStructureError(
                    f"Array placeholder must contain only '{ARRAY_DIGEST_KEY}'"
                )
            digest = element[ARRAY_DIGEST_KEY]
            if not isinstance(digest, str):
                raise MalformedStructureError(f"'{ARRAY_DIGEST_KEY}' value must be a string")
            disclosure = self._consume(digest)
            if disclosure is None:
                continue
            if not isinstance(disclosure, ArrayDisclosure):
                raise InsertionPointError(
                    "Object property disclosure referenced from an array element"
                )
            result.append(self.unblind_value(disclosure.claim_value))
        return result

    def _consume(self, digest: str) -> Disclosure | None:
        disclosure = self.index.get(digest)
        if disclosure is None:
            self.unmatched += 1
            return None
        if digest in self.consumed:
            raise DuplicateDigestError(f"Digest {digest} is referenced more than once")
        self.consumed.add(digest)
        return disclosure
