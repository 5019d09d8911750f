"""Claim-set blinding: turn plain claims into an SD-JWT payload plus disclosures.

A blind policy maps claim names to one of four blind options:

- :class:`Flat`: the claim is removed and its digest goes into ``_sd``.
- :class:`SubClaim`: the claim stays visible; its children are blinded by a
  nested policy.
- :class:`Recursive`: the claim and everything inside it is hidden, each
  nested property behind its own disclosure.
- :class:`ArrayElement`: every element of an array claim becomes its own
  disclosure, replaced in place by a ``{"...": digest}`` placeholder.

Digest lists are padded with decoys and shuffled so the number and order of
hidden claims cannot be read off the payload.
"""

import logging
import random
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, NamedTuple, Protocol

from sdjwt.digests import (
    ARRAY_DIGEST_KEY,
    DEFAULT_HASH_ALG,
    RESERVED_CLAIM_NAMES,
    SD_ALG_CLAIM,
    SD_CLAIM,
    HashAlgorithm,
    b64url_encode,
    decoy_digest,
    next_power_of_two,
)
from sdjwt.disclosure import ArrayDisclosure, Disclosure, ObjectDisclosure
from sdjwt.errors import PolicyViolationError, ReservedClaimNameError

logger = logging.getLogger(__name__)

DEFAULT_SALT_BYTES = 16


# ---------------------------------------------------------------------------
# Blind options
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Flat:
    """Hide the claim behind a single digest in the parent's ``_sd``."""


@dataclass(frozen=True)
class SubClaim:
    """Keep the claim visible and blind its children with ``children``."""

    children: dict[str, "BlindOption"] = field(default_factory=dict)


@dataclass(frozen=True)
class Recursive:
    """Hide the claim and, recursively, every property nested inside it."""


@dataclass(frozen=True)
class ArrayElement:
    """Make each element of an array claim independently disclosable."""


BlindOption = Flat | SubClaim | Recursive | ArrayElement
BlindPolicy = dict[str, BlindOption]

_POLICY_NAMES = {
    "flat": Flat,
    "recursive": Recursive,
    "array": ArrayElement,
}


def policy_from_dict(data: dict[str, Any]) -> BlindPolicy:
    """Build a blind policy from its JSON form.

    Values are ``"flat"``, ``"recursive"``, ``"array"``, or a nested object
    which becomes a :class:`SubClaim` policy for that claim's children.

    Example:
        >>> policy_from_dict({"given_name": "flat", "address": {"street": "flat"}})
        {'given_name': Flat(), 'address': SubClaim(children={'street': Flat()})}
    """
    policy: BlindPolicy = {}
    for name, option in data.items():
        if isinstance(option, dict):
            policy[name] = SubClaim(policy_from_dict(option))
        elif isinstance(option, str) and option.lower() in _POLICY_NAMES:
            policy[name] = _POLICY_NAMES[option.lower()]()
        else:
            raise PolicyViolationError(
                f"Unknown blind option {option!r} for claim {name!r}; "
                f"expected one of {sorted(_POLICY_NAMES)} or an object"
            )
    return policy


# ---------------------------------------------------------------------------
# Salt generation
# ---------------------------------------------------------------------------


class SaltGenerator(Protocol):
    """Produces the salt for each new disclosure."""

    def generate(self, claim: str) -> str:
        """Return a base64url salt for ``claim``.

        ``claim`` is the claim name, or ``name[index]`` for array elements. It
        is only a hint; secure generators ignore it.
        """


class SecureSaltGenerator:
    """Salt generator drawing ``num_bytes`` from a cryptographically secure source."""

    def __init__(self, num_bytes: int = DEFAULT_SALT_BYTES, rng: random.Random | None = None):
        self.num_bytes = num_bytes
        self._rng = rng or random.SystemRandom()

    def generate(self, claim: str) -> str:
        return b64url_encode(self._rng.randbytes(self.num_bytes))


# ---------------------------------------------------------------------------
# Blinding
# ---------------------------------------------------------------------------


class BlindedClaimSet(NamedTuple):
    """Result of blinding: the SD-JWT payload and every disclosure created."""

    claims: dict[str, Any]
    disclosures: list[Disclosure]


class SdJwtBlinder:
    """Blinds claim sets according to a blind policy.

    Args:
        hash_alg: Hash function for digests; its name is written to ``_sd_alg``.
        salt_generator: Salt source. Defaults to a :class:`SecureSaltGenerator`
            over ``rng``.
        total_digests: Maps the real digest count to the padded count. Must
            never return less than its input.
        shuffle: Shuffles a digest list in place. Defaults to ``rng.shuffle``.
        rng: Random source for salts, decoys and shuffling. Defaults to
            :class:`random.SystemRandom`.
    """

    def __init__(
        self,
        *,
        hash_alg: HashAlgorithm = DEFAULT_HASH_ALG,
        salt_generator: SaltGenerator | None = None,
        total_digests: Callable[[int], int] = next_power_of_two,
        shuffle: Callable[[list], None] | None = None,
        rng: random.Random | None = None,
    ):
        self.hash_alg = hash_alg
        self._rng = rng or random.SystemRandom()
        self.salt_generator = salt_generator or SecureSaltGenerator(rng=self._rng)
        self.total_digests = total_digests
        self.shuffle = shuffle or self._rng.shuffle

    def blind(self, claims: dict[str, Any], policy: BlindPolicy) -> BlindedClaimSet:
        """Blind ``claims`` according to ``policy``.

        Returns:
            The blinded payload (with ``_sd_alg`` set) and the flat list of
            disclosures, nested disclosures included.

        Raises:
            ReservedClaimNameError: If ``claims`` uses ``_sd``, ``_sd_alg`` or ``...``.
            PolicyViolationError: If :class:`SubClaim` targets a non-object or
                :class:`ArrayElement` a non-array.
        """
        _reject_reserved_names(claims)
        _check_policy(claims, policy)

        blinded, disclosures = self._blind_object(claims, policy)
        blinded[SD_ALG_CLAIM] = self.hash_alg.iana_name

        logger.debug(
            "Blinded %d claims into %d disclosures using %s",
            len(claims),
            len(disclosures),
            self.hash_alg.iana_name,
        )
        return BlindedClaimSet(blinded, disclosures)

    def _blind_object(
        self, claims: dict[str, Any], policy: BlindPolicy
    ) -> tuple[dict[str, Any], list[Disclosure]]:
        blinded: dict[str, Any] = {}
        disclosures: list[Disclosure] = []
        digests: list[str] = []

        for name, value in claims.items():
            option = policy.get(name)
            if option is None:
                blinded[name] = value
            elif isinstance(option, Flat):
                disclosure = self._object_disclosure(name, value)
                disclosures.append(disclosure)
                digests.append(disclosure.digest(self.hash_alg))
            elif isinstance(option, SubClaim):
                sub_claims, sub_disclosures = self._blind_object(value, option.children)
                blinded[name] = sub_claims
                disclosures.extend(sub_disclosures)
            elif isinstance(option, Recursive):
                hidden_value, nested = self._blind_recursively(value)
                disclosures.extend(nested)
                disclosure = self._object_disclosure(name, hidden_value)
                disclosures.append(disclosure)
                digests.append(disclosure.digest(self.hash_alg))
            elif isinstance(option, ArrayElement):
                placeholders, element_disclosures = self._blind_array_elements(name, value)
                blinded[name] = placeholders
                disclosures.extend(element_disclosures)
            else:
                raise PolicyViolationError(
                    f"Unknown blind option {option!r} for claim {name!r}"
                )

        padded = self._pad(digests)
        if padded:
            blinded[SD_CLAIM] = padded
        return blinded, disclosures

    def _blind_recursively(self, value: Any) -> tuple[Any, list[Disclosure]]:
        """Blind every property inside ``value``; scalars pass through."""
        if isinstance(value, dict):
            return self._blind_object(value, {key: Recursive() for key in value})
        if isinstance(value, list):
            blinded_elements = []
            disclosures: list[Disclosure] = []
            for element in value:
                blinded_element, nested = self._blind_recursively(element)
                blinded_elements.append(blinded_element)
                disclosures.extend(nested)
            return blinded_elements, disclosures
        return value, []

    def _blind_array_elements(
        self, name: str, values: list
    ) -> tuple[list[dict[str, str]], list[Disclosure]]:
        disclosures: list[Disclosure] = [
            ArrayDisclosure(self.salt_generator.generate(f"{name}[{i}]"), element)
            for i, element in enumerate(values)
        ]
        placeholders = [
            {ARRAY_DIGEST_KEY: d.digest(self.hash_alg)} for d in disclosures
        ]
        for _ in range(self.total_digests(len(placeholders)) - len(placeholders)):
            placeholders.append({ARRAY_DIGEST_KEY: decoy_digest(self.hash_alg, self._rng)})
        return placeholders, disclosures

    def _object_disclosure(self, name: str, value: Any) -> ObjectDisclosure:
        return ObjectDisclosure(self.salt_generator.generate(name), name, value)

    def _pad(self, digests: list[str]) -> list[str]:
        real = len(digests)
        padded = list(digests)
        for _ in range(self.total_digests(real) - real):
            padded.append(decoy_digest(self.hash_alg, self._rng))
        self.shuffle(padded)
        if len(padded) > real:
            logger.debug("Added %d decoy digests to %d real digests", len(padded) - real, real)
        return padded


def blind(
    claims: dict[str, Any],
    policy: BlindPolicy,
    *,
    hash_alg: HashAlgorithm = DEFAULT_HASH_ALG,
) -> BlindedClaimSet:
    """Blind ``claims`` with a default, securely randomized :class:`SdJwtBlinder`."""
    return SdJwtBlinder(hash_alg=hash_alg).blind(claims, policy)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _check_policy(claims: dict[str, Any], policy: BlindPolicy) -> None:
    """Validate policy shapes against claim values before any blinding."""
    for name, option in policy.items():
        if name not in claims:
            continue
        value = claims[name]
        if isinstance(option, SubClaim):
            if not isinstance(value, dict):
                raise PolicyViolationError(
                    f"SubClaim blind option on {name!r} requires an object, "
                    f"got {type(value).__name__}"
                )
            _check_policy(value, option.children)
        elif isinstance(option, ArrayElement):
            if not isinstance(value, list):
                raise PolicyViolationError(
                    f"ArrayElement blind option on {name!r} requires an array, "
                    f"got {type(value).__name__}"
                )
        elif not isinstance(option, (Flat, Recursive)):
            raise PolicyViolationError(
                f"Unknown blind option {option!r} for claim {name!r}"
            )


def _reject_reserved_names(value: Any) -> None:
    if isinstance(value, dict):
        for key, item in value.items():
            if key in RESERVED_CLAIM_NAMES:
                raise ReservedClaimNameError(
                    f"Claim name {key!r} is reserved for selective disclosure"
                )
            _reject_reserved_names(item)
    elif isinstance(value, list):
        for item in value:
            _reject_reserved_names(item)
