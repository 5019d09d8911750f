"""Hash selection, digest encoding and decoy generation.

Digests are ``base64url(hash(data))`` without padding. The hash function is
named in the ``_sd_alg`` claim using IANA hash names.
"""

import base64
import hashlib
import random
from enum import Enum

from sdjwt.errors import UnsupportedHashError

SD_CLAIM = "_sd"
SD_ALG_CLAIM = "_sd_alg"
ARRAY_DIGEST_KEY = "..."

RESERVED_CLAIM_NAMES = frozenset({SD_CLAIM, SD_ALG_CLAIM, ARRAY_DIGEST_KEY})

_DECOY_SEED_BYTES = 32


class HashAlgorithm(Enum):
    """Hash functions allowed in ``_sd_alg``, keyed by IANA name."""

    SHA_256 = "sha-256"
    SHA_512 = "sha-512"

    @property
    def iana_name(self) -> str:
        return self.value

    def hash(self, data: bytes) -> bytes:
        """Return the raw hash of ``data``."""
        if self is HashAlgorithm.SHA_512:
            return hashlib.sha512(data).digest()
        return hashlib.sha256(data).digest()

    def digest(self, data: str | bytes) -> str:
        """Return the base64url-encoded hash of ``data`` (str is UTF-8 encoded)."""
        if isinstance(data, str):
            data = data.encode("utf-8")
        return b64url_encode(self.hash(data))


DEFAULT_HASH_ALG = HashAlgorithm.SHA_256


def resolve_hash_alg(claims: dict) -> HashAlgorithm:
    """Resolve the hash function named by ``_sd_alg`` in ``claims``.

    A missing claim means sha-256.

    Raises:
        UnsupportedHashError: If ``_sd_alg`` is not a string or is unknown.
    """
    name = claims.get(SD_ALG_CLAIM)
    if name is None:
        return DEFAULT_HASH_ALG
    if not isinstance(name, str):
        raise UnsupportedHashError(
            f"{SD_ALG_CLAIM} must be a string, got {type(name).__name__}"
        )
    try:
        return HashAlgorithm(name)
    except ValueError:
        raise UnsupportedHashError(f"Unsupported hash name {name!r}") from None


def decoy_digest(hash_alg: HashAlgorithm, rng: random.Random | None = None) -> str:
    """Return a digest over random bytes, indistinguishable from a real one."""
    rng = rng or random.SystemRandom()
    return b64url_encode(hash_alg.hash(rng.randbytes(_DECOY_SEED_BYTES)))


def next_power_of_two(n: int) -> int:
    """Smallest power of two strictly greater than ``n`` (1 when ``n <= 0``)."""
    if n <= 0:
        return 1
    return 1 << n.bit_length()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def b64url_encode(data: bytes) -> str:
    """Base64url encode without padding."""
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode()


def b64url_decode(s: str) -> bytes:
    """Base64url decode with padding restoration."""
    s += "=" * (-len(s) % 4)
    return base64.urlsafe_b64decode(s)
