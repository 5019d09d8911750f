"""Disclosures: the salted, individually revealable units of an SD-JWT.

An object-property disclosure is the JSON array ``[salt, claim_name, value]``;
an array-element disclosure is ``[salt, value]``. Either is base64url-encoded
to give its ``raw`` wire form, and its digest is the hash of ``raw``.

A disclosure parsed from the wire keeps the exact ``raw`` it was parsed from,
so re-serializing reproduces the original segment byte for byte.
"""

import binascii
import json
from dataclasses import dataclass, field
from typing import Any

from sdjwt.digests import HashAlgorithm, b64url_decode, b64url_encode
from sdjwt.errors import MalformedDisclosureError


def _encode(elements: list) -> str:
    return b64url_encode(json.dumps(elements, ensure_ascii=False).encode("utf-8"))


@dataclass(frozen=True)
class ObjectDisclosure:
    """Disclosure of one hidden object property."""

    salt: str
    claim_name: str
    claim_value: Any
    raw: str = field(default="", compare=False)

    def __post_init__(self):
        if not self.raw:
            object.__setattr__(
                self, "raw", _encode([self.salt, self.claim_name, self.claim_value])
            )

    def serialize(self) -> str:
        return self.raw

    def digest(self, hash_alg: HashAlgorithm) -> str:
        return hash_alg.digest(self.raw)


@dataclass(frozen=True)
class ArrayDisclosure:
    """Disclosure of one hidden array element."""

    salt: str
    claim_value: Any
    raw: str = field(default="", compare=False)

    def __post_init__(self):
        if not self.raw:
            object.__setattr__(self, "raw", _encode([self.salt, self.claim_value]))

    def serialize(self) -> str:
        return self.raw

    def digest(self, hash_alg: HashAlgorithm) -> str:
        return hash_alg.digest(self.raw)


Disclosure = ObjectDisclosure | ArrayDisclosure


def parse_disclosure(encoded: str) -> Disclosure:
    """Parse a base64url-encoded disclosure.

    Args:
        encoded: The disclosure as it appears between ``~`` separators.

    Returns:
        An :class:`ArrayDisclosure` for 2-element arrays, an
        :class:`ObjectDisclosure` for 3-element arrays.

    Raises:
        MalformedDisclosureError: If decoding fails, the element count is not
            2 or 3, the salt is not a string, or the claim name is not a string.
    """
    try:
        elements = json.loads(b64url_decode(encoded))
    except (binascii.Error, UnicodeDecodeError, ValueError) as e:
        raise MalformedDisclosureError(f"Disclosure {encoded!r} is not valid: {e}") from e

    if not isinstance(elements, list):
        raise MalformedDisclosureError(f"Disclosure {encoded!r} must be a JSON array")

    if len(elements) == 2:
        salt, value = elements
        _check_salt(salt, encoded)
        return ArrayDisclosure(salt, value, raw=encoded)

    if len(elements) == 3:
        salt, claim_name, value = elements
        _check_salt(salt, encoded)
        if not isinstance(claim_name, str):
            raise MalformedDisclosureError(
                "Second element of disclosure must be a string"
            )
        return ObjectDisclosure(salt, claim_name, value, raw=encoded)

    raise MalformedDisclosureError(
        f"Disclosure {encoded!r} must have exactly 2 or 3 elements"
    )


def _check_salt(salt: Any, encoded: str) -> None:
    if not isinstance(salt, str):
        raise MalformedDisclosureError(
            f"Disclosure {encoded!r} salt must be a string"
        )
