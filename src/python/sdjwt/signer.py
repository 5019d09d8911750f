"""JWT token model: build unsigned, sign exactly once, serialize as compact JWS.

Issuer-signed tokens and key-binding tokens are both :class:`Jwt` instances.
Parsing reads header and claims without verifying the signature; verification
lives in :mod:`sdjwt.verifier`.
"""

import json
from typing import Any

from joserfc import jws
from joserfc.errors import JoseError
from sdjwt._crypto import import_private_key as _import_private_key
from sdjwt._crypto import jws_registry as _jws_registry
from sdjwt._crypto import resolve_private_key_alg as _resolve_alg
from sdjwt.errors import MalformedStructureError, TokenStateError
from sdjwt.keys import PrivateKey


class Jwt:
    """A JSON Web Token with a one-way unsigned → signed lifecycle.

    Args:
        header: JOSE header fields. ``alg`` is filled in on signing.
        claims: The JWT claim set.
    """

    def __init__(self, header: dict[str, Any] | None = None, claims: dict[str, Any] | None = None):
        self.header: dict[str, Any] = dict(header or {})
        self.claims: dict[str, Any] = dict(claims or {})
        self._compact: str | None = None

    @property
    def is_signed(self) -> bool:
        return self._compact is not None

    @property
    def alg(self) -> str | None:
        return self.header.get("alg")

    def sign(self, private_key: PrivateKey, alg: str | None = None) -> "Jwt":
        """Sign the token in place and return it.

        Raises:
            TokenStateError: If the token is already signed.
        """
        if self.is_signed:
            raise TokenStateError("JWT is already signed")

        alg = _resolve_alg(private_key, alg)
        self.header = {**self.header, "alg": alg}
        payload = json.dumps(self.claims, ensure_ascii=False).encode("utf-8")
        key = _import_private_key(private_key)
        self._compact = jws.serialize_compact(
            self.header, payload, key, registry=_jws_registry([alg])
        )
        return self

    def serialize(self) -> str:
        """Return the compact serialization.

        Raises:
            TokenStateError: If the token has not been signed.
        """
        if self._compact is None:
            raise TokenStateError("JWT must be signed before it can be serialized")
        return self._compact

    @classmethod
    def parse(cls, compact: str) -> "Jwt":
        """Read a compact JWS without verifying its signature.

        Raises:
            MalformedStructureError: If the token cannot be decoded or its
                payload is not a JSON object.
        """
        try:
            obj = jws.extract_compact(compact.encode("ascii"), registry=_jws_registry())
            claims = json.loads(obj.payload)
        except (JoseError, ValueError) as e:
            raise MalformedStructureError(f"Invalid compact JWT: {e}") from e

        if not isinstance(claims, dict):
            raise MalformedStructureError("JWT payload must be a JSON object")

        token = cls(obj.headers(), claims)
        token._compact = compact
        return token

    def __repr__(self) -> str:
        state = "signed" if self.is_signed else "unsigned"
        return f"Jwt({state}, header={self.header!r})"


def build_header(typ: str, kid: str | None = None, jwk: dict | None = None) -> dict[str, Any]:
    """Build a JOSE protected header (``alg`` is added when signing)."""
    header: dict[str, Any] = {"typ": typ}
    if kid is not None:
        header["kid"] = kid
    if jwk is not None:
        header["jwk"] = jwk
    return header
