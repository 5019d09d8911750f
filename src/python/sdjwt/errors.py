"""Error types raised while blinding, parsing, unblinding and verifying SD-JWTs.

Every error derives from :class:`SdJwtError` so callers can catch the whole
family at once, while each failure kind keeps its own type.
"""


class SdJwtError(ValueError):
    """Base class for all SD-JWT errors."""

    pass


class PolicyViolationError(SdJwtError):
    """A blind option was applied to a claim value of the wrong shape."""

    pass


class ReservedClaimNameError(PolicyViolationError):
    """Input claims use a name reserved for selective disclosure (_sd, _sd_alg, ...)."""

    pass


class MalformedDisclosureError(SdJwtError):
    """A disclosure could not be decoded or has the wrong number of elements."""

    pass


class MalformedStructureError(SdJwtError):
    """The issuer-signed payload has invalid _sd or ... markers."""

    pass


class InsertionPointError(MalformedStructureError):
    """An object disclosure matched an array digest, or the reverse."""

    pass


class DuplicateDigestError(SdJwtError):
    """The same digest was referenced more than once."""

    pass


class ClaimCollisionError(SdJwtError):
    """A disclosed claim name already exists at its insertion point."""

    pass


class UnsupportedHashError(SdJwtError):
    """The _sd_alg claim is not a string or names an unknown hash function."""

    pass


class TokenStateError(SdJwtError):
    """A token was used in the wrong signing state (unsigned, or signed twice)."""

    pass


class VerificationError(SdJwtError):
    """Raised when an SD-JWT fails verification."""

    pass


class AlgorithmNotAllowedError(VerificationError):
    """The token's alg is 'none' or outside the verifier's allow-list."""

    pass


class SignatureInvalidError(VerificationError):
    """The token signature does not verify against the supplied key."""

    pass


class TemporalClaimError(VerificationError):
    """exp, nbf or iat place the token outside its validity window."""

    pass


class HolderBindingError(VerificationError):
    """The key-binding token is missing or does not bind to this verifier."""

    pass
