"""sdjwt - Selective Disclosure JWTs (SD-JWT).

This package provides:
- Claim-set blinding with Flat, SubClaim, Recursive and ArrayElement policies
- Disclosures and the ~-delimited SD-JWT wire format
- Holder presentations with Key Binding JWTs
- Unblinding of presented disclosures
- Verification with algorithm allow-lists, validity windows and holder binding
- Key generation and did:key handling (Ed25519, P-256)

Usage:
    from sdjwt import Flat, SubClaim, issue_sd_jwt, verify_sd_jwt
    from sdjwt.verifier import HolderBindingOption, VerificationOptions
"""

_LAZY_IMPORTS = {
    "keys": (
        "PrivateKey",
        "PublicKeyType",
        "generate_ed25519_keypair",
        "generate_p256_keypair",
        "keypair_to_jwk",
        "p256_keypair_to_jwk",
        "to_public_jwk",
        "public_key_to_did_key",
        "did_key_to_public_key",
    ),
    "digests": ("HashAlgorithm", "next_power_of_two"),
    "disclosure": ("ObjectDisclosure", "ArrayDisclosure", "parse_disclosure"),
    "blinder": (
        "Flat",
        "SubClaim",
        "Recursive",
        "ArrayElement",
        "SdJwtBlinder",
        "SecureSaltGenerator",
        "blind",
        "policy_from_dict",
    ),
    "signer": ("Jwt",),
    "sd_jwt": ("SdJwt", "issue_sd_jwt", "select_disclosures", "select_array_elements"),
    "kb_jwt": ("create_kb_jwt", "verify_kb_jwt_claims"),
    "unblinder": ("UnblindResult", "unblind", "unblind_with_report"),
    "verifier": ("HolderBindingOption", "VerificationOptions", "verify_sd_jwt"),
    "errors": (
        "SdJwtError",
        "PolicyViolationError",
        "MalformedDisclosureError",
        "MalformedStructureError",
        "VerificationError",
    ),
}


# Use lazy imports to avoid RuntimeWarning when running modules directly
def __getattr__(name):
    """Lazy import to avoid import cycle when running modules directly."""
    import importlib

    for module_name, names in _LAZY_IMPORTS.items():
        if name in names:
            module = importlib.import_module(f"sdjwt.{module_name}")
            return getattr(module, name)
    raise AttributeError(f"module 'sdjwt' has no attribute {name!r}")


__all__ = [name for names in _LAZY_IMPORTS.values() for name in names]
