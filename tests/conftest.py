"""Shared fixtures for sdjwt tests."""

import json
from pathlib import Path

import pytest
from sdjwt.blinder import SdJwtBlinder
from sdjwt.digests import HashAlgorithm
from sdjwt.keys import (
    generate_ed25519_keypair,
    generate_p256_keypair,
    jwk_to_private_key,
    public_key_to_did_key,
)

FIXTURES_DIR = Path(__file__).parent / "fixtures"


def _load_keypair(filename: str):
    """Load a committed test keypair (JWK) from fixtures."""
    with open(FIXTURES_DIR / filename) as f:
        jwk = json.load(f)
    private_key = jwk_to_private_key(jwk)
    return private_key, private_key.public_key()


# ---------------------------------------------------------------------------
# Issuer keys
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def ed25519_keypair():
    """Ed25519 key pair loaded from the committed test fixture."""
    return _load_keypair("test-keypair.json")


@pytest.fixture(scope="session")
def ed25519_private_key(ed25519_keypair):
    return ed25519_keypair[0]


@pytest.fixture(scope="session")
def ed25519_public_key(ed25519_keypair):
    return ed25519_keypair[1]


@pytest.fixture(scope="session")
def p256_keypair():
    """P-256 key pair loaded from the committed test fixture."""
    return _load_keypair("test-keypair-p256.json")


@pytest.fixture(scope="session")
def p256_private_key(p256_keypair):
    return p256_keypair[0]


@pytest.fixture(scope="session")
def p256_public_key(p256_keypair):
    return p256_keypair[1]


# ---------------------------------------------------------------------------
# Holder keys
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def holder_keypair():
    """A fresh P-256 holder key pair, distinct from the issuer key."""
    return generate_p256_keypair()


@pytest.fixture(scope="session")
def holder_private_key(holder_keypair):
    return holder_keypair[0]


@pytest.fixture(scope="session")
def holder_public_key(holder_keypair):
    return holder_keypair[1]


@pytest.fixture(scope="session")
def holder_did_key(holder_public_key):
    """The holder's did:key identifier (did:key:zDn...)."""
    return public_key_to_did_key(holder_public_key)


@pytest.fixture(scope="session")
def other_ed25519_keypair():
    """An unrelated Ed25519 key pair for wrong-key tests."""
    return generate_ed25519_keypair()


# ---------------------------------------------------------------------------
# Blinding helpers
# ---------------------------------------------------------------------------


class FixedSaltGenerator:
    """Returns pinned salts per claim hint, falling back to a counter."""

    def __init__(self, salts: dict[str, str] | None = None):
        self.salts = salts or {}
        self._counter = 0

    def generate(self, claim: str) -> str:
        if claim in self.salts:
            return self.salts[claim]
        self._counter += 1
        return f"salt-{self._counter}"


@pytest.fixture()
def fixed_salts():
    """Factory for salt generators with pinned salts."""
    return FixedSaltGenerator


@pytest.fixture()
def deterministic_blinder():
    """A blinder with no decoys, no shuffling and counter salts."""
    return SdJwtBlinder(
        hash_alg=HashAlgorithm.SHA_256,
        salt_generator=FixedSaltGenerator(),
        total_digests=lambda n: n,
        shuffle=lambda digests: None,
    )


@pytest.fixture()
def alice_claims():
    return {
        "given_name": "Alice",
        "address": {"street": "1 Main St", "city": "Metropolis"},
    }
