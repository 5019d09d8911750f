"""Tests for hash selection, digests, decoys and padding."""

import random

import pytest
from sdjwt.digests import (
    DEFAULT_HASH_ALG,
    HashAlgorithm,
    b64url_decode,
    decoy_digest,
    next_power_of_two,
    resolve_hash_alg,
)
from sdjwt.errors import UnsupportedHashError

GIVEN_NAME_DISCLOSURE = "WyIyR0xDNDJzS1F2ZUNmR2ZyeU5STjl3IiwgImdpdmVuX25hbWUiLCAiSm9obiJd"


class TestHashAlgorithm:
    def test_sha256_digest_of_known_disclosure(self):
        assert (
            HashAlgorithm.SHA_256.digest(GIVEN_NAME_DISCLOSURE)
            == "jsu9yVulwQQlhFlM_3JlzMaSFzglhQG0DpfayQwLUK4"
        )

    def test_sha512_digest_of_known_disclosure(self):
        assert HashAlgorithm.SHA_512.digest(GIVEN_NAME_DISCLOSURE) == (
            "QVNE-lBYfn4JiopzZg7zd8TuKk3-VxgXqLE3udXBlpPY3eqY9vt0id2psAJsrp4rasHAquTSe2cG5w36mzgQdQ"
        )

    def test_str_and_bytes_digest_agree(self):
        assert HashAlgorithm.SHA_256.digest("abc") == HashAlgorithm.SHA_256.digest(b"abc")

    def test_digest_has_no_padding(self):
        assert "=" not in HashAlgorithm.SHA_256.digest("x")

    def test_iana_names(self):
        assert HashAlgorithm.SHA_256.iana_name == "sha-256"
        assert HashAlgorithm.SHA_512.iana_name == "sha-512"
        assert DEFAULT_HASH_ALG is HashAlgorithm.SHA_256


class TestResolveHashAlg:
    def test_absent_defaults_to_sha256(self):
        assert resolve_hash_alg({"iss": "x"}) is HashAlgorithm.SHA_256

    def test_named_sha512(self):
        assert resolve_hash_alg({"_sd_alg": "sha-512"}) is HashAlgorithm.SHA_512

    def test_unknown_name_rejected(self):
        with pytest.raises(UnsupportedHashError, match="md5"):
            resolve_hash_alg({"_sd_alg": "md5"})

    def test_non_string_rejected(self):
        with pytest.raises(UnsupportedHashError, match="must be a string"):
            resolve_hash_alg({"_sd_alg": 256})


class TestDecoys:
    def test_decoy_has_digest_length(self):
        assert len(b64url_decode(decoy_digest(HashAlgorithm.SHA_256))) == 32
        assert len(b64url_decode(decoy_digest(HashAlgorithm.SHA_512))) == 64

    def test_decoys_differ(self):
        assert decoy_digest(HashAlgorithm.SHA_256) != decoy_digest(HashAlgorithm.SHA_256)

    def test_seeded_rng_is_reproducible(self):
        a = decoy_digest(HashAlgorithm.SHA_256, random.Random(7))
        b = decoy_digest(HashAlgorithm.SHA_256, random.Random(7))
        assert a == b


class TestNextPowerOfTwo:
    @pytest.mark.parametrize(
        "n, expected",
        [(-3, 1), (0, 1), (1, 2), (2, 4), (3, 4), (4, 8), (7, 8), (8, 16), (100, 128)],
    )
    def test_values(self, n, expected):
        assert next_power_of_two(n) == expected

    def test_always_greater(self):
        for n in range(0, 300):
            assert next_power_of_two(n) > n
