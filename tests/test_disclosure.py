"""Tests for disclosure encoding, digests and parsing."""

import json

import pytest
from sdjwt.digests import HashAlgorithm, b64url_decode, b64url_encode
from sdjwt.disclosure import ArrayDisclosure, ObjectDisclosure, parse_disclosure
from sdjwt.errors import MalformedDisclosureError


def _encode(value) -> str:
    return b64url_encode(json.dumps(value).encode("utf-8"))


class TestObjectDisclosure:
    def test_raw_matches_reference_encoding(self):
        d = ObjectDisclosure("2GLC42sKQveCfGfryNRN9w", "given_name", "John")
        assert d.serialize() == (
            "WyIyR0xDNDJzS1F2ZUNmR2ZyeU5STjl3IiwgImdpdmVuX25hbWUiLCAiSm9obiJd"
        )
        assert d.digest(HashAlgorithm.SHA_256) == "jsu9yVulwQQlhFlM_3JlzMaSFzglhQG0DpfayQwLUK4"

    def test_structured_value(self):
        d = ObjectDisclosure("s", "address", {"city": "Metropolis"})
        parsed = parse_disclosure(d.serialize())
        assert parsed == d
        assert parsed.claim_value == {"city": "Metropolis"}

    def test_non_ascii_value_kept_verbatim(self):
        d = ObjectDisclosure("s", "family_name", "Möbius")
        assert "Möbius".encode("utf-8") in b64url_decode(d.serialize())
        assert parse_disclosure(d.serialize()).claim_value == "Möbius"


class TestArrayDisclosure:
    def test_raw_matches_reference_encoding(self):
        d = ArrayDisclosure("lklxF5jMYlGTPUovMNIvCA", "US")
        assert d.serialize() == "WyJsa2x4RjVqTVlsR1RQVW92TU5JdkNBIiwgIlVTIl0"
        assert d.digest(HashAlgorithm.SHA_256) == "pFndjkZ_VCzmyTa6UjlZo3dh-ko8aIKQc9DlGzhaVYo"


class TestParseDisclosure:
    def test_two_elements_is_array_disclosure(self):
        d = parse_disclosure("WyJsa2x4RjVqTVlsR1RQVW92TU5JdkNBIiwgIlVTIl0")
        assert isinstance(d, ArrayDisclosure)
        assert d.salt == "lklxF5jMYlGTPUovMNIvCA"
        assert d.claim_value == "US"

    def test_three_elements_is_object_disclosure(self):
        d = parse_disclosure("WyIyR0xDNDJzS1F2ZUNmR2ZyeU5STjl3IiwgImdpdmVuX25hbWUiLCAiSm9obiJd")
        assert isinstance(d, ObjectDisclosure)
        assert d.claim_name == "given_name"
        assert d.claim_value == "John"

    def test_reserialization_is_byte_identical(self):
        # Compact separators differ from the default encoding; raw must be kept.
        encoded = _encode_compact(["salt", "name", {"a": [1, 2]}])
        d = parse_disclosure(encoded)
        assert d.serialize() == encoded
        assert d.digest(HashAlgorithm.SHA_256) == HashAlgorithm.SHA_256.digest(encoded)

    @pytest.mark.parametrize("elements", [["only-salt"], ["a", "b", "c", "d"], []])
    def test_wrong_element_count_rejected(self, elements):
        with pytest.raises(MalformedDisclosureError, match="exactly 2 or 3 elements"):
            parse_disclosure(_encode(elements))

    def test_non_string_claim_name_rejected(self):
        with pytest.raises(MalformedDisclosureError, match="Second element of disclosure must be a string"):
            parse_disclosure(_encode(["salt", 42, "value"]))

    def test_non_string_salt_rejected(self):
        with pytest.raises(MalformedDisclosureError, match="salt must be a string"):
            parse_disclosure(_encode([1, "name", "value"]))

    def test_not_an_array_rejected(self):
        with pytest.raises(MalformedDisclosureError, match="JSON array"):
            parse_disclosure(_encode({"salt": "s"}))

    def test_not_json_rejected(self):
        with pytest.raises(MalformedDisclosureError):
            parse_disclosure(b64url_encode(b"not json"))


def _encode_compact(value) -> str:
    return b64url_encode(json.dumps(value, separators=(",", ":")).encode("utf-8"))
