"""Tests for KB-JWT creation and claim checks."""

import pytest
from sdjwt.blinder import Flat, SdJwtBlinder
from sdjwt.digests import HashAlgorithm
from sdjwt.errors import HolderBindingError
from sdjwt.kb_jwt import compute_sd_hash, create_kb_jwt, verify_kb_jwt_claims
from sdjwt.keys import p256_public_key_to_jwk
from sdjwt.sd_jwt import SdJwt, issue_sd_jwt
from sdjwt.signer import Jwt

SAMPLE_CLAIMS = {
    "iss": "https://issuer.example.com",
    "legalName": "Example Corp",
    "email": "imprint@example.com",
}

AUDIENCE = "https://verifier.example.com"


@pytest.fixture()
def sd_jwt_with_cnf(p256_private_key, holder_public_key):
    """Issue an SD-JWT with holder key binding (cnf)."""
    claims = {**SAMPLE_CLAIMS, "cnf": {"jwk": p256_public_key_to_jwk(holder_public_key)}}
    return issue_sd_jwt(claims, {"email": Flat(), "legalName": Flat()}, p256_private_key)


class TestKBJWT:
    def test_create_signed_kb_jwt(self, sd_jwt_with_cnf, holder_private_key):
        kb = create_kb_jwt(
            sd_jwt_with_cnf, holder_private_key, nonce="verifier-nonce-123", audience=AUDIENCE
        )
        assert kb.is_signed
        assert kb.header["typ"] == "kb+jwt"
        assert kb.header["alg"] == "ES256"
        assert len(kb.serialize().split(".")) == 3

    def test_payload(self, sd_jwt_with_cnf, holder_private_key):
        kb = create_kb_jwt(
            sd_jwt_with_cnf, holder_private_key, nonce="n", audience=AUDIENCE, iat=1700000000
        )
        assert kb.claims == {
            "nonce": "n",
            "aud": AUDIENCE,
            "iat": 1700000000,
            "sd_hash": compute_sd_hash(sd_jwt_with_cnf),
        }

    def test_iat_defaults_to_now(self, sd_jwt_with_cnf, holder_private_key):
        kb = create_kb_jwt(sd_jwt_with_cnf, holder_private_key, nonce="n", audience=AUDIENCE)
        assert isinstance(kb.claims["iat"], int)

    def test_sd_hash_covers_presented_disclosures(self, sd_jwt_with_cnf):
        expected = HashAlgorithm.SHA_256.digest(sd_jwt_with_cnf.serialize())
        assert compute_sd_hash(sd_jwt_with_cnf) == expected
        subset = sd_jwt_with_cnf.present(sd_jwt_with_cnf.disclosures[:1])
        assert compute_sd_hash(subset) != expected

    def test_sd_hash_uses_sd_alg(self, p256_private_key):
        sd_jwt = issue_sd_jwt(
            SAMPLE_CLAIMS,
            {"email": Flat()},
            p256_private_key,
            blinder=SdJwtBlinder(hash_alg=HashAlgorithm.SHA_512),
        )
        assert compute_sd_hash(sd_jwt) == HashAlgorithm.SHA_512.digest(sd_jwt.serialize())

    def test_header_kid_and_jwk(self, sd_jwt_with_cnf, holder_private_key, holder_did_key):
        kb = create_kb_jwt(
            sd_jwt_with_cnf,
            holder_private_key,
            nonce="n",
            audience=AUDIENCE,
            kid=holder_did_key,
            include_jwk=True,
        )
        assert kb.header["kid"] == holder_did_key
        assert kb.header["jwk"]["kty"] == "EC"
        assert "d" not in kb.header["jwk"]

    def test_kb_jwt_of_presentation_ignored_for_hash(self, sd_jwt_with_cnf, holder_private_key):
        presentation = sd_jwt_with_cnf.present(
            sd_jwt_with_cnf.disclosures, holder_private_key=holder_private_key, nonce="n", audience=AUDIENCE
        )
        assert compute_sd_hash(presentation) == compute_sd_hash(sd_jwt_with_cnf)


class TestVerifyKBJWTClaims:
    @pytest.fixture()
    def presentation(self, sd_jwt_with_cnf, holder_private_key):
        return sd_jwt_with_cnf.present(
            sd_jwt_with_cnf.disclosures,
            holder_private_key=holder_private_key,
            nonce="verifier-nonce",
            audience=AUDIENCE,
        )

    def test_valid(self, presentation):
        verify_kb_jwt_claims(
            presentation,
            presentation.key_binding_jwt.claims,
            expected_nonce="verifier-nonce",
            expected_audience=AUDIENCE,
        )

    def test_wrong_nonce(self, presentation):
        with pytest.raises(HolderBindingError, match="Nonce mismatch"):
            verify_kb_jwt_claims(
                presentation,
                presentation.key_binding_jwt.claims,
                expected_nonce="wrong-nonce",
                expected_audience=AUDIENCE,
            )

    def test_wrong_audience(self, presentation):
        with pytest.raises(HolderBindingError, match="Audience mismatch"):
            verify_kb_jwt_claims(
                presentation,
                presentation.key_binding_jwt.claims,
                expected_nonce="verifier-nonce",
                expected_audience="https://evil.example.com",
            )

    def test_audience_list(self, presentation):
        claims = {**presentation.key_binding_jwt.claims, "aud": ["https://other.example", AUDIENCE]}
        verify_kb_jwt_claims(
            presentation, claims, expected_nonce="verifier-nonce", expected_audience=AUDIENCE
        )

    def test_missing_sd_hash(self, presentation):
        claims = dict(presentation.key_binding_jwt.claims)
        del claims["sd_hash"]
        with pytest.raises(HolderBindingError, match="missing sd_hash"):
            verify_kb_jwt_claims(
                presentation, claims, expected_nonce="verifier-nonce", expected_audience=AUDIENCE
            )

    def test_swapped_disclosures_break_sd_hash(self, presentation):
        tampered = SdJwt(
            presentation.issuer_jwt, presentation.disclosures[:1], presentation.key_binding_jwt
        )
        with pytest.raises(HolderBindingError, match="sd_hash mismatch"):
            verify_kb_jwt_claims(
                tampered,
                tampered.key_binding_jwt.claims,
                expected_nonce="verifier-nonce",
                expected_audience=AUDIENCE,
            )

    def test_parsed_presentation(self, presentation):
        parsed = SdJwt.parse(presentation.serialize())
        assert isinstance(parsed.key_binding_jwt, Jwt)
        verify_kb_jwt_claims(
            parsed,
            parsed.key_binding_jwt.claims,
            expected_nonce="verifier-nonce",
            expected_audience=AUDIENCE,
        )
