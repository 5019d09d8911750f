"""Tests for the lazy top-level package exports."""

import pytest
import sdjwt


def test_lazy_exports_resolve():
    for name in sdjwt.__all__:
        assert getattr(sdjwt, name) is not None


def test_exports_match_modules():
    from sdjwt.sd_jwt import issue_sd_jwt
    from sdjwt.verifier import verify_sd_jwt

    assert sdjwt.issue_sd_jwt is issue_sd_jwt
    assert sdjwt.verify_sd_jwt is verify_sd_jwt


def test_unknown_attribute():
    with pytest.raises(AttributeError, match="no attribute 'nope'"):
        sdjwt.nope
