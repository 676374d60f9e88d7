"""Tests for the data model in github_app_auth/models.py."""

from __future__ import annotations

import pytest

from github_app_auth.models import Authentication, CacheKey, InstallationToken


class TestAuthentication:
    def test_zero_app_id_rejected(self, rsa_pem):
        with pytest.raises(ValueError, match="App ID"):
            Authentication(app_id=0, installation_id=1, private_key=rsa_pem)

    def test_zero_installation_id_rejected(self, rsa_pem):
        with pytest.raises(ValueError, match="Installation ID"):
            Authentication(app_id=1, installation_id=0, private_key=rsa_pem)

    def test_empty_private_key_rejected(self):
        with pytest.raises(ValueError, match="empty"):
            Authentication(app_id=1, installation_id=2, private_key="  \n")

    def test_repr_hides_private_key(self, auth):
        assert "PRIVATE KEY" not in repr(auth)


class TestCacheKey:
    def test_empty_base_url_uses_public_api(self, auth):
        assert CacheKey.for_auth(auth) == CacheKey(123, 456, "https://api.github.com")

    def test_deterministic(self, auth):
        assert CacheKey.for_auth(auth) == CacheKey.for_auth(auth)
        assert hash(CacheKey.for_auth(auth)) == hash(CacheKey.for_auth(auth))

    def test_trailing_slash_is_normalised(self, rsa_pem):
        a = Authentication(1, 2, rsa_pem, enterprise_base_url="https://ghe.example.com/api/v3/")
        b = Authentication(1, 2, rsa_pem, enterprise_base_url="https://ghe.example.com/api/v3")
        assert CacheKey.for_auth(a) == CacheKey.for_auth(b)

    def test_enterprise_hosts_are_distinct(self, rsa_pem):
        a = Authentication(1, 2, rsa_pem, enterprise_base_url="https://ghe-one.example.com/api/v3")
        b = Authentication(1, 2, rsa_pem, enterprise_base_url="https://ghe-two.example.com/api/v3")
        assert CacheKey.for_auth(a) != CacheKey.for_auth(b)
        assert CacheKey.for_auth(a) != CacheKey.for_auth(Authentication(1, 2, rsa_pem))

    def test_custom_default_base_url(self, auth):
        key = CacheKey.for_auth(auth, "https://proxy.internal/github/")
        assert key.base_url == "https://proxy.internal/github"


class TestInstallationToken:
    def test_usable_outside_margin(self, key):
        tok = InstallationToken(token="t", expires_at=1000.0, key=key)
        assert tok.is_usable(now=879.0, margin=120)
        assert not tok.is_usable(now=880.0, margin=120)  # exactly at the margin

    def test_expired(self, key):
        tok = InstallationToken(token="t", expires_at=1000.0, key=key)
        assert not tok.is_expired(999.9)
        assert tok.is_expired(1000.0)

    def test_repr_hides_token(self, key):
        tok = InstallationToken(token="ghs_secret", expires_at=1000.0, key=key)
        assert "ghs_secret" not in repr(tok)

    def test_hashable_with_permissions(self, key):
        tok = InstallationToken(token="t", expires_at=1.0, key=key, permissions={"contents": "read"})
        assert {tok}
