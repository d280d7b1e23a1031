"""Tests for API key generation and digesting."""

from __future__ import annotations

from social_mcp.auth.credentials import (
    API_KEY_PREFIX,
    KeyHasher,
    generate_api_key,
    looks_like_api_key,
)


class TestGenerateApiKey:
    def test_format(self):
        key = generate_api_key()
        assert key.startswith(API_KEY_PREFIX)
        assert len(key) == len(API_KEY_PREFIX) + 64
        assert looks_like_api_key(key)

    def test_rejects_other_shapes(self):
        assert not looks_like_api_key("smcp_short")
        assert not looks_like_api_key("sk-" + "0" * 64)

    def test_keys_are_unique(self):
        assert len({generate_api_key() for _ in range(50)}) == 50


class TestKeyHasher:
    def test_digest_is_not_plaintext(self):
        key = generate_api_key()
        digest = KeyHasher("pepper").digest(key)
        assert key not in digest
        assert len(digest) == 64

    def test_digest_is_stable(self):
        key = generate_api_key()
        assert KeyHasher("pepper").digest(key) == KeyHasher("pepper").digest(key)

    def test_near_miss_differs(self):
        hasher = KeyHasher("pepper")
        key = generate_api_key()
        flipped = key[:-1] + ("0" if key[-1] != "0" else "1")
        assert hasher.digest(flipped) != hasher.digest(key)

    def test_pepper_changes_digest(self):
        key = generate_api_key()
        assert KeyHasher("a").digest(key) != KeyHasher("b").digest(key)
