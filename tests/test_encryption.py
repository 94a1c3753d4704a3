"""
Tests for API key encryption at rest
"""

import pytest

from leaderboard.core.encryption import (
    CredentialCipher,
    NONCE_LENGTH,
    SALT_LENGTH,
    TAG_LENGTH,
    decrypt_secret,
    encrypt_secret,
)
from leaderboard.core.exceptions import (
    AuthenticationError,
    ConfigurationError,
    MalformedTokenError,
)

SECRET = "master-secret-one"
OTHER_SECRET = "master-secret-two"


class TestRoundTrip:

    @pytest.mark.parametrize("plaintext", [
        "sk_live_abcdefghijklmnop",
        "",
        "ключ-с-юникодом-🔑",
    ])
    def test_decrypt_returns_original(self, plaintext):
        token = encrypt_secret(plaintext, SECRET)
        assert decrypt_secret(token, SECRET) == plaintext

    def test_same_plaintext_gives_different_tokens(self):
        first = encrypt_secret("sk_live_same_key", SECRET)
        second = encrypt_secret("sk_live_same_key", SECRET)

        assert first != second
        # Salt, nonce and ciphertext all differ
        first_parts, second_parts = first.split(":"), second.split(":")
        assert first_parts[0] != second_parts[0]
        assert first_parts[1] != second_parts[1]
        assert first_parts[3] != second_parts[3]

    def test_token_layout(self):
        plaintext = "sk_live_layout_check"
        salt, nonce, tag, ciphertext = encrypt_secret(plaintext, SECRET).split(":")

        assert len(salt) == SALT_LENGTH * 2
        assert len(nonce) == NONCE_LENGTH * 2
        assert len(tag) == TAG_LENGTH * 2
        # GCM is a stream mode: ciphertext is as long as the plaintext
        assert len(ciphertext) == len(plaintext.encode("utf-8")) * 2
        for field in (salt, nonce, tag, ciphertext):
            int(field, 16)

    def test_token_does_not_contain_plaintext(self):
        token = encrypt_secret("sk_live_visible", SECRET)
        assert "sk_live_visible" not in token
        assert "sk_live_visible".encode().hex() not in token


class TestDecryptFailures:

    def test_wrong_master_secret(self):
        token = encrypt_secret("sk_live_abcdefghijklmnop", SECRET)

        with pytest.raises(AuthenticationError):
            decrypt_secret(token, OTHER_SECRET)

    @pytest.mark.parametrize("token", [
        "",
        "not-a-token",
        "aa:bb:cc",
        "aa:bb:cc:dd:ee",
        "::::",
    ])
    def test_wrong_field_count_is_malformed(self, token):
        with pytest.raises(MalformedTokenError):
            decrypt_secret(token, SECRET)

    def test_invalid_hex_fails_authentication(self):
        token = encrypt_secret("sk_live_abcdefghijklmnop", SECRET)
        salt, nonce, tag, ciphertext = token.split(":")

        with pytest.raises(AuthenticationError):
            decrypt_secret(f"{salt}:{nonce}:{tag}:zz{ciphertext[2:]}", SECRET)

    def test_tampered_ciphertext(self):
        token = encrypt_secret("sk_live_abcdefghijklmnop", SECRET)
        salt, nonce, tag, ciphertext = token.split(":")
        flipped = "0" if ciphertext[-1] != "0" else "1"

        with pytest.raises(AuthenticationError):
            decrypt_secret(f"{salt}:{nonce}:{tag}:{ciphertext[:-1]}{flipped}", SECRET)

    def test_tampered_tag(self):
        token = encrypt_secret("sk_live_abcdefghijklmnop", SECRET)
        salt, nonce, tag, ciphertext = token.split(":")
        flipped = "0" if tag[0] != "0" else "1"

        with pytest.raises(AuthenticationError):
            decrypt_secret(f"{salt}:{nonce}:{flipped}{tag[1:]}:{ciphertext}", SECRET)

    def test_truncated_tag(self):
        token = encrypt_secret("sk_live_abcdefghijklmnop", SECRET)
        salt, nonce, tag, ciphertext = token.split(":")

        with pytest.raises(AuthenticationError):
            decrypt_secret(f"{salt}:{nonce}:{tag[:8]}:{ciphertext}", SECRET)

    def test_short_nonce(self):
        token = encrypt_secret("sk_live_abcdefghijklmnop", SECRET)
        salt, nonce, tag, ciphertext = token.split(":")

        with pytest.raises(AuthenticationError):
            decrypt_secret(f"{salt}:{nonce[:4]}:{tag}:{ciphertext}", SECRET)


class TestMasterSecret:

    def test_encrypt_requires_master_secret(self):
        with pytest.raises(ConfigurationError):
            encrypt_secret("sk_live_abcdefghijklmnop", "")

    def test_decrypt_requires_master_secret(self):
        token = encrypt_secret("sk_live_abcdefghijklmnop", SECRET)
        with pytest.raises(ConfigurationError):
            decrypt_secret(token, None)

    def test_cipher_refuses_empty_secret(self):
        with pytest.raises(ConfigurationError):
            CredentialCipher("")

    def test_cipher_round_trip_and_repr(self):
        cipher = CredentialCipher(SECRET)
        token = cipher.encrypt("sk_live_cipher")

        assert cipher.decrypt(token) == "sk_live_cipher"
        assert SECRET not in repr(cipher)

    def test_rotated_secret_cannot_read_old_tokens(self):
        token = CredentialCipher(SECRET).encrypt("sk_live_rotate")

        with pytest.raises(AuthenticationError):
            CredentialCipher(OTHER_SECRET).decrypt(token)
