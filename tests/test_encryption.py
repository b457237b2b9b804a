"""Tests for the credential vault."""

import base64

import pytest

from devcosts.app.usage_sync.encryption import (
    ConfigurationError,
    CorruptCiphertext,
    CredentialVault,
)


class TestVaultKey:
    def test_missing_key_is_configuration_error(self):
        with pytest.raises(ConfigurationError):
            CredentialVault("")

    def test_non_base64_key_is_configuration_error(self):
        with pytest.raises(ConfigurationError):
            CredentialVault("not base64 at all!")

    def test_wrong_length_key_is_configuration_error(self):
        short_key = base64.b64encode(b"x" * 16).decode()
        with pytest.raises(ConfigurationError):
            CredentialVault(short_key)

    def test_generated_key_decodes_to_32_bytes(self):
        key = CredentialVault.generate_key()
        assert len(base64.b64decode(key)) == 32


class TestEncryptDecrypt:
    def test_ciphertext_has_three_hex_segments(self, vault):
        stored = vault.encrypt("sk-abc123")
        nonce, tag, payload = stored.split(":")
        assert len(bytes.fromhex(nonce)) == 16
        assert len(bytes.fromhex(tag)) == 16
        assert bytes.fromhex(payload)

    def test_same_plaintext_encrypts_differently(self, vault):
        assert vault.encrypt("sk-abc123") != vault.encrypt("sk-abc123")

    def test_credentials_survive_encryption(self, vault):
        credentials = {"apiKey": "sk-abc123", "organizationId": "org-42"}
        assert vault.decrypt_credentials(vault.encrypt_credentials(credentials)) == credentials

    def test_tampered_payload_fails(self, vault):
        nonce, tag, payload = vault.encrypt("sk-abc123").split(":")
        flipped = ("0" if payload[0] != "0" else "1") + payload[1:]
        with pytest.raises(CorruptCiphertext):
            vault.decrypt(f"{nonce}:{tag}:{flipped}")

    def test_tampered_tag_fails(self, vault):
        nonce, tag, payload = vault.encrypt("sk-abc123").split(":")
        flipped = tag[:-1] + ("0" if tag[-1] != "0" else "1")
        with pytest.raises(CorruptCiphertext):
            vault.decrypt(f"{nonce}:{flipped}:{payload}")

    def test_wrong_key_fails(self, vault):
        other = CredentialVault(CredentialVault.generate_key())
        with pytest.raises(CorruptCiphertext):
            other.decrypt(vault.encrypt("sk-abc123"))

    @pytest.mark.parametrize("ciphertext", ["", "abc", "aa:bb", "aa:bb:cc:dd", "zz:zz:zz"])
    def test_malformed_ciphertext_fails(self, vault, ciphertext):
        with pytest.raises(CorruptCiphertext):
            vault.decrypt(ciphertext)

    def test_non_object_credentials_rejected(self, vault):
        with pytest.raises(CorruptCiphertext):
            vault.decrypt_credentials(vault.encrypt('["not", "an", "object"]'))
