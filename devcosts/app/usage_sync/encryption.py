"""
Credential Vault

Encrypts provider credentials for storage using AES-256-GCM.
Ciphertext is stored as three colon-joined hex segments: nonce, auth tag, payload.
"""

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
import base64
import binascii
import json
import os
from typing import Dict


NONCE_LENGTH = 16
TAG_LENGTH = 16
KEY_LENGTH = 32


class ConfigurationError(RuntimeError):
    """Raised when the vault key is missing or malformed."""
    pass


class CorruptCiphertext(ValueError):
    """Raised when ciphertext is malformed or fails authentication."""
    pass


class CredentialVault:
    """
    Encrypt and decrypt per-connection secrets.

    One instance is built from configuration at startup and shared by the
    sync service and the connection routes. Every call to encrypt() draws a
    fresh random nonce, so encrypting the same plaintext twice yields
    different ciphertexts.
    """

    def __init__(self, encryption_key: str):
        """
        Initialize the AES-GCM cipher.

        Args:
            encryption_key: Base64-encoded key that must decode to exactly 32 bytes

        Raises:
            ConfigurationError: If the key is missing, not base64, or the wrong size
        """
        if not encryption_key:
            raise ConfigurationError("ENCRYPTION_KEY environment variable is not set")

        try:
            key_bytes = base64.b64decode(encryption_key, validate=True)
        except (binascii.Error, ValueError):
            raise ConfigurationError("ENCRYPTION_KEY must be valid base64")

        if len(key_bytes) != KEY_LENGTH:
            raise ConfigurationError(
                "ENCRYPTION_KEY must be 32 bytes (256 bits) when decoded from base64"
            )

        self.cipher = AESGCM(key_bytes)

    @classmethod
    def from_settings(cls, settings) -> "CredentialVault":
        return cls(settings.encryption_key)

    @staticmethod
    def generate_key() -> str:
        """Return a new random base64 key suitable for ENCRYPTION_KEY."""
        return base64.b64encode(os.urandom(KEY_LENGTH)).decode()

    def encrypt(self, plaintext: str) -> str:
        """
        Encrypt a string for database storage.

        Args:
            plaintext: Secret to encrypt

        Returns:
            "nonce:tag:payload" with every segment hex-encoded

        Example:
            >>> vault = CredentialVault(CredentialVault.generate_key())
            >>> stored = vault.encrypt("sk-abc123")
            >>> vault.decrypt(stored)
            'sk-abc123'
        """
        nonce = os.urandom(NONCE_LENGTH)

        # AESGCM appends the 16-byte tag to the ciphertext
        sealed = self.cipher.encrypt(nonce, plaintext.encode("utf-8"), None)
        payload, tag = sealed[:-TAG_LENGTH], sealed[-TAG_LENGTH:]

        return f"{nonce.hex()}:{tag.hex()}:{payload.hex()}"

    def decrypt(self, ciphertext: str) -> str:
        """
        Decrypt a value produced by encrypt().

        Args:
            ciphertext: "nonce:tag:payload" hex string from the database

        Returns:
            Plain text secret

        Raises:
            CorruptCiphertext: Wrong segment count, bad hex, or failed
                authentication (tampered data or a different key)
        """
        parts = ciphertext.split(":") if ciphertext else []
        if len(parts) != 3:
            raise CorruptCiphertext("Invalid ciphertext format")

        try:
            nonce = bytes.fromhex(parts[0])
            tag = bytes.fromhex(parts[1])
            payload = bytes.fromhex(parts[2])
        except ValueError:
            raise CorruptCiphertext("Invalid ciphertext encoding")

        if len(nonce) != NONCE_LENGTH or len(tag) != TAG_LENGTH:
            raise CorruptCiphertext("Invalid ciphertext format")

        try:
            plaintext = self.cipher.decrypt(nonce, payload + tag, None)
        except InvalidTag:
            raise CorruptCiphertext("Ciphertext failed authentication")

        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError:
            raise CorruptCiphertext("Decrypted payload is not valid UTF-8")

    def encrypt_credentials(self, credentials: Dict[str, str]) -> str:
        """Encrypt a credential object as JSON."""
        return self.encrypt(json.dumps(credentials))

    def decrypt_credentials(self, ciphertext: str) -> Dict[str, str]:
        """
        Decrypt a credential object stored with encrypt_credentials().

        Raises:
            CorruptCiphertext: If decryption fails or the payload is not a JSON object
        """
        plaintext = self.decrypt(ciphertext)
        try:
            credentials = json.loads(plaintext)
        except json.JSONDecodeError:
            raise CorruptCiphertext("Decrypted credentials are not valid JSON")

        if not isinstance(credentials, dict):
            raise CorruptCiphertext("Decrypted credentials are not a JSON object")

        return credentials
