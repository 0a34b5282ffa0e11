# Vault - Cipher Service
#
# Field-level encryption at rest (AES-256-GCM)
# One fixed 256-bit key, supplied once at process start
# Fresh random nonce per encryption, stored inside the blob

import base64
import binascii
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from ..exceptions import ConfigurationError, DecryptionError


class CipherService:
    """
    Encrypts and decrypts individual vault fields.

    Blob layout (URL-safe base64 text):
        nonce (12 bytes) || AES-256-GCM ciphertext || tag (16 bytes)

    Each call to encrypt() draws a new nonce, so encrypting the same
    plaintext twice yields different blobs.
    """

    KEY_LENGTH = 32  # 256 bits for AES-256
    NONCE_LENGTH = 12  # 96-bit nonce for GCM (recommended)
    TAG_LENGTH = 16

    def __init__(self, key: bytes):
        """
        Args:
            key: 256-bit encryption key

        Raises:
            ConfigurationError: If the key is not exactly 32 bytes
        """
        if not isinstance(key, (bytes, bytearray)) or len(key) != self.KEY_LENGTH:
            raise ConfigurationError(
                f"Encryption key must be exactly {self.KEY_LENGTH} bytes"
            )
        self._aesgcm = AESGCM(bytes(key))

    @classmethod
    def from_secret(cls, secret: str) -> "CipherService":
        """
        Build a cipher from the configured shared secret.

        Accepts either 32 characters (used as UTF-8 bytes) or 64 hex
        characters.
        """
        return cls(key_from_secret(secret))

    def encrypt(self, plaintext: str) -> str:
        """
        Encrypt plaintext using AES-256-GCM.

        Args:
            plaintext: Field value to protect

        Returns:
            Ciphertext blob (text, safe for document storage)
        """
        nonce = os.urandom(self.NONCE_LENGTH)
        ciphertext = self._aesgcm.encrypt(nonce, plaintext.encode('utf-8'), None)
        return encode_for_storage(nonce + ciphertext)

    def decrypt(self, blob: str) -> str:
        """
        Decrypt a blob produced by encrypt().

        Raises:
            DecryptionError: If the blob is malformed, was tampered with,
                or was produced under a different key
        """
        if not isinstance(blob, str) or not blob:
            raise DecryptionError("Ciphertext blob is empty")

        try:
            raw = decode_from_storage(blob)
        except (binascii.Error, ValueError) as e:
            raise DecryptionError("Ciphertext blob is not valid base64") from e

        if len(raw) < self.NONCE_LENGTH + self.TAG_LENGTH:
            raise DecryptionError("Ciphertext blob is too short")

        nonce, ciphertext = raw[:self.NONCE_LENGTH], raw[self.NONCE_LENGTH:]
        try:
            plaintext_bytes = self._aesgcm.decrypt(nonce, ciphertext, None)
        except InvalidTag as e:
            # Wrong key or tampered blob, GCM authentication fails
            raise DecryptionError("Ciphertext authentication failed") from e

        try:
            return plaintext_bytes.decode('utf-8')
        except UnicodeDecodeError as e:
            raise DecryptionError("Decrypted bytes are not UTF-8") from e


def key_from_secret(secret: str) -> bytes:
    """
    Turn the configured secret into raw key bytes.

    Raises:
        ConfigurationError: If the secret has the wrong length
    """
    if not secret:
        raise ConfigurationError("Encryption key is not set")

    if len(secret) == CipherService.KEY_LENGTH * 2:
        try:
            return bytes.fromhex(secret)
        except ValueError:
            pass  # 64 non-hex characters falls through to the length check

    key = secret.encode('utf-8')
    if len(key) != CipherService.KEY_LENGTH:
        raise ConfigurationError(
            f"Encryption key must be {CipherService.KEY_LENGTH} bytes "
            f"or {CipherService.KEY_LENGTH * 2} hex characters"
        )
    return key


def generate_secret() -> str:
    """Generate a fresh key as 64 hex characters (for .env files)."""
    return os.urandom(CipherService.KEY_LENGTH).hex()


def encode_for_storage(data: bytes) -> str:
    """Encode binary data as URL-safe base64 text."""
    return base64.urlsafe_b64encode(data).decode('ascii')


def decode_from_storage(data: str) -> bytes:
    """Decode URL-safe base64 text produced by encode_for_storage()."""
    return base64.urlsafe_b64decode(data.encode('ascii'))
