"""AES-GCM encryption for secrets stored at rest.

Ciphertexts are ``v1:<iv>:<tag>:<ciphertext>`` with base64 parts.
"""

import base64
import hashlib
import os

from cryptography.hazmat.primitives.ciphers.aead import AESGCM

_VERSION = "v1"
_IV_BYTES = 12
_TAG_BYTES = 16


class SecretCipher:
    """Encrypts and decrypts secret values with a key derived from config."""

    def __init__(self, key_material: str) -> None:
        if not key_material:
            raise ValueError("Secret encryption key must not be empty")
        self._aesgcm = AESGCM(hashlib.sha256(key_material.encode("utf-8")).digest())

    def encrypt(self, plain_text: str) -> str:
        iv = os.urandom(_IV_BYTES)
        sealed = self._aesgcm.encrypt(iv, plain_text.encode("utf-8"), None)
        ciphertext, tag = sealed[:-_TAG_BYTES], sealed[-_TAG_BYTES:]
        return ":".join(
            [
                _VERSION,
                base64.b64encode(iv).decode("ascii"),
                base64.b64encode(tag).decode("ascii"),
                base64.b64encode(ciphertext).decode("ascii"),
            ]
        )

    def decrypt(self, cipher_text: str) -> str | None:
        """Return the plain text, or None for malformed or foreign ciphertexts."""
        parts = cipher_text.split(":") if cipher_text else []
        if len(parts) != 4 or parts[0] != _VERSION:
            return None
        try:
            iv = base64.b64decode(parts[1])
            tag = base64.b64decode(parts[2])
            data = base64.b64decode(parts[3])
            if len(iv) != _IV_BYTES or len(tag) != _TAG_BYTES:
                return None
            return self._aesgcm.decrypt(iv, data + tag, None).decode("utf-8")
        except Exception:
            return None
