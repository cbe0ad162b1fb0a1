"""At-rest encryption of secure header values and request header assembly."""

from __future__ import annotations

import base64
import binascii
import os
from collections.abc import Mapping

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

MASKED_HEADER_VALUE = "****"

SALT_LENGTH = 64
IV_LENGTH = 16
TAG_LENGTH = 16
KEY_LENGTH = 32
PBKDF2_ITERATIONS = 100_000


class SecretDecryptionError(RuntimeError):
    """Raised when a stored secret cannot be turned back into plaintext."""


class HeaderCipher:
    """AES-256-GCM with a per-value PBKDF2-SHA512 derived key.

    Encoded layout: base64(salt | iv | tag | ciphertext).
    """

    def __init__(self, key: str | None) -> None:
        self._key = key or ""

    def encrypt(self, plaintext: str) -> str:
        secret = self._require_key()
        salt = os.urandom(SALT_LENGTH)
        iv = os.urandom(IV_LENGTH)
        sealed = AESGCM(_derive_key(secret, salt)).encrypt(iv, plaintext.encode("utf-8"), None)
        ciphertext, tag = sealed[:-TAG_LENGTH], sealed[-TAG_LENGTH:]
        return base64.b64encode(salt + iv + tag + ciphertext).decode("ascii")

    def decrypt(self, encoded: str) -> str:
        secret = self._require_key()
        try:
            raw = base64.b64decode(encoded, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise SecretDecryptionError("secret is not valid base64") from exc
        header = SALT_LENGTH + IV_LENGTH + TAG_LENGTH
        if len(raw) < header:
            raise SecretDecryptionError("secret is truncated")
        salt = raw[:SALT_LENGTH]
        iv = raw[SALT_LENGTH : SALT_LENGTH + IV_LENGTH]
        tag = raw[SALT_LENGTH + IV_LENGTH : header]
        ciphertext = raw[header:]
        try:
            plaintext = AESGCM(_derive_key(secret, salt)).decrypt(iv, ciphertext + tag, None)
        except InvalidTag as exc:
            raise SecretDecryptionError("secret authentication failed") from exc
        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise SecretDecryptionError("secret is not valid utf-8") from exc

    def _require_key(self) -> str:
        if not self._key:
            raise SecretDecryptionError("encryption key is not set")
        return self._key


def _derive_key(secret: str, salt: bytes) -> bytes:
    kdf = PBKDF2HMAC(algorithm=hashes.SHA512(), length=KEY_LENGTH, salt=salt, iterations=PBKDF2_ITERATIONS)
    return kdf.derive(secret.encode("utf-8"))


class SecretResolver:
    """Build outbound request headers, decrypting every secure value."""

    def __init__(self, cipher: HeaderCipher) -> None:
        self._cipher = cipher

    def resolve_headers(
        self,
        plain_headers: Mapping[str, str] | None,
        secure_headers: Mapping[str, str] | None,
    ) -> dict[str, str]:
        """Return plaintext headers; any decryption failure aborts the whole set."""

        headers: dict[str, str] = {"Content-Type": "application/json"}
        headers.update(plain_headers or {})
        for key, encrypted in (secure_headers or {}).items():
            headers[key] = self._cipher.decrypt(encrypted)
        return headers


def mask_headers(plain_headers: Mapping[str, str], secure_keys: set[str]) -> dict[str, str]:
    """Display map where every secure key shows the placeholder."""

    masked = {key: value for key, value in plain_headers.items() if key not in secure_keys}
    for key in secure_keys:
        masked[key] = MASKED_HEADER_VALUE
    return masked
