"""Encryption of the credential value before it leaves the process."""

from __future__ import annotations

import base64
import hashlib
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken

from jambojet.core.config import SecuritySettings


class TokenCipherService:
    """Fernet wrapper keyed by a SHA-256 digest of a shared secret.

    Every process sharing the cache must be configured with the same secret,
    otherwise records written by one cannot be read by another.
    """

    def __init__(self, *, secret: str) -> None:
        if not secret:
            raise ValueError("Token encryption secret must be provided.")
        digest = hashlib.sha256(secret.encode("utf-8")).digest()
        self._fernet = Fernet(base64.urlsafe_b64encode(digest))

    @classmethod
    def from_settings(cls, settings: SecuritySettings) -> Optional["TokenCipherService"]:
        """Build a cipher when a secret is configured, otherwise return None."""
        if not settings.token_encryption_secret:
            return None
        return cls(secret=settings.token_encryption_secret)

    def encrypt(self, token: str) -> str:
        return self._fernet.encrypt(token.encode("utf-8")).decode("ascii")

    def decrypt(self, ciphertext: str) -> str:
        """Return the plaintext token; ``ValueError`` if the ciphertext is foreign or corrupt."""
        try:
            plaintext = self._fernet.decrypt(ciphertext.encode("ascii"))
        except (InvalidToken, UnicodeEncodeError) as exc:
            raise ValueError("Failed to decrypt shared token; wrong secret or corrupt record.") from exc
        return plaintext.decode("utf-8")


__all__ = ["TokenCipherService"]
