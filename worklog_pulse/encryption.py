"""Fernet encryption for stored feedback."""

from __future__ import annotations

import logging

from cryptography.fernet import Fernet, InvalidToken

logger = logging.getLogger(__name__)


class FeedbackCipherError(RuntimeError):
    """Raised when feedback cannot be encrypted or decrypted."""


def is_valid_key(key: str) -> bool:
    try:
        Fernet(key.encode("utf-8"))
    except (ValueError, TypeError):
        return False
    return True


class FeedbackCipher:
    """Encrypts feedback text into url-safe tokens stored as TEXT."""

    def __init__(self, key: str) -> None:
        try:
            self._fernet = Fernet(key.encode("utf-8"))
        except (ValueError, TypeError) as exc:
            raise FeedbackCipherError(f"Invalid encryption key: {exc}") from exc

    def encrypt(self, text: str) -> str:
        if not text:
            raise FeedbackCipherError("Feedback must be a non-empty string")
        return self._fernet.encrypt(text.encode("utf-8")).decode("ascii")

    def decrypt(self, token: str) -> str:
        try:
            return self._fernet.decrypt(token.encode("ascii")).decode("utf-8")
        except (InvalidToken, UnicodeError) as exc:
            logger.error("Feedback decryption failed")
            raise FeedbackCipherError("Invalid or corrupted feedback token") from exc


__all__ = ["FeedbackCipher", "FeedbackCipherError", "is_valid_key"]
