"""
Tests for feedback encryption.
"""

import pytest
from cryptography.fernet import Fernet

from worklog_pulse.encryption import FeedbackCipher, FeedbackCipherError, is_valid_key


def test_encrypted_token_hides_plaintext():
    cipher = FeedbackCipher(Fernet.generate_key().decode())

    token = cipher.encrypt("Great job on the release")

    assert "Great job" not in token
    assert cipher.decrypt(token) == "Great job on the release"


def test_token_from_another_key_is_rejected():
    token = FeedbackCipher(Fernet.generate_key().decode()).encrypt("secret")

    with pytest.raises(FeedbackCipherError):
        FeedbackCipher(Fernet.generate_key().decode()).decrypt(token)


def test_empty_feedback_is_rejected():
    with pytest.raises(FeedbackCipherError):
        FeedbackCipher(Fernet.generate_key().decode()).encrypt("")


def test_key_validation():
    assert is_valid_key(Fernet.generate_key().decode())
    assert not is_valid_key("too-short")
    with pytest.raises(FeedbackCipherError):
        FeedbackCipher("too-short")
