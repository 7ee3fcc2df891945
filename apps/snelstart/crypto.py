"""Symmetric encryption for SnelStart credentials stored in the database."""
from __future__ import annotations

import base64
import hashlib

from cryptography.fernet import Fernet, InvalidToken
from django.conf import settings

from .exceptions import SnelStartConfigurationError

PREFIX = "enc:"


def _fernet() -> Fernet:
    master_key = getattr(settings, "ENCRYPTION_MASTER_KEY", "")
    if not master_key:
        raise SnelStartConfigurationError("ENCRYPTION_MASTER_KEY is required to store SnelStart credentials")
    digest = hashlib.sha256(master_key.encode("utf-8")).digest()
    return Fernet(base64.urlsafe_b64encode(digest))


def is_encrypted(value: str) -> bool:
    return bool(value) and value.startswith(PREFIX)


def encrypt_secret(value: str) -> str:
    if not value or is_encrypted(value):
        return value
    token = _fernet().encrypt(value.encode("utf-8")).decode("ascii")
    return f"{PREFIX}{token}"


def decrypt_secret(value: str) -> str:
    if not is_encrypted(value):
        raise SnelStartConfigurationError("Stored SnelStart credential is not encrypted")
    try:
        return _fernet().decrypt(value[len(PREFIX):].encode("ascii")).decode("utf-8")
    except InvalidToken as exc:
        raise SnelStartConfigurationError("Stored SnelStart credential cannot be decrypted with ENCRYPTION_MASTER_KEY") from exc
