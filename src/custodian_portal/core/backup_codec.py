"""Reversible encodings applied to serialized backup payloads.

``base64`` only obscures the payload; anyone holding the stored text can read
it. ``fernet`` is authenticated symmetric encryption and is selected whenever a
key is configured.
"""

from __future__ import annotations

import base64
import binascii
from typing import Protocol

from cryptography.fernet import Fernet, InvalidToken

from custodian_portal.core.errors import BackupIntegrityError, ValidationError


class PayloadCodec(Protocol):
    name: str

    def encode(self, text: str) -> str: ...

    def decode(self, payload: str) -> str: ...


class PlainCodec:
    name = "none"

    def encode(self, text: str) -> str:
        return text

    def decode(self, payload: str) -> str:
        return payload


class Base64Codec:
    name = "base64"

    def encode(self, text: str) -> str:
        return base64.b64encode(text.encode("utf-8")).decode("ascii")

    def decode(self, payload: str) -> str:
        try:
            return base64.b64decode(payload.encode("ascii"), validate=True).decode("utf-8")
        except (binascii.Error, UnicodeError) as exc:
            raise BackupIntegrityError(f"Backup payload is not valid base64: {exc}") from exc


class FernetCodec:
    name = "fernet"

    def __init__(self, key: str | bytes) -> None:
        try:
            self._fernet = Fernet(key)
        except (ValueError, TypeError) as exc:
            raise ValidationError(["encryption key must be a url-safe base64 32-byte key"]) from exc

    def encode(self, text: str) -> str:
        return self._fernet.encrypt(text.encode("utf-8")).decode("ascii")

    def decode(self, payload: str) -> str:
        try:
            return self._fernet.decrypt(payload.encode("ascii")).decode("utf-8")
        except (InvalidToken, UnicodeError) as exc:
            raise BackupIntegrityError("Backup payload could not be decrypted") from exc


def generate_key() -> str:
    return Fernet.generate_key().decode("ascii")


def codec_for(encoding: str, encryption_key: str | None = None) -> PayloadCodec:
    """Resolve the codec that reads or writes a given encoding name."""
    if encoding == "fernet":
        if not encryption_key:
            raise BackupIntegrityError("Backup is encrypted but no encryption key is configured")
        try:
            return FernetCodec(encryption_key)
        except ValidationError as exc:
            raise BackupIntegrityError("Configured encryption key is not valid") from exc
    if encoding == "base64":
        return Base64Codec()
    if encoding == "none":
        return PlainCodec()
    raise BackupIntegrityError(f"Unknown backup encoding: {encoding}")
