from __future__ import annotations

from typing import Any


class AmbrosusError(Exception):
    """Top-level SDK error with optional HTTP metadata."""

    def __init__(self, message: str, status_code: int | None = None, details: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.details = details


class CanonicalizationError(AmbrosusError):
    """A tree cannot be put in canonical form, or a typed section lacks a required field."""


class CryptoError(AmbrosusError):
    """Malformed hex, wrong-length bytes, bad recovery id or missing signing key."""


class ValidationError(AmbrosusError):
    """A builder was asked to build without a mandatory field."""


class DeserializationError(AmbrosusError):
    """Wire input does not have the expected shape."""
