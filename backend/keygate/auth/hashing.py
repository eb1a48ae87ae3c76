"""
API key hashing utilities.

Security notes:
  • SHA-256 is used for key fingerprints — acceptable for API keys because
    they are high-entropy random strings (not low-entropy passwords).
    bcrypt/argon2 would add latency to every admission check.
  • Raw keys use the kg_live_ prefix (convention, not security).
  • generate_api_key() returns the raw key exactly once — the caller
    must hand it to the client immediately. It is never stored.
"""

import hashlib
import secrets

from keygate.core.errors import InvalidInputError

_KEY_PREFIX = "kg_live_"
_RANDOM_BYTES = 32  # 256 bits
PREFIX_LENGTH = 12


def fingerprint(raw_key: str) -> str:
    """
    Hash a raw API key using SHA-256.

    Returns the 64-char hex digest used for storage/lookup.
    Raises InvalidInputError for a missing or empty key.
    """
    if not isinstance(raw_key, str) or not raw_key:
        raise InvalidInputError("API key must be a non-empty string")
    return hashlib.sha256(raw_key.encode("utf-8")).hexdigest()


def generate_raw_key() -> str:
    """Fresh random raw key (never persisted)."""
    return f"{_KEY_PREFIX}{secrets.token_hex(_RANDOM_BYTES)}"


def key_prefix(raw_key: str) -> str:
    """Display prefix — safe to log, identifies a key in the UI."""
    return raw_key[:PREFIX_LENGTH]


def generate_api_key() -> tuple[str, str]:
    """
    Generate a new API key.

    Returns:
        (raw_key, key_hash) — raw_key is shown once, key_hash is stored.
    """
    raw_key = generate_raw_key()
    return raw_key, fingerprint(raw_key)
