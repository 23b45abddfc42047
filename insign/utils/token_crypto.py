"""
Token generation, parsing, and hashing utilities.

Responsibilities:
- Generate API key strings of the form: isk_<token_id>_<secret>
- Hash secrets and passwords using Argon2id
- Generate url-safe access tokens for signing links, share links, and webhooks
- Provide helpers to derive display prefix and last four for UI
"""
from __future__ import annotations

import hashlib
import secrets
import string
import uuid
from dataclasses import dataclass
from typing import Optional, Tuple

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError
from argon2.low_level import Type

_argon2 = PasswordHasher(time_cost=2, memory_cost=102400, parallelism=8, hash_len=32, type=Type.ID)


TOKEN_PREFIX = "isk_"
WEBHOOK_SECRET_PREFIX = "whsec_"

# Same alphabet as nanoid's default: A-Za-z0-9_-
_URL_ALPHABET = string.ascii_letters + string.digits + "_-"


@dataclass(frozen=True)
class ParsedToken:
    token_id: str
    secret: str


def generate_token_id() -> str:
    """Return a short hex token id suitable for DB lookup and logs."""
    return uuid.uuid4().hex[:16]


def generate_secret(length: int = 32) -> str:
    """Return a high-entropy url-safe secret string."""
    return secrets.token_urlsafe(length)


def generate_access_token(size: int = 32) -> str:
    """Return a random url-safe id of exactly `size` characters."""
    return "".join(secrets.choice(_URL_ALPHABET) for _ in range(size))


def generate_webhook_secret() -> str:
    return f"{WEBHOOK_SECRET_PREFIX}{generate_access_token(32)}"


def build_token_string(token_id: str, secret: str) -> str:
    return f"{TOKEN_PREFIX}{token_id}_{secret}"


def parse_token(token: str) -> Optional[ParsedToken]:
    """Parse a token string into token_id and secret.

    Returns None if format is invalid.
    """
    if not token or not token.startswith(TOKEN_PREFIX):
        return None
    body = token[len(TOKEN_PREFIX) :]
    # token_id contains no underscores (hex), secret may contain '_' so split once
    idx = body.find("_")
    if idx <= 0:
        return None
    token_id = body[:idx]
    secret = body[idx + 1 :]
    if not token_id or not secret:
        return None
    return ParsedToken(token_id=token_id, secret=secret)


def hash_secret(secret: str) -> str:
    """Hash a secret or password using Argon2id."""
    return _argon2.hash(secret)


def verify_secret(secret: str, encoded_hash: str) -> bool:
    if not secret or not encoded_hash:
        return False
    try:
        return _argon2.verify(encoded_hash, secret)
    except (VerificationError, InvalidHashError):
        return False


def hash_lookup_token(token: str) -> str:
    """Deterministic digest for single-use tokens that must be found by value."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def derive_display_parts(full_token: str) -> Tuple[str, str]:
    """Return (prefix, last_four) for UI display.

    Prefix: first 8 chars of token body (after isk_)
    Last four: last 4 chars of the secret part
    """
    if not full_token.startswith(TOKEN_PREFIX):
        return "", ""
    body = full_token[len(TOKEN_PREFIX) :]
    prefix = body[:8]
    parsed = parse_token(full_token)
    last_four = (parsed.secret[-4:] if parsed else "")
    return prefix, last_four


def generate_token() -> Tuple[str, str, str]:
    """Generate a new API key and return (token_id, secret, full_token)."""
    tid = generate_token_id()
    sec = generate_secret()
    token = build_token_string(tid, sec)
    return tid, sec, token
