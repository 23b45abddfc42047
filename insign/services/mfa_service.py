"""
TOTP multi-factor authentication.

A user may hold one method per type. Setup stores the secret and ten
single-use backup codes (argon2 hashed) with ``enabled=False``; the method
becomes active once the user proves possession with a current code.
"""
import logging
import secrets
import string
import uuid
from typing import List, Optional, Tuple

import pyotp
from sqlalchemy.orm import Session

from insign.db import models
from insign.db.enums import MfaType
from insign.db.models import now_utc
from insign.errors import ConflictError, NotFoundError, ServiceError
from insign.utils.token_crypto import hash_secret, verify_secret

logger = logging.getLogger(__name__)

ISSUER_NAME = "Insign"
BACKUP_CODE_COUNT = 10
BACKUP_CODE_LENGTH = 8
TOTP_VALID_WINDOW = 1

_BACKUP_ALPHABET = string.ascii_uppercase + string.digits


def generate_backup_codes(count: int = BACKUP_CODE_COUNT) -> List[str]:
    codes = []
    for _ in range(count):
        raw = "".join(secrets.choice(_BACKUP_ALPHABET) for _ in range(BACKUP_CODE_LENGTH))
        codes.append(f"{raw[:4]}-{raw[4:]}")
    return codes


def _normalize_backup_code(code: str) -> str:
    return code.replace("-", "").replace(" ", "").upper()


def provisioning_uri(email: str, secret: str) -> str:
    return pyotp.TOTP(secret).provisioning_uri(name=email, issuer_name=ISSUER_NAME)


def verify_totp(secret: str, code: str) -> bool:
    if not secret or not code:
        return False
    return pyotp.TOTP(secret).verify(code.strip(), valid_window=TOTP_VALID_WINDOW)


def list_methods(db: Session, user: models.User) -> List[models.MfaMethod]:
    return (
        db.query(models.MfaMethod)
        .filter(models.MfaMethod.user_id == user.id)
        .order_by(models.MfaMethod.created_at.asc())
        .all()
    )


def get_method(db: Session, user: models.User, method_id: uuid.UUID) -> models.MfaMethod:
    method = (
        db.query(models.MfaMethod)
        .filter(models.MfaMethod.id == method_id, models.MfaMethod.user_id == user.id)
        .first()
    )
    if method is None:
        raise NotFoundError("MFA method not found")
    return method


def setup_totp(db: Session, user: models.User) -> Tuple[models.MfaMethod, str, List[str]]:
    """Returns the pending method, its otpauth URL, and the plaintext backup codes."""
    existing = (
        db.query(models.MfaMethod)
        .filter(models.MfaMethod.user_id == user.id, models.MfaMethod.type == MfaType.totp.value)
        .first()
    )
    if existing is not None:
        raise ConflictError("MFA method of this type already exists")

    secret = pyotp.random_base32()
    codes = generate_backup_codes()
    method = models.MfaMethod(
        user_id=user.id,
        type=MfaType.totp.value,
        secret=secret,
        backup_codes=[hash_secret(_normalize_backup_code(c)) for c in codes],
        enabled=False,
    )
    db.add(method)
    db.commit()
    db.refresh(method)
    return method, provisioning_uri(user.email, secret), codes


def enable_method(db: Session, user: models.User, method_id: uuid.UUID, code: str) -> models.MfaMethod:
    method = get_method(db, user, method_id)
    if not verify_totp(method.secret, code):
        raise ServiceError("Invalid verification code", 400)
    method.enabled = True
    method.verified_at = now_utc()
    user.mfa_enabled = True
    db.commit()
    db.refresh(method)
    logger.info("MFA enabled for user %s", user.id)
    return method


def disable_method(db: Session, user: models.User, method_id: uuid.UUID) -> None:
    method = get_method(db, user, method_id)
    db.delete(method)
    db.flush()
    remaining = (
        db.query(models.MfaMethod)
        .filter(models.MfaMethod.user_id == user.id, models.MfaMethod.enabled.is_(True))
        .count()
    )
    if remaining == 0:
        user.mfa_enabled = False
    db.commit()


def _consume_backup_code(method: models.MfaMethod, code: str) -> bool:
    candidate = _normalize_backup_code(code)
    hashes = list(method.backup_codes or [])
    for stored in hashes:
        if verify_secret(candidate, stored):
            hashes.remove(stored)
            # Reassign so the JSON column is flagged dirty.
            method.backup_codes = hashes
            return True
    return False


def verify_login_code(db: Session, user: models.User, code: Optional[str]) -> bool:
    """Accept a current TOTP code or an unused backup code (which is then spent)."""
    if not code:
        return False
    methods = [m for m in list_methods(db, user) if m.enabled and m.type == MfaType.totp.value]
    for method in methods:
        if verify_totp(method.secret, code) or _consume_backup_code(method, code):
            method.last_used_at = now_utc()
            db.commit()
            return True
    return False
