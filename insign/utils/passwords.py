"""Password policy and strength scoring."""
import re
from typing import Dict, Any, List

MIN_LENGTH = 8
MAX_LENGTH = 128

_LOWER = re.compile(r"[a-z]")
_UPPER = re.compile(r"[A-Z]")
_DIGIT = re.compile(r"[0-9]")
_SPECIAL = re.compile(r"[^A-Za-z0-9]")

STRENGTH_LABELS = ["Very Weak", "Very Weak", "Weak", "Fair", "Good", "Strong"]


def password_policy_errors(password: str) -> List[str]:
    """Return the policy violations for `password`; empty when it passes."""
    errors = []
    if len(password) < MIN_LENGTH:
        errors.append(f"Password must be at least {MIN_LENGTH} characters")
    if len(password) > MAX_LENGTH:
        errors.append(f"Password must be less than {MAX_LENGTH} characters")
    if not _LOWER.search(password):
        errors.append("Password must contain at least one lowercase letter")
    if not _UPPER.search(password):
        errors.append("Password must contain at least one uppercase letter")
    if not _DIGIT.search(password):
        errors.append("Password must contain at least one number")
    if not _SPECIAL.search(password):
        errors.append("Password must contain at least one special character")
    return errors


def validate_password(password: str) -> str:
    """Pydantic-friendly validator: raise ValueError with the first violation."""
    errors = password_policy_errors(password or "")
    if errors:
        raise ValueError(errors[0])
    return password


def check_password_strength(password: str) -> Dict[str, Any]:
    """Score a password 0..5 with a label and improvement suggestions."""
    password = password or ""
    score = 0
    suggestions = []

    if len(password) >= MIN_LENGTH:
        score += 1
    else:
        suggestions.append(f"Use at least {MIN_LENGTH} characters")
    if len(password) >= 12:
        score += 1
    else:
        suggestions.append("Use 12 or more characters for a stronger password")
    if _LOWER.search(password) and _UPPER.search(password):
        score += 1
    else:
        suggestions.append("Mix uppercase and lowercase letters")
    if _DIGIT.search(password):
        score += 1
    else:
        suggestions.append("Add numbers")
    if _SPECIAL.search(password):
        score += 1
    else:
        suggestions.append("Add special characters")

    return {"score": score, "label": STRENGTH_LABELS[score], "suggestions": suggestions}
