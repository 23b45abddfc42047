"""Runtime configuration helpers read from the environment.

Also guards the development-only DEV_MODE flag so it cannot be enabled on a
non-local deployment.
"""

import os
from urllib.parse import urlparse
from typing import Optional, Set

_LOCAL_HOSTS: Set[str] = {"localhost", "127.0.0.1", "::1"}

DEV_USER_EMAIL = "dev@localhost"
DEV_ORG_DOMAIN = "dev-local"


def _extract_hostname(url_value: str) -> Optional[str]:
    """Return hostname from a URL or bare host string."""
    if not url_value or not url_value.strip():
        return None
    url_value = url_value.strip()
    candidate = url_value if "://" in url_value else f"http://{url_value}"
    return urlparse(candidate).hostname


def _allowed_dev_hosts() -> Set[str]:
    extra = os.getenv("DEV_MODE_ALLOWED_HOSTS", "")
    allowed = set(_LOCAL_HOSTS)
    if extra:
        allowed.update({host.strip().lower() for host in extra.split(",") if host.strip()})
    return allowed


def dev_mode_requested() -> bool:
    return os.getenv("DEV_MODE", "false").lower() == "true"


def dev_mode_active() -> bool:
    """Return True if dev mode is enabled and allowed; raise if misconfigured.

    DEV_MODE only works while APP_BASE_URL points at a local host (or one listed
    in DEV_MODE_ALLOWED_HOSTS), so a production deployment cannot silently
    authenticate every request as the dev user.
    """
    if not dev_mode_requested():
        return False

    hostname = _extract_hostname(os.getenv("APP_BASE_URL", ""))
    allowed_hosts = _allowed_dev_hosts()

    if hostname:
        if hostname.lower() not in allowed_hosts:
            raise RuntimeError(
                "DEV_MODE=true is not permitted when APP_BASE_URL points to "
                f"'{hostname}'. Allowed hosts: {sorted(allowed_hosts)}"
            )
    elif os.getenv("ALLOW_DEV_MODE", "false").lower() != "true" and not os.getenv("PYTEST_CURRENT_TEST"):
        raise RuntimeError(
            "DEV_MODE=true requires APP_BASE_URL to be set to a localhost URL "
            "or ALLOW_DEV_MODE=true for non-local execution."
        )

    return True


def superadmin_emails() -> Set[str]:
    raw = os.getenv("ADMIN_EMAILS", "")
    return {e.strip().lower() for e in raw.split(",") if e.strip()}


def session_token_ttl_hours() -> int:
    try:
        return max(1, int(os.getenv("SESSION_TOKEN_TTL_HOURS", "12")))
    except ValueError:
        return 12


def webhook_timeout_seconds() -> float:
    try:
        return float(os.getenv("WEBHOOK_TIMEOUT_SECONDS", "10"))
    except ValueError:
        return 10.0


def storage_root() -> str:
    return os.getenv("STORAGE_ROOT", "./storage")
