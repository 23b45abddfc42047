"""
API dependency helpers.

Resolves the caller for every organization-scoped route.

Contract:
Returns (sqlalchemy User model, current_user_context_dict).
Raises 401 when no credential resolves to a user, 403 when the user or its
organization is not allowed to act.
"""
import logging
from typing import Any, Dict, Optional, Tuple

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.orm import Session

from insign.db import models
from insign.db.database import get_db
from insign.db.enums import OrganizationStatus, UserStatus
from insign.db.models import is_past
from insign.db.repositories import organizations as orgs_repo
from insign.db.repositories import roles as roles_repo
from insign.db.repositories import tokens as token_repo
from insign.db.repositories import users as users_repo
from insign.utils.role_permissions import ROLE_ADMIN
from insign.utils.runtime import DEV_ORG_DOMAIN, DEV_USER_EMAIL, dev_mode_active, superadmin_emails
from insign.utils.token_crypto import TOKEN_PREFIX, parse_token, verify_secret

logger = logging.getLogger(__name__)

_BLOCKED_ORG_STATUSES = {OrganizationStatus.suspended.value, OrganizationStatus.cancelled.value}


def client_ip(request: Request) -> Optional[str]:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()[:45] or None
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()[:45]
    return request.client.host if request.client else None


def client_user_agent(request: Request) -> Optional[str]:
    return request.headers.get("user-agent")


def extract_bearer_token(authorization: Optional[str], x_api_key: Optional[str]) -> Optional[str]:
    if authorization and authorization.lower().startswith("bearer "):
        return authorization[7:].strip() or None
    if x_api_key:
        return x_api_key.strip() or None
    return None


def build_user_context(user: models.User, api_key: Optional[models.ApiKey] = None) -> Dict[str, Any]:
    role = user.role
    context = {
        "id": user.id,
        "email": user.email,
        "display_name": user.full_name,
        "organization_id": user.organization_id,
        "role_id": user.role_id,
        "role": role.name if role else None,
        "permissions": roles_repo.role_permission_names(role),
        "is_superadmin": bool(user.is_superadmin) or user.email.lower() in superadmin_emails(),
        "api_key": None,
    }
    if api_key is not None:
        context["api_key"] = {
            "id": api_key.id,
            "token_id": api_key.token_id,
            "scopes": list(api_key.scopes or []),
            "kind": api_key.kind,
        }
    return context


def _check_account(db: Session, user: models.User) -> None:
    if user.status != UserStatus.active.value:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account is not active")
    org = orgs_repo.get_organization(db, user.organization_id)
    if org is None or org.status in _BLOCKED_ORG_STATUSES:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Organization is not active")


def _resolve_api_key(db: Session, raw_token: str, ip_address: Optional[str]) -> Tuple[models.User, models.ApiKey]:
    parsed = parse_token(raw_token)
    if not parsed:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid API key format")
    key = token_repo.get_by_token_id(db, token_id=parsed.token_id)
    if key is None or not verify_secret(parsed.secret, key.token_hash):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid API key")
    if key.status == "revoked":
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="API key has been revoked")
    if key.status == "expired" or (key.expires_at is not None and is_past(key.expires_at)):
        if key.status != "expired":
            token_repo.mark_expired(db, key=key)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="API key has expired")

    user = db.get(models.User, key.user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid API key")
    token_repo.mark_used_now(db, key=key, ip_address=ip_address)
    return user, key


def ensure_dev_user(db: Session) -> models.User:
    """Create the local development organization and admin user on first use."""
    org = orgs_repo.get_by_domain(db, DEV_ORG_DOMAIN)
    if org is None:
        roles_repo.ensure_system_roles(db)
        org = models.Organization(name="Development", domain=DEV_ORG_DOMAIN, status=OrganizationStatus.active.value)
        db.add(org)
        db.flush()
        db.add(models.StorageQuota(organization_id=org.id, total_bytes=org.max_storage_bytes, used_bytes=0))
        db.commit()
        db.refresh(org)
    user = users_repo.get_by_email_in_org(db, email=DEV_USER_EMAIL, organization_id=org.id)
    if user is None:
        roles_repo.ensure_system_roles(db)
        admin_role = roles_repo.get_system_role(db, ROLE_ADMIN)
        user = users_repo.create_user(
            db,
            organization_id=org.id,
            email=DEV_USER_EMAIL,
            password=None,
            first_name="Development",
            last_name="User",
            role_id=admin_role.id if admin_role else None,
            email_verified=True,
        )
        logger.info("dev_mode: created %s in organization %s", DEV_USER_EMAIL, DEV_ORG_DOMAIN)
    return user


def get_current_user_context(
    request: Request,
    db: Session = Depends(get_db),
    authorization: Optional[str] = Header(default=None),
    x_api_key: Optional[str] = Header(default=None, alias="X-API-Key"),
    x_auth_request_email: Optional[str] = Header(default=None),
    x_forwarded_email: Optional[str] = Header(default=None),
) -> Tuple[models.User, Dict[str, Any]]:
    token = extract_bearer_token(authorization, x_api_key)
    if token and token.startswith(TOKEN_PREFIX):
        user, key = _resolve_api_key(db, token, client_ip(request))
        _check_account(db, user)
        return user, build_user_context(user, key)
    if token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid API key format")

    if dev_mode_active():
        user = ensure_dev_user(db)
        return user, build_user_context(user)

    email = (x_auth_request_email or x_forwarded_email or "").strip()
    if email:
        user = users_repo.get_by_email(db, email=email)
        if user is not None:
            _check_account(db, user)
            return user, build_user_context(user)

    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")


def get_current_session_key(
    db: Session = Depends(get_db),
    authorization: Optional[str] = Header(default=None),
    x_api_key: Optional[str] = Header(default=None, alias="X-API-Key"),
) -> Optional[models.ApiKey]:
    """The token row presented with this request, if any (used by logout)."""
    token = extract_bearer_token(authorization, x_api_key)
    parsed = parse_token(token) if token else None
    if not parsed:
        return None
    return token_repo.get_by_token_id(db, token_id=parsed.token_id)
