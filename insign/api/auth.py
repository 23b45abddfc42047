"""
Authentication endpoints: signup, login/logout, password reset, email
verification and TOTP MFA.

Signup, login, password reset and email verification are reachable without
credentials; everything else resolves the caller through
`get_current_user_context`.
"""
import logging
import uuid
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session

from insign.api.deps import client_ip, get_current_session_key, get_current_user_context
from insign.api.permissions import ensure_interactive_caller
from insign.audit import AuditAction, AuditStatus, log_quietly, log_for_user
from insign.db import models, schemas
from insign.db.database import get_db
from insign.db.enums import AuthTokenPurpose, OrganizationStatus, UserStatus
from insign.db.repositories import auth_tokens as auth_tokens_repo
from insign.db.repositories import organizations as orgs_repo
from insign.db.repositories import tokens as token_repo
from insign.db.repositories import users as users_repo
from insign.services import mfa_service
from insign.services.notification_service import NotificationService
from insign.utils.passwords import check_password_strength
from insign.utils.runtime import session_token_ttl_hours
from insign.utils.token_crypto import verify_secret

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

PASSWORD_RESET_MESSAGE = "If an account exists with this email, you will receive a password reset link"


@router.post("/signup", response_model=schemas.SignupResponse, status_code=status.HTTP_201_CREATED)
def signup(payload: schemas.SignupRequest, db: Session = Depends(get_db)):
    if not orgs_repo.domain_available(db, payload.organization_domain):
        raise HTTPException(status_code=409, detail="Organization domain already exists")
    if users_repo.email_registered(db, email=payload.email):
        raise HTTPException(status_code=409, detail="Email already registered")

    org, user = orgs_repo.create_organization_with_admin(db, payload)
    log_quietly(
        db,
        action=AuditAction.ORGANIZATION_CREATE,
        target_type="organization",
        target_id=org.id,
        actor_user_id=user.id,
        organization_id=org.id,
        metadata={"name": org.name, "domain": org.domain},
    )
    logger.info("signup: organization %s created with admin %s", org.domain, user.id)
    return schemas.SignupResponse(
        organization_id=org.id,
        user_id=user.id,
        message="Organization created successfully",
    )


@router.get("/domain-availability", response_model=schemas.DomainAvailability)
def check_domain_availability(domain: str = Query(..., min_length=1), db: Session = Depends(get_db)):
    normalized = domain.strip().lower()
    return schemas.DomainAvailability(domain=normalized, available=orgs_repo.domain_available(db, normalized))


@router.post("/password-strength", response_model=schemas.PasswordStrength)
def password_strength(payload: schemas.PasswordStrengthRequest):
    return check_password_strength(payload.password)


@router.post("/login", response_model=schemas.LoginResponse)
def login(payload: schemas.LoginRequest, db: Session = Depends(get_db)):
    user = users_repo.get_by_email(db, email=payload.email)
    if user is None or not user.password_hash or not verify_secret(payload.password, user.password_hash):
        if user is not None:
            log_quietly(
                db,
                action=AuditAction.USER_LOGIN_FAILED,
                status=AuditStatus.FAILURE,
                target_type="user",
                target_id=user.id,
                actor_user_id=user.id,
                organization_id=user.organization_id,
                reason="invalid_password",
            )
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid email or password")

    if user.status != UserStatus.active.value:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account is not active")
    org = orgs_repo.get_organization(db, user.organization_id)
    if org is None or org.status in (OrganizationStatus.suspended.value, OrganizationStatus.cancelled.value):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Organization is not active")

    if user.mfa_enabled:
        if not payload.mfa_code:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="MFA code required")
        if not mfa_service.verify_login_code(db, user, payload.mfa_code):
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid MFA code")

    user.last_login_at = models.now_utc()
    db.commit()
    key, full_token = token_repo.create_session_token(db, user=user, ttl_hours=session_token_ttl_hours())
    log_quietly(
        db,
        action=AuditAction.USER_LOGIN,
        target_type="user",
        target_id=user.id,
        actor_user_id=user.id,
        organization_id=user.organization_id,
    )
    return schemas.LoginResponse(
        access_token=full_token,
        expires_at=key.expires_at,
        user_id=user.id,
        organization_id=user.organization_id,
    )


@router.post("/logout", response_model=schemas.MessageResponse)
def logout(
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
    session_key=Depends(get_current_session_key),
):
    user, _ctx = user_context
    if session_key is not None and session_key.kind == "session" and session_key.user_id == user.id:
        token_repo.revoke_key(db, key=session_key)
    return {"message": "Logged out"}


# Password reset

@router.post("/password-reset/request", response_model=schemas.MessageResponse)
def request_password_reset(payload: schemas.PasswordResetRequest, db: Session = Depends(get_db)):
    user = users_repo.get_by_email(db, email=payload.email)
    if user is not None and user.status == UserStatus.active.value:
        _record, raw = auth_tokens_repo.issue_token(
            db,
            user_id=user.id,
            purpose=AuthTokenPurpose.password_reset.value,
            ttl=auth_tokens_repo.PASSWORD_RESET_TTL,
        )
        NotificationService(db).send_password_reset(user, raw)
    return {"message": PASSWORD_RESET_MESSAGE}


@router.post("/password-reset/confirm", response_model=schemas.MessageResponse)
def reset_password(payload: schemas.PasswordResetConfirm, db: Session = Depends(get_db)):
    record = auth_tokens_repo.get_valid_token(
        db, raw_token=payload.token, purpose=AuthTokenPurpose.password_reset.value
    )
    if record is None:
        raise HTTPException(status_code=400, detail="Invalid or expired reset token")
    user = db.get(models.User, record.user_id)
    if user is None:
        raise HTTPException(status_code=400, detail="Invalid or expired reset token")

    users_repo.set_password(db, user=user, password=payload.password)
    auth_tokens_repo.mark_used(db, record=record)
    revoked = token_repo.revoke_sessions_for_user(db, user_id=user.id)
    log_quietly(
        db,
        action=AuditAction.PASSWORD_RESET,
        target_type="user",
        target_id=user.id,
        actor_user_id=user.id,
        organization_id=user.organization_id,
        metadata={"revoked_sessions": revoked},
    )
    return {"message": "Password has been reset successfully"}


# Email verification

@router.post("/verify-email/send", response_model=schemas.MessageResponse)
def send_verification_email(
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    user, _ctx = user_context
    if user.email_verified_at is not None:
        raise HTTPException(status_code=400, detail="Email is already verified")
    _record, raw = auth_tokens_repo.issue_token(
        db,
        user_id=user.id,
        purpose=AuthTokenPurpose.email_verification.value,
        ttl=auth_tokens_repo.EMAIL_VERIFICATION_TTL,
    )
    NotificationService(db).send_email_verification(user, raw)
    return {"message": "Verification email sent"}


@router.post("/verify-email", response_model=schemas.MessageResponse)
def verify_email(payload: schemas.EmailVerificationConfirm, db: Session = Depends(get_db)):
    record = auth_tokens_repo.get_valid_token(
        db, raw_token=payload.token, purpose=AuthTokenPurpose.email_verification.value
    )
    if record is None:
        raise HTTPException(status_code=400, detail="Invalid or expired verification token")
    user = db.get(models.User, record.user_id)
    if user is None:
        raise HTTPException(status_code=400, detail="Invalid or expired verification token")
    user.email_verified_at = models.now_utc()
    auth_tokens_repo.mark_used(db, record=record)
    return {"message": "Email verified successfully"}


# MFA

@router.get("/mfa", response_model=List[schemas.MfaMethod])
def list_mfa_methods(
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    user, _ctx = user_context
    return mfa_service.list_methods(db, user)


@router.post("/mfa/setup", response_model=schemas.MfaSetupResponse, status_code=status.HTTP_201_CREATED)
def setup_mfa(
    payload: schemas.MfaSetupRequest,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    user, current_user = user_context
    ensure_interactive_caller(current_user)
    if payload.type != "totp":
        raise HTTPException(status_code=400, detail="Only TOTP authentication is supported")
    method, otpauth_url, codes = mfa_service.setup_totp(db, user)
    return schemas.MfaSetupResponse(
        method_id=method.id,
        secret=method.secret,
        otpauth_url=otpauth_url,
        backup_codes=codes,
    )


@router.post("/mfa/{method_id}/enable", response_model=schemas.MfaMethod)
def enable_mfa(
    method_id: uuid.UUID,
    payload: schemas.MfaVerifyRequest,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    user, current_user = user_context
    ensure_interactive_caller(current_user)
    method = mfa_service.enable_method(db, user, method_id, payload.code)
    log_for_user(db, current_user, action=AuditAction.MFA_ENABLE, target_type="user", target_id=user.id,
                 metadata={"method": method.type})
    return method


@router.delete("/mfa/{method_id}", status_code=status.HTTP_204_NO_CONTENT)
def disable_mfa(
    method_id: uuid.UUID,
    request: Request,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    user, current_user = user_context
    ensure_interactive_caller(current_user)
    mfa_service.disable_method(db, user, method_id)
    log_for_user(db, current_user, action=AuditAction.MFA_DISABLE, target_type="user", target_id=user.id,
                 metadata={"ip": client_ip(request)})
    return None
