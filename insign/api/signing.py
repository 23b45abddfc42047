"""
Public signing endpoints addressed by a participant's access token.

No account is needed: the token in the path is the credential, and every
route runs the session gate in `signing_service.resolve_session`.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from insign.api.deps import client_ip, client_user_agent
from insign.api.documents import file_response
from insign.db import schemas
from insign.db.database import get_db
from insign.services import signing_service
from insign.services.storage_service import StorageService, get_storage_service

router = APIRouter(prefix="/sign", tags=["signing"])


@router.get("/{access_token}", response_model=schemas.SigningSession)
def get_signing_session(access_token: str, request: Request, db: Session = Depends(get_db)):
    return signing_service.get_session(db, access_token, client_ip(request), client_user_agent(request))


@router.get("/{access_token}/document")
def download_signing_document(
    access_token: str,
    db: Session = Depends(get_db),
    storage: StorageService = Depends(get_storage_service),
):
    document, content = signing_service.get_session_document(db, access_token, storage=storage)
    return file_response(content, document.name, document.mime_type)


@router.post("/{access_token}/fields", response_model=schemas.Signature)
def sign_field(
    access_token: str,
    payload: schemas.SignFieldRequest,
    request: Request,
    db: Session = Depends(get_db),
):
    return signing_service.sign_field(db, access_token, payload, client_ip(request), client_user_agent(request))


@router.post("/{access_token}/complete", response_model=schemas.CompleteResponse)
def complete_signing(access_token: str, request: Request, db: Session = Depends(get_db)):
    return signing_service.complete(db, access_token, client_ip(request), client_user_agent(request))


@router.post("/{access_token}/decline", response_model=schemas.DeclineResponse)
def decline_signing(
    access_token: str,
    request: Request,
    payload: Optional[schemas.DeclineRequest] = None,
    db: Session = Depends(get_db),
):
    reason = payload.reason if payload else None
    return signing_service.decline(db, access_token, reason, client_ip(request), client_user_agent(request))
