"""
Role and permission repository.

System roles are global rows (``organization_id IS NULL``, ``is_system``)
seeded idempotently from `insign.utils.role_permissions`.
"""
from __future__ import annotations

import uuid
from typing import Iterable, List, Optional, Set

from sqlalchemy import or_
from sqlalchemy.orm import Session

from insign.db import models, schemas
from insign.utils.role_permissions import (
    PERMISSION_CATALOG,
    SYSTEM_ROLE_DESCRIPTIONS,
    SYSTEM_ROLE_PERMISSIONS,
    split_permission,
)


def ensure_system_roles(db: Session) -> None:
    """Create the permission catalog and system roles when missing."""
    existing = {p.name: p for p in db.query(models.Permission).all()}
    for name in PERMISSION_CATALOG:
        if name not in existing:
            resource, action = split_permission(name)
            perm = models.Permission(resource=resource, action=action, description=f"{action.capitalize()} {resource}")
            db.add(perm)
            existing[name] = perm
    db.flush()

    for role_name, grants in SYSTEM_ROLE_PERMISSIONS.items():
        role = (
            db.query(models.Role)
            .filter(models.Role.organization_id.is_(None), models.Role.name == role_name)
            .first()
        )
        if role is None:
            role = models.Role(
                organization_id=None,
                name=role_name,
                description=SYSTEM_ROLE_DESCRIPTIONS.get(role_name),
                is_system=True,
            )
            role.permissions = [existing[g] for g in sorted(grants)]
            db.add(role)
    db.commit()


def get_system_role(db: Session, name: str) -> Optional[models.Role]:
    return (
        db.query(models.Role)
        .filter(models.Role.organization_id.is_(None), models.Role.is_system.is_(True), models.Role.name == name)
        .first()
    )


def list_roles(db: Session, *, organization_id: uuid.UUID) -> List[models.Role]:
    return (
        db.query(models.Role)
        .filter(or_(
            models.Role.organization_id == organization_id,
            (models.Role.organization_id.is_(None)) & (models.Role.is_system.is_(True)),
        ))
        .order_by(models.Role.name.asc())
        .all()
    )


def get_role_visible(db: Session, *, role_id: uuid.UUID, organization_id: uuid.UUID) -> Optional[models.Role]:
    """Return a role of the organization or a system role; None otherwise."""
    role = db.query(models.Role).filter(models.Role.id == role_id).first()
    if role is None:
        return None
    if role.organization_id == organization_id:
        return role
    if role.organization_id is None and role.is_system:
        return role
    return None


def get_role_editable(db: Session, *, role_id: uuid.UUID, organization_id: uuid.UUID) -> Optional[models.Role]:
    return (
        db.query(models.Role)
        .filter(
            models.Role.id == role_id,
            models.Role.organization_id == organization_id,
            models.Role.is_system.is_(False),
        )
        .first()
    )


def role_name_taken(db: Session, *, organization_id: uuid.UUID, name: str, exclude_id: Optional[uuid.UUID] = None) -> bool:
    q = db.query(models.Role).filter(
        or_(models.Role.organization_id == organization_id, models.Role.organization_id.is_(None)),
        models.Role.name == name,
    )
    if exclude_id is not None:
        q = q.filter(models.Role.id != exclude_id)
    return db.query(q.exists()).scalar()


def _load_permissions(db: Session, permission_ids: Iterable[uuid.UUID]) -> List[models.Permission]:
    ids = list(dict.fromkeys(permission_ids or []))
    if not ids:
        return []
    perms = db.query(models.Permission).filter(models.Permission.id.in_(ids)).all()
    if len(perms) != len(ids):
        raise ValueError("Unknown permission id")
    return perms


def create_role(db: Session, *, organization_id: uuid.UUID, payload: schemas.RoleCreate) -> models.Role:
    role = models.Role(
        organization_id=organization_id,
        name=payload.name.strip(),
        description=payload.description,
        is_system=False,
    )
    role.permissions = _load_permissions(db, payload.permission_ids)
    db.add(role)
    db.commit()
    db.refresh(role)
    return role


def update_role(db: Session, *, role: models.Role, payload: schemas.RoleUpdate) -> models.Role:
    if payload.name is not None:
        role.name = payload.name.strip()
    if payload.description is not None:
        role.description = payload.description
    db.commit()
    db.refresh(role)
    return role


def set_role_permissions(db: Session, *, role: models.Role, permission_ids: Iterable[uuid.UUID]) -> models.Role:
    role.permissions = _load_permissions(db, permission_ids)
    db.commit()
    db.refresh(role)
    return role


def role_in_use(db: Session, *, role_id: uuid.UUID) -> bool:
    return db.query(db.query(models.User).filter(models.User.role_id == role_id).exists()).scalar()


def delete_role(db: Session, *, role: models.Role) -> None:
    db.delete(role)
    db.commit()


def list_permissions(db: Session) -> List[models.Permission]:
    return (
        db.query(models.Permission)
        .order_by(models.Permission.resource.asc(), models.Permission.action.asc())
        .all()
    )


def role_permission_names(role: Optional[models.Role]) -> Set[str]:
    if role is None:
        return set()
    return {p.name for p in role.permissions}
