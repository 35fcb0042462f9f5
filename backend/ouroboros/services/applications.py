"""Public membership applications and their review into accounts."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from .. import audit, clearance, models, rbac, schemas
from ..auth import get_password_hash
from . import directory

# purpose: self-registration path that ends in a reviewer-approved account
# status: active

_logger = logging.getLogger(__name__)

TERMINAL_STATUSES = frozenset({"approved"})


def submit(db: Session, data: schemas.ApplicationCreate) -> models.Application:
    username = data.username
    if db.query(models.User).filter(models.User.username == username).first():
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Username already taken")
    pending = db.query(models.Application).filter(models.Application.status == "pending")
    if pending.filter(models.Application.username == username).first():
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Username already requested by a pending application")
    if pending.filter(models.Application.discord_handle == data.discord_handle).first():
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="An application for this Discord handle is already pending")
    if data.requested_department_id is not None:
        directory.get_department(db, data.requested_department_id)
    directory.resolve_rank(db, data.requested_department_id, data.requested_rank_id)
    application = models.Application(
        discord_handle=data.discord_handle,
        email=data.email,
        proposed_name=data.proposed_name,
        proposed_title=data.proposed_title,
        requested_department_id=data.requested_department_id,
        requested_rank_id=data.requested_rank_id,
        username=username,
        hashed_password=get_password_hash(data.password),
        motivation=data.motivation,
        experience=data.experience,
        referral=data.referral,
        status="pending",
    )
    db.add(application)
    db.flush()
    audit.log_action(db, None, "submit_application", "application", application.id)
    return application


def get(db: Session, actor: models.User, application_id) -> models.Application:
    rbac.require(clearance.can_manage_personnel(actor.clearance_level))
    application = db.get(models.Application, application_id)
    if not application:
        raise HTTPException(status_code=404, detail="Application not found")
    return application


def review(
    db: Session,
    actor: models.User,
    application: models.Application,
    data: schemas.ApplicationUpdate,
) -> models.Application:
    changes = data.model_dump(exclude_unset=True)
    if application.status in TERMINAL_STATUSES and changes.get("status") not in (None, application.status):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Application already approved")
    for key in ("admin_notes", "requested_department_id", "requested_rank_id"):
        if key in changes:
            setattr(application, key, changes[key])
    if "requested_department_id" in changes or "requested_rank_id" in changes:
        directory.resolve_rank(db, application.requested_department_id, application.requested_rank_id)
    target = changes.get("status")
    if target and target != application.status:
        if target == "approved":
            _materialise(db, actor, application)
        application.status = target
        application.reviewed_by = actor.id
        application.reviewed_at = datetime.now(timezone.utc)
        audit.log_action(db, actor.id, "application_status", "application", application.id, {"to": target})
    return application


def _materialise(db: Session, actor: models.User, application: models.Application) -> models.User:
    if not application.username or not application.hashed_password:
        raise HTTPException(status_code=400, detail="Application has no account credentials")
    rank = None
    if application.requested_rank_id:
        rank = db.get(models.Rank, application.requested_rank_id)
    level = rank.clearance_level if rank else 1
    if not clearance.can_administer(actor.clearance_level) and level >= actor.clearance_level:
        raise HTTPException(status_code=403, detail="Cannot approve at or above your own clearance")
    user = directory.create_user(
        db,
        username=application.username,
        hashed_password=application.hashed_password,
        email=application.email,
        display_name=application.proposed_name,
        title=application.proposed_title,
        clearance_level=level,
        department_id=application.requested_department_id,
        rank_id=rank.id if rank else None,
        is_verified=True,
        assigned_by=actor.id,
    )
    application.created_user_id = user.id
    _logger.info("Application %s approved as %s", application.id, user.username)
    return user
