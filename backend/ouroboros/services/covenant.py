"""Ordo Serpentius: council seats, covenant membership, and covenant summons."""

from __future__ import annotations

import logging
import secrets
from datetime import datetime, timedelta, timezone

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from .. import audit, clearance, models, rbac, schemas
from ..clearance import SerpentiusClearance
from ..config import EMAIL_DOMAIN
from ..data.loaders import get_seat_definitions
from ..models import as_utc
from . import directory

# purpose: seat roster editing gated on numeric clearance, membership gated on covenant role
# status: active

_logger = logging.getLogger(__name__)

COVENANT_ROLE_ORDER = {"sovereign": 0, "keeper": 1, "initiate": 2, "aspirant": 3}

SEAT_DEFINITION_FIELDS = ("position", "serpent_title", "clearance", "symbol", "duties", "obligations", "sort_order")


def list_seats(db: Session) -> list[models.SerpentiusSeat]:
    return (
        db.query(models.SerpentiusSeat)
        .filter(models.SerpentiusSeat.is_active.is_(True))
        .order_by(models.SerpentiusSeat.sort_order)
        .all()
    )


def seed_seats(db: Session) -> int:
    """Insert any seat definitions that are missing; existing seats are left alone."""
    existing = {row[0] for row in db.query(models.SerpentiusSeat.seat_id).all()}
    created = 0
    for definition in get_seat_definitions():
        if definition["seat_id"] in existing:
            continue
        # validates the tier label against the enum
        SerpentiusClearance(definition["clearance"])
        db.add(models.SerpentiusSeat(**definition))
        created += 1
    db.flush()
    return created


def sync_seats(db: Session) -> int:
    """Refresh seat descriptions from the definitions, keeping appointments."""
    updated = 0
    seats = {seat.seat_id: seat for seat in db.query(models.SerpentiusSeat).all()}
    for definition in get_seat_definitions():
        seat = seats.get(definition["seat_id"])
        if seat is None:
            continue
        for key in SEAT_DEFINITION_FIELDS:
            setattr(seat, key, definition[key])
        updated += 1
    return updated


def assign_seat(db: Session, actor: models.User, data: schemas.SeatUpdate) -> models.SerpentiusSeat:
    rbac.require(clearance.can_administer(actor.clearance_level))
    seat = db.query(models.SerpentiusSeat).filter(models.SerpentiusSeat.seat_id == data.seat_id).first()
    if not seat:
        raise HTTPException(status_code=404, detail="Seat not found")
    if data.user_id is not None and db.get(models.User, data.user_id) is None:
        raise HTTPException(status_code=404, detail="User not found")
    seat.member_name = data.member_name or None
    seat.member_discord = data.member_discord or None
    seat.member_image = data.member_image or None
    seat.user_id = data.user_id
    if seat.member_name:
        seat.appointed_at = datetime.now(timezone.utc)
        seat.appointed_by = actor.id
    else:
        seat.appointed_at = None
        seat.appointed_by = None
    audit.log_action(
        db,
        actor.id,
        "assign_seat" if seat.member_name else "vacate_seat",
        "serpentius_seat",
        seat.id,
        {"seat_id": seat.seat_id, "member_name": seat.member_name},
    )
    return seat


def membership_of(db: Session, user: models.User) -> models.CovenantMember | None:
    return (
        db.query(models.CovenantMember)
        .filter(models.CovenantMember.user_id == user.id, models.CovenantMember.is_active.is_(True))
        .first()
    )


def require_member(db: Session, user: models.User, roles: tuple[str, ...] | None = None) -> models.CovenantMember:
    member = membership_of(db, user)
    if member is None:
        raise HTTPException(status_code=403, detail="Not a member of the covenant")
    if roles is not None and member.covenant_role not in roles:
        raise HTTPException(status_code=403, detail="Covenant role insufficient")
    return member


def init_sovereign(db: Session, actor: models.User, data: schemas.SovereignInit) -> models.CovenantMember:
    rbac.require(clearance.can_administer(actor.clearance_level))
    if db.query(models.CovenantMember).filter(models.CovenantMember.covenant_role == "sovereign").first():
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="A sovereign already exists")
    if db.query(models.CovenantMember).filter(models.CovenantMember.user_id == actor.id).first():
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Already a covenant member")
    member = models.CovenantMember(
        user_id=actor.id,
        covenant_title=data.covenant_title,
        covenant_role="sovereign",
        sigil=data.sigil,
        motto=data.motto,
    )
    db.add(member)
    db.flush()
    audit.log_action(db, actor.id, "init_sovereign", "covenant_member", member.id)
    return member


def list_members(db: Session, actor: models.User) -> list[models.CovenantMember]:
    require_member(db, actor)
    members = db.query(models.CovenantMember).filter(models.CovenantMember.is_active.is_(True)).all()
    return sorted(members, key=lambda m: (COVENANT_ROLE_ORDER.get(m.covenant_role, 99), as_utc(m.oath_taken_at)))


def member_out(member: models.CovenantMember) -> schemas.CovenantMemberOut:
    return schemas.CovenantMemberOut(
        id=member.id,
        user_id=member.user_id,
        display_name=member.user.display_name if member.user else None,
        covenant_title=member.covenant_title,
        covenant_role=member.covenant_role,
        sigil=member.sigil,
        motto=member.motto,
        oath_taken_at=member.oath_taken_at,
        inducted_by=member.inducted_by,
    )


def list_invitations(db: Session, actor: models.User) -> list[models.CovenantInvitation]:
    require_member(db, actor, ("sovereign", "keeper"))
    return db.query(models.CovenantInvitation).order_by(models.CovenantInvitation.created_at.desc()).all()


def issue_invitation(
    db: Session,
    actor: models.User,
    data: schemas.CovenantInvitationCreate,
) -> models.CovenantInvitation:
    require_member(db, actor, ("sovereign",))
    if data.target_user_id is not None:
        if db.get(models.User, data.target_user_id) is None:
            raise HTTPException(status_code=404, detail="User not found")
        if db.query(models.CovenantMember).filter(models.CovenantMember.user_id == data.target_user_id).first():
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="User is already a covenant member")
    invitation = models.CovenantInvitation(
        token=secrets.token_hex(48),
        target_user_id=data.target_user_id,
        target_name=data.target_name,
        proposed_title=data.proposed_title,
        proposed_role=data.proposed_role,
        proposed_sigil=data.proposed_sigil,
        invocation_text=data.invocation_text,
        created_by=actor.id,
        expires_at=datetime.now(timezone.utc) + timedelta(days=data.expires_in_days),
    )
    db.add(invitation)
    db.flush()
    audit.log_action(db, actor.id, "issue_covenant_invitation", "covenant_invitation", invitation.id)
    return invitation


def lookup_invitation(db: Session, token: str) -> models.CovenantInvitation:
    invitation = db.query(models.CovenantInvitation).filter(models.CovenantInvitation.token == token).first()
    if not invitation:
        raise HTTPException(status_code=404, detail="Invalid invitation")
    if invitation.accepted_at is not None:
        raise HTTPException(status_code=400, detail="Invitation invalid or already used")
    if as_utc(invitation.expires_at) <= datetime.now(timezone.utc):
        raise HTTPException(status_code=status.HTTP_410_GONE, detail="Invitation has expired")
    return invitation


def invitation_preview(invitation: models.CovenantInvitation) -> schemas.CovenantInvitationPreview:
    return schemas.CovenantInvitationPreview(
        target_name=invitation.target_name,
        proposed_title=invitation.proposed_title,
        proposed_role=invitation.proposed_role,
        proposed_sigil=invitation.proposed_sigil,
        invocation_text=invitation.invocation_text,
        requires_account=invitation.target_user_id is None,
        expires_at=invitation.expires_at,
    )


def redeem_invitation(db: Session, token: str, data: schemas.CovenantRedeem) -> models.CovenantMember:
    """Accept a summons: account (if unbound), membership, and the acceptance stamp in one unit."""
    invitation = lookup_invitation(db, token)
    if invitation.target_user_id is not None:
        user = db.get(models.User, invitation.target_user_id)
        if user is None:
            raise HTTPException(status_code=404, detail="User not found")
    else:
        if not data.username or not data.password:
            raise HTTPException(status_code=400, detail="username and password are required")
        user = directory.create_user(
            db,
            username=data.username,
            password=data.password,
            email=f"{data.username.lower()}@covenant.{EMAIL_DOMAIN}",
            display_name=invitation.target_name,
            title=invitation.proposed_title,
            clearance_level=0,
            is_verified=True,
        )
    if db.query(models.CovenantMember).filter(models.CovenantMember.user_id == user.id).first():
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="User is already a covenant member")
    member = models.CovenantMember(
        user_id=user.id,
        covenant_title=invitation.proposed_title,
        covenant_role=invitation.proposed_role,
        sigil=invitation.proposed_sigil,
        motto=data.motto,
        inducted_by=invitation.created_by,
    )
    db.add(member)
    stamped = (
        db.query(models.CovenantInvitation)
        .filter(
            models.CovenantInvitation.id == invitation.id,
            models.CovenantInvitation.accepted_at.is_(None),
        )
        .update({"accepted_at": datetime.now(timezone.utc)}, synchronize_session=False)
    )
    if stamped != 1:
        raise HTTPException(status_code=400, detail="Invitation invalid or already used")
    db.flush()
    audit.log_action(db, user.id, "accept_covenant_invitation", "covenant_invitation", invitation.id)
    _logger.info("Covenant invitation %s accepted by %s", invitation.id, user.username)
    return member
