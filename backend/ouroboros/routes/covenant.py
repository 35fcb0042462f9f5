from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from ..database import get_db, atomic
from .. import audit, clearance, models, rbac, schemas
from ..auth import get_current_user
from ..limits import rate_limit
from ..services import covenant as covenant_service

router = APIRouter(prefix="/api/covenant", tags=["covenant"])


@router.get("/seats", response_model=schemas.SeatsOut)
def list_seats(db: Session = Depends(get_db), user: models.User = Depends(get_current_user)):
    return schemas.SeatsOut(
        seats=[schemas.SeatOut.model_validate(seat) for seat in covenant_service.list_seats(db)],
        can_edit=clearance.can_administer(user.clearance_level),
    )


@router.patch("/seats", response_model=schemas.SeatOut)
def assign_seat(data: schemas.SeatUpdate, db: Session = Depends(get_db), user: models.User = Depends(get_current_user)):
    with atomic(db, "assign_seat"):
        seat = covenant_service.assign_seat(db, user, data)
    db.refresh(seat)
    return seat


@router.post("/seats/init")
def init_seats(db: Session = Depends(get_db), user: models.User = Depends(get_current_user)):
    rbac.require(clearance.can_administer(user.clearance_level))
    with atomic(db, "init_seats"):
        created = covenant_service.seed_seats(db)
        if created:
            audit.log_action(db, user.id, "init_seats", "serpentius_seat", None, {"created": created})
    total = db.query(models.SerpentiusSeat).count()
    if not created:
        return {"success": True, "already_exists": True, "message": f"Seats already initialised ({total} seats)"}
    return {"success": True, "already_exists": False, "message": f"Seeded {created} Serpentius seats"}


@router.put("/seats/init")
def sync_seats(db: Session = Depends(get_db), user: models.User = Depends(get_current_user)):
    rbac.require(clearance.can_administer(user.clearance_level))
    with atomic(db, "sync_seats"):
        updated = covenant_service.sync_seats(db)
    return {"success": True, "message": f"Updated {updated} seat definitions (member assignments preserved)"}


@router.post("/init-sovereign", response_model=schemas.CovenantMemberOut, status_code=201)
def init_sovereign(
    data: schemas.SovereignInit | None = None,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    with atomic(db, "init_sovereign"):
        member = covenant_service.init_sovereign(db, user, data or schemas.SovereignInit())
    db.refresh(member)
    return covenant_service.member_out(member)


@router.get("/members", response_model=list[schemas.CovenantMemberOut])
def list_members(db: Session = Depends(get_db), user: models.User = Depends(get_current_user)):
    return [covenant_service.member_out(m) for m in covenant_service.list_members(db, user)]


@router.get("/invitations", response_model=list[schemas.CovenantInvitationOut])
def list_invitations(db: Session = Depends(get_db), user: models.User = Depends(get_current_user)):
    return covenant_service.list_invitations(db, user)


@router.post("/invitations", response_model=schemas.CovenantInvitationOut, status_code=201)
def issue_invitation(
    data: schemas.CovenantInvitationCreate,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    with atomic(db, "issue_covenant_invitation"):
        invitation = covenant_service.issue_invitation(db, user, data)
    db.refresh(invitation)
    return invitation


@router.get("/invitations/{token}", response_model=schemas.CovenantInvitationPreview)
@rate_limit("30/minute")
def validate_invitation(request: Request, token: str, db: Session = Depends(get_db)):
    return covenant_service.invitation_preview(covenant_service.lookup_invitation(db, token))


@router.post("/invitations/{token}", response_model=schemas.CovenantMemberOut, status_code=201)
@rate_limit("5/minute")
def accept_invitation(
    request: Request,
    token: str,
    data: schemas.CovenantRedeem,
    db: Session = Depends(get_db),
):
    with atomic(db, "accept_covenant_invitation"):
        member = covenant_service.redeem_invitation(db, token, data)
    db.refresh(member)
    return covenant_service.member_out(member)
