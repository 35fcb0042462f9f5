from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from ..database import get_db
from .. import models, schemas, audit
from ..auth import verify_password, create_access_token
from ..limits import rate_limit

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/login", response_model=schemas.Token)
@rate_limit("10/minute")
def login(request: Request, credentials: schemas.LoginRequest, db: Session = Depends(get_db)):
    username = credentials.username.strip().lower()
    db_user = db.query(models.User).filter(models.User.username == username).first()
    if not db_user or not verify_password(credentials.password, db_user.hashed_password):
        raise HTTPException(status_code=401, detail="Invalid credentials")
    if not db_user.is_active:
        raise HTTPException(status_code=401, detail="Account deactivated")
    db_user.last_login_at = datetime.now(timezone.utc)
    audit.log_action(
        db,
        db_user.id,
        "login",
        "user",
        db_user.id,
        {"ip": request.client.host if request.client else None},
    )
    db.commit()
    return schemas.Token(access_token=create_access_token({"sub": db_user.username}))
