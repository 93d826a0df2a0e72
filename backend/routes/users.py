# backend/routes/users.py
from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from database import get_db, transaction
from models.users import User
from schemas.user import UserResponse, ProfileUpdate, PasswordChange, AccountDeactivate
from utils.audit import write_log, client_ip
from utils.errors import BadRequestException, ConflictException, UnauthorizedException
from utils.hashing import get_password_hash, verify_password
from utils.tokenJWT import get_current_user, get_token_payload, revoke_token

# Self-service account endpoints; admin user management lives in routes/admin.py
router = APIRouter(prefix="/users", tags=["Users"])


@router.get("/profile", response_model=UserResponse)
def get_profile(current_user: User = Depends(get_current_user)):
    return current_user


@router.put("/profile", response_model=UserResponse)
def update_profile(
    payload: ProfileUpdate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    changes = {k: v for k, v in payload.model_dump(exclude_unset=True).items() if v is not None}

    # A phone number identifies one account
    phone = changes.get("phone")
    if phone and phone != current_user.phone:
        taken = db.query(User).filter(User.phone == phone, User.id != current_user.id).first()
        if taken:
            raise ConflictException("Phone number already exists")

    with transaction(db):
        for field, value in changes.items():
            setattr(current_user, field, value)
    db.refresh(current_user)
    out = UserResponse.model_validate(current_user)

    write_log(db, user_id=current_user.id, action="USER_PROFILE_UPDATE", resource="users",
              resource_id=current_user.id, ip=client_ip(request), meta={"fields": sorted(changes)})
    return out


@router.put("/change-password")
def change_password(
    payload: PasswordChange,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    if not verify_password(payload.current_password, current_user.password_hash):
        write_log(db, user_id=current_user.id, action="PASSWORD_CHANGE", resource="users",
                  resource_id=current_user.id, status="FAIL", ip=client_ip(request))
        raise UnauthorizedException("Current password is incorrect")
    if payload.new_password == payload.current_password:
        raise BadRequestException("New password must differ from the current one")

    with transaction(db):
        current_user.password_hash = get_password_hash(payload.new_password)

    write_log(db, user_id=current_user.id, action="PASSWORD_CHANGE", resource="users",
              resource_id=current_user.id, ip=client_ip(request))
    return {"message": "Password changed successfully"}


# Deactivate the caller's own account and sign out the current token
@router.delete("/deactivate")
def deactivate_account(
    payload: AccountDeactivate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    token: dict = Depends(get_token_payload),
):
    if not verify_password(payload.password, current_user.password_hash):
        raise UnauthorizedException("Incorrect password")

    user_id = current_user.id
    with transaction(db):
        current_user.is_active = False
        revoke_token(db, token, current_user)

    write_log(db, user_id=user_id, action="USER_DEACTIVATE", resource="users",
              resource_id=user_id, ip=client_ip(request))
    return {"message": "Account deactivated"}
