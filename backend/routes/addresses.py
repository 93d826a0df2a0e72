# backend/routes/addresses.py
from typing import List
from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from database import get_db, transaction
from models.users import User, Address
from schemas.address import AddressCreate, AddressUpdate, AddressOut
from utils.audit import write_log, client_ip
from utils.errors import BadRequestException, NotFoundException
from utils.tokenJWT import get_current_user

router = APIRouter(prefix="/addresses", tags=["Addresses"])


def _get_own_address(db: Session, address_id: int, user: User) -> Address:
    address = db.query(Address).filter(Address.id == address_id, Address.user_id == user.id).first()
    if not address:
        raise NotFoundException("Address not found")
    return address


def _clear_primary(db: Session, user: User, keep_id: int = None):
    # Only one primary address per user
    query = db.query(Address).filter(Address.user_id == user.id, Address.is_primary.is_(True))
    if keep_id is not None:
        query = query.filter(Address.id != keep_id)
    query.update({Address.is_primary: False}, synchronize_session="fetch")


@router.post("", response_model=AddressOut, status_code=status.HTTP_201_CREATED)
def create_address(
    payload: AddressCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    address = Address(user_id=current_user.id, **payload.model_dump())
    with transaction(db):
        if payload.is_primary:
            _clear_primary(db, current_user)
        db.add(address)
    db.refresh(address)
    out = AddressOut.model_validate(address)

    write_log(db, user_id=current_user.id, action="ADDRESS_CREATE", resource="addresses",
              resource_id=out.id, ip=client_ip(request))
    return out


@router.get("", response_model=List[AddressOut])
def list_addresses(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return (
        db.query(Address)
        .filter(Address.user_id == current_user.id)
        .order_by(Address.is_primary.desc(), Address.id)
        .all()
    )


@router.get("/{address_id}", response_model=AddressOut)
def get_address(address_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return _get_own_address(db, address_id, current_user)


@router.put("/{address_id}", response_model=AddressOut)
def update_address(
    address_id: int,
    payload: AddressUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    address = _get_own_address(db, address_id, current_user)
    changes = payload.model_dump(exclude_unset=True)

    with transaction(db):
        if changes.get("is_primary"):
            _clear_primary(db, current_user, keep_id=address.id)
        for field, value in changes.items():
            if value is None and field != "postal_code":
                continue
            setattr(address, field, value)
    db.refresh(address)
    return address


@router.delete("/{address_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_address(
    address_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    address = _get_own_address(db, address_id, current_user)
    with transaction(db):
        db.delete(address)

    write_log(db, user_id=current_user.id, action="ADDRESS_DELETE", resource="addresses",
              resource_id=address_id, ip=client_ip(request))


@router.patch("/{address_id}/primary", response_model=AddressOut)
def set_primary_address(
    address_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    address = _get_own_address(db, address_id, current_user)
    if address.is_primary:
        raise BadRequestException("Address is already primary")

    with transaction(db):
        _clear_primary(db, current_user, keep_id=address.id)
        address.is_primary = True
    db.refresh(address)
    return address
