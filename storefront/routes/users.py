from storefront.utils.clock import utcnow
from typing import List
from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session, select
from storefront.database import get_session
from storefront.models.address import Address
from storefront.models.user import User
from storefront.schemas.address_schemas import AddressCreate, AddressRead, AddressUpdate
from storefront.schemas.user_schemas import PasswordChange, UserRead, UserUpdate
from storefront.utils.hash import hash_password, verify_password
from storefront.utils.token import get_current_user

router = APIRouter()


@router.get("/me", response_model=UserRead)
def get_profile(current_user: User = Depends(get_current_user)):
    return current_user


@router.put("/me", response_model=UserRead)
def update_profile(
    data: UserUpdate,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user)
):
    if data.name is not None:
        current_user.name = data.name
    current_user.updated_at = utcnow()

    session.add(current_user)
    session.commit()
    session.refresh(current_user)
    return current_user


@router.put("/me/password")
def change_password(
    data: PasswordChange,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user)
):
    if not verify_password(data.current_password, current_user.password):
        raise HTTPException(400, "Current password is incorrect")

    current_user.password = hash_password(data.new_password)
    current_user.updated_at = utcnow()
    session.add(current_user)
    session.commit()
    return {"message": "Password updated"}


# -------- ADDRESS BOOK --------

@router.get("/addresses", response_model=List[AddressRead])
def list_addresses(
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user)
):
    return session.exec(
        select(Address)
        .where(Address.user_id == current_user.id)
        .order_by(Address.is_default.desc(), Address.id)
    ).all()


@router.post("/addresses", response_model=AddressRead, status_code=201)
def add_address(
    data: AddressCreate,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user)
):
    existing = session.exec(
        select(Address).where(Address.user_id == current_user.id)
    ).all()

    # first address is the default
    make_default = data.is_default or not existing
    if make_default:
        for address in existing:
            if address.is_default:
                address.is_default = False
                session.add(address)

    address = Address(user_id=current_user.id, **data.model_dump(exclude={"is_default"}), is_default=make_default)
    session.add(address)
    session.commit()
    session.refresh(address)
    return address


@router.put("/addresses/{address_id}", response_model=AddressRead)
def update_address(
    address_id: int,
    data: AddressUpdate,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user)
):
    address = session.get(Address, address_id)
    if not address or address.user_id != current_user.id:
        raise HTTPException(404, "Address not found")

    for key, value in data.model_dump(exclude_none=True, exclude={"is_default"}).items():
        setattr(address, key, value)

    others = session.exec(
        select(Address)
        .where(Address.user_id == current_user.id, Address.id != address.id)
        .order_by(Address.id)
    ).all()

    if data.is_default and not address.is_default:
        for other in others:
            if other.is_default:
                other.is_default = False
                session.add(other)
        address.is_default = True

    elif data.is_default is False and address.is_default and others:
        # the oldest remaining address takes over as default
        others[0].is_default = True
        session.add(others[0])
        address.is_default = False

    session.add(address)
    session.commit()
    session.refresh(address)
    return address


@router.delete("/addresses/{address_id}")
def delete_address(
    address_id: int,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user)
):
    address = session.get(Address, address_id)
    if not address or address.user_id != current_user.id:
        raise HTTPException(404, "Address not found")

    was_default = address.is_default
    session.delete(address)
    session.flush()

    if was_default:
        replacement = session.exec(
            select(Address).where(Address.user_id == current_user.id).order_by(Address.id)
        ).first()
        if replacement:
            replacement.is_default = True
            session.add(replacement)

    session.commit()
    return {"message": "Address deleted"}
