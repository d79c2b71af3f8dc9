# -------- ADMIN USERS --------
from typing import Optional
from fastapi import APIRouter, Depends
from sqlmodel import Session, select
from storefront.database import get_session
from storefront.dependencies.admin import require_admin
from storefront.models.user import User
from storefront.schemas.user_schemas import AdminUserRead
from storefront.utils.pagination import paginate


router = APIRouter()


@router.get("")
def list_users(
    page: int = 1,
    limit: int = 10,
    search: Optional[str] = None,
    session: Session = Depends(get_session),
    _: User = Depends(require_admin)
):
    query = select(User)

    if search and search.strip():
        term = f"%{search.strip()}%"
        query = query.where(
            (User.name.ilike(term)) |
            (User.email.ilike(term))
        )

    query = query.order_by(User.created_at.desc(), User.id.desc())
    # password hashes never leave the server
    return paginate(
        session=session,
        query=query,
        page=page,
        limit=limit,
        transform=AdminUserRead.model_validate,
    )
