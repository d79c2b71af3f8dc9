from typing import List
from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session, select
from storefront.database import get_session
from storefront.models.category import Category
from storefront.schemas.category_schemas import CategoryResponse

router = APIRouter()


@router.get("", response_model=List[CategoryResponse])
def list_categories(session: Session = Depends(get_session)):
    return session.exec(
        select(Category)
        .where(Category.is_active == True)  # noqa: E712
        .order_by(Category.sort_order, Category.name)
    ).all()


@router.get("/{slug}", response_model=CategoryResponse)
def get_category(slug: str, session: Session = Depends(get_session)):
    category = session.exec(
        select(Category).where(Category.slug == slug, Category.is_active == True)  # noqa: E712
    ).first()

    if not category:
        raise HTTPException(404, f"Category '{slug}' not found")
    return category
