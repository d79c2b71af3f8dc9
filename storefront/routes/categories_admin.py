from storefront.utils.clock import utcnow
from fastapi import APIRouter, Depends, HTTPException
from slugify import slugify
from sqlmodel import Session, select
from storefront.database import get_session
from storefront.dependencies.admin import require_admin
from storefront.models.category import Category
from storefront.models.product import Product
from storefront.models.user import User
from storefront.schemas.category_schemas import CategoryCreate, CategoryResponse, CategoryUpdate

router = APIRouter()


def _check_name_free(session: Session, name: str, slug: str, exclude_id: int = None):
    existing = session.exec(
        select(Category).where((Category.name == name) | (Category.slug == slug))
    ).first()
    if existing and existing.id != exclude_id:
        raise HTTPException(400, "Category already exists")


def _check_parent(session: Session, parent_id, category_id: int = None):
    if parent_id is None:
        return
    if parent_id == category_id:
        raise HTTPException(400, "A category cannot be its own parent")
    if not session.get(Category, parent_id):
        raise HTTPException(404, "Parent category not found")


@router.post("/", response_model=CategoryResponse, status_code=201)
def create_category(
    data: CategoryCreate,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_admin)
):
    name = data.name.strip()
    slug = slugify(name)
    _check_name_free(session, name, slug)
    _check_parent(session, data.parent_id)

    category = Category(
        **data.model_dump(exclude={"name"}),
        name=name,
        slug=slug,
        created_by=current_user.id,
    )
    session.add(category)
    session.commit()
    session.refresh(category)
    return category


@router.put("/{category_id}", response_model=CategoryResponse)
def update_category(
    category_id: int,
    data: CategoryUpdate,
    session: Session = Depends(get_session),
    _: User = Depends(require_admin)
):
    category = session.get(Category, category_id)
    if not category:
        raise HTTPException(404, "Category not found")

    updates = data.model_dump(exclude_unset=True)

    if "name" in updates:
        name = updates.pop("name").strip()
        slug = slugify(name)
        _check_name_free(session, name, slug, exclude_id=category.id)
        category.name = name
        category.slug = slug

    if "parent_id" in updates:
        _check_parent(session, updates["parent_id"], category.id)

    for key, value in updates.items():
        setattr(category, key, value)

    category.updated_at = utcnow()
    session.add(category)
    session.commit()
    session.refresh(category)
    return category


@router.delete("/{category_id}")
def delete_category(
    category_id: int,
    session: Session = Depends(get_session),
    _: User = Depends(require_admin)
):
    category = session.get(Category, category_id)
    if not category:
        raise HTTPException(404, "Category not found")

    has_products = session.exec(
        select(Product.id).where(Product.category_id == category_id)
    ).first()
    if has_products:
        raise HTTPException(400, "Category still has products")

    has_children = session.exec(
        select(Category.id).where(Category.parent_id == category_id)
    ).first()
    if has_children:
        raise HTTPException(400, "Category still has sub-categories")

    session.delete(category)
    session.commit()
    return {"message": "Category deleted"}
