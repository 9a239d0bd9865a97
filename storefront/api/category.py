import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, field_validator
from sqlalchemy import func
from sqlmodel import Session, select

from storefront.api.response import dump, success
from storefront.auth.dependencies import get_optional_user, require_role, resolve_tenant_id
from storefront.auth.roles import has_role
from storefront.constants import Role
from storefront.db.session import get_session
from storefront.lib.formatting import generate_slug
from storefront.model.base import utc_now
from storefront.model.category import Category
from storefront.model.product import Product
from storefront.model.user import User

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/products/categories", tags=["Categories"])


class CategoryCreate(BaseModel):
    name: str
    slug: Optional[str] = None
    description: Optional[str] = None
    image: Optional[str] = None
    parent_id: Optional[int] = None
    is_active: bool = True

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        if not v or len(v.strip()) < 2:
            raise ValueError("Category name must be at least 2 characters long")
        return v.strip()


class CategoryUpdate(BaseModel):
    name: Optional[str] = None
    slug: Optional[str] = None
    description: Optional[str] = None
    image: Optional[str] = None
    parent_id: Optional[int] = None
    is_active: Optional[bool] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        if len(v.strip()) < 2:
            raise ValueError("Category name must be at least 2 characters long")
        return v.strip()


def _get_category(session: Session, category_id: int, tenant_id: int) -> Category:
    category = session.get(Category, category_id)
    if not category or category.tenant_id != tenant_id:
        raise HTTPException(status_code=404, detail="Category not found")
    return category


def _ensure_slug_free(session: Session, tenant_id: int, slug: str, exclude_id: Optional[int] = None) -> None:
    query = select(Category.id).where(Category.tenant_id == tenant_id, Category.slug == slug)
    if exclude_id is not None:
        query = query.where(Category.id != exclude_id)
    if session.exec(query).first() is not None:
        raise HTTPException(status_code=409, detail="A category with this slug already exists")


def _ensure_valid_parent(session: Session, tenant_id: int, parent_id: Optional[int], category_id: Optional[int] = None) -> None:
    """The parent must be in the same tenant and must not be the category itself or one of its descendants."""
    if parent_id is None:
        return
    parent = _get_category(session, parent_id, tenant_id)
    while parent is not None:
        if category_id is not None and parent.id == category_id:
            raise HTTPException(status_code=400, detail="A category cannot be nested under itself")
        parent = session.get(Category, parent.parent_id) if parent.parent_id else None


def _product_counts(session: Session, tenant_id: int, active_only: bool) -> dict[int, int]:
    query = (
        select(Product.category_id, func.count(Product.id))
        .where(Product.tenant_id == tenant_id, Product.category_id != None)  # noqa: E711
        .group_by(Product.category_id)
    )
    if active_only:
        query = query.where(Product.is_active == True)  # noqa: E712
    return {category_id: int(count) for category_id, count in session.exec(query).all()}


def build_category_tree(categories: list[Category], counts: dict[int, int]) -> list[dict]:
    """Nest categories under their parent; orphans (parent hidden or missing) become roots."""
    nodes = {c.id: {**dump(c), "product_count": counts.get(c.id, 0), "children": []} for c in categories}
    roots = []
    for c in categories:
        node = nodes[c.id]
        if c.parent_id is not None and c.parent_id in nodes:
            nodes[c.parent_id]["children"].append(node)
        else:
            roots.append(node)
    return roots


@router.get("")
def list_categories(
    tenant_id: int = Depends(resolve_tenant_id),
    user: Optional[User] = Depends(get_optional_user),
    session: Session = Depends(get_session),
):
    staff = user is not None and has_role(user.role, Role.STAFF)
    query = select(Category).where(Category.tenant_id == tenant_id)
    if not staff:
        query = query.where(Category.is_active == True)  # noqa: E712
    categories = list(session.exec(query.order_by(Category.name)).all())
    return success(build_category_tree(categories, _product_counts(session, tenant_id, active_only=not staff)))


@router.post("", status_code=201)
def create_category(
    body: CategoryCreate,
    user: User = Depends(require_role(Role.STAFF)),
    tenant_id: int = Depends(resolve_tenant_id),
    session: Session = Depends(get_session),
):
    slug = generate_slug(body.slug or body.name)
    if not slug:
        raise HTTPException(status_code=400, detail="Invalid category slug")
    _ensure_slug_free(session, tenant_id, slug)
    _ensure_valid_parent(session, tenant_id, body.parent_id)

    category = Category(
        tenant_id=tenant_id,
        name=body.name,
        slug=slug,
        description=body.description,
        image=body.image,
        parent_id=body.parent_id,
        is_active=body.is_active,
    )
    session.add(category)
    session.commit()
    session.refresh(category)
    logger.info(f"Category created: id={category.id}, tenant={tenant_id}, slug={slug}")
    return success(dump(category), "Category created successfully")


@router.get("/{category_id}")
def get_category(
    category_id: int,
    tenant_id: int = Depends(resolve_tenant_id),
    user: Optional[User] = Depends(get_optional_user),
    session: Session = Depends(get_session),
):
    category = _get_category(session, category_id, tenant_id)
    staff = user is not None and has_role(user.role, Role.STAFF)
    if not category.is_active and not staff:
        raise HTTPException(status_code=404, detail="Category not found")

    children = session.exec(
        select(Category).where(Category.parent_id == category.id).order_by(Category.name)
    ).all()
    count = _product_counts(session, tenant_id, active_only=not staff).get(category.id, 0)
    return success({
        **dump(category),
        "product_count": count,
        "children": [dump(c) for c in children if staff or c.is_active],
    })


@router.put("/{category_id}")
def update_category(
    category_id: int,
    body: CategoryUpdate,
    user: User = Depends(require_role(Role.STAFF)),
    tenant_id: int = Depends(resolve_tenant_id),
    session: Session = Depends(get_session),
):
    category = _get_category(session, category_id, tenant_id)
    changes = body.model_dump(exclude_unset=True)
    for required in ("name", "is_active"):
        if changes.get(required) is None:
            changes.pop(required, None)

    # renaming keeps the slug; a new slug must be asked for explicitly
    if changes.get("slug"):
        changes["slug"] = generate_slug(changes["slug"])
        if not changes["slug"]:
            raise HTTPException(status_code=400, detail="Invalid category slug")
        _ensure_slug_free(session, tenant_id, changes["slug"], exclude_id=category.id)
    else:
        changes.pop("slug", None)
    if "parent_id" in changes:
        _ensure_valid_parent(session, tenant_id, changes["parent_id"], category.id)

    for field, value in changes.items():
        setattr(category, field, value)
    category.updated_at = utc_now()
    session.add(category)
    session.commit()
    session.refresh(category)
    return success(dump(category), "Category updated successfully")


@router.delete("/{category_id}")
def delete_category(
    category_id: int,
    user: User = Depends(require_role(Role.STAFF)),
    tenant_id: int = Depends(resolve_tenant_id),
    session: Session = Depends(get_session),
):
    """Products of the category become uncategorized; subcategories move up one level."""
    category = _get_category(session, category_id, tenant_id)

    for product in session.exec(select(Product).where(Product.category_id == category.id)).all():
        product.category_id = None
        session.add(product)
    for child in session.exec(select(Category).where(Category.parent_id == category.id)).all():
        child.parent_id = category.parent_id
        session.add(child)
    session.flush()
    session.delete(category)
    session.commit()
    logger.info(f"Category deleted: id={category_id}, tenant={tenant_id}")
    return success(None, "Category deleted successfully")
