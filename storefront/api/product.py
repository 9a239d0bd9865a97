import logging
from typing import Any, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field, field_validator
from sqlmodel import Session, select

from storefront.api.response import paginated, success
from storefront.auth.dependencies import get_optional_user, require_role, resolve_tenant_id
from storefront.auth.roles import has_role
from storefront.constants import (
    MAX_IMAGES_PER_PRODUCT,
    PRODUCT_DESCRIPTION_MAX_LENGTH,
    PRODUCT_DESCRIPTION_MIN_LENGTH,
    PRODUCT_NAME_MAX_LENGTH,
    PRODUCT_NAME_MIN_LENGTH,
    PRODUCT_PRICE_MAX,
    PRODUCT_SKU_MAX_LENGTH,
    PRODUCTS_MAX_PAGE_SIZE,
    PRODUCTS_PAGE_SIZE,
    Messages,
    Role,
    ValidationMessages,
)
from storefront.db.session import get_session
from storefront.lib.ecommerce import generate_product_sku
from storefront.lib.formatting import generate_slug
from storefront.lib.validation import sanitize_input
from storefront.model.base import utc_now
from storefront.model.cart import CartItem
from storefront.model.category import Category
from storefront.model.order import OrderItem
from storefront.model.product import Product, ProductVariant
from storefront.model.user import User
from storefront.services import product_service
from storefront.services.product_service import ProductFilters
from storefront.services.tenant_service import ensure_product_capacity, get_tenant_or_404

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/products", tags=["Products"])


def _check_name(v: str) -> str:
    v = v.strip()
    if len(v) < PRODUCT_NAME_MIN_LENGTH:
        raise ValueError(ValidationMessages.PRODUCT_NAME_TOO_SHORT)
    if len(v) > PRODUCT_NAME_MAX_LENGTH:
        raise ValueError(ValidationMessages.PRODUCT_NAME_TOO_LONG)
    return v


def _check_price(v: float) -> float:
    if v <= 0:
        raise ValueError(ValidationMessages.PRODUCT_PRICE_INVALID)
    if v > PRODUCT_PRICE_MAX:
        raise ValueError(ValidationMessages.PRODUCT_PRICE_TOO_HIGH)
    return round(v, 2)


def _check_description(v: Optional[str]) -> Optional[str]:
    if v is None or not v.strip():
        return None
    v = sanitize_input(v)
    if len(v) < PRODUCT_DESCRIPTION_MIN_LENGTH:
        raise ValueError(ValidationMessages.PRODUCT_DESCRIPTION_TOO_SHORT)
    if len(v) > PRODUCT_DESCRIPTION_MAX_LENGTH:
        raise ValueError(ValidationMessages.PRODUCT_DESCRIPTION_TOO_LONG)
    return v


def _check_sku(v: Optional[str]) -> Optional[str]:
    if v is None or not v.strip():
        return None
    if len(v.strip()) > PRODUCT_SKU_MAX_LENGTH:
        raise ValueError(ValidationMessages.PRODUCT_SKU_TOO_LONG)
    return v.strip()


def _check_images(v: Optional[list[str]]) -> Optional[list[str]]:
    if v is not None and len(v) > MAX_IMAGES_PER_PRODUCT:
        raise ValueError(f"A product can have at most {MAX_IMAGES_PER_PRODUCT} images")
    return v


class VariantIn(BaseModel):
    name: str
    sku: Optional[str] = None
    price: Optional[float] = None
    stock: int = Field(default=0, ge=0)
    options: dict[str, Any] = {}

    @field_validator("price")
    @classmethod
    def validate_price(cls, v: Optional[float]) -> Optional[float]:
        return None if v is None else _check_price(v)


class ProductCreate(BaseModel):
    name: str
    price: float
    description: Optional[str] = None
    slug: Optional[str] = None
    sku: Optional[str] = None
    barcode: Optional[str] = None
    compare_price: Optional[float] = Field(default=None, ge=0)
    category_id: Optional[int] = None
    stock: int = Field(default=0, ge=0)
    low_stock_threshold: int = Field(default=5, ge=0)
    track_inventory: bool = True
    weight: Optional[float] = Field(default=None, ge=0)
    dimensions: Optional[dict[str, Any]] = None
    images: list[str] = []
    is_active: bool = True
    is_featured: bool = False
    meta_title: Optional[str] = None
    meta_description: Optional[str] = None
    variants: list[VariantIn] = []

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        return _check_name(v)

    @field_validator("price")
    @classmethod
    def validate_price(cls, v: float) -> float:
        return _check_price(v)

    @field_validator("description")
    @classmethod
    def validate_description(cls, v: Optional[str]) -> Optional[str]:
        return _check_description(v)

    @field_validator("sku")
    @classmethod
    def validate_sku(cls, v: Optional[str]) -> Optional[str]:
        return _check_sku(v)

    @field_validator("images")
    @classmethod
    def validate_images(cls, v: list[str]) -> list[str]:
        return _check_images(v)


class ProductUpdate(BaseModel):
    name: Optional[str] = None
    price: Optional[float] = None
    description: Optional[str] = None
    slug: Optional[str] = None
    sku: Optional[str] = None
    barcode: Optional[str] = None
    compare_price: Optional[float] = Field(default=None, ge=0)
    category_id: Optional[int] = None
    low_stock_threshold: Optional[int] = Field(default=None, ge=0)
    track_inventory: Optional[bool] = None
    weight: Optional[float] = Field(default=None, ge=0)
    dimensions: Optional[dict[str, Any]] = None
    images: Optional[list[str]] = None
    is_active: Optional[bool] = None
    is_featured: Optional[bool] = None
    meta_title: Optional[str] = None
    meta_description: Optional[str] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: Optional[str]) -> Optional[str]:
        return None if v is None else _check_name(v)

    @field_validator("price")
    @classmethod
    def validate_price(cls, v: Optional[float]) -> Optional[float]:
        return None if v is None else _check_price(v)

    @field_validator("description")
    @classmethod
    def validate_description(cls, v: Optional[str]) -> Optional[str]:
        return _check_description(v)

    @field_validator("sku")
    @classmethod
    def validate_sku(cls, v: Optional[str]) -> Optional[str]:
        return _check_sku(v)

    @field_validator("images")
    @classmethod
    def validate_images(cls, v: Optional[list[str]]) -> Optional[list[str]]:
        return _check_images(v)


class InventoryUpdate(BaseModel):
    stock: int = Field(ge=0)
    low_stock_threshold: Optional[int] = Field(default=None, ge=0)
    track_inventory: Optional[bool] = None


def _is_staff(user: Optional[User]) -> bool:
    return user is not None and has_role(user.role, Role.STAFF)


def _ensure_category(session: Session, tenant_id: int, category_id: Optional[int]) -> None:
    if category_id is None:
        return
    category = session.get(Category, category_id)
    if not category or category.tenant_id != tenant_id:
        raise HTTPException(status_code=400, detail="Category not found")


@router.get("")
def list_products(
    tenant_id: int = Depends(resolve_tenant_id),
    user: Optional[User] = Depends(get_optional_user),
    session: Session = Depends(get_session),
    category: Optional[str] = Query(None, description="Category id or slug"),
    price_min: Optional[float] = Query(None, ge=0),
    price_max: Optional[float] = Query(None, ge=0),
    in_stock: Optional[bool] = Query(None),
    featured: Optional[bool] = Query(None),
    search: Optional[str] = Query(None, max_length=100),
    sort_by: Literal["name", "price", "created_at", "popularity"] = Query("created_at"),
    sort_order: Literal["asc", "desc"] = Query("desc"),
    page: int = Query(1, ge=1),
    limit: int = Query(PRODUCTS_PAGE_SIZE, ge=1, le=PRODUCTS_MAX_PAGE_SIZE),
):
    """
    Tenant catalog with filters, sorting and pagination.

    Staff of the tenant also see inactive products.
    """
    filters = ProductFilters(
        category=category,
        price_min=price_min,
        price_max=price_max,
        in_stock=in_stock,
        featured=featured,
        search=search,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    products, total = product_service.list_products(
        session,
        tenant_id,
        filters,
        page=page,
        limit=limit,
        include_inactive=_is_staff(user),
    )
    return paginated([product_service.product_to_dict(p) for p in products], page=page, limit=limit, total=total)


@router.get("/{product_id}")
def get_product(
    product_id: int,
    tenant_id: int = Depends(resolve_tenant_id),
    user: Optional[User] = Depends(get_optional_user),
    session: Session = Depends(get_session),
):
    product = product_service.get_product_for_tenant(session, product_id, tenant_id)
    if not product.is_active and not _is_staff(user):
        raise HTTPException(status_code=404, detail="Product not found")

    data = product_service.product_to_dict(product, product_service.get_variants(session, product.id))
    if product.category_id is not None:
        category = session.get(Category, product.category_id)
        data["category"] = {"id": category.id, "name": category.name, "slug": category.slug} if category else None
    return success(data)


@router.post("", status_code=201)
def create_product(
    body: ProductCreate,
    user: User = Depends(require_role(Role.STAFF)),
    tenant_id: int = Depends(resolve_tenant_id),
    session: Session = Depends(get_session),
):
    tenant = get_tenant_or_404(session, tenant_id)
    ensure_product_capacity(session, tenant)
    _ensure_category(session, tenant_id, body.category_id)

    slug = generate_slug(body.slug or body.name)
    if not slug:
        raise HTTPException(status_code=400, detail="Invalid product slug")
    if product_service.slug_taken(session, tenant_id, slug):
        raise HTTPException(status_code=409, detail="A product with this slug already exists")

    try:
        product = Product(
            tenant_id=tenant_id,
            slug=slug,
            sku=body.sku or generate_product_sku(),
            **body.model_dump(exclude={"slug", "sku", "variants"}),
        )
        session.add(product)
        session.flush()
        for variant in body.variants:
            session.add(ProductVariant(product_id=product.id, **variant.model_dump()))
        session.commit()
        session.refresh(product)
    except HTTPException:
        raise
    except Exception as e:
        session.rollback()
        logger.error(f"Failed to create product for tenant {tenant_id}: {e}", exc_info=True)
        raise

    logger.info(f"Product created: id={product.id}, tenant={tenant_id}, sku={product.sku}")
    data = product_service.product_to_dict(product, product_service.get_variants(session, product.id))
    return success(data, Messages.PRODUCT_CREATED)


@router.put("/{product_id}")
def update_product(
    product_id: int,
    body: ProductUpdate,
    user: User = Depends(require_role(Role.STAFF)),
    tenant_id: int = Depends(resolve_tenant_id),
    session: Session = Depends(get_session),
):
    product = product_service.get_product_for_tenant(session, product_id, tenant_id)
    changes = body.model_dump(exclude_unset=True)
    for required in ("name", "price", "track_inventory", "is_active", "is_featured", "low_stock_threshold", "images"):
        if required in changes and changes[required] is None:
            changes.pop(required)

    if changes.get("slug"):
        changes["slug"] = generate_slug(changes["slug"])
        if not changes["slug"]:
            raise HTTPException(status_code=400, detail="Invalid product slug")
        if product_service.slug_taken(session, tenant_id, changes["slug"], exclude_id=product.id):
            raise HTTPException(status_code=409, detail="A product with this slug already exists")
    else:
        changes.pop("slug", None)
    if "category_id" in changes:
        _ensure_category(session, tenant_id, changes["category_id"])
    if "sku" in changes and changes["sku"] is None:
        changes.pop("sku")

    for field, value in changes.items():
        setattr(product, field, value)
    product.updated_at = utc_now()
    session.add(product)
    session.commit()
    session.refresh(product)
    logger.info(f"Product updated: id={product.id}, fields={sorted(changes)}")
    return success(product_service.product_to_dict(product), Messages.PRODUCT_UPDATED)


@router.delete("/{product_id}")
def delete_product(
    product_id: int,
    user: User = Depends(require_role(Role.STAFF)),
    tenant_id: int = Depends(resolve_tenant_id),
    session: Session = Depends(get_session),
):
    """Removes the product from carts; past order lines keep their copied name."""
    product = product_service.get_product_for_tenant(session, product_id, tenant_id)

    for item in session.exec(select(CartItem).where(CartItem.product_id == product.id)).all():
        session.delete(item)
    for item in session.exec(select(OrderItem).where(OrderItem.product_id == product.id)).all():
        item.product_id = None
        item.variant_id = None
        session.add(item)
    session.flush()
    for variant in product_service.get_variants(session, product.id):
        session.delete(variant)
    session.flush()
    session.delete(product)
    session.commit()
    logger.info(f"Product deleted: id={product_id}, tenant={tenant_id}")
    return success(None, Messages.PRODUCT_DELETED)


@router.put("/{product_id}/inventory")
def update_inventory(
    product_id: int,
    body: InventoryUpdate,
    user: User = Depends(require_role(Role.STAFF)),
    tenant_id: int = Depends(resolve_tenant_id),
    session: Session = Depends(get_session),
):
    product = product_service.get_product_for_tenant(session, product_id, tenant_id)
    previous = product.stock
    product.stock = body.stock
    if body.low_stock_threshold is not None:
        product.low_stock_threshold = body.low_stock_threshold
    if body.track_inventory is not None:
        product.track_inventory = body.track_inventory
    product.updated_at = utc_now()
    session.add(product)
    session.commit()
    session.refresh(product)
    logger.info(f"Inventory updated: product={product.id}, stock {previous} -> {product.stock}")
    return success(product_service.product_to_dict(product), "Inventory updated successfully")
