"""
Catalog queries: filtered and sorted product listing, lookups and serialization.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from fastapi import HTTPException
from sqlalchemy import func, or_
from sqlmodel import Session, col, select

from storefront.api.response import dump
from storefront.lib.ecommerce import get_stock_status
from storefront.model.category import Category
from storefront.model.order import OrderItem
from storefront.model.product import Product, ProductVariant

logger = logging.getLogger(__name__)

SORT_FIELDS = {"name", "price", "created_at", "popularity"}


@dataclass
class ProductFilters:
    category: Optional[str] = None  # id or slug
    price_min: Optional[float] = None
    price_max: Optional[float] = None
    in_stock: Optional[bool] = None
    featured: Optional[bool] = None
    search: Optional[str] = None
    sort_by: str = "created_at"
    sort_order: str = "desc"


def _apply_filters(query, tenant_id: int, filters: ProductFilters, include_inactive: bool):
    query = query.where(Product.tenant_id == tenant_id)
    if not include_inactive:
        query = query.where(Product.is_active == True)  # noqa: E712

    if filters.category:
        category = filters.category.strip()
        if category.isdigit():
            query = query.where(Product.category_id == int(category))
        else:
            category_ids = select(Category.id).where(
                Category.tenant_id == tenant_id,
                Category.slug == category,
            )
            query = query.where(col(Product.category_id).in_(category_ids))

    if filters.price_min is not None:
        query = query.where(Product.price >= filters.price_min)
    if filters.price_max is not None:
        query = query.where(Product.price <= filters.price_max)

    if filters.in_stock is True:
        query = query.where(or_(Product.track_inventory == False, Product.stock > 0))  # noqa: E712
    elif filters.in_stock is False:
        query = query.where(Product.track_inventory == True, Product.stock <= 0)  # noqa: E712

    if filters.featured is not None:
        query = query.where(Product.is_featured == filters.featured)

    if filters.search and filters.search.strip():
        pattern = f"%{filters.search.strip()}%"
        query = query.where(or_(col(Product.name).ilike(pattern), col(Product.description).ilike(pattern)))

    return query


def list_products(
    session: Session,
    tenant_id: int,
    filters: ProductFilters,
    *,
    page: int,
    limit: int,
    include_inactive: bool = False,
) -> tuple[list[Product], int]:
    """
    Filtered, sorted page of a tenant's products.

    Rules:
      - `include_inactive=False` (shoppers) hides inactive products
      - popularity = units sold across all orders, products never sold last
      - ties are broken by id so pages are stable

    Returns:
        (products of the page, total matching products)
    """
    count_query = _apply_filters(select(func.count(Product.id)), tenant_id, filters, include_inactive)
    total = session.exec(count_query).one()

    query = _apply_filters(select(Product), tenant_id, filters, include_inactive)
    descending = filters.sort_order == "desc"

    if filters.sort_by == "popularity":
        sold = (
            select(OrderItem.product_id, func.sum(OrderItem.quantity).label("sold"))
            .group_by(OrderItem.product_id)
            .subquery()
        )
        sort_col = func.coalesce(sold.c.sold, 0)
        query = query.outerjoin(sold, sold.c.product_id == Product.id)
    else:
        sort_col = getattr(Product, filters.sort_by if filters.sort_by in SORT_FIELDS else "created_at")

    query = query.order_by(sort_col.desc() if descending else sort_col.asc(), col(Product.id).asc())
    items = session.exec(query.offset((page - 1) * limit).limit(limit)).all()
    return list(items), int(total or 0)


def get_product_for_tenant(session: Session, product_id: int, tenant_id: int) -> Product:
    product = session.get(Product, product_id)
    if not product or product.tenant_id != tenant_id:
        raise HTTPException(status_code=404, detail="Product not found")
    return product


def slug_taken(session: Session, tenant_id: int, slug: str, exclude_id: Optional[int] = None) -> bool:
    query = select(Product.id).where(Product.tenant_id == tenant_id, Product.slug == slug)
    if exclude_id is not None:
        query = query.where(Product.id != exclude_id)
    return session.exec(query).first() is not None


def get_variants(session: Session, product_id: int) -> list[ProductVariant]:
    return list(
        session.exec(
            select(ProductVariant).where(ProductVariant.product_id == product_id).order_by(ProductVariant.id)
        ).all()
    )


def product_to_dict(product: Product, variants: Optional[list[ProductVariant]] = None) -> dict[str, Any]:
    data = dump(product)
    data["stock_status"] = get_stock_status(product.stock) if product.track_inventory else "In Stock"
    data["is_low_stock"] = product.track_inventory and 0 < product.stock <= product.low_stock_threshold
    if variants is not None:
        data["variants"] = [
            {**dump(v), "price": v.price if v.price is not None else product.price}
            for v in variants
        ]
    return data
