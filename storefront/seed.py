"""
Seed a development database (idempotent).

    python -m storefront.seed [--password PASSWORD]

Creates the tables, a default store, a super admin (admin@example.com), a store
admin (store@example.com), two categories and three products. Rows that already
exist are left untouched.
"""
import argparse
import logging
import sys

from sqlmodel import Session, select

from storefront.auth.password import hash_password
from storefront.constants import Role
from storefront.db.session import create_tables, get_session_context
from storefront.lib.validation import validate_password
from storefront.model.base import utc_now
from storefront.model.category import Category
from storefront.model.product import Product
from storefront.model.tenant import Tenant
from storefront.model.user import User
from storefront.services.tenant_service import apply_plan

logger = logging.getLogger("storefront.seed")

DEFAULT_PASSWORD = "Admin123!"

CATEGORIES = [
    {"name": "Electronics", "slug": "electronics", "description": "Electronic devices and gadgets"},
    {"name": "Clothing", "slug": "clothing", "description": "Fashion and apparel"},
]

PRODUCTS = [
    {
        "name": "Wireless Headphones",
        "slug": "wireless-headphones",
        "description": "High-quality wireless headphones with noise cancellation",
        "price": 99.99,
        "compare_price": 129.99,
        "sku": "WH-001",
        "stock": 50,
        "category": "electronics",
        "is_featured": True,
    },
    {
        "name": "Smartphone Case",
        "slug": "smartphone-case",
        "description": "Durable protective case for smartphones",
        "price": 19.99,
        "compare_price": 24.99,
        "sku": "SC-001",
        "stock": 100,
        "category": "electronics",
    },
    {
        "name": "Cotton T-Shirt",
        "slug": "cotton-tshirt",
        "description": "Comfortable cotton t-shirt in various colors",
        "price": 24.99,
        "compare_price": 29.99,
        "sku": "CT-001",
        "stock": 200,
        "category": "clothing",
    },
]


def _get_or_create_tenant(session: Session) -> tuple[Tenant, bool]:
    tenant = session.exec(select(Tenant).where(Tenant.slug == "default")).first()
    if tenant:
        return tenant, False
    tenant = Tenant(name="Default Store", slug="default", description="Default e-commerce store")
    apply_plan(tenant, "starter")
    session.add(tenant)
    session.commit()
    session.refresh(tenant)
    return tenant, True


def _get_or_create_user(session: Session, *, email: str, name: str, role: Role, tenant_id, password_hash: str) -> bool:
    if session.exec(select(User).where(User.email == email)).first():
        return False
    session.add(
        User(
            email=email,
            name=name,
            password=password_hash,
            role=role,
            tenant_id=tenant_id,
            email_verified=utc_now(),
        )
    )
    session.commit()
    return True


def seed(session: Session, password: str = DEFAULT_PASSWORD) -> dict[str, int]:
    """
    Returns:
        Number of rows created per entity (0 everywhere on a second run)
    """
    created = {"tenants": 0, "users": 0, "categories": 0, "products": 0}

    tenant, is_new = _get_or_create_tenant(session)
    created["tenants"] += int(is_new)

    password_hash = hash_password(password)
    created["users"] += int(_get_or_create_user(
        session, email="admin@example.com", name="Super Admin", role=Role.SUPER_ADMIN,
        tenant_id=None, password_hash=password_hash,
    ))
    created["users"] += int(_get_or_create_user(
        session, email="store@example.com", name="Store Admin", role=Role.TENANT_ADMIN,
        tenant_id=tenant.id, password_hash=password_hash,
    ))

    categories: dict[str, Category] = {}
    for data in CATEGORIES:
        category = session.exec(
            select(Category).where(Category.tenant_id == tenant.id, Category.slug == data["slug"])
        ).first()
        if not category:
            category = Category(tenant_id=tenant.id, **data)
            session.add(category)
            session.commit()
            session.refresh(category)
            created["categories"] += 1
        categories[category.slug] = category

    for data in PRODUCTS:
        exists = session.exec(
            select(Product.id).where(Product.tenant_id == tenant.id, Product.slug == data["slug"])
        ).first()
        if exists is not None:
            continue
        fields = {k: v for k, v in data.items() if k != "category"}
        session.add(Product(tenant_id=tenant.id, category_id=categories[data["category"]].id, **fields))
        created["products"] += 1
    session.commit()

    return created


def main() -> int:
    parser = argparse.ArgumentParser(description="Seed the database with a default store (idempotent).")
    parser.add_argument("--password", default=DEFAULT_PASSWORD, help="Password of the seeded admin accounts")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")

    errors = validate_password(args.password)
    if errors:
        logger.error(errors[0])
        return 1

    create_tables()
    with get_session_context() as session:
        created = seed(session, args.password)
    logger.info(f"Seed completed: {created}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
