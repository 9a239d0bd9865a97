"""
Shared fixtures: in-memory database, API client and model factories.

The environment is fixed before any storefront module is imported, since
storefront.config reads it once at import time.
"""
import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["APP_ENV"] = "dev"
os.environ["AUTO_CREATE_TABLES"] = "0"
os.environ["RATE_LIMIT_ENABLED"] = "1"
os.environ["JWT_SECRET"] = "test-secret"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, create_engine

from storefront.auth.credentials import issue_token_for_user
from storefront.auth.password import hash_password
from storefront.constants import Role
from storefront.db.session import create_tables, get_session
from storefront.main import app
from storefront.middleware import rate_limit
from storefront.model.category import Category
from storefront.model.product import Product
from storefront.model.tenant import Tenant
from storefront.model.user import User
from storefront.services.tenant_service import apply_plan

PASSWORD = "Secret123!"


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    create_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def client(engine):
    def _override_session():
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_session] = _override_session
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def _reset_rate_limiter():
    rate_limit.reset()
    yield
    rate_limit.reset()


@pytest.fixture
def make_tenant(session):
    counter = {"n": 0}

    def _make(name: str | None = None, plan: str = "free", **fields) -> Tenant:
        counter["n"] += 1
        name = name or f"Store {counter['n']}"
        tenant = Tenant(name=name, slug=fields.pop("slug", f"store-{counter['n']}"), **fields)
        apply_plan(tenant, plan)
        session.add(tenant)
        session.commit()
        session.refresh(tenant)
        return tenant

    return _make


@pytest.fixture
def make_user(session):
    def _make(
        email: str,
        role: Role = Role.CUSTOMER,
        tenant: Tenant | None = None,
        password: str | None = PASSWORD,
        is_active: bool = True,
        name: str | None = None,
    ) -> User:
        user = User(
            email=email,
            name=name or email.split("@")[0],
            password=hash_password(password) if password else None,
            role=role,
            tenant_id=tenant.id if tenant else None,
            is_active=is_active,
        )
        session.add(user)
        session.commit()
        session.refresh(user)
        return user

    return _make


@pytest.fixture
def make_category(session):
    def _make(tenant: Tenant, name: str, slug: str | None = None, **fields) -> Category:
        category = Category(tenant_id=tenant.id, name=name, slug=slug or name.lower(), **fields)
        session.add(category)
        session.commit()
        session.refresh(category)
        return category

    return _make


@pytest.fixture
def make_product(session):
    def _make(tenant: Tenant, name: str, price: float = 10.0, stock: int = 10, **fields) -> Product:
        product = Product(
            tenant_id=tenant.id,
            name=name,
            slug=fields.pop("slug", name.lower().replace(" ", "-")),
            price=price,
            stock=stock,
            **fields,
        )
        session.add(product)
        session.commit()
        session.refresh(product)
        return product

    return _make


def auth_headers(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {issue_token_for_user(user)}"}


@pytest.fixture
def tenant(make_tenant):
    return make_tenant("Main Store", slug="main-store", plan="starter")


@pytest.fixture
def super_admin(make_user):
    return make_user("root@example.com", role=Role.SUPER_ADMIN)


@pytest.fixture
def tenant_admin(make_user, tenant):
    return make_user("owner@example.com", role=Role.TENANT_ADMIN, tenant=tenant)


@pytest.fixture
def staff(make_user, tenant):
    return make_user("staff@example.com", role=Role.STAFF, tenant=tenant)


@pytest.fixture
def customer(make_user, tenant):
    return make_user("shopper@example.com", role=Role.CUSTOMER, tenant=tenant)
