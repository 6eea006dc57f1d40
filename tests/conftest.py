import os
import tempfile
from contextlib import contextmanager
from pathlib import Path

import pytest

_TMP_DIR = Path(tempfile.mkdtemp(prefix="couponhub-tests-"))
_DB_PATH = _TMP_DIR / "test.db"

# must be set before couponhub.core.config is imported
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_DB_PATH}"
os.environ["JWT_SECRET"] = "test-secret-key-with-enough-entropy-1234567890"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["RESEND_API_KEY"] = ""

from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine, event  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402
from sqlalchemy.pool import NullPool  # noqa: E402

from couponhub.core.csrf import csrf_tokens  # noqa: E402
from couponhub.core.db import Base, get_db  # noqa: E402
from couponhub.core.ratelimit import rate_limiter  # noqa: E402
from couponhub.core.security import hash_password  # noqa: E402
from couponhub.core.sessions import session_manager  # noqa: E402
from couponhub.main import app  # noqa: E402
from couponhub.models import Brand, Category, Coupon, User  # noqa: E402

PASSWORD = "Password1"

sync_engine = create_engine(f"sqlite:///{_DB_PATH}")
test_engine = create_async_engine(f"sqlite+aiosqlite:///{_DB_PATH}", poolclass=NullPool)
TestSessionLocal = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


async def override_get_db():
    async with TestSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


app.dependency_overrides[get_db] = override_get_db


@pytest.fixture(autouse=True)
def fresh_state():
    """Empty tables and in-process security state for every test."""
    Base.metadata.drop_all(sync_engine)
    Base.metadata.create_all(sync_engine)
    rate_limiter.reset()
    csrf_tokens.reset()
    session_manager.reset()
    yield


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


@pytest.fixture
def db():
    with Session(sync_engine, expire_on_commit=False) as session:
        yield session


# -------------------------
# Seed helpers
# -------------------------
def make_user(db: Session, email: str, *, role: str = "USER", is_active: bool = True, password: str = PASSWORD) -> User:
    user = User(
        email=email,
        name=email.split("@")[0].title(),
        password_hash=hash_password(password),
        role=role,
        is_active=is_active,
        settings={},
    )
    db.add(user)
    db.commit()
    return user


def make_brand(db: Session, name: str = "Acme", **kw) -> Brand:
    brand = Brand(name=name, slug=kw.pop("slug", name.lower().replace(" ", "-")), is_active=kw.pop("is_active", True), **kw)
    db.add(brand)
    db.commit()
    return brand


def make_category(db: Session, name: str = "Fashion", **kw) -> Category:
    cat = Category(name=name, slug=kw.pop("slug", name.lower().replace(" ", "-")), is_active=kw.pop("is_active", True), **kw)
    db.add(cat)
    db.commit()
    return cat


def make_coupon(db: Session, brand: Brand, category: Category, title: str = "Ten off", **kw) -> Coupon:
    coupon = Coupon(
        title=title,
        code=kw.pop("code", "SAVE10"),
        type=kw.pop("type", "COUPON_CODE"),
        discount_type=kw.pop("discount_type", "PERCENTAGE"),
        discount_value=kw.pop("discount_value", 10),
        brand_id=brand.id,
        category_id=category.id,
        **kw,
    )
    db.add(coupon)
    db.commit()
    return coupon


# -------------------------
# HTTP helpers
# -------------------------
def login(client: TestClient, email: str, password: str = PASSWORD) -> dict:
    r = client.post("/auth/login", json={"email": email, "password": password})
    assert r.status_code == 200, r.text
    return {"Authorization": f"Bearer {r.json()['data']['accessToken']}"}


def with_csrf(client: TestClient, headers: dict | None = None) -> dict:
    headers = dict(headers or {})
    r = client.get("/csrf-token", headers=headers)
    assert r.status_code == 200, r.text
    headers["X-CSRF-Token"] = r.json()["data"]["csrfToken"]
    return headers


@pytest.fixture
def admin(db):
    return make_user(db, "admin@example.com", role="ADMIN")


@pytest.fixture
def admin_headers(client, admin):
    return login(client, admin.email)


@pytest.fixture
def user(db):
    return make_user(db, "shopper@example.com")


@pytest.fixture
def user_headers(client, user):
    return login(client, user.email)


@contextmanager
def failing_insert(model, message: str = "table unavailable"):
    """Make every INSERT of `model` fail at flush time while the block runs."""

    def _fail(mapper, connection, target):
        raise RuntimeError(message)

    event.listen(model, "before_insert", _fail)
    try:
        yield
    finally:
        event.remove(model, "before_insert", _fail)
