import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

# Import all models so SQLAlchemy registers tables and FKs before first use
import couponhub.models  # noqa: F401

from couponhub.core.config import settings
from couponhub.core.errors import register_exception_handlers

from couponhub.routers.csrf import router as csrf_router
from couponhub.routers.auth import router as auth_router
from couponhub.routers.user import router as user_router

# Catalog
from couponhub.routers.brands import router as brands_router
from couponhub.routers.categories import router as categories_router
from couponhub.routers.coupons import router as coupons_router
from couponhub.routers.search import router as search_router

# Inbound content
from couponhub.routers.submissions import router as submissions_router
from couponhub.routers.contact import router as contact_router

# Back-office
from couponhub.routers.admin import router as admin_router
from couponhub.routers.admin_security import router as admin_security_router

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(title="CouponHub API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def security_headers(request: Request, call_next):
    response = await call_next(request)
    response.headers.setdefault("X-Content-Type-Options", "nosniff")
    response.headers.setdefault("X-Frame-Options", "DENY")
    response.headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
    response.headers.setdefault("Permissions-Policy", "camera=(), microphone=(), geolocation=()")
    return response


register_exception_handlers(app)

app.include_router(csrf_router)
app.include_router(auth_router)
app.include_router(user_router)

app.include_router(brands_router)
app.include_router(categories_router)
app.include_router(coupons_router)
app.include_router(search_router)

app.include_router(submissions_router)
app.include_router(contact_router)

app.include_router(admin_router)
app.include_router(admin_security_router)


@app.get("/health")
async def health():
    return {"status": "ok"}
