import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from storefront.config import settings
from storefront.database import create_db_and_tables
from storefront.errors import StoreError
from storefront.routes import (
    admin_orders,
    admin_reviews,
    admin_users,
    auth,
    cart,
    categories_admin,
    categories_public,
    checkout,
    health,
    orders,
    payments,
    products,
    products_admin,
    reviews,
    users,
)
from storefront.services.payment_gateway import build_payment_gateway

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Run DB creation ONLY in local
    if settings.env == "local":
        create_db_and_tables()

    # fails startup when the gateway credentials are missing
    app.state.payment_gateway = build_payment_gateway(settings)
    logger.info("Payment gateway configured")
    yield

app = FastAPI(title="Storefront API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} -> {exc.code}: {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} -> {exc.code}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.code, "detail": exc.message},
    )


app.include_router(auth.router, prefix="/auth", tags=["Authentication"])
app.include_router(users.router, prefix="/users", tags=["Users"])
app.include_router(categories_public.router, prefix="/categories", tags=["Public Categories"])
app.include_router(categories_admin.router, prefix="/admin/categories", tags=["Admin Categories"])
app.include_router(products.router, prefix="/products", tags=["Public Products"])
app.include_router(products_admin.router, prefix="/admin/products", tags=["Admin Products"])
app.include_router(cart.router, prefix="/cart", tags=["Cart"])
app.include_router(checkout.router, prefix="/checkout", tags=["Checkout"])
app.include_router(payments.router, prefix="/payment", tags=["Payments"])
app.include_router(orders.router, prefix="/orders", tags=["Orders"])
app.include_router(admin_orders.router, prefix="/admin/orders", tags=["Admin Orders"])
app.include_router(reviews.router, prefix="/reviews", tags=["Reviews"])
app.include_router(admin_reviews.router, prefix="/admin/reviews", tags=["Admin Reviews"])
app.include_router(admin_users.router, prefix="/admin/users", tags=["Admin Users"])
app.include_router(health.router, prefix="/health", tags=["Health"])


@app.get("/")
def root():
    return {
        "auth_endpoints": [
            "/auth/register", "/auth/login", "/auth/me", "/auth/logout"
        ],
        "catalog": [
            "/products", "/products/{product_id}", "/categories", "/categories/{slug}"
        ],
        "cart": [
            "/cart", "/cart/add", "/cart/update/{id}",
            "/cart/remove/{id}", "/cart/clear"
        ],
        "checkout": [
            "/checkout/session", "/payment/finalize?sessionId=...", "/payment/webhook"
        ],
        "orders": [
            "/orders", "/orders/{order_id}", "/orders/check-purchase?productId=..."
        ],
        "reviews": [
            "/reviews", "/reviews/{review_id}", "/reviews/user-review?productId=..."
        ],
    }
