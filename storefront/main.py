# storefront/main.py
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

from storefront.api.routers import (
    addresses,
    analytics,
    auth,
    carts,
    health,
    live,
    notifications,
    orders,
    payments,
    products,
    reviews,
    search,
    webhooks,
    wishlist,
)
from storefront.data.database import Base, SessionLocal, engine
from storefront.data.seed import seed_categories
from storefront.services.live_hub import live_hub
from storefront.utils.errors import AppError
from storefront.utils.settings import APP_ENV
from storefront.utils.logging import get_logger

# IMPORT WSZYSTKICH MODELI NA POCZĄTKU (PRZED JAKIMKOLWIEK CREATE_ALL)
import storefront.data.models  # noqa: F401

logger = get_logger(__name__)


def init_db():
    logger.info(f"Models registered in Base.metadata: {list(Base.metadata.tables.keys())}")
    try:
        Base.metadata.create_all(bind=engine)
    except Exception as e:
        logger.error(f"Failed to create tables: {e}")
        raise

    db = SessionLocal()
    try:
        seed_categories(db)
    finally:
        db.close()
    logger.info("Database ready")


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    await live_hub.start()
    yield
    await live_hub.stop()


def error_response(status_code: int, message: str, **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "message": message, **extra})


def register_error_handlers(app: FastAPI):
    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        return error_response(exc.status_code, exc.message)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return error_response(422, "Validation failed", errors=jsonable_encoder(exc.errors()))

    @app.exception_handler(IntegrityError)
    async def integrity_error_handler(request: Request, exc: IntegrityError):
        logger.warning(f"IntegrityError on {request.url.path}: {exc.orig}")
        return error_response(409, "Duplicate field value entered")

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        message = "Route not found" if exc.status_code == 404 else str(exc.detail)
        return error_response(exc.status_code, message)

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        message = str(exc) if APP_ENV == "development" else "Something went wrong!"
        return error_response(500, message)


def create_app() -> FastAPI:
    app = FastAPI(
        title="Storefront API",
        version="1.0.0",
        lifespan=lifespan,
    )

    register_error_handlers(app)

    # Include routers
    app.include_router(health.router)
    for module in (
        auth, products, reviews, carts, wishlist, orders, payments, addresses, search, analytics, notifications
    ):
        app.include_router(module.router, prefix="/api")
    app.include_router(webhooks.router)
    app.include_router(live.router)

    return app


app = create_app()

if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
