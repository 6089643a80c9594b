import logging
import traceback
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from carmarket.config import settings
from carmarket.auth import AuthMiddleware, router as auth_router
from carmarket.db.database import close_db, init_db
from carmarket.api.routes_listings import router as listings_router
from carmarket.api.routes_favorites import router as favorites_router
from carmarket.api.routes_admin import router as admin_router
from carmarket.api.routes_users import router as users_router
from carmarket.api.routes_rates import router as rates_router
from carmarket.services.currency import fetch_exchange_rates
from carmarket.services.storage import LocalStorage

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    app.state.storage = LocalStorage(settings.LOCAL_STORAGE_PATH)
    # Rates are fetched once per process; failures fall back to config
    app.state.rates = await fetch_exchange_rates(app.state.storage)
    yield
    await close_db()


app = FastAPI(title="CarMarket", version="0.1.0", lifespan=lifespan)
app.add_middleware(AuthMiddleware)

logger = logging.getLogger(__name__)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    tb = traceback.format_exc()
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}\n{tb}")
    return JSONResponse(
        status_code=500,
        content={"detail": str(exc)},
    )


@app.get("/api/v1/health")
async def health_check():
    """Check DB connectivity."""
    from sqlalchemy import text
    from carmarket.db.database import listing_session
    try:
        async with listing_session() as db:
            await db.execute(text("SELECT 1"))
        return {"status": "ok", "database": "connected", "listing_source": settings.LISTING_SOURCE}
    except Exception as e:
        return {"status": "error", "database": str(e)}


app.include_router(auth_router)
app.include_router(listings_router)
app.include_router(favorites_router)
app.include_router(admin_router)
app.include_router(users_router)
app.include_router(rates_router)
