import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from .auth.app import ensure_admin
from .auth.app import router as auth_router
from .auth.app import users_router
from .config import get_settings
from .db import Base, SessionLocal, engine
from .errors import register_error_handlers
from .pedidos.app import router as orders_router
from .productos.app import router as products_router
from .productos.app import seed_products

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    # --- DB setup ---
    Base.metadata.create_all(bind=engine)
    with SessionLocal() as db:
        ensure_admin(db, settings)
        if settings.seed_catalog:
            seed_products(db)
    logger.info(
        "Tienda ready KEY=%s ALG=%s DB=%s",
        settings.fingerprint(), settings.algorithm, engine.url.render_as_string(hide_password=True),
    )
    yield


def create_app() -> FastAPI:
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(title="Tienda API", version="1.0.0", lifespan=lifespan)
    register_error_handlers(app)

    app.include_router(auth_router)
    app.include_router(users_router)
    app.include_router(products_router)
    app.include_router(orders_router)

    @app.get("/health")
    def health():
        return {"ok": True}

    return app


app = create_app()
