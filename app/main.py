from contextlib import asynccontextmanager

from fastapi import FastAPI

from app.whtransfers.api import api_router
from app.whtransfers.core.config import settings
from app.whtransfers.core.errors import setup_exception_handlers
from app.whtransfers.core.logging import configure_logging
from app.whtransfers.db.seed import seed_if_enabled
from app.whtransfers.db.session import SessionLocal, init_db
from app.whtransfers.middleware.observability import ObservabilityMiddleware
from app.whtransfers.middleware.trace import TraceIdMiddleware


@asynccontextmanager
async def lifespan(_app: FastAPI):
    init_db()
    db = SessionLocal()
    try:
        seed_if_enabled(db)
    finally:
        db.close()
    yield


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)
    app.add_middleware(TraceIdMiddleware)
    app.add_middleware(ObservabilityMiddleware)
    setup_exception_handlers(app)
    app.include_router(api_router)
    return app


app = create_app()
