import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.core import config
from app.core.exceptions import MatchGeniusException
from app.core.logging_config import setup_logging
from app.db.init_db import init_db
from app.db.migrate import run_migrations
from app.api.routes import auth, billing, billing_webhook, health, messages, subscription, usage

setup_logging(config.LOG_LEVEL, config.LOG_DIR)
logger = logging.getLogger(__name__)


# ============================================
# ✅ FASTAPI APP INIT
# ============================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    if config.RUN_MIGRATIONS:
        run_migrations()
    elif config.DATABASE_URL.startswith("sqlite"):
        # Local development without Alembic
        init_db()
    yield


app = FastAPI(title="MatchGenius API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["Authorization", "Content-Type"],
)


@app.exception_handler(MatchGeniusException)
async def matchgenius_exception_handler(request: Request, exc: MatchGeniusException):
    logger.error(f"{exc.__class__.__name__} on {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.code, "detail": exc.message},
    )


# ============================================
# ✅ REGISTER ALL ROUTERS
# ============================================

app.include_router(auth.router)
app.include_router(billing.router)
app.include_router(billing_webhook.router)
app.include_router(subscription.router)
app.include_router(messages.router)
app.include_router(usage.router)
app.include_router(health.router)


@app.get("/")
def root():
    return {"status": "MatchGenius API running"}
