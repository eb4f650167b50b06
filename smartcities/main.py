# smartcities/main.py
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from smartcities import config
from smartcities.db import init_models
from smartcities.errors import AppError, app_error_handler, storage_error_handler
from smartcities.services.mailer import MailjetClient

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger("smartcities")

# -----------------------------------------------------------------------------
# Lifespan : schéma (dev) + client mail
# -----------------------------------------------------------------------------
@asynccontextmanager
async def lifespan(app: FastAPI):
    # --- Startup ---
    if config.DB_AUTO_CREATE:
        await init_models()
        logger.info("[db] tables ready")

    # un test peut avoir posé son propre client avant le démarrage
    if getattr(app.state, "mailer", None) is None:
        app.state.mailer = MailjetClient(
            config.MAILJET_API_KEY,
            config.MAILJET_SECRET_KEY,
            config.MAILJET_SENDER_EMAIL,
        )
    if not config.MAILJET_API_KEY:
        logger.warning("[mail] MAILJET_API_KEY absent : les signalements à la modération échoueront")

    yield

    # --- Shutdown ---
    await app.state.mailer.aclose()
    app.state.mailer = None


# -----------------------------------------------------------------------------
# App
# -----------------------------------------------------------------------------
app = FastAPI(title="SmartCities API", lifespan=lifespan)

# Debug token admin (masqué)
logger.info("[admin-token] configured=%s len=%d", bool(config.ADMIN_TOKEN), len(config.ADMIN_TOKEN))

# -----------------------------------------------------------------------------
# CORS (avant d'inclure les routers)
# -----------------------------------------------------------------------------
allowed_origins = {"http://localhost:3000", "http://localhost:8081"}
allowed_origins.update(config.ALLOWED_ORIGINS)

app.add_middleware(
    CORSMiddleware,
    allow_origins=sorted(allowed_origins),
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
    max_age=86400,
)

# -----------------------------------------------------------------------------
# Erreurs
# -----------------------------------------------------------------------------
app.add_exception_handler(AppError, app_error_handler)
app.add_exception_handler(SQLAlchemyError, storage_error_handler)

# -----------------------------------------------------------------------------
# Health
# -----------------------------------------------------------------------------
@app.get("/health")
async def health():
    return {"ok": True}

# -----------------------------------------------------------------------------
# Routes
# -----------------------------------------------------------------------------
from smartcities.routes.reports import router as reports_router              # noqa: E402
from smartcities.routes.map import router as map_router                      # noqa: E402
from smartcities.routes.stats import router as stats_router                  # noqa: E402
from smartcities.routes.notifications import router as notifications_router  # noqa: E402
from smartcities.routes.admin import router as admin_router                  # noqa: E402

app.include_router(reports_router)
app.include_router(map_router)
app.include_router(stats_router)
app.include_router(notifications_router)
app.include_router(admin_router)
