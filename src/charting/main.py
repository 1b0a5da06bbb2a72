from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.charting.api.v1.routes_system import router as system_router_v1
from src.charting.api.v1.routes_visits import router as visits_router_v1
from src.charting.config import settings
from src.charting.infra.db.bootstrap import init_sql_repositories

app = FastAPI(title="Visit Note Charting API")


@app.on_event("startup")
async def on_startup() -> None:
    """Application startup hook.

    When USE_SQL_REPOS is enabled and a DATABASE_URL is configured, this
    switches the note store to the SQL-backed implementation. In other
    environments (tests, local dev without a database), this is a no-op and
    the in-memory store remains active.
    """

    init_sql_repositories()

# CORS configuration – permissive by default for development. Tighten via
# CORS_ALLOW_ORIGINS in production deployments.
allow_origins = [origin.strip() for origin in settings.cors_allow_origins.split(",") if origin.strip()] or ["*"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health", tags=["system"])
async def health_check() -> dict:
    """Basic liveness probe for the API root."""
    return {"status": "ok"}


# Versioned API routers
app.include_router(system_router_v1, prefix="/api/v1")
app.include_router(visits_router_v1, prefix="/api/v1")
