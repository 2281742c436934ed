# ruff: noqa: I001

import logging
import os
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from tradeops import models
from tradeops.api.router import api_router
from tradeops.config import settings
from tradeops.core.observability import global_exception_handler, request_logging_middleware
from tradeops.database import session_scope
from tradeops.services.approval_rules import seed_default_rules

api_prefix = settings.api_prefix if settings.api_prefix.startswith("/") or not settings.api_prefix else f"/{settings.api_prefix}"

logger = logging.getLogger("tradeops")
logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s %(message)s")

app = FastAPI(
    title=settings.app_name,
    docs_url="/docs" if settings.enable_docs else None,
    redoc_url="/redoc" if settings.enable_docs else None,
    openapi_url=(f"{api_prefix}/openapi.json" if api_prefix else "/openapi.json")
    if settings.enable_docs
    else None,
)

# Expose logger for middleware without creating circular imports.
app.state.logger = logger

app.add_exception_handler(Exception, global_exception_handler)

# Request-level logging + request correlation id.
app.middleware("http")(request_logging_middleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router, prefix=api_prefix)


def _run_migrations_if_configured() -> None:
    if not settings.run_migrations_on_start:
        return

    # Tests build the schema from metadata.
    if (settings.environment or "").lower() == "test":
        return

    from alembic import command
    from alembic.config import Config
    from sqlalchemy.engine.url import make_url

    backend_root = Path(__file__).resolve().parents[1]
    alembic_cfg = Config(str(backend_root / "alembic.ini"))

    url_obj = make_url(str(settings.database_url))
    logger.info(
        "migrations_db_target driver=%s host=%s db=%s has_password=%s",
        url_obj.drivername,
        url_obj.host,
        url_obj.database,
        bool(url_obj.password),
    )

    try:
        command.upgrade(alembic_cfg, "head")
        logger.info("migrations_applied")
    except SQLAlchemyError as e:
        # Endpoints that need the DB will fail on their own; keep the process up.
        logger.error("migrations_failed error=%s", str(e))


def _seed_reference_data() -> None:
    env = str(settings.environment or "dev").lower()
    if env == "test":
        return

    try:
        with session_scope() as db:
            for role_name in models.RoleName:
                role = db.query(models.Role).filter(models.Role.name == role_name).first()
                if not role:
                    db.add(models.Role(name=role_name, description=role_name.value))
            db.commit()

            created = seed_default_rules(db)
            if created:
                logger.info("startup_seed", extra={"approval_rules": created})
    except OperationalError as e:
        # Database not ready yet (e.g., missing tables) - don't block startup.
        logger.warning("reference_seed_failed", extra={"error": str(e)})


@app.on_event("startup")
def _startup():
    logger.info(
        "runtime_config",
        extra={
            "pid": os.getpid(),
            "environment": settings.environment,
            "api_prefix": api_prefix,
            "web_concurrency": os.getenv("WEB_CONCURRENCY"),
        },
    )
    _run_migrations_if_configured()
    _seed_reference_data()


@app.get("/", tags=["meta"])
def root():
    docs_path = (
        (f"{api_prefix}/openapi.json" if api_prefix else "/openapi.json")
        if settings.enable_docs
        else None
    )
    return {"message": settings.app_name, "docs": docs_path}


def run() -> None:
    import uvicorn

    uvicorn.run(
        "tradeops.main:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
        workers=int(os.getenv("UVICORN_WORKERS", "1")),
    )
