from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import logging
import os

from .config import settings
from .database import engine, Base
from .routers import attachments, payroll, payroll_deductions, quote_drafts, quotes

logger = logging.getLogger("opsconsole")

# Create tables (handles new tables but won't add columns to existing ones)
Base.metadata.create_all(bind=engine)

BASE_REVISION = "5c2d8e41a7b3"


def _run_migrations():
    """Run pending Alembic migrations on startup.

    Databases created by Base.metadata.create_all() have every table but no
    alembic_version; those are stamped at the base revision first.
    """
    try:
        from alembic.config import Config
        from alembic import command
        from sqlalchemy import inspect

        alembic_ini = os.path.join(os.path.dirname(__file__), "..", "alembic.ini")
        if not os.path.exists(alembic_ini):
            logger.info("alembic.ini not found, skipping migrations")
            return

        alembic_cfg = Config(alembic_ini)
        alembic_cfg.set_main_option("sqlalchemy.url", settings.DATABASE_URL)

        insp = inspect(engine)
        has_alembic = "alembic_version" in insp.get_table_names()
        has_payroll = "payroll_records" in insp.get_table_names()

        if not has_alembic and has_payroll:
            logger.info("Stamping base migration %s (tables already exist)", BASE_REVISION)
            command.stamp(alembic_cfg, BASE_REVISION)

        logger.info("Running pending Alembic migrations...")
        command.upgrade(alembic_cfg, "head")
        logger.info("Migrations complete")

    except Exception as e:
        # Never let migration errors prevent app startup
        logger.warning(f"Alembic migration warning: {e}")


app = FastAPI(
    title=settings.COMPANY_NAME,
    description="Payroll and quote pricing backend for the operations console",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# API routes
app.include_router(payroll.router, prefix="/api")
app.include_router(payroll_deductions.router, prefix="/api")
app.include_router(quote_drafts.router, prefix="/api")
app.include_router(quotes.router, prefix="/api")
app.include_router(attachments.router, prefix="/api")


@app.get("/health")
def health():
    return {"status": "ok", "app": "opsconsole"}


@app.on_event("startup")
def auto_migrate():
    """Run pending Alembic migrations on startup."""
    _run_migrations()
