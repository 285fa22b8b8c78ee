#!/usr/bin/env python3
"""
Wait for the database, run migrations, seed, then exec uvicorn.
"""
import logging
import os
import sys

from alembic.config import Config
from alembic import command

from app.core.config import settings
import wait_for_db

logging.basicConfig(level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))

# 1) Wait for DB
wait_for_db.wait()

# 2) Run migrations using the same settings as the app
alembic_cfg = Config(os.path.join(os.path.dirname(os.path.abspath(__file__)), "alembic.ini"))
alembic_cfg.set_main_option("sqlalchemy.url", settings.DATABASE_URL)
command.upgrade(alembic_cfg, "head")

# 3) Seed using an engine created *after* migrations (avoids app engine created during Alembic env load)
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
seed_engine = create_engine(settings.DATABASE_URL, pool_pre_ping=True)
SeedSession = sessionmaker(autocommit=False, autoflush=False, bind=seed_engine)
from app.seed import run as run_seed
run_seed(SeedSession())
seed_engine.dispose()

# 4) Start uvicorn (replace current process)
os.execv(
    sys.executable,
    [sys.executable, "-m", "uvicorn", "app.main:app", "--host", "0.0.0.0", "--port", os.getenv("PORT", "8000")],
)
