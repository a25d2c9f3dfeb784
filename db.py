# db.py
# Role: Database bootstrap for the wallet ledger service.
#       Defines the SQLAlchemy engine, session factory, and declarative Base.
#       Also ensures the on-disk database directory exists before the app starts.

"""
Database setup for the wallet ledger.

- Uses the URL from config.DATABASE_URL (SQLite file by default)
- Ensures the 'database' folder exists for the default SQLite file
- In-memory SQLite shares one connection so every session sees the same data
"""

import os

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool

from config import DATABASE_URL, DB_DIR

connect_args = {}
engine_kwargs = {}

if DATABASE_URL.startswith("sqlite"):
    # For SQLite, we need check_same_thread=False for FastAPI (threaded request handling)
    connect_args = {"check_same_thread": False}

    if DATABASE_URL in ("sqlite://", "sqlite:///:memory:"):
        engine_kwargs["poolclass"] = StaticPool
    else:
        os.makedirs(DB_DIR, exist_ok=True)  # ensure folder exists

engine = create_engine(
    DATABASE_URL,
    connect_args=connect_args,
    **engine_kwargs,
)

# Standard session factory used via dependency injection (see app/deps.py:get_db)
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

# Declarative base class for ORM models
Base = declarative_base()
