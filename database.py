# database.py
from __future__ import annotations

from contextlib import contextmanager

from sqlalchemy.orm import Session

from models import SessionLocal, init_db, ensure_schema

# Ensure our tables exist and new columns are added if missing on import.
init_db()
ensure_schema()


def get_db() -> Session:
    """
    Provide a SQLAlchemy session.
    Caller is responsible for closing, or use db_session().
    """
    return SessionLocal()


@contextmanager
def db_session():
    db = get_db()
    try:
        yield db
    finally:
        db.close()
