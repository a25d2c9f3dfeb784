# app/deps.py
# Role: Shared request dependencies.
#       Provides the SQLAlchemy session, the caller's identity, the process-wide
#       update notifier, and a per-request Ledger bound to both.

"""
Shared dependencies for the wallet ledger API.
"""

from dataclasses import dataclass
from typing import Generator, Optional

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from app.errors import Unauthorized
from app.services.ledger import Ledger
from app.services.notifier import UpdateNotifier, get_notifier
from db import SessionLocal

# -------------------------------------------------------------------
# Database dependency
# -------------------------------------------------------------------

def get_db() -> Generator[Session, None, None]:
    """
    FastAPI dependency that yields a database session and ensures it is closed.

    Typical usage in routes:
        db: Session = Depends(get_db)
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


# -------------------------------------------------------------------
# Identity
# -------------------------------------------------------------------

@dataclass(frozen=True)
class AuthUser:
    id: int


def require_auth(x_user_id: Optional[str] = Header(default=None)) -> AuthUser:
    """
    Resolve the caller from the X-User-Id header set by the session layer
    in front of the API.
    """
    if x_user_id is None or not x_user_id.strip():
        raise Unauthorized("Authentication required")
    try:
        user_id = int(x_user_id)
    except ValueError:
        raise Unauthorized("Invalid user identity")
    if user_id <= 0:
        raise Unauthorized("Invalid user identity")
    return AuthUser(id=user_id)


# -------------------------------------------------------------------
# Ledger
# -------------------------------------------------------------------

def get_ledger(
    db: Session = Depends(get_db),
    notifier: UpdateNotifier = Depends(get_notifier),
) -> Ledger:
    return Ledger(db, notifier)
