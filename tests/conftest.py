import os

# must be set before config/db are imported anywhere
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["APP_DEBUG"] = "0"

import pytest
from fastapi.testclient import TestClient

from db import Base, SessionLocal, engine
from app.services.ledger import Ledger
from app.services.notifier import InMemoryNotifier, get_notifier
from app.services.wallets import create_wallet


@pytest.fixture(autouse=True)
def fresh_state():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    get_notifier.cache_clear()
    yield
    get_notifier.cache_clear()


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def notifier():
    return InMemoryNotifier(queue_size=50)


@pytest.fixture
def ledger(db, notifier):
    return Ledger(db, notifier)


@pytest.fixture
def make_wallet(ledger):
    def _make(user_id=1, name="Main", balance=0, type="bank"):
        return create_wallet(ledger, user_id, name, type, balance=balance)

    return _make


@pytest.fixture
def client():
    from main import app

    return TestClient(app)
