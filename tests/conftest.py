import os

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("ADMIN_WALLETS", "")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from typing import Generator

from main import app
from app.core.config import settings
from app.db.base import Base
from app.db.session import get_db, init_db
from app.services.metadata import get_metadata_fetcher
from app.services.minting import get_minter
from app.services.campaigns import create_campaign, replace_snapshot, transition_status
from app.services.snapshot import SnapshotRow
from tests.helpers import FakeMinter, SigningWallet


# Create in-memory SQLite database for testing
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"
engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(autouse=True)
def reset_schema() -> Generator:
    """Every test starts from empty tables"""
    Base.metadata.drop_all(bind=engine)
    init_db(bind=engine)
    yield


@pytest.fixture(autouse=True)
def admin_auth_disabled(monkeypatch):
    monkeypatch.setattr(settings, "ADMIN_WALLETS", "")


def override_get_db() -> Generator:
    """Override database dependency for testing"""
    db = TestingSessionLocal()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


@pytest.fixture
def db_session() -> Generator:
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def session_factory():
    """Independent sessions on the test database"""
    return TestingSessionLocal


@pytest.fixture
def minter() -> FakeMinter:
    return FakeMinter()


@pytest.fixture
def metadata_payload() -> dict:
    """What the fake metadata fetcher returns; tests may mutate or clear it"""
    return {}


@pytest.fixture
def client(minter: FakeMinter, metadata_payload: dict) -> TestClient:
    """Create a test client for the FastAPI application"""
    from app.services.metadata import metadata_from_payload

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_minter] = lambda: minter
    app.dependency_overrides[get_metadata_fetcher] = lambda: (
        lambda uri: metadata_from_payload(metadata_payload) if metadata_payload else None
    )
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def wallet() -> SigningWallet:
    return SigningWallet()


@pytest.fixture
def other_wallet() -> SigningWallet:
    return SigningWallet()


@pytest.fixture
def draft_campaign(db_session):
    return create_campaign(
        db_session,
        name="Community Revival",
        slug="community-revival",
        description="Demo migration campaign for claim tests",
        symbol="REVIVE",
    )


@pytest.fixture
def open_campaign(db_session, draft_campaign, wallet):
    """Open campaign where ``wallet`` is entitled to 3"""
    replace_snapshot(db_session, draft_campaign, [SnapshotRow("0xabc", wallet.address, 3)])
    return transition_status(db_session, draft_campaign, "open")
