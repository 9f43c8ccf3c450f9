# captionflow/conftest.py
from datetime import datetime, timezone
from typing import List, Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, insert
from sqlalchemy.pool import StaticPool

from captionflow.core.config import Settings
from captionflow.core.database import Database, users
from captionflow.features.llm.client import CompletionRequest
from captionflow.models.user import Tier

DEFAULT_COMPLETION = "CAPTION: Golden hour hits different by the sea\nHASHTAGS: #sunset #beach #goldenhour #travel #ocean"


class FakeGenerationClient:
    """Canned GenerationClient: pops queued responses, then repeats the default."""

    def __init__(self, responses: Optional[List[str]] = None, default: str = DEFAULT_COMPLETION):
        self.responses = list(responses or [])
        self.default = default
        self.requests: List[CompletionRequest] = []
        self.error: Optional[Exception] = None

    def complete(self, request: CompletionRequest) -> str:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        if self.responses:
            return self.responses.pop(0)
        return self.default


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        ENV="test",
        DATABASE_URL="sqlite://",
        FREE_DAILY_LIMIT=10,
        ALLOW_DEV_USER_HEADER=True,
        AUTH_JWT_SECRET="test-secret",
        GROQ_API_KEY=None,
        STRIPE_SECRET_KEY=None,
        STRIPE_WEBHOOK_SECRET=None,
    )


@pytest.fixture
def db():
    """In-memory SQLite shared across threads (TestClient runs sync routes in a pool)."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    database = Database("sqlite://", engine=engine)
    database.create_all()
    yield database
    database.drop_all()
    database.dispose()


@pytest.fixture
def fake_llm():
    return FakeGenerationClient()


@pytest.fixture
def app(settings, db, fake_llm):
    from captionflow.main import create_app

    return create_app(settings, db=db, llm=fake_llm)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def make_user(db):
    """Insert a user row directly; returns the user id."""

    def _make_user(
        user_id: str = "user_free",
        *,
        tier: Tier = Tier.FREE,
        count: int = 0,
        last_reset_date: Optional[datetime] = None,
        email: Optional[str] = None,
    ) -> str:
        now = datetime.now(timezone.utc)
        with db.session() as session:
            session.execute(
                insert(users).values(
                    id=user_id,
                    email=email or f"{user_id}@example.com",
                    subscription_tier=Tier(tier).value,
                    subscription_status="active",
                    daily_caption_count=count,
                    last_reset_date=last_reset_date or now,
                    created_at=now,
                    updated_at=now,
                )
            )
        return user_id

    return _make_user
