"""
Test configuration and fixtures for Study Subscriptions.

Provides shared fixtures for unit and integration tests. Ledger tests run
the real SQL against an in-memory SQLite database through aiosqlite.
"""

import os

# Settings are read once at import time
os.environ.setdefault("JWT_SECRET", "test-secret-key-for-unit-tests-only")
os.environ.setdefault("JWT_ISSUER", "https://auth.test")
os.environ.setdefault("ENVIRONMENT", "testing")

import time
from typing import AsyncGenerator
from uuid import uuid4

import jwt
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

import app.infrastructure.db.models  # noqa: F401
from app.infrastructure.db.models import (
    AIModel,
    GradeLevel,
    PaymentMethod,
    PaymentTransaction,
    Subject,
    SubscriptionTier,
)


# =============================================================================
# App Fixtures
# =============================================================================

@pytest.fixture
def app():
    """Get the FastAPI application."""
    from app.main import app
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
def client(app):
    """Get synchronous test client."""
    return TestClient(app)


@pytest.fixture
def mock_user_id():
    return uuid4()


def make_token(user_id, secret=None, expires_in=3600, **claims) -> str:
    """Sign a bearer token the way the identity provider does."""
    now = int(time.time())
    payload = {
        "sub": str(user_id),
        "iss": os.environ["JWT_ISSUER"],
        "aud": "authenticated",
        "iat": now,
        "exp": now + expires_in,
        **claims,
    }
    return jwt.encode(payload, secret or os.environ["JWT_SECRET"], algorithm="HS256")


@pytest.fixture
def token_factory():
    return make_token


@pytest.fixture
def auth_headers(mock_user_id):
    return {"Authorization": f"Bearer {make_token(mock_user_id)}"}


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest.fixture
async def db_engine():
    """In-memory database with the full schema."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    # Let SQLAlchemy emit BEGIN itself so SAVEPOINTs work on SQLite
    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    yield engine
    await engine.dispose()


@pytest.fixture
async def session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    """Session configured like the application's."""
    factory = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    async with factory() as session:
        yield session


# =============================================================================
# Catalog Factories
# =============================================================================

@pytest.fixture
def make_tier(session):
    """Create a tier; unspecified fields take test-friendly defaults."""
    async def _make_tier(name: str, **fields) -> SubscriptionTier:
        values = {
            "display_name": name.title(),
            "token_limit": 1000,
            "referral_points_awarded": 0,
        }
        values.update(fields)
        tier = SubscriptionTier(name=name, **values)
        session.add(tier)
        await session.flush()
        return tier
    return _make_tier


@pytest.fixture
async def free_tier(make_tier):
    return await make_tier("free", token_limit=50000, papers_limit=2)


@pytest.fixture
async def pro_tier(make_tier):
    return await make_tier("pro", token_limit=2000, referral_points_awarded=250, points_cost=500)


@pytest.fixture
def make_payment(session):
    """Create a pending payment for a tier."""
    async def _make_payment(user_id, tier, billing_cycle="monthly", **fields) -> PaymentTransaction:
        payment = PaymentTransaction(
            user_id=user_id,
            tier_id=tier.id,
            billing_cycle=billing_cycle,
            amount=tier.price_monthly,
            **fields,
        )
        session.add(payment)
        await session.flush()
        return payment
    return _make_payment


@pytest.fixture
async def paypal(session):
    method = PaymentMethod(name="paypal", display_name="PayPal")
    session.add(method)
    await session.flush()
    return method


@pytest.fixture
async def catalog(session):
    """One grade level and three subjects."""
    grade = GradeLevel(name="Grade 12", display_order=12)
    subjects = [
        Subject(name="Biology", code="BIO"),
        Subject(name="Chemistry", code="CHEM"),
        Subject(name="Physics", code="PHY"),
    ]
    session.add(grade)
    session.add_all(subjects)
    await session.flush()
    return grade, subjects


@pytest.fixture
def make_model(session):
    async def _make_model(model_name: str, **fields) -> AIModel:
        values = {
            "provider": "gemini",
            "display_name": model_name,
            "max_context_tokens": 1000000,
            "max_output_tokens": 8192,
            "input_token_cost_per_million": 0.075,
            "output_token_cost_per_million": 0.30,
        }
        values.update(fields)
        model = AIModel(model_name=model_name, **values)
        session.add(model)
        await session.flush()
        return model
    return _make_model
