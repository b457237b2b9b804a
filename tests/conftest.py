"""Shared fixtures for DevCosts tests.

Provides an in-memory database, a credential vault, a fake provider
registry and a FastAPI TestClient wired to all of them.
"""

import base64
import os
from datetime import date
from typing import List, Optional

import pytest

# Settings are cached on first import, so the environment must be set first.
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-devcosts-tests")
os.environ.setdefault("ENCRYPTION_KEY", base64.b64encode(b"k" * 32).decode())
os.environ.setdefault("CRON_SECRET", "test-cron-secret")
os.environ.setdefault("DATABASE_URL", "sqlite://")

from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from devcosts.database import Base, get_db
from devcosts.main import app
from devcosts.app import models
from devcosts.app.auth import create_access_token
from devcosts.app.dependencies import get_notifier, get_registry, get_vault
from devcosts.app.usage_sync import CredentialVault, ProviderRegistry
from devcosts.app.usage_sync.providers import (
    BaseUsageProvider, ConnectionTestResult, CredentialField, UsageData, UsageResult
)
from devcosts.app.usage_sync.registry import placeholder_providers

CRON_SECRET = os.environ["CRON_SECRET"]


class FakeProvider(BaseUsageProvider):
    """Provider whose responses are set by the test instead of a remote API."""

    credential_fields = [CredentialField("apiKey", "API Key")]

    def __init__(self, provider_id: str, records: Optional[List[UsageData]] = None,
                 error: Optional[str] = None, raises: Optional[Exception] = None):
        super().__init__()
        self.id = provider_id
        self.name = provider_id.title()
        self.records = records or []
        self.error = error
        self.raises = raises
        self.calls = []

    async def _probe(self, client, credentials):
        raise NotImplementedError

    async def test_connection(self, credentials):
        if credentials.get("apiKey") == "good-key":
            return ConnectionTestResult(success=True)
        return ConnectionTestResult(success=False, error="Invalid credentials")

    async def fetch_usage(self, credentials, start_date, end_date):
        self.calls.append((credentials, start_date, end_date))
        if self.raises is not None:
            raise self.raises
        return UsageResult(list(self.records), error=self.error)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def vault():
    return CredentialVault(CredentialVault.generate_key())


@pytest.fixture
def user(db):
    user = models.User(email="dev@example.com", full_name="Dev User", is_active=True)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def other_user(db):
    user = models.User(email="other@example.com", full_name="Other User", is_active=True)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def fake_providers():
    return {
        "openai": FakeProvider("openai", records=[UsageData(date(2024, 3, 1), 250)]),
        "anthropic": FakeProvider("anthropic"),
        "stripe": FakeProvider("stripe"),
    }


@pytest.fixture
def registry(fake_providers):
    return ProviderRegistry(list(fake_providers.values()) + placeholder_providers())


@pytest.fixture
def make_connection(db, vault):
    def _make(owner, provider="openai", credentials=None, is_active=True, ciphertext=None):
        connection = models.Connection(
            user_id=owner.id,
            provider=provider,
            credentials=ciphertext or vault.encrypt_credentials(credentials or {"apiKey": "good-key"}),
            is_active=is_active,
        )
        db.add(connection)
        db.commit()
        db.refresh(connection)
        return connection
    return _make


@pytest.fixture
def add_usage(db):
    def _add(connection, day, amount_cents):
        record = models.UsageRecord(
            connection_id=connection.id,
            user_id=connection.user_id,
            provider=connection.provider,
            date=day,
            amount_cents=amount_cents,
        )
        db.add(record)
        db.commit()
        return record
    return _add


class RecordingNotifier:
    def __init__(self, fail: bool = False):
        self.sent = []
        self.fail = fail

    def send(self, to_address, subject, html_body):
        if self.fail:
            raise ConnectionError("SMTP server unavailable")
        self.sent.append((to_address, subject, html_body))
        return True


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def client(db, vault, registry, notifier, user):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_vault] = lambda: vault
    app.dependency_overrides[get_registry] = lambda: registry
    app.dependency_overrides[get_notifier] = lambda: notifier

    yield TestClient(app)

    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers(user):
    token = create_access_token({"sub": user.email})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def cron_headers():
    return {"Authorization": f"Bearer {CRON_SECRET}"}
