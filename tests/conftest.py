"""Shared fixtures: fixed clock, in-memory registry and store, fan factory."""

import uuid
from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest

from app.services.signing import SigningKey
from app.services.snapshot_store import InMemorySnapshotStore
from app.services.token_registry import InMemoryTokenRegistry
from app.services.verification import VerificationTokenService

NOW = datetime(2026, 3, 15, 12, 0, 0)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def artist_id():
    return uuid.uuid4()


@pytest.fixture
def signing_key():
    return SigningKey("test-secret")


@pytest.fixture
def registry():
    return InMemoryTokenRegistry()


@pytest.fixture
def token_service(signing_key, registry):
    return VerificationTokenService(signing_key, registry)


@pytest.fixture
def snapshot_store():
    return InMemorySnapshotStore()


@pytest.fixture
def make_fan(artist_id):
    """Factory for a fan-shaped object; only the attributes the engine reads."""

    def _make(**overrides):
        defaults = dict(
            id=uuid.uuid4(),
            artist_id=artist_id,
            tier="DEDICATED",
            stan_score=62,
            first_seen_at=NOW - timedelta(days=200),
            last_active_at=NOW - timedelta(days=2),
        )
        defaults.update(overrides)
        return SimpleNamespace(**defaults)

    return _make


class FakeSession:
    """Collects db.add() calls; stands in for AsyncSession in unit tests."""

    def __init__(self):
        self.added = []
        self.flushes = 0

    def add(self, obj):
        self.added.append(obj)

    async def flush(self):
        self.flushes += 1


@pytest.fixture
def fake_db():
    return FakeSession()
