"""Shared fixtures: in-memory stores, fixed clocks, sample records."""

import itertools
from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from nexora.config import get_settings
from nexora.models.finance import Account, Transaction
from nexora.services.storage import InMemoryStore, LocalFinanceGateway

FIXED_NOW = datetime(2024, 5, 15, 10, 30, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch):
    """Every test starts in demo mode with fresh settings."""
    monkeypatch.delenv("NEXORA_API_BASE_URL", raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def local_gateway(store):
    counter = itertools.count(1)
    return LocalFinanceGateway(
        store,
        id_factory=lambda: f"id-{next(counter)}",
        clock=lambda: FIXED_NOW,
    )


@pytest.fixture
def member():
    return Account(id="u-1", name="Asha", email="asha@nexora.dev", position="Founder")


def make_transaction(**overrides) -> Transaction:
    """A valid expense, with any field overridden."""
    data = {
        "id": "t-1",
        "user_id": "u-1",
        "user_name": "Asha",
        "date": date(2024, 5, 15),
        "type": "expense",
        "category": "Food",
        "amount": Decimal("100"),
    }
    data.update(overrides)
    return Transaction.model_validate(data)
