"""
Tests for the end-to-end flows.

Everything runs against the demo gateway over an in-memory store, except
where an unreachable API is simulated with a mocked HTTP session.
"""

import csv
from datetime import date
from decimal import Decimal
from unittest.mock import MagicMock

import pytest
import pytest_asyncio
import requests

from nexora.audit import AuditLogger
from nexora.config import AppSettings, get_settings
from nexora.models.audit import AuditEventType
from nexora.models.finance import AuthFailure, TransactionFilter, TypeFilter
from nexora.orchestrator import (
    AccountFlow,
    DashboardFlow,
    TransactionFlow,
    create_app_components,
)
from nexora.services.notifier import (
    ChangeNotifier,
    NullChangeNotifier,
    PollingChangeNotifier,
    Subscription,
)
from nexora.services.storage import (
    ApiClient,
    InMemoryStore,
    InvalidRecordError,
    LocalFinanceGateway,
    RemoteFinanceGateway,
    SessionStore,
    TransportError,
)
from nexora.services.storage.local import TRANSACTIONS_KEY
from nexora.validation import TransactionValidator

from tests.conftest import FIXED_NOW


class CapturingNotifier(ChangeNotifier):
    """Hands the subscribed callback to the test instead of polling."""

    def __init__(self):
        self.callbacks = []

    def subscribe(self, callback):
        self.callbacks.append(callback)
        return Subscription()


def expense_form(**overrides) -> dict:
    data = {
        "date": "2024-05-15",
        "type": "expense",
        "category": "Food",
        "amount": 120,
        "paymentMethod": "Cash",
    }
    data.update(overrides)
    return data


def event_types(audit: AuditLogger) -> list[AuditEventType]:
    return [event.event_type for event in audit.recent_events]


@pytest.fixture
def audit():
    return AuditLogger()


@pytest.fixture
def validator():
    return TransactionValidator(AppSettings(), today=lambda: FIXED_NOW.date())


@pytest.fixture
def transactions(local_gateway, validator, audit):
    return TransactionFlow(local_gateway, validator=validator, audit_logger=audit)


@pytest.fixture
def unreachable_gateway(store):
    http = MagicMock(spec=requests.Session)
    http.request.side_effect = requests.ConnectionError("connection refused")
    session = SessionStore(store)
    return RemoteFinanceGateway(ApiClient("http://api.test/api", session, http=http), session)


class TestAccountFlow:
    """Tests for sign-in and the account pages."""

    @pytest.mark.asyncio
    async def test_register_and_login_are_audited(self, local_gateway, audit):
        """Test both success paths leave an audit trail."""
        flow = AccountFlow(local_gateway, audit_logger=audit)

        registered = await flow.register("Asha", "asha@nexora.dev", "secret", "Founder")
        await flow.logout()
        logged_in = await flow.login("asha@nexora.dev", "secret")

        assert registered.ok and logged_in.ok
        assert (await flow.current_account()).email == "asha@nexora.dev"
        assert event_types(audit) == [
            AuditEventType.ACCOUNT_REGISTERED,
            AuditEventType.LOGGED_OUT,
            AuditEventType.LOGIN_SUCCEEDED,
        ]

    @pytest.mark.asyncio
    async def test_failures_are_audited_not_raised(self, local_gateway, audit):
        """Test duplicate email and wrong password come back as results."""
        flow = AccountFlow(local_gateway, audit_logger=audit)
        await flow.register("Asha", "asha@nexora.dev", "secret")

        duplicate = await flow.register("Other", "asha@nexora.dev", "x")
        wrong = await flow.login("asha@nexora.dev", "nope")

        assert duplicate.reason == AuthFailure.DUPLICATE_EMAIL
        assert wrong.reason == AuthFailure.INVALID_CREDENTIALS
        assert event_types(audit)[-2:] == [
            AuditEventType.REGISTRATION_FAILED,
            AuditEventType.LOGIN_FAILED,
        ]

    @pytest.mark.asyncio
    async def test_logout_records_previous_account(self, local_gateway, audit):
        """Test the sign-out event names who signed out."""
        flow = AccountFlow(local_gateway, audit_logger=audit)
        result = await flow.register("Asha", "asha@nexora.dev", "secret")

        await flow.logout()

        assert audit.recent_events[-1].actor_id == result.account.id
        assert await flow.current_account() is None

    @pytest.mark.asyncio
    async def test_new_card_belongs_to_viewer(self, local_gateway, audit, member):
        """Test cards are attributed to whoever added them."""
        flow = AccountFlow(local_gateway, audit_logger=audit)

        bank = await flow.save_bank_account(member, {
            "bankName": "HDFC",
            "holderName": "Asha",
            "cardNumber": "**** 4242",
            "expiryDate": "12/27",
        })

        assert bank.user_id == member.id
        assert await flow.bank_accounts() == [bank]
        assert audit.recent_events[-1].event_type == AuditEventType.BANK_ACCOUNT_SAVED

        await flow.delete_bank_account(bank.id)
        assert await flow.bank_accounts() == []
        assert audit.recent_events[-1].event_type == AuditEventType.BANK_ACCOUNT_DELETED

    @pytest.mark.asyncio
    async def test_updating_missing_card_is_not_audited(self, local_gateway, audit, member):
        """Test that a None result means nothing happened."""
        flow = AccountFlow(local_gateway, audit_logger=audit)

        bank = await flow.save_bank_account(member, {
            "bankName": "HDFC",
            "holderName": "Asha",
            "cardNumber": "**** 4242",
            "expiryDate": "12/27",
        }, bank_id="b-404")

        assert bank is None
        assert list(audit.recent_events) == []

    @pytest.mark.asyncio
    async def test_unreachable_api_shows_empty_lists(self, unreachable_gateway):
        """Test the roster and card pages degrade to empty."""
        flow = AccountFlow(unreachable_gateway)

        assert await flow.team_members() == []
        assert await flow.bank_accounts() == []

    @pytest.mark.asyncio
    async def test_unreachable_api_login_fails_softly(self, unreachable_gateway):
        """Test sign-in against a dead API."""
        result = await AccountFlow(unreachable_gateway).login("asha@nexora.dev", "secret")

        assert not result.ok
        assert result.reason == AuthFailure.TRANSPORT


class TestTransactionFlowSave:
    """Tests for TransactionFlow.save."""

    @pytest.mark.asyncio
    async def test_save_stamps_viewer(self, transactions, member, audit):
        """Test the viewer overrides any owner fields in the form."""
        saved, result = await transactions.save(
            member,
            expense_form(userId="someone-else", userName="Impostor"),
        )

        assert result.is_valid
        assert saved.user_id == member.id
        assert saved.user_name == member.name
        assert saved.amount == Decimal("120")
        assert audit.recent_events[-1].event_type == AuditEventType.TRANSACTION_CREATED

    @pytest.mark.asyncio
    async def test_invalid_form_writes_nothing(self, transactions, member, store, audit):
        """Test validation failures return the issues and skip the write."""
        saved, result = await transactions.save(member, expense_form(amount=-1))

        assert saved is None
        assert not result.is_valid
        assert store.get(TRANSACTIONS_KEY) is None
        event = audit.recent_events[-1]
        assert event.event_type == AuditEventType.VALIDATION_FAILED
        assert event.details["issues"][0]["field"] == "amount"

    @pytest.mark.asyncio
    async def test_bank_name_resolved_from_card(self, transactions, local_gateway, member):
        """Test the stored card name wins over whatever the form sent."""
        bank = await local_gateway.upsert_bank_account({
            "bankName": "HDFC",
            "holderName": "Asha",
            "cardNumber": "**** 4242",
            "expiryDate": "12/27",
        })

        saved, _ = await transactions.save(
            member,
            expense_form(bankAccountId=bank.id, bankName="Typed by hand"),
        )

        assert saved.bank_account_id == bank.id
        assert saved.bank_name == "HDFC"

    @pytest.mark.asyncio
    async def test_unknown_card_saves_with_warning(self, transactions, member):
        """Test a dangling card reference doesn't block the save."""
        saved, result = await transactions.save(member, expense_form(bankAccountId="b-404"))

        assert saved is not None
        assert saved.bank_name is None
        assert result.warnings == ["The selected bank card no longer exists"]

    @pytest.mark.asyncio
    async def test_update_existing(self, transactions, member, audit):
        """Test that passing an id edits in place."""
        created, _ = await transactions.save(member, expense_form())

        updated, result = await transactions.save(
            member,
            expense_form(amount=80, category="Travel"),
            transaction_id=created.id,
        )

        assert result.is_valid
        assert updated.id == created.id
        assert updated.category == "Travel"
        assert updated.amount == Decimal("80")
        assert audit.recent_events[-1].event_type == AuditEventType.TRANSACTION_UPDATED

        listed = await transactions.list_transactions()
        assert [t.id for t in listed] == [created.id]

    @pytest.mark.asyncio
    async def test_update_missing_id(self, transactions, member):
        """Test editing a transaction someone else deleted."""
        saved, result = await transactions.save(member, expense_form(), transaction_id="gone")

        assert saved is None
        assert result.is_valid

    @pytest.mark.asyncio
    async def test_unreachable_api_save_raises(self, unreachable_gateway, validator, member, audit):
        """Test write failures surface once and are audited."""
        flow = TransactionFlow(unreachable_gateway, validator=validator, audit_logger=audit)

        with pytest.raises(TransportError):
            await flow.save(member, expense_form())

        assert audit.recent_events[-1].event_type == AuditEventType.SYSTEM_ERROR


class TestTransactionFlowBulk:
    """Tests for delete, bulk edits, listing and export."""

    @pytest_asyncio.fixture
    async def seeded(self, transactions, member):
        ids = []
        for form in (
            expense_form(category="Food", amount=10),
            expense_form(category="Rent", amount=20, description="Office rent"),
            expense_form(type="income", category="Sales", amount=300),
        ):
            saved, _ = await transactions.save(member, form)
            ids.append(saved.id)
        return ids

    @pytest.mark.asyncio
    async def test_delete(self, transactions, seeded, member, audit):
        """Test single delete."""
        await transactions.delete(member, seeded[0])

        remaining = await transactions.list_transactions()
        assert seeded[0] not in [t.id for t in remaining]
        assert audit.recent_events[-1].event_type == AuditEventType.TRANSACTION_DELETED

    @pytest.mark.asyncio
    async def test_bulk_delete(self, transactions, seeded, member, audit):
        """Test several at once; unknown ids are ignored."""
        await transactions.bulk_delete(member, seeded[:2] + ["missing"])

        remaining = await transactions.list_transactions()
        assert [t.id for t in remaining] == [seeded[2]]
        assert audit.recent_events[-1].event_type == AuditEventType.TRANSACTIONS_BULK_DELETED

    @pytest.mark.asyncio
    async def test_bulk_set_category(self, transactions, seeded, member, audit):
        """Test the batch category move."""
        await transactions.bulk_set_category(member, seeded[:2], "  Operations ")

        listed = {t.id: t.category for t in await transactions.list_transactions()}
        assert listed[seeded[0]] == "Operations"
        assert listed[seeded[1]] == "Operations"
        assert listed[seeded[2]] == "Sales"
        assert audit.recent_events[-1].details["category"] == "Operations"

    @pytest.mark.asyncio
    async def test_bulk_set_blank_category_is_rejected(self, transactions, seeded, member, audit):
        """Test that a blank category raises and is audited as an error."""
        with pytest.raises(InvalidRecordError):
            await transactions.bulk_set_category(member, seeded, "   ")

        assert audit.recent_events[-1].event_type == AuditEventType.SYSTEM_ERROR
        assert audit.recent_events[-1].details["operation"] == "bulk_set_category"

    @pytest.mark.asyncio
    async def test_list_with_filter(self, transactions, seeded):
        """Test the page filters apply."""
        incomes = await transactions.list_transactions(
            criteria=TransactionFilter(type=TypeFilter.INCOME),
        )
        rent = await transactions.list_transactions(
            criteria=TransactionFilter(search="office"),
        )

        assert [t.id for t in incomes] == [seeded[2]]
        assert [t.id for t in rent] == [seeded[1]]

    @pytest.mark.asyncio
    async def test_export_into_directory(self, transactions, seeded, member, tmp_path, audit):
        """Test a directory destination gets the dated default name."""
        path, count = await transactions.export(
            member,
            tmp_path,
            criteria=TransactionFilter(type=TypeFilter.EXPENSE),
            today=date(2024, 5, 15),
        )

        assert path == tmp_path / "NEXORACREW_Data_2024-05-15.csv"
        assert count == 2
        with path.open(newline="", encoding="utf-8") as f:
            rows = list(csv.reader(f))
        assert len(rows) == 3
        assert audit.recent_events[-1].details["row_count"] == 2

    @pytest.mark.asyncio
    async def test_export_prefix(self, local_gateway, validator, seeded, member, tmp_path):
        """Test the configured file name prefix."""
        flow = TransactionFlow(local_gateway, validator=validator, export_prefix="Nexora_Q2")

        path, count = await flow.export(member, tmp_path, today=date(2024, 6, 30))

        assert path.name == "Nexora_Q2_2024-06-30.csv"
        assert count == 3


class TestDashboardFlow:
    """Tests for the dashboard flow."""

    @pytest.mark.asyncio
    async def test_refresh(self, local_gateway, transactions, member, audit):
        """Test a pull then aggregate."""
        await transactions.save(member, expense_form(amount=100))
        await transactions.save(member, expense_form(type="income", category="Sales", amount=500))

        flow = DashboardFlow(local_gateway, NullChangeNotifier(), audit_logger=audit)
        dashboard = await flow.refresh(member, as_of=FIXED_NOW)

        assert dashboard.stats.balance == Decimal("400")
        assert dashboard.stats.today_expense == Decimal("100")
        assert dashboard.contributors[0].name == "Asha"
        assert audit.recent_events[-1].event_type == AuditEventType.DASHBOARD_REFRESHED

    @pytest.mark.asyncio
    async def test_refresh_uses_clock(self, local_gateway, transactions, member):
        """Test the injected clock decides what "today" is."""
        await transactions.save(member, expense_form(amount=100))

        flow = DashboardFlow(local_gateway, NullChangeNotifier(), clock=lambda: FIXED_NOW)
        dashboard = await flow.refresh()

        assert dashboard.as_of == FIXED_NOW
        assert dashboard.stats.today_expense == Decimal("100")

    @pytest.mark.asyncio
    async def test_default_clock_is_local_time(self, local_gateway):
        """Test a transaction dated today on the local calendar counts as today."""
        await local_gateway.create_transaction(expense_form(date=date.today().isoformat(), amount=30))

        dashboard = await DashboardFlow(local_gateway, NullChangeNotifier()).refresh()

        assert dashboard.as_of.tzinfo is not None
        assert dashboard.as_of.date() == date.today()
        assert dashboard.stats.today_expense == Decimal("30")

    @pytest.mark.asyncio
    async def test_watch_publishes_fresh_dashboard(self, local_gateway, transactions, member):
        """Test each change signal re-pulls and hands over a new dashboard."""
        notifier = CapturingNotifier()
        flow = DashboardFlow(local_gateway, notifier, clock=lambda: FIXED_NOW)
        published = []

        flow.watch(member, published.append)
        [callback] = notifier.callbacks

        await callback()
        await transactions.save(member, expense_form(amount=75))
        await callback()

        assert [d.stats.total_expense for d in published] == [Decimal("0"), Decimal("75")]

    @pytest.mark.asyncio
    async def test_watch_awaits_async_handler(self, local_gateway):
        """Test coroutine handlers are awaited."""
        notifier = CapturingNotifier()
        flow = DashboardFlow(local_gateway, notifier, clock=lambda: FIXED_NOW)
        published = []

        async def on_update(dashboard):
            published.append(dashboard)

        flow.watch(None, on_update)
        await notifier.callbacks[0]()

        assert len(published) == 1


class TestCreateAppComponents:
    """Tests for the component factory."""

    @pytest.mark.asyncio
    async def test_demo_mode_end_to_end(self):
        """Test register, save and refresh through the wired components."""
        gateway, accounts, dashboard, transactions = create_app_components(store=InMemoryStore())

        assert isinstance(gateway, LocalFinanceGateway)

        result = await accounts.register("Asha", "asha@nexora.dev", "secret")
        saved, validation = await transactions.save(
            result.account,
            expense_form(date=FIXED_NOW.date().isoformat(), amount=42),
        )
        snapshot = await dashboard.refresh(result.account, as_of=FIXED_NOW)

        assert validation.is_valid
        assert saved.user_name == "Asha"
        assert snapshot.stats.total_expense == Decimal("42")
        assert len(snapshot.categories) == 1

    def test_notifier_follows_gateway_mode(self, monkeypatch):
        """Test a remote gateway gets a polling notifier and demo gets none."""
        _, _, demo_dashboard, _ = create_app_components(store=InMemoryStore())
        assert isinstance(demo_dashboard.notifier, NullChangeNotifier)

        monkeypatch.setenv("NEXORA_API_BASE_URL", "http://api.test/api")
        get_settings.cache_clear()
        gateway, _, dashboard, _ = create_app_components(store=InMemoryStore())

        assert isinstance(gateway, RemoteFinanceGateway)
        assert isinstance(dashboard.notifier, PollingChangeNotifier)
