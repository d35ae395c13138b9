"""Tests for the advice and chat flows and component wiring."""

from datetime import timedelta
from decimal import Decimal

import pytest

from treasury.agents import (
    ADVICE_ERROR_MESSAGE,
    CHAT_ERROR_MESSAGE,
    FinancialAdvisorAgent,
    InvestmentChatAgent,
)
from treasury.config import AppSettings, GeminiSettings
from treasury.models import AccountType, AuditEventType, Currency
from treasury.orchestrator import (
    AdviceFlow,
    ChatFlow,
    create_app_components,
    create_record_store,
)
from treasury.services.storage import InMemoryRecordStore, LocalFileRecordStore
from treasury.session import FinanceSession


class FakeResponse:
    def __init__(self, text):
        self.text = text


class FakeModel:
    def __init__(self, text="", error=None):
        self.text = text
        self.error = error

    async def generate_content_async(self, contents):
        if self.error:
            raise self.error
        return FakeResponse(self.text)


def _advice_flow(model):
    return AdviceFlow(FinancialAdvisorAgent(
        settings=GeminiSettings(api_key=None),
        model=model,
        app_settings=AppSettings(),
    ))


def _chat_flow(model):
    return ChatFlow(InvestmentChatAgent(
        settings=GeminiSettings(api_key=None),
        model=model,
        app_settings=AppSettings(),
    ))


@pytest.fixture
def session(user, state):
    return FinanceSession(user=user, state=state)


@pytest.fixture
def fund(session):
    return session.create_account(
        "Alipay Fund",
        AccountType.INVESTMENT,
        Currency.CNY,
        balance="5000",
    )


class TestAdviceFlow:
    """Tests for requesting advice."""

    async def test_success_records_timestamp(self, session, now):
        """Test that generated advice stamps last_advice_at."""
        result = await _advice_flow(FakeModel("Save more.")).request_advice(session, now=now)

        assert result.text == "Save more."
        assert session.state.last_advice_at == now
        assert not session.summary(now + timedelta(days=1)).advice_stale

        event = session.audit.recent_events[0]
        assert event.event_type == AuditEventType.ADVICE_GENERATED

    async def test_failure_keeps_timestamp(self, session, now):
        """Test that failed advice leaves the ledger alone."""
        before = session.state
        result = await _advice_flow(FakeModel(error=RuntimeError("down"))).request_advice(session, now=now)

        assert result.text == ADVICE_ERROR_MESSAGE
        assert session.state is before
        assert session.state.last_advice_at is None

    async def test_not_configured_keeps_timestamp(self, session, now):
        """Test the missing-key path through the flow."""
        await _advice_flow(None).request_advice(session, now=now)
        assert session.state.last_advice_at is None


class TestChatFlow:
    """Tests for investment chat turns."""

    async def test_holdings_replaced(self, session, fund, now):
        """Test that a full reply replaces holdings and the balance."""
        model = FakeModel(
            '{"response": "Updated", "holdings": ['
            '{"name": "China CSI 300", "amount": 5120, "dailyChange": 120},'
            '{"name": "Gold ETF", "amount": 10200}]}'
        )

        result = await _chat_flow(model).send_message(session, fund.id, "Here are today's numbers", now=now)

        account = session.state.get_account(fund.id)
        assert result.text == "Updated"
        assert account.balance == Decimal("15320")
        assert account.last_check_in == now
        assert [h.name for h in account.holdings] == ["China CSI 300", "Gold ETF"]

        event = session.audit.recent_events[0]
        assert event.event_type == AuditEventType.CHAT_PROCESSED

    async def test_null_holdings_keep_account(self, session, fund):
        """Test that commentary-only replies don't touch the account."""
        before = session.state.get_account(fund.id)
        model = FakeModel('{"response": "Markets are flat today.", "holdings": null}')

        result = await _chat_flow(model).send_message(session, fund.id, "How is the market?")

        assert result.text == "Markets are flat today."
        assert session.state.get_account(fund.id) is before

    async def test_bad_reply_keeps_account(self, session, fund):
        """Test that an unparseable reply changes nothing."""
        before = session.state
        result = await _chat_flow(FakeModel("{broken")).send_message(session, fund.id, "hi")

        assert result.text == CHAT_ERROR_MESSAGE
        assert session.state is before

    async def test_unknown_account(self, session):
        """Test that an unknown account raises KeyError."""
        with pytest.raises(KeyError):
            await _chat_flow(FakeModel("{}")).send_message(session, "missing", "hi")


class TestComponents:
    """Tests for component wiring."""

    def test_memory_backend(self):
        """Test the in-memory store selection."""
        assert isinstance(create_record_store("memory"), InMemoryRecordStore)

    def test_file_backend(self, tmp_path, monkeypatch):
        """Test the file store uses the configured directory."""
        monkeypatch.setenv("STORAGE_DATA_DIR", str(tmp_path))
        store = create_record_store("file")
        assert isinstance(store, LocalFileRecordStore)
        assert store.data_dir == tmp_path

    def test_unconfigured_sheets_fall_back(self, tmp_path, monkeypatch):
        """Test the fallback to local files without Sheets settings."""
        monkeypatch.setenv("STORAGE_DATA_DIR", str(tmp_path))
        monkeypatch.delenv("GOOGLE_SHEETS_CREDENTIALS_PATH", raising=False)
        monkeypatch.delenv("GOOGLE_SHEETS_SPREADSHEET_ID", raising=False)
        assert isinstance(create_record_store("google_sheets"), LocalFileRecordStore)

    async def test_login_and_open_session(self):
        """Test logging in and loading a first-run ledger."""
        components = create_app_components(store=InMemoryRecordStore())

        user = await components.auth.login("jane@example.com", "secret")
        session = await components.open_session(user)

        assert session.user.id == "jane_example_com"
        assert len(session.state.accounts) == 4
        assert session.audit is components.audit_logger
        assert components.audit_logger.recent_events[0].event_type == AuditEventType.USER_LOGGED_IN
