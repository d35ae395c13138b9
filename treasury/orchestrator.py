"""
Main Orchestrator for Little Treasury

This module ties the components together and defines the two flows that
involve the AI service:
1. Advice (ledger snapshot → Gemini → Markdown advice)
2. Investment chat (holdings + message + screenshot → Gemini → new holdings)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Agents never touch the ledger; flows apply their results
- Holdings are replaced only when the reply parsed completely
- The advice timestamp only moves when advice was actually generated
- Every step is audited under one correlation id

It also builds the record store, auth service and flows from settings.
"""

from datetime import datetime
from typing import Optional, Union

import structlog

from treasury.agents import (
    AdviceResponse,
    ChatResponse,
    FinancialAdvisorAgent,
    InvestmentChatAgent,
)
from treasury.audit import AuditLogger, create_correlation_id
from treasury.config import get_settings
from treasury.models.finance import Language, User
from treasury.services.storage import (
    GoogleSheetsClient,
    GoogleSheetsRecordStore,
    InMemoryRecordStore,
    LocalFileRecordStore,
    RecordStore,
)
from treasury.session import AuthService, FinanceSession, open_session


logger = structlog.get_logger(__name__)


class AdviceFlow:
    """
    Orchestrates advice generation.

    Flow:
    1. Snapshot → the current ledger state of the session
    2. Generate → FinancialAdvisorAgent
    3. Record → stamp last_advice_at, only on success
    """

    def __init__(self, advisor_agent: Optional[FinancialAdvisorAgent] = None):
        self._agent = advisor_agent or FinancialAdvisorAgent()

    async def request_advice(
        self,
        session: FinanceSession,
        language: Union[Language, str] = Language.EN,
        now: Optional[datetime] = None,
    ) -> AdviceResponse:
        correlation_id = create_correlation_id()

        result = await self._agent.generate_advice(
            session.state,
            language=language,
            correlation_id=correlation_id,
        )
        session.audit.log_advice_generated(result.generated, correlation_id)

        if result.generated:
            session.record_advice(now)

        return result


class ChatFlow:
    """
    Orchestrates one investment chat turn for one account.

    Flow:
    1. Lookup → the account's current holdings
    2. Chat → InvestmentChatAgent (message + optional screenshot)
    3. Apply → replace holdings only if the reply carried a full list
    """

    def __init__(self, chat_agent: Optional[InvestmentChatAgent] = None):
        self._agent = chat_agent or InvestmentChatAgent()

    async def send_message(
        self,
        session: FinanceSession,
        account_id: str,
        message: str,
        image: Optional[Union[bytes, str]] = None,
        language: Union[Language, str] = Language.EN,
        now: Optional[datetime] = None,
    ) -> ChatResponse:
        """
        Raises:
            KeyError: If the account does not exist
        """
        account = session.state.get_account(account_id)
        if account is None:
            raise KeyError(f"Unknown account: {account_id}")

        correlation_id = create_correlation_id()

        result = await self._agent.process_chat(
            account.holdings,
            message,
            image=image,
            language=language,
            correlation_id=correlation_id,
        )

        holdings_updated = False
        if result.holdings is not None:
            session.update_holdings(
                account_id,
                result.holdings,
                now=now,
                correlation_id=correlation_id,
            )
            holdings_updated = True

        session.audit.log_chat_processed(
            account_id,
            holdings_updated=holdings_updated,
            had_image=bool(image),
            correlation_id=correlation_id,
        )
        return result


class AppComponents:
    """Everything the front end needs, built once per process."""

    def __init__(
        self,
        store: RecordStore,
        auth: AuthService,
        advice_flow: AdviceFlow,
        chat_flow: ChatFlow,
        audit_logger: AuditLogger,
    ):
        self.store = store
        self.auth = auth
        self.advice_flow = advice_flow
        self.chat_flow = chat_flow
        self.audit_logger = audit_logger

    async def open_session(self, user: User) -> FinanceSession:
        self.audit_logger.bind_user(user.id)
        return await open_session(self.store, user, audit_logger=self.audit_logger)


def create_record_store(backend: Optional[str] = None) -> RecordStore:
    """
    Build the configured record store.

    Falls back to local files when Google Sheets is selected but not
    configured.
    """
    storage_settings = get_settings().storage
    backend = backend or storage_settings.backend

    if backend == "memory":
        return InMemoryRecordStore()

    if backend == "google_sheets":
        try:
            return GoogleSheetsRecordStore(GoogleSheetsClient())
        except Exception as e:
            logger.warning(
                "google_sheets_not_configured",
                error=str(e),
                fallback="file",
            )

    return LocalFileRecordStore(storage_settings.data_path)


def create_app_components(
    backend: Optional[str] = None,
    store: Optional[RecordStore] = None,
) -> AppComponents:
    """
    Factory function to create all application components.

    Args:
        backend: Override StorageSettings.backend ('memory', 'file',
                 'google_sheets')
        store: Use this record store instead of building one

    Returns:
        AppComponents sharing one audit logger
    """
    audit_logger = AuditLogger()
    store = store or create_record_store(backend)

    return AppComponents(
        store=store,
        auth=AuthService(store, audit_logger=audit_logger),
        advice_flow=AdviceFlow(FinancialAdvisorAgent(audit_logger=audit_logger)),
        chat_flow=ChatFlow(InvestmentChatAgent(audit_logger=audit_logger)),
        audit_logger=audit_logger,
    )
