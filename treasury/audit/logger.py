"""
Audit Logger

DESIGN DECISION: Every change to a ledger is logged.
This provides:
1. Traceability of every balance change
2. Debugging capability when the AI service misbehaves
3. A short activity feed for the UI

The audit logger:
- Is synchronous, because ledger commands are synchronous
- Keeps a bounded history of recent events for the UI
- Supports correlation IDs to trace related events
"""

from collections import deque
from typing import Optional
from uuid import UUID, uuid4

import structlog

from treasury.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from treasury.models.finance import Account, Transaction


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


DEFAULT_HISTORY_SIZE = 200


class AuditLogger:
    """
    Central audit logging service.

    Writes every event as a structured log line and keeps the most
    recent ones in memory for the activity feed.
    """

    def __init__(
        self,
        user_id: Optional[str] = None,
        history_size: int = DEFAULT_HISTORY_SIZE,
    ):
        """
        Initialize audit logger.

        Args:
            user_id: Default user id stamped on events that have none
            history_size: How many recent events to keep in memory
        """
        self._user_id = user_id
        self._recent: deque[AuditEvent] = deque(maxlen=history_size)
        self._logger = structlog.get_logger("treasury.audit")

    @property
    def recent_events(self) -> list[AuditEvent]:
        """Recent events, newest first."""
        return list(reversed(self._recent))

    def bind_user(self, user_id: Optional[str]) -> None:
        self._user_id = user_id

    def log(self, event: AuditEvent) -> None:
        """Record an audit event."""
        if event.user_id is None and self._user_id is not None:
            event = event.model_copy(update={"user_id": self._user_id})

        self._recent.append(event)

        log_dict = event.to_log_dict()
        if event.severity == AuditSeverity.ERROR:
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        elif event.severity == AuditSeverity.DEBUG:
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

    def log_transaction_created(
        self,
        transaction: Transaction,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.transaction_created(
            transaction_id=transaction.id,
            transaction_type=transaction.type.value,
            amount=str(transaction.amount),
            currency=transaction.currency.value,
            status=transaction.status.value,
            correlation_id=correlation_id,
        )
        self.log(event)

    def log_transaction_received(self, transaction: Transaction) -> None:
        event = AuditEventBuilder.transaction_received(
            transaction_id=transaction.id,
            amount=str(transaction.amount),
            currency=transaction.currency.value,
        )
        self.log(event)

    def log_receive_ignored(self, transaction_id: str, reason: str) -> None:
        """Log a mark-as-received call that changed nothing."""
        self.log(AuditEventBuilder.receive_ignored(transaction_id, reason))

    def log_account_created(self, account: Account) -> None:
        event = AuditEventBuilder.account_created(
            account_id=account.id,
            name=account.name,
            account_type=account.type.value,
            currency=account.currency.value,
        )
        self.log(event)

    def log_holdings_updated(
        self,
        account: Account,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.holdings_updated(
            account_id=account.id,
            holding_count=len(account.holdings),
            balance=str(account.balance),
            correlation_id=correlation_id,
        )
        self.log(event)

    def log_recurring_rule_added(self, rule_id: str, name: str) -> None:
        self.log(AuditEventBuilder.recurring_rule_added(rule_id, name))

    def log_recurring_payment_recorded(
        self,
        rule_id: str,
        transaction_id: str,
        name: str,
    ) -> None:
        event = AuditEventBuilder.recurring_payment_recorded(
            rule_id=rule_id,
            transaction_id=transaction_id,
            name=name,
        )
        self.log(event)

    def log_base_currency_changed(self, old: str, new: str) -> None:
        self.log(AuditEventBuilder.base_currency_changed(old, new))

    def log_advice_generated(
        self,
        generated: bool,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.advice_generated(
            generated=generated,
            correlation_id=correlation_id,
        )
        self.log(event)

    def log_chat_processed(
        self,
        account_id: str,
        holdings_updated: bool,
        had_image: bool,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.chat_processed(
            account_id=account_id,
            holdings_updated=holdings_updated,
            had_image=had_image,
            correlation_id=correlation_id,
        )
        self.log(event)

    def log_state_saved(
        self,
        user_id: str,
        transaction_count: int,
        account_count: int,
    ) -> None:
        event = AuditEventBuilder.state_saved(
            user_id=user_id,
            transaction_count=transaction_count,
            account_count=account_count,
        )
        self.log(event)

    def log_save_failed(self, user_id: str, error_message: str) -> None:
        self.log(AuditEventBuilder.save_failed(user_id, error_message))

    def log_user_logged_in(self, user_id: str, username: str) -> None:
        self.log(AuditEventBuilder.user_logged_in(user_id, username))

    def log_user_logged_out(self, user_id: str) -> None:
        self.log(AuditEventBuilder.user_logged_out(user_id))

    def log_configuration_error(
        self,
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.configuration_error(
            service=service,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        self.log(event)

    def log_external_service_error(
        self,
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log external service error."""
        event = AuditEventBuilder.external_service_error(
            service=service,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        self.log(event)


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a user action that spans several steps
    (e.g., an investment chat turn). Pass it through all subsequent
    operations.
    """
    return uuid4()
