"""
Audit Models for Little Treasury

Every change to a user's ledger and every call to the AI service is
recorded as an audit event. This provides:
1. A trace of how a balance got to where it is
2. Debugging information when the AI service misbehaves
3. A short activity history the UI can show

DESIGN DECISION: Audit events are append-only. We never modify them.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from treasury.models.finance import utc_now


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Ledger changes
    TRANSACTION_CREATED = "transaction_created"
    TRANSACTION_RECEIVED = "transaction_received"
    RECEIVE_IGNORED = "receive_ignored"
    ACCOUNT_CREATED = "account_created"
    HOLDINGS_UPDATED = "holdings_updated"
    RECURRING_RULE_ADDED = "recurring_rule_added"
    RECURRING_PAYMENT_RECORDED = "recurring_payment_recorded"
    BASE_CURRENCY_CHANGED = "base_currency_changed"

    # AI gateway
    ADVICE_GENERATED = "advice_generated"
    CHAT_PROCESSED = "chat_processed"

    # Persistence
    STATE_SAVED = "state_saved"
    SAVE_FAILED = "save_failed"

    # Session
    USER_LOGGED_IN = "user_logged_in"
    USER_LOGGED_OUT = "user_logged_out"

    # System events
    CONFIGURATION_ERROR = "configuration_error"
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class AuditEvent(BaseModel):
    """A single audit event."""

    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=utc_now,
        description="When the event occurred (UTC)"
    )

    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # What entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'transaction', 'account', 'advice')"
    )
    entity_id: Optional[str] = None

    user_id: Optional[str] = None
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="Ties together the events of one user action"
    )

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)

    error_message: Optional[str] = None

    is_user_action: bool = False

    def to_log_dict(self) -> dict:
        """Convert to a dictionary suitable for structured logging."""
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "user_id": self.user_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.transaction_created(tx, user_id)
        event = AuditEventBuilder.external_service_error("gemini", str(e))
    """

    @staticmethod
    def transaction_created(
        transaction_id: str,
        transaction_type: str,
        amount: str,
        currency: str,
        status: str,
        user_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_CREATED,
            entity_type="transaction",
            entity_id=transaction_id,
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"{transaction_type.title()} recorded: {amount} {currency} ({status.lower()})",
            details={
                "type": transaction_type,
                "amount": amount,
                "currency": currency,
                "status": status,
            },
            is_user_action=True,
        )

    @staticmethod
    def transaction_received(
        transaction_id: str,
        amount: str,
        currency: str,
        user_id: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_RECEIVED,
            entity_type="transaction",
            entity_id=transaction_id,
            user_id=user_id,
            description=f"Pending transaction completed: {amount} {currency}",
            details={"amount": amount, "currency": currency},
            is_user_action=True,
        )

    @staticmethod
    def receive_ignored(
        transaction_id: str,
        reason: str,
        user_id: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECEIVE_IGNORED,
            severity=AuditSeverity.WARNING,
            entity_type="transaction",
            entity_id=transaction_id,
            user_id=user_id,
            description="Mark-as-received ignored",
            details={"reason": reason},
            is_user_action=True,
        )

    @staticmethod
    def account_created(
        account_id: str,
        name: str,
        account_type: str,
        currency: str,
        user_id: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACCOUNT_CREATED,
            entity_type="account",
            entity_id=account_id,
            user_id=user_id,
            description=f"Account created: {name} ({currency} {account_type.lower()})",
            details={"type": account_type, "currency": currency},
            is_user_action=True,
        )

    @staticmethod
    def holdings_updated(
        account_id: str,
        holding_count: int,
        balance: str,
        user_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.HOLDINGS_UPDATED,
            entity_type="account",
            entity_id=account_id,
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"Holdings replaced: {holding_count} positions, balance {balance}",
            details={"holding_count": holding_count, "balance": balance},
        )

    @staticmethod
    def recurring_rule_added(
        rule_id: str,
        name: str,
        user_id: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECURRING_RULE_ADDED,
            entity_type="recurring_rule",
            entity_id=rule_id,
            user_id=user_id,
            description=f"Recurring payment added: {name}",
            is_user_action=True,
        )

    @staticmethod
    def recurring_payment_recorded(
        rule_id: str,
        transaction_id: str,
        name: str,
        user_id: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECURRING_PAYMENT_RECORDED,
            entity_type="recurring_rule",
            entity_id=rule_id,
            user_id=user_id,
            description=f"Recurring payment recorded: {name}",
            details={"transaction_id": transaction_id},
            is_user_action=True,
        )

    @staticmethod
    def base_currency_changed(
        old: str,
        new: str,
        user_id: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BASE_CURRENCY_CHANGED,
            user_id=user_id,
            description=f"Base currency changed: {old} -> {new}",
            details={"old": old, "new": new},
            is_user_action=True,
        )

    @staticmethod
    def advice_generated(
        generated: bool,
        user_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ADVICE_GENERATED,
            severity=AuditSeverity.INFO if generated else AuditSeverity.WARNING,
            entity_type="advice",
            user_id=user_id,
            correlation_id=correlation_id,
            description="Financial advice generated" if generated else "Financial advice unavailable",
            details={"generated": generated},
        )

    @staticmethod
    def chat_processed(
        account_id: str,
        holdings_updated: bool,
        had_image: bool,
        user_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CHAT_PROCESSED,
            entity_type="account",
            entity_id=account_id,
            user_id=user_id,
            correlation_id=correlation_id,
            description="Investment chat message processed",
            details={
                "holdings_updated": holdings_updated,
                "had_image": had_image,
            },
            is_user_action=True,
        )

    @staticmethod
    def state_saved(
        user_id: str,
        transaction_count: int,
        account_count: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STATE_SAVED,
            severity=AuditSeverity.DEBUG,
            user_id=user_id,
            description="Ledger saved",
            details={
                "transaction_count": transaction_count,
                "account_count": account_count,
            },
        )

    @staticmethod
    def save_failed(
        user_id: str,
        error_message: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SAVE_FAILED,
            severity=AuditSeverity.ERROR,
            user_id=user_id,
            description="Ledger save failed",
            error_message=error_message,
        )

    @staticmethod
    def user_logged_in(user_id: str, username: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.USER_LOGGED_IN,
            entity_type="user",
            entity_id=user_id,
            user_id=user_id,
            description=f"User logged in: {username}",
            is_user_action=True,
        )

    @staticmethod
    def user_logged_out(user_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.USER_LOGGED_OUT,
            entity_type="user",
            entity_id=user_id,
            user_id=user_id,
            description="User logged out",
            is_user_action=True,
        )

    @staticmethod
    def configuration_error(
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CONFIGURATION_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"Configuration error: {service}",
            error_message=error_message,
            details={"service": service},
            correlation_id=correlation_id,
        )

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"External service error: {service}",
            error_message=error_message,
            details={"service": service},
            correlation_id=correlation_id,
        )
