"""
Audit Models for Kasa

Every significant action in the system is logged for audit purposes.
This provides:
1. Traceability of who changed which record
2. Debugging information when the backend rejects an operation
3. Evidence of authorization denials and rollbacks

DESIGN DECISION: Audit events are emitted through structured logging.
The backend's own tables stay exactly as the application uses them.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Auth
    SIGN_IN_SUCCEEDED = "sign_in_succeeded"
    SIGN_IN_FAILED = "sign_in_failed"
    SIGNED_OUT = "signed_out"
    PASSWORD_RESET_REQUESTED = "password_reset_requested"
    PASSWORD_UPDATED = "password_updated"
    AUTH_CALLBACK_FAILED = "auth_callback_failed"
    AUTHORIZATION_DENIED = "authorization_denied"

    # Transactions
    TRANSACTION_CREATED = "transaction_created"
    TRANSACTION_UPDATED = "transaction_updated"
    TRANSACTION_DELETED = "transaction_deleted"
    RECEIPT_UPLOADED = "receipt_uploaded"
    TRANSACTIONS_EXPORTED = "transactions_exported"

    # Administration
    USER_CREATED = "user_created"
    USER_UPDATED = "user_updated"
    USER_DELETED = "user_deleted"
    USER_CREATION_ROLLED_BACK = "user_creation_rolled_back"
    REGION_CREATED = "region_created"
    REGION_DELETED = "region_deleted"

    # Notifications
    NOTIFICATION_SENT = "notification_sent"
    NOTIFICATION_DEACTIVATED = "notification_deactivated"
    NOTIFICATION_DISMISSED = "notification_dismissed"

    # System events
    SYSTEM_ERROR = "system_error"
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    Every significant action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Who did it, and to what
    actor_id: Optional[str] = Field(
        default=None,
        description="Profile id of the user who triggered the event"
    )
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'transaction', 'region', 'user')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., upload + insert)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=True,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "actor_id": self.actor_id,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
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
        event = AuditEventBuilder.transaction_created(tx_id, actor_id, amount)
        event = AuditEventBuilder.authorization_denied(actor_id, "create_user")
    """

    @staticmethod
    def sign_in(email: str, succeeded: bool, error_message: Optional[str] = None) -> AuditEvent:
        return AuditEvent(
            event_type=(
                AuditEventType.SIGN_IN_SUCCEEDED if succeeded
                else AuditEventType.SIGN_IN_FAILED
            ),
            severity=AuditSeverity.INFO if succeeded else AuditSeverity.WARNING,
            entity_type="auth",
            description=f"Sign-in {'succeeded' if succeeded else 'failed'} for {email}",
            details={"email": email},
            error_message=error_message,
        )

    @staticmethod
    def authorization_denied(actor_id: Optional[str], action: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.AUTHORIZATION_DENIED,
            severity=AuditSeverity.WARNING,
            actor_id=actor_id,
            description=f"Authorization denied for action: {action}",
            details={"action": action},
        )

    @staticmethod
    def transaction_created(
        transaction_id: Optional[str],
        actor_id: str,
        amount: str,
        transaction_type: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_CREATED,
            actor_id=actor_id,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=f"Transaction recorded: {transaction_type} {amount}",
            details={"amount": amount, "type": transaction_type},
        )

    @staticmethod
    def entity_changed(
        event_type: AuditEventType,
        entity_type: str,
        entity_id: Optional[str],
        actor_id: Optional[str],
        description: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=event_type,
            actor_id=actor_id,
            entity_type=entity_type,
            entity_id=entity_id,
            correlation_id=correlation_id,
            description=description,
            details=details or {},
        )

    @staticmethod
    def receipt_uploaded(
        path: str,
        actor_id: str,
        original_size: int,
        stored_size: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECEIPT_UPLOADED,
            actor_id=actor_id,
            entity_type="receipt",
            entity_id=path,
            correlation_id=correlation_id,
            description=f"Receipt image uploaded: {path}",
            details={
                "original_size_bytes": original_size,
                "stored_size_bytes": stored_size,
            },
        )

    @staticmethod
    def user_creation_rolled_back(
        user_id: str,
        actor_id: Optional[str],
        reason: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.USER_CREATION_ROLLED_BACK,
            severity=AuditSeverity.WARNING,
            actor_id=actor_id,
            entity_type="user",
            entity_id=user_id,
            description="Auth user deleted after profile creation failed",
            error_message=reason,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            correlation_id=correlation_id,
            description=f"System error: {error_type}",
            details=details or {},
            error_message=error_message,
            is_user_action=False,
        )

    @staticmethod
    def external_service_error(
        service: str,
        operation: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            entity_type="service",
            correlation_id=correlation_id,
            description=f"External service error: {service} ({operation})",
            details={"service": service, "operation": operation},
            error_message=error_message,
            is_user_action=False,
        )
