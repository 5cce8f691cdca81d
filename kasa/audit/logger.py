"""
Audit Logger

DESIGN DECISION: Every significant action in the system is logged as one
structured event. This provides:
1. Traceability of who changed which record
2. Debugging information when the backend rejects an operation
3. A record of authorization denials and compensating deletes

The audit logger:
- Is async so flows can await it in line with backend calls
- Never raises (a logging failure must not abort a user action)
- Supports correlation IDs to tie related events together
  (e.g. receipt upload + transaction insert)
"""

import logging
import sys
from typing import Optional
from uuid import UUID, uuid4

import structlog

from kasa.models.audit import AuditEvent, AuditEventBuilder, AuditEventType


def configure_logging(debug: bool = False) -> None:
    """
    Configure structlog with JSON output on top of stdlib logging.

    Called once by the orchestrator at startup.
    """
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=logging.DEBUG if debug else logging.INFO,
    )
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
            structlog.processors.JSONRenderer(ensure_ascii=False),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


class AuditLogger:
    """
    Central audit logging service.

    Events go to the structured application log only; the backend's
    tables are left exactly as the application uses them.
    """

    def __init__(self):
        self._logger = structlog.get_logger("kasa.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Returns True if the event was written.
        """
        log_dict = event.to_log_dict()
        try:
            if event.severity.value in ("error", "critical"):
                self._logger.error("audit_event", **log_dict)
            elif event.severity.value == "warning":
                self._logger.warning("audit_event", **log_dict)
            else:
                self._logger.info("audit_event", **log_dict)
        except Exception:
            return False
        return True

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    async def log_sign_in(
        self,
        email: str,
        succeeded: bool,
        error_message: Optional[str] = None,
    ) -> None:
        await self.log(AuditEventBuilder.sign_in(email, succeeded, error_message))

    async def log_auth_event(
        self,
        event_type: AuditEventType,
        description: str,
        actor_id: Optional[str] = None,
        error_message: Optional[str] = None,
    ) -> None:
        """Sign-out, password reset and callback events."""
        event = AuditEventBuilder.entity_changed(
            event_type=event_type,
            entity_type="auth",
            entity_id=actor_id,
            actor_id=actor_id,
            description=description,
        )
        if error_message:
            event.error_message = error_message
        await self.log(event)

    async def log_authorization_denied(self, actor_id: Optional[str], action: str) -> None:
        await self.log(AuditEventBuilder.authorization_denied(actor_id, action))

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    async def log_transaction_created(
        self,
        transaction_id: Optional[str],
        actor_id: str,
        amount: str,
        transaction_type: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.transaction_created(
            transaction_id=transaction_id,
            actor_id=actor_id,
            amount=amount,
            transaction_type=transaction_type,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_receipt_uploaded(
        self,
        path: str,
        actor_id: str,
        original_size: int,
        stored_size: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.receipt_uploaded(
            path=path,
            actor_id=actor_id,
            original_size=original_size,
            stored_size=stored_size,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_entity_changed(
        self,
        event_type: AuditEventType,
        entity_type: str,
        entity_id: Optional[str],
        actor_id: Optional[str],
        description: str,
        details: Optional[dict] = None,
    ) -> None:
        """Updates and deletes of transactions, users, regions and notifications."""
        event = AuditEventBuilder.entity_changed(
            event_type=event_type,
            entity_type=entity_type,
            entity_id=entity_id,
            actor_id=actor_id,
            description=description,
            details=details,
        )
        await self.log(event)

    async def log_export(self, actor_id: Optional[str], row_count: int, filename: str) -> None:
        event = AuditEventBuilder.entity_changed(
            event_type=AuditEventType.TRANSACTIONS_EXPORTED,
            entity_type="transaction",
            entity_id=None,
            actor_id=actor_id,
            description=f"Exported {row_count} transactions to {filename}",
            details={"row_count": row_count, "filename": filename},
        )
        await self.log(event)

    # ------------------------------------------------------------------
    # Administration
    # ------------------------------------------------------------------

    async def log_user_creation_rolled_back(
        self,
        user_id: str,
        actor_id: Optional[str],
        reason: str,
    ) -> None:
        await self.log(
            AuditEventBuilder.user_creation_rolled_back(user_id, actor_id, reason)
        )

    # ------------------------------------------------------------------
    # Errors
    # ------------------------------------------------------------------

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        event = AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_external_service_error(
        self,
        service: str,
        operation: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a failed backend call."""
        event = AuditEventBuilder.external_service_error(
            service=service,
            operation=operation,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a multi-step user action (e.g. adding a
    transaction with a receipt) and pass it to every event it produces.
    """
    return uuid4()
