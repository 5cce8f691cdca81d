"""
Data Models Package

This package contains all Pydantic models used in Kasa.
All data flowing between the backend and the UI must conform to these schemas.
"""

from kasa.models.finance import (
    NO_INVOICE,
    ROLE_CAPABILITIES,
    ActionResult,
    AudienceMember,
    AuthUser,
    InvoiceType,
    Notification,
    NotificationAudience,
    NotificationStatus,
    PaymentMethod,
    Profile,
    Region,
    Role,
    RoleCapabilities,
    SortField,
    SortOrder,
    Transaction,
    TransactionChanges,
    TransactionDraft,
    TransactionFilter,
    TransactionType,
    ValidationIssue,
    ValidationResult,
)
from kasa.models.stats import (
    AggregationResult,
    FinanceSummary,
    RegionalBreakdown,
    RegionStats,
)
from kasa.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Finance models
    "NO_INVOICE",
    "ROLE_CAPABILITIES",
    "ActionResult",
    "AudienceMember",
    "AuthUser",
    "InvoiceType",
    "Notification",
    "NotificationAudience",
    "NotificationStatus",
    "PaymentMethod",
    "Profile",
    "Region",
    "Role",
    "RoleCapabilities",
    "SortField",
    "SortOrder",
    "Transaction",
    "TransactionChanges",
    "TransactionDraft",
    "TransactionFilter",
    "TransactionType",
    "ValidationIssue",
    "ValidationResult",
    # Stats models
    "AggregationResult",
    "FinanceSummary",
    "RegionalBreakdown",
    "RegionStats",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
