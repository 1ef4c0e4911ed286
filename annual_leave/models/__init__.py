from sqlmodel import SQLModel

from annual_leave.models.audit import AuditLog
from annual_leave.models.balance import AnnualLeaveBalance
from annual_leave.models.base import TimestampMixin, UpdatedAtMixin, UUIDBase
from annual_leave.models.enums import (
    GRANT_TYPES,
    AuditAction,
    AuditEntityType,
    ReversalPath,
    ReversalStatus,
    TenurePhase,
    TransactionStatus,
    TransactionType,
)
from annual_leave.models.ledger import LeaveTransaction
from annual_leave.models.policy import AnnualLeavePolicy

__all__ = [
    "GRANT_TYPES",
    "AnnualLeaveBalance",
    "AnnualLeavePolicy",
    "AuditAction",
    "AuditEntityType",
    "AuditLog",
    "LeaveTransaction",
    "ReversalPath",
    "ReversalStatus",
    "SQLModel",
    "TenurePhase",
    "TimestampMixin",
    "TransactionStatus",
    "TransactionType",
    "UUIDBase",
    "UpdatedAtMixin",
]
