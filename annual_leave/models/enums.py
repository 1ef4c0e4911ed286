from __future__ import annotations

import enum


class TransactionType(enum.StrEnum):
    """Kind of leave transaction recorded in the ledger.

    Values match the strings stored by earlier releases, so they stay lowercase.
    """

    GRANT = "grant"
    MANUAL_GRANT = "manual_grant"
    USE = "use"
    USE_CANCEL = "use_cancel"
    EXPIRE = "expire"
    ADJUST = "adjust"
    GRANT_CANCEL = "grant_cancel"


GRANT_TYPES = (TransactionType.GRANT.value, TransactionType.MANUAL_GRANT.value)


class TransactionStatus(enum.StrEnum):
    """Display-level marker; cancelled rows are ignored by balance replay."""

    ACTIVE = "active"
    CANCELLED = "cancelled"


class TenurePhase(enum.StrEnum):
    """Which grant rules apply to a member on a given date."""

    NOT_STARTED = "not_started"
    FIRST_YEAR = "first_year"
    ANNUAL = "annual"


class ReversalStatus(enum.StrEnum):
    """Outcome of reversing a leave request's usage."""

    REVERSED = "reversed"
    ALREADY_REVERSED = "already_reversed"
    AMBIGUOUS = "ambiguous"


class ReversalPath(enum.StrEnum):
    """How the usage rows of a leave request were located."""

    REQUEST_LINK = "request_link"
    LEGACY_REASON_MATCH = "legacy_reason_match"
    LEGACY_REFERENCE = "legacy_reference"


class AuditEntityType(enum.StrEnum):
    """Entity type recorded in the audit log."""

    POLICY = "POLICY"
    TRANSACTION = "TRANSACTION"
    LEAVE_REQUEST = "LEAVE_REQUEST"


class AuditAction(enum.StrEnum):
    """Action recorded in the audit log."""

    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    ACTIVATE = "ACTIVATE"
    CANCEL = "CANCEL"
    REVERSE = "REVERSE"
