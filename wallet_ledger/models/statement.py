"""Imported bank statement line models."""

from datetime import UTC, date, datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import Date, DateTime, ForeignKey, Index, Numeric, String, Text, Uuid
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from wallet_ledger.database import Base
from wallet_ledger.models.base import TimestampMixin, UserOwnedMixin, UUIDMixin

if TYPE_CHECKING:
    from wallet_ledger.models.reconciliation import Reconciliation


class StatementLineStatus(str, Enum):
    """Reconciliation status of an imported statement line."""

    PENDING = "pending"
    RECONCILED = "reconciled"
    IGNORED = "ignored"
    CREATED = "created"


class StatementLine(UUIDMixin, UserOwnedMixin, TimestampMixin, Base):
    """One row of an imported bank statement.

    amount is signed: positive is a credit, negative a debit. Lines are only
    ever deleted together with their whole import batch.
    """

    __tablename__ = "bank_statement_lines"
    __table_args__ = (
        # Dedup lookups; intentionally not unique so re-imports are tolerated.
        Index("ix_bank_statement_lines_wallet_fingerprint", "user_id", "wallet_id", "fingerprint"),
        Index("ix_bank_statement_lines_batch", "import_batch_id"),
    )

    wallet_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("wallets.id", ondelete="CASCADE"), nullable=False
    )
    bank_reference: Mapped[str | None] = mapped_column(String(100), nullable=True)
    transaction_date: Mapped[date] = mapped_column(Date, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    counterparty: Mapped[str | None] = mapped_column(String(255), nullable=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    fingerprint: Mapped[str] = mapped_column(String(128), nullable=False)
    import_batch_id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)
    source_file_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    imported_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC)
    )
    reconciliation_status: Mapped[StatementLineStatus] = mapped_column(
        SQLEnum(
            StatementLineStatus,
            name="statement_line_status_enum",
            values_callable=lambda obj: [e.value for e in obj],
        ),
        nullable=False,
        default=StatementLineStatus.PENDING,
    )

    reconciliation: Mapped["Reconciliation | None"] = relationship(
        "Reconciliation",
        back_populates="line",
        uselist=False,
        passive_deletes=True,
    )
