"""Reconciliation decision records."""

from datetime import UTC, datetime
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Integer, Text, Uuid
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from wallet_ledger.database import Base
from wallet_ledger.models.base import UserOwnedMixin, UUIDMixin

if TYPE_CHECKING:
    from wallet_ledger.models.statement import StatementLine


class MatchType(str, Enum):
    """How a statement line got linked to its transaction."""

    AUTO = "auto"
    MANUAL = "manual"
    CREATED = "created"


class Reconciliation(UUIDMixin, UserOwnedMixin, Base):
    """Link between a statement line and the transaction that explains it.

    At most one row per statement line and per transaction. Undoing a match
    deletes the row outright; no history of undone matches is kept.
    """

    __tablename__ = "reconciliations"
    __table_args__ = (
        CheckConstraint(
            "confidence_score IS NULL OR (confidence_score >= 0 AND confidence_score <= 100)",
            name="ck_reconciliations_confidence_range",
        ),
    )

    bank_line_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("bank_statement_lines.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    transaction_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("transactions.id", ondelete="SET NULL"),
        nullable=True,
        unique=True,
    )
    match_type: Mapped[MatchType] = mapped_column(
        SQLEnum(MatchType, name="match_type_enum", values_callable=lambda obj: [e.value for e in obj]),
        nullable=False,
    )
    confidence_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    reconciled_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC)
    )
    reconciled_by: Mapped[UUID | None] = mapped_column(Uuid(as_uuid=True), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC)
    )

    line: Mapped["StatementLine"] = relationship("StatementLine", back_populates="reconciliation")
