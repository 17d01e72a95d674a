"""Wallet and wallet transfer models."""

from datetime import UTC, date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, CheckConstraint, Date, DateTime, ForeignKey, Index, Numeric, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from wallet_ledger.database import Base
from wallet_ledger.models.base import TimestampMixin, UserOwnedMixin, UUIDMixin


class Wallet(UUIDMixin, UserOwnedMixin, TimestampMixin, Base):
    """A bank account, cash box or card the user tracks money in.

    current_balance is a cached value derived from initial_balance plus every
    transaction and transfer touching the wallet. It is only ever written by
    the balance recomputation service.
    """

    __tablename__ = "wallets"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="BRL")
    initial_balance: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False, default=Decimal("0.00"))
    current_balance: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False, default=Decimal("0.00"))
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class WalletTransfer(UUIDMixin, UserOwnedMixin, Base):
    """Money moved between two wallets of the same owner."""

    __tablename__ = "wallet_transfers"
    __table_args__ = (
        CheckConstraint("from_wallet_id <> to_wallet_id", name="ck_wallet_transfers_distinct_wallets"),
        Index("ix_wallet_transfers_from_wallet", "from_wallet_id"),
        Index("ix_wallet_transfers_to_wallet", "to_wallet_id"),
    )

    from_wallet_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("wallets.id", ondelete="CASCADE"), nullable=False
    )
    to_wallet_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("wallets.id", ondelete="CASCADE"), nullable=False
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="BRL")
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)
    transfer_date: Mapped[date] = mapped_column(Date, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC)
    )
