"""Transaction model (income/expense bookkeeping records)."""

from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import Date, ForeignKey, Index, Numeric, String, Text, Uuid
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column

from wallet_ledger.database import Base
from wallet_ledger.models.base import TimestampMixin, UserOwnedMixin, UUIDMixin


class TransactionType(str, Enum):
    """Direction of a transaction from the wallet's point of view."""

    INCOME = "INCOME"
    EXPENSE = "EXPENSE"


class TransactionSubtype(str, Enum):
    """Well-known subtypes. The column itself accepts any string."""

    ACCOUNT = "account"
    TRANSFER_OUT = "transfer_out"
    TRANSFER_IN = "transfer_in"
    CARD_PAYMENT = "card_payment"
    CASH_ADJUSTMENT = "cash_adjustment"


class Transaction(UUIDMixin, UserOwnedMixin, TimestampMixin, Base):
    """A recorded income or expense.

    amount is always a non-negative magnitude; type carries the sign.
    """

    __tablename__ = "transactions"
    __table_args__ = (Index("ix_transactions_wallet_date", "wallet_id", "txn_date"),)

    wallet_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("wallets.id", ondelete="SET NULL"), nullable=True
    )
    type: Mapped[TransactionType] = mapped_column(
        SQLEnum(
            TransactionType,
            name="transaction_type_enum",
            values_callable=lambda obj: [e.value for e in obj],
        ),
        nullable=False,
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    txn_date: Mapped[date] = mapped_column(Date, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    supplier: Mapped[str | None] = mapped_column(String(255), nullable=True)
    subtype: Mapped[str | None] = mapped_column(String(50), nullable=True)

    @property
    def signed_amount(self) -> Decimal:
        return self.amount if self.type == TransactionType.INCOME else -self.amount
