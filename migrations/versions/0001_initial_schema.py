"""Initial schema for wallet ledger."""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "0001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    transaction_type_enum = sa.Enum("INCOME", "EXPENSE", name="transaction_type_enum")
    statement_line_status_enum = sa.Enum(
        "pending",
        "reconciled",
        "ignored",
        "created",
        name="statement_line_status_enum",
    )
    match_type_enum = sa.Enum("auto", "manual", "created", name="match_type_enum")

    op.create_table(
        "wallets",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("currency", sa.String(length=3), nullable=False, server_default="BRL"),
        sa.Column("initial_balance", sa.Numeric(18, 2), nullable=False, server_default="0"),
        sa.Column("current_balance", sa.Numeric(18, 2), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_wallets_user_id", "wallets", ["user_id"])

    op.create_table(
        "wallet_transfers",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("from_wallet_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("to_wallet_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("amount", sa.Numeric(18, 2), nullable=False),
        sa.Column("currency", sa.String(length=3), nullable=False, server_default="BRL"),
        sa.Column("description", sa.String(length=500), nullable=True),
        sa.Column("transfer_date", sa.Date(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("from_wallet_id <> to_wallet_id", name="ck_wallet_transfers_distinct_wallets"),
        sa.ForeignKeyConstraint(["from_wallet_id"], ["wallets.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["to_wallet_id"], ["wallets.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_wallet_transfers_user_id", "wallet_transfers", ["user_id"])
    op.create_index("ix_wallet_transfers_from_wallet", "wallet_transfers", ["from_wallet_id"])
    op.create_index("ix_wallet_transfers_to_wallet", "wallet_transfers", ["to_wallet_id"])

    op.create_table(
        "transactions",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("wallet_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("type", transaction_type_enum, nullable=False),
        sa.Column("amount", sa.Numeric(18, 2), nullable=False),
        sa.Column("txn_date", sa.Date(), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("category", sa.String(length=100), nullable=False),
        sa.Column("supplier", sa.String(length=255), nullable=True),
        sa.Column("subtype", sa.String(length=50), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["wallet_id"], ["wallets.id"], ondelete="SET NULL"),
    )
    op.create_index("ix_transactions_user_id", "transactions", ["user_id"])
    op.create_index("ix_transactions_wallet_date", "transactions", ["wallet_id", "txn_date"])

    op.create_table(
        "bank_statement_lines",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("wallet_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("bank_reference", sa.String(length=100), nullable=True),
        sa.Column("transaction_date", sa.Date(), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("counterparty", sa.String(length=255), nullable=True),
        sa.Column("amount", sa.Numeric(18, 2), nullable=False),
        sa.Column("fingerprint", sa.String(length=128), nullable=False),
        sa.Column("import_batch_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("source_file_name", sa.String(length=255), nullable=True),
        sa.Column("imported_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("reconciliation_status", statement_line_status_enum, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["wallet_id"], ["wallets.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_bank_statement_lines_user_id", "bank_statement_lines", ["user_id"])
    op.create_index(
        "ix_bank_statement_lines_wallet_fingerprint",
        "bank_statement_lines",
        ["user_id", "wallet_id", "fingerprint"],
    )
    op.create_index("ix_bank_statement_lines_batch", "bank_statement_lines", ["import_batch_id"])

    op.create_table(
        "reconciliations",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("bank_line_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("transaction_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("match_type", match_type_enum, nullable=False),
        sa.Column("confidence_score", sa.Integer(), nullable=True),
        sa.Column("reconciled_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("reconciled_by", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "confidence_score IS NULL OR (confidence_score >= 0 AND confidence_score <= 100)",
            name="ck_reconciliations_confidence_range",
        ),
        sa.ForeignKeyConstraint(["bank_line_id"], ["bank_statement_lines.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["transaction_id"], ["transactions.id"], ondelete="SET NULL"),
        sa.UniqueConstraint("bank_line_id", name="uq_reconciliations_bank_line_id"),
        sa.UniqueConstraint("transaction_id", name="uq_reconciliations_transaction_id"),
    )
    op.create_index("ix_reconciliations_user_id", "reconciliations", ["user_id"])


def downgrade() -> None:
    op.drop_table("reconciliations")
    op.drop_table("bank_statement_lines")
    op.drop_table("transactions")
    op.drop_table("wallet_transfers")
    op.drop_table("wallets")

    op.execute("DROP TYPE IF EXISTS match_type_enum")
    op.execute("DROP TYPE IF EXISTS statement_line_status_enum")
    op.execute("DROP TYPE IF EXISTS transaction_type_enum")
