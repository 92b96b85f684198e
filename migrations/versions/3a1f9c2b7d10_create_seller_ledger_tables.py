"""create seller wallet, ledger, withdrawal, audit and tax config tables

Revision ID: 3a1f9c2b7d10
Revises:
Create Date: 2026-10-19 10:12:41.301220

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3a1f9c2b7d10'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

IN_FLIGHT = "status IN ('PENDING', 'APPROVED', 'PROCESSING')"


def _timestamps(*, updated=True):
    cols = [sa.Column("created_at", sa.DateTime(timezone=True), nullable=False)]
    if updated:
        cols.append(sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False))
    return cols


def upgrade():
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("public_id", sa.Uuid(), nullable=False),
        sa.Column("email", sa.String(320), nullable=True, unique=True),
        sa.Column("name", sa.String(128), nullable=True),
        *_timestamps(),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_users_public_id", "users", ["public_id"], unique=True)

    op.create_table(
        "seller",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("store_name", sa.String(255), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_seller_user_id", "seller", ["user_id"], unique=True)

    op.create_table(
        "selleraccount",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("public_id", sa.Uuid(), nullable=False),
        sa.Column("seller_id", sa.Integer(), sa.ForeignKey("seller.id", ondelete="CASCADE"), nullable=False),
        sa.Column("account_number", sa.String(32), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("kyc_status", sa.String(20), nullable=False),
        sa.Column("balance", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("total_received", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("total_withdrawn", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("min_withdrawal_amount", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("locked_until", sa.DateTime(timezone=True), nullable=True),
        sa.Column("pix_key_type", sa.String(16), nullable=True),
        sa.Column("pix_key", sa.String(255), nullable=True),
        sa.Column("bank_code", sa.String(16), nullable=True),
        sa.Column("bank_name", sa.String(128), nullable=True),
        sa.Column("agencia", sa.String(16), nullable=True),
        sa.Column("conta", sa.String(32), nullable=True),
        sa.Column("conta_tipo", sa.String(32), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("balance >= 0", name="ck_selleraccount_balance_non_negative"),
    )
    op.create_index("ix_selleraccount_public_id", "selleraccount", ["public_id"], unique=True)
    op.create_index("ix_selleraccount_seller_id", "selleraccount", ["seller_id"], unique=True)
    op.create_index("ix_selleraccount_account_number", "selleraccount", ["account_number"], unique=True)

    op.create_table(
        "withdrawal",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("public_id", sa.Uuid(), nullable=False),
        sa.Column("seller_id", sa.Integer(), sa.ForeignKey("seller.id", ondelete="CASCADE"), nullable=False),
        sa.Column("amount", sa.BigInteger(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("payment_method", sa.String(20), nullable=False),
        sa.Column("pix_key", sa.String(255), nullable=True),
        sa.Column("pix_key_type", sa.String(16), nullable=True),
        sa.Column("bank_name", sa.String(128), nullable=True),
        sa.Column("bank_code", sa.String(16), nullable=True),
        sa.Column("agencia", sa.String(16), nullable=True),
        sa.Column("conta", sa.String(32), nullable=True),
        sa.Column("conta_tipo", sa.String(32), nullable=True),
        sa.Column("seller_note", sa.Text(), nullable=True),
        sa.Column("admin_note", sa.Text(), nullable=True),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        sa.Column("transaction_id", sa.String(128), nullable=True),
        sa.Column("processed_by", sa.Integer(), nullable=True),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_withdrawal_public_id", "withdrawal", ["public_id"], unique=True)
    op.create_index("ix_withdrawal_seller_id", "withdrawal", ["seller_id"])
    op.create_index(
        "uq_withdrawal_in_flight_seller", "withdrawal", ["seller_id"], unique=True,
        postgresql_where=sa.text(IN_FLIGHT), sqlite_where=sa.text(IN_FLIGHT),
    )

    op.create_table(
        "selleraccounttransaction",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("account_id", sa.Integer(), sa.ForeignKey("selleraccount.id", ondelete="CASCADE"), nullable=False),
        sa.Column("type", sa.String(32), nullable=False),
        sa.Column("amount", sa.BigInteger(), nullable=False),
        sa.Column("balance_before", sa.BigInteger(), nullable=False),
        sa.Column("balance_after", sa.BigInteger(), nullable=False),
        sa.Column("description", sa.String(500), nullable=True),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("reference", sa.String(64), nullable=True),
        sa.Column("reference_type", sa.String(32), nullable=True),
        sa.Column("withdrawal_id", sa.Integer(), sa.ForeignKey("withdrawal.id", ondelete="SET NULL"), nullable=True),
        sa.Column("processed_by", sa.Integer(), nullable=True),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("meta", sa.JSON(), nullable=True),
        *_timestamps(updated=False),
        sa.CheckConstraint("balance_after = balance_before + amount", name="ck_ledger_entry_balanced"),
    )
    op.create_index("ix_selleraccounttransaction_account_id", "selleraccounttransaction", ["account_id"])
    op.create_index("ix_selleraccounttransaction_reference", "selleraccounttransaction", ["reference"])
    op.create_index("ix_selleraccounttransaction_withdrawal_id", "selleraccounttransaction", ["withdrawal_id"])
    op.create_index("ix_selleraccounttransaction_account_created", "selleraccounttransaction",
                    ["account_id", "created_at"])

    op.create_table(
        "orders",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("public_id", sa.Uuid(), nullable=False),
        sa.Column("buyer_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("total_amount", sa.BigInteger(), nullable=False, server_default="0"),
        *_timestamps(),
    )
    op.create_index("ix_orders_public_id", "orders", ["public_id"], unique=True)
    op.create_index("ix_orders_buyer_id", "orders", ["buyer_id"])
    op.create_index("ix_orders_status", "orders", ["status"])

    op.create_table(
        "orderitem",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("order_id", sa.Integer(), sa.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False),
        sa.Column("seller_id", sa.Integer(), sa.ForeignKey("seller.id", ondelete="CASCADE"), nullable=False),
        sa.Column("product_name", sa.String(255), nullable=False),
        sa.Column("item_type", sa.String(20), nullable=False),
        sa.Column("unit_price", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("quantity", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("supplier_cost", sa.BigInteger(), nullable=True),
        *_timestamps(updated=False),
    )
    op.create_index("ix_orderitem_order_id", "orderitem", ["order_id"])
    op.create_index("ix_orderitem_seller_id", "orderitem", ["seller_id"])

    op.create_table(
        "auditlog",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=True),
        sa.Column("action", sa.String(128), nullable=False),
        sa.Column("resource", sa.String(64), nullable=False),
        sa.Column("resource_id", sa.String(64), nullable=True),
        sa.Column("ip_address", sa.String(64), nullable=True),
        sa.Column("user_agent", sa.String(512), nullable=True),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("details", sa.JSON(), nullable=True),
        *_timestamps(updated=False),
    )
    op.create_index("ix_auditlog_user_id", "auditlog", ["user_id"])
    op.create_index("ix_auditlog_action", "auditlog", ["action"])
    op.create_index("ix_auditlog_created_at", "auditlog", ["created_at"])

    op.create_table(
        "taxconfigentry",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("key", sa.String(64), nullable=False),
        sa.Column("value", sa.String(255), nullable=False),
        sa.Column("updated_by", sa.Integer(), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("key", name="uq_taxconfigentry_key"),
    )


def downgrade():
    op.drop_table("taxconfigentry")
    op.drop_table("auditlog")
    op.drop_table("orderitem")
    op.drop_table("orders")
    op.drop_table("selleraccounttransaction")
    op.drop_index("uq_withdrawal_in_flight_seller", table_name="withdrawal")
    op.drop_table("withdrawal")
    op.drop_table("selleraccount")
    op.drop_table("seller")
    op.drop_table("users")
