import enum
import uuid
from sqlalchemy import JSON, BigInteger, CheckConstraint, DateTime, ForeignKey, Index, Integer, Text, UniqueConstraint, Uuid, text
from uuid6 import uuid7
from datetime import datetime
from typing import Any, Dict, List, Optional
from sqlmodel import Column, SQLModel, Field, Relationship, String
from sellerbank.common.utils import now


class SellerStatus(str, enum.Enum):
    PENDING = "PENDING"
    ACTIVE = "ACTIVE"
    SUSPENDED = "SUSPENDED"


class AccountStatus(str, enum.Enum):
    PENDING = "PENDING"
    ACTIVE = "ACTIVE"
    BLOCKED = "BLOCKED"
    SUSPENDED = "SUSPENDED"
    CLOSED = "CLOSED"


class KycStatus(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class TransactionType(str, enum.Enum):
    TRANSFER_IN = "TRANSFER_IN"
    TRANSFER_OUT = "TRANSFER_OUT"
    WITHDRAWAL = "WITHDRAWAL"
    WITHDRAWAL_REVERSAL = "WITHDRAWAL_REVERSAL"
    ADJUSTMENT_CREDIT = "ADJUSTMENT_CREDIT"
    ADJUSTMENT_DEBIT = "ADJUSTMENT_DEBIT"
    BONUS = "BONUS"
    FEE = "FEE"
    CHARGEBACK = "CHARGEBACK"
    MIGRATION = "MIGRATION"


class TransactionStatus(str, enum.Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class ReferenceType(str, enum.Enum):
    TRANSFER = "TRANSFER"
    WITHDRAWAL = "WITHDRAWAL"
    ADMIN_ADJUSTMENT = "ADMIN_ADJUSTMENT"
    ACCOUNT_OPENING = "ACCOUNT_OPENING"
    ACCOUNT_STATUS = "ACCOUNT_STATUS"


class WithdrawalStatus(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"


IN_FLIGHT_WITHDRAWAL_STATUSES = (
    WithdrawalStatus.PENDING.value,
    WithdrawalStatus.APPROVED.value,
    WithdrawalStatus.PROCESSING.value,
)


class PaymentMethod(str, enum.Enum):
    PIX = "PIX"
    TED = "TED"
    BANK_TRANSFER = "BANK_TRANSFER"


class PixKeyType(str, enum.Enum):
    CPF = "CPF"
    CNPJ = "CNPJ"
    EMAIL = "EMAIL"
    PHONE = "PHONE"
    RANDOM = "RANDOM"


class OrderStatus(str, enum.Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


# orders whose dropshipping items still owe the supplier
OPEN_DROPSHIPPING_ORDER_STATUSES = (
    OrderStatus.PROCESSING.value,
    OrderStatus.SHIPPED.value,
    OrderStatus.DELIVERED.value,
)


class OrderItemType(str, enum.Enum):
    OWN = "OWN"
    DROPSHIPPING = "DROPSHIPPING"


class AuditStatus(str, enum.Enum):
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
    BLOCKED = "BLOCKED"
    SUSPICIOUS = "SUSPICIOUS"


class Users(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    public_id: uuid.UUID = Field(
        default_factory=uuid7,
        sa_column=Column(Uuid(as_uuid=True), unique=True, index=True, nullable=False)
    )
    email: Optional[str] = Field(default=None,sa_column=Column(String(320), nullable=True,unique=True))
    name: Optional[str] = Field(default=None, sa_column=Column(String(128), nullable=True))
    created_at: datetime = Field(default_factory=now,
        sa_column=Column(DateTime(timezone=True), nullable=False,default=now))
    updated_at: datetime = Field(default_factory=now,
        sa_column=Column(DateTime(timezone=True), nullable=False,default=now, onupdate=now))
    deleted_at: Optional[datetime] = Field(default=None,
        sa_column=Column(DateTime(timezone=True)))

    seller: Optional["Seller"] = Relationship(back_populates="user")


class Seller(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(sa_column=Column(ForeignKey("users.id", ondelete="CASCADE"), unique=True, index=True, nullable=False))
    store_name: str = Field(sa_column=Column(String(255), nullable=False))
    status: str = Field(default=SellerStatus.PENDING.value, sa_column=Column(String(20), nullable=False, default=SellerStatus.PENDING.value))
    created_at: datetime = Field(default_factory=now,
        sa_column=Column(DateTime(timezone=True), nullable=False,default=now))
    updated_at: datetime = Field(default_factory=now,
        sa_column=Column(DateTime(timezone=True), nullable=False,default=now, onupdate=now))

    user: "Users" = Relationship(back_populates="seller")
    account: Optional["SellerAccount"] = Relationship(back_populates="seller")


class SellerAccount(SQLModel, table=True):
    """Seller wallet. Balances are integer centavos."""
    id: Optional[int] = Field(default=None, primary_key=True)
    public_id: uuid.UUID = Field(default_factory=uuid7, sa_column=Column(Uuid(as_uuid=True), unique=True, index=True, nullable=False))
    seller_id: int = Field(sa_column=Column(ForeignKey("seller.id", ondelete="CASCADE"), unique=True, index=True, nullable=False))
    account_number: str = Field(sa_column=Column(String(32), unique=True, index=True, nullable=False))
    status: str = Field(default=AccountStatus.PENDING.value, sa_column=Column(String(20), nullable=False, default=AccountStatus.PENDING.value))
    kyc_status: str = Field(default=KycStatus.PENDING.value, sa_column=Column(String(20), nullable=False, default=KycStatus.PENDING.value))

    balance: int = Field(default=0, sa_column=Column(BigInteger, nullable=False, default=0))
    total_received: int = Field(default=0, sa_column=Column(BigInteger, nullable=False, default=0))
    total_withdrawn: int = Field(default=0, sa_column=Column(BigInteger, nullable=False, default=0))
    min_withdrawal_amount: int = Field(default=0, sa_column=Column(BigInteger, nullable=False, default=0))

    locked_until: Optional[datetime] = Field(default=None, sa_column=Column(DateTime(timezone=True), nullable=True))

    # payout details
    pix_key_type: Optional[str] = Field(default=None, sa_column=Column(String(16), nullable=True))
    pix_key: Optional[str] = Field(default=None, sa_column=Column(String(255), nullable=True))
    bank_code: Optional[str] = Field(default=None, sa_column=Column(String(16), nullable=True))
    bank_name: Optional[str] = Field(default=None, sa_column=Column(String(128), nullable=True))
    agencia: Optional[str] = Field(default=None, sa_column=Column(String(16), nullable=True))
    conta: Optional[str] = Field(default=None, sa_column=Column(String(32), nullable=True))
    conta_tipo: Optional[str] = Field(default=None, sa_column=Column(String(32), nullable=True))

    created_at: datetime = Field(default_factory=now,
        sa_column=Column(DateTime(timezone=True), nullable=False,default=now))
    updated_at: datetime = Field(default_factory=now,
        sa_column=Column(DateTime(timezone=True), nullable=False,default=now, onupdate=now))

    seller: "Seller" = Relationship(back_populates="account")

    __table_args__ = (
        CheckConstraint("balance >= 0", name="ck_selleraccount_balance_non_negative"),
    )


class SellerAccountTransaction(SQLModel, table=True):
    """Append-only ledger entry. Debits carry a negative amount."""
    id: Optional[int] = Field(default=None, primary_key=True)
    account_id: int = Field(sa_column=Column(ForeignKey("selleraccount.id", ondelete="CASCADE"), index=True, nullable=False))
    type: str = Field(sa_column=Column(String(32), nullable=False))
    amount: int = Field(sa_column=Column(BigInteger, nullable=False))
    balance_before: int = Field(sa_column=Column(BigInteger, nullable=False))
    balance_after: int = Field(sa_column=Column(BigInteger, nullable=False))
    description: Optional[str] = Field(default=None, sa_column=Column(String(500), nullable=True))
    status: str = Field(default=TransactionStatus.COMPLETED.value, sa_column=Column(String(20), nullable=False))
    reference: Optional[str] = Field(default=None, sa_column=Column(String(64), nullable=True, index=True))
    reference_type: Optional[str] = Field(default=None, sa_column=Column(String(32), nullable=True))
    withdrawal_id: Optional[int] = Field(default=None, sa_column=Column(ForeignKey("withdrawal.id", ondelete="SET NULL"), nullable=True, index=True))
    processed_by: Optional[int] = Field(default=None, sa_column=Column(Integer, nullable=True))
    processed_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime(timezone=True), nullable=True))
    meta: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(JSON, nullable=True))
    created_at: datetime = Field(default_factory=now,
        sa_column=Column(DateTime(timezone=True), nullable=False,default=now))

    __table_args__ = (
        Index("ix_selleraccounttransaction_account_created", "account_id", "created_at"),
        CheckConstraint("balance_after = balance_before + amount", name="ck_ledger_entry_balanced"),
    )


class Withdrawal(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    public_id: uuid.UUID = Field(default_factory=uuid7, sa_column=Column(Uuid(as_uuid=True), unique=True, index=True, nullable=False))
    seller_id: int = Field(sa_column=Column(ForeignKey("seller.id", ondelete="CASCADE"), index=True, nullable=False))
    amount: int = Field(sa_column=Column(BigInteger, nullable=False))
    status: str = Field(default=WithdrawalStatus.PENDING.value, sa_column=Column(String(20), nullable=False, default=WithdrawalStatus.PENDING.value))
    payment_method: str = Field(sa_column=Column(String(20), nullable=False))

    pix_key: Optional[str] = Field(default=None, sa_column=Column(String(255), nullable=True))
    pix_key_type: Optional[str] = Field(default=None, sa_column=Column(String(16), nullable=True))
    bank_name: Optional[str] = Field(default=None, sa_column=Column(String(128), nullable=True))
    bank_code: Optional[str] = Field(default=None, sa_column=Column(String(16), nullable=True))
    agencia: Optional[str] = Field(default=None, sa_column=Column(String(16), nullable=True))
    conta: Optional[str] = Field(default=None, sa_column=Column(String(32), nullable=True))
    conta_tipo: Optional[str] = Field(default=None, sa_column=Column(String(32), nullable=True))

    seller_note: Optional[str] = Field(default=None, sa_column=Column(Text(), nullable=True))
    admin_note: Optional[str] = Field(default=None, sa_column=Column(Text(), nullable=True))
    rejection_reason: Optional[str] = Field(default=None, sa_column=Column(Text(), nullable=True))
    transaction_id: Optional[str] = Field(default=None, sa_column=Column(String(128), nullable=True))
    processed_by: Optional[int] = Field(default=None, sa_column=Column(Integer, nullable=True))
    processed_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime(timezone=True), nullable=True))

    created_at: datetime = Field(default_factory=now,
        sa_column=Column(DateTime(timezone=True), nullable=False,default=now))
    updated_at: datetime = Field(default_factory=now,
        sa_column=Column(DateTime(timezone=True), nullable=False,default=now, onupdate=now))

    __table_args__ = (
        Index(
            "uq_withdrawal_in_flight_seller",
            "seller_id",
            unique=True,
            postgresql_where=text("status IN ('PENDING', 'APPROVED', 'PROCESSING')"),
            sqlite_where=text("status IN ('PENDING', 'APPROVED', 'PROCESSING')"),
        ),
    )


class Orders(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    public_id: uuid.UUID = Field(default_factory=uuid7, sa_column=Column(Uuid(as_uuid=True), unique=True, index=True, nullable=False))
    buyer_id: Optional[int] = Field(default=None, sa_column=Column(ForeignKey("users.id", ondelete="SET NULL"), index=True, nullable=True))
    status: str = Field(default=OrderStatus.PENDING.value, sa_column=Column(String(20), nullable=False, index=True))
    total_amount: int = Field(default=0, sa_column=Column(BigInteger, nullable=False, default=0))
    created_at: datetime = Field(default_factory=now,
        sa_column=Column(DateTime(timezone=True), nullable=False,default=now))
    updated_at: datetime = Field(default_factory=now,
        sa_column=Column(DateTime(timezone=True), nullable=False,default=now, onupdate=now))

    order_items: List["OrderItem"] = Relationship(back_populates="order", sa_relationship_kwargs={"cascade": "all, delete-orphan"})


class OrderItem(SQLModel, table=True):
    """Snapshot of an order line. supplier_cost is what the seller owes the supplier for dropshipping items."""
    id: Optional[int] = Field(default=None, primary_key=True)
    order_id: int = Field(sa_column=Column(ForeignKey("orders.id", ondelete="CASCADE"), index=True, nullable=False))
    seller_id: int = Field(sa_column=Column(ForeignKey("seller.id", ondelete="CASCADE"), index=True, nullable=False))
    product_name: str = Field(sa_column=Column(String(255), nullable=False))
    item_type: str = Field(default=OrderItemType.OWN.value, sa_column=Column(String(20), nullable=False, default=OrderItemType.OWN.value))
    unit_price: int = Field(default=0, sa_column=Column(BigInteger, nullable=False, default=0))
    quantity: int = Field(default=1, sa_column=Column(Integer, nullable=False, default=1))
    supplier_cost: Optional[int] = Field(default=None, sa_column=Column(BigInteger, nullable=True))
    created_at: datetime = Field(default_factory=now,
        sa_column=Column(DateTime(timezone=True), nullable=False,default=now))

    order: "Orders" = Relationship(back_populates="order_items")


class AuditLog(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: Optional[int] = Field(default=None, sa_column=Column(Integer, nullable=True, index=True))
    action: str = Field(sa_column=Column(String(128), nullable=False, index=True))
    resource: str = Field(sa_column=Column(String(64), nullable=False))
    resource_id: Optional[str] = Field(default=None, sa_column=Column(String(64), nullable=True))
    ip_address: Optional[str] = Field(default=None, sa_column=Column(String(64), nullable=True))
    user_agent: Optional[str] = Field(default=None, sa_column=Column(String(512), nullable=True))
    status: str = Field(sa_column=Column(String(20), nullable=False))
    details: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(JSON, nullable=True))
    created_at: datetime = Field(default_factory=now,
        sa_column=Column(DateTime(timezone=True), nullable=False,default=now, index=True))


class TaxConfigEntry(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    key: str = Field(sa_column=Column(String(64), nullable=False))
    value: str = Field(sa_column=Column(String(255), nullable=False))
    updated_by: Optional[int] = Field(default=None, sa_column=Column(Integer, nullable=True))
    updated_at: datetime = Field(default_factory=now,
        sa_column=Column(DateTime(timezone=True), nullable=False,default=now, onupdate=now))

    __table_args__ = (UniqueConstraint("key", name="uq_taxconfigentry_key"),)
