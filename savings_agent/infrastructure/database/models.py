"""SQLAlchemy ORM models for the vault mirror and withdrawal audit log"""

import uuid
from sqlalchemy import Column, DateTime, ForeignKey, Index, Numeric, Text, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

Base = declarative_base()


class VaultRecord(Base):
    """Savings vault mirrored from the external ledger"""

    __tablename__ = "vault"

    id = Column(Text, primary_key=True)  # Ledger account id
    name = Column(Text, nullable=False)
    balance = Column(Numeric(14, 2), nullable=False, default=0)
    goal_amount = Column(Numeric(14, 2), nullable=True)
    purpose = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    withdrawal_requests = relationship("WithdrawalRequestRecord", back_populates="vault")


class WithdrawalRequestRecord(Base):
    """Soft-locked withdrawal request; rows are never deleted"""

    __tablename__ = "withdrawal_request"
    __table_args__ = (
        # At most one pending request per vault
        Index(
            "uq_withdrawal_request_pending_vault",
            "vault_id",
            unique=True,
            sqlite_where=text("status = 'pending'"),
            postgresql_where=text("status = 'pending'"),
        ),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    vault_id = Column(Text, ForeignKey("vault.id"), nullable=False, index=True)
    amount = Column(Numeric(14, 2), nullable=False)
    reason = Column(Text, nullable=False, default="")
    status = Column(Text, nullable=False, default="pending")
    impact_message = Column(Text, nullable=False, default="")
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    completed_at = Column(DateTime(timezone=True), nullable=True)

    vault = relationship("VaultRecord", back_populates="withdrawal_requests")
