"""
Database models for the NFT cache

SQLAlchemy 2.0 models with full type hints. The chain is the source of truth,
these tables only mirror it for low-latency reads.
"""

from datetime import datetime, date, UTC
from typing import Optional, Dict

from sqlalchemy import (
    String,
    BigInteger,
    Integer,
    Numeric,
    Boolean,
    DateTime,
    Date,
    Index,
    JSON,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.dialects.postgresql import JSONB


class Base(DeclarativeBase):
    """Base class for all models"""

    pass


# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests).
# none_as_null keeps "not backfilled yet" as SQL NULL instead of JSON 'null'.
TraitsType = JSON(none_as_null=True).with_variant(JSONB(none_as_null=True), "postgresql")


# ===========================
# NFT CACHE
# ===========================


class NFT(Base):
    """
    Cached token record - one per generated NFT

    Write rules (enforced in crud.upsert_nft):
    - token_id is immutable once set
    - minted only moves false -> true
    - contract_address / tx_hash are write-once
    - traits are never overwritten once populated
    """

    __tablename__ = "nfts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Stable identity (Farcaster ID of the user who generated the NFT)
    fid: Mapped[int] = mapped_column(
        BigInteger,
        unique=True,
        index=True,
        nullable=False,
        comment="External identity key, never reused",
    )

    # On-chain identity
    token_id: Mapped[Optional[int]] = mapped_column(
        BigInteger,
        unique=True,
        index=True,
        nullable=True,
        comment="On-chain token ID, NULL until minted",
    )
    minted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False, index=True)
    owner_address: Mapped[Optional[str]] = mapped_column(
        String(42), nullable=True, comment="Last observed on-chain holder (lowercase)"
    )

    # Provenance (write-once)
    contract_address: Mapped[Optional[str]] = mapped_column(String(42), nullable=True)
    tx_hash: Mapped[Optional[str]] = mapped_column(String(66), nullable=True)

    # Derived attributes, NULL until backfilled
    traits: Mapped[Optional[Dict[str, str]]] = mapped_column(
        TraitsType, nullable=True, comment="character_class, gender, background, ..."
    )

    # Generation-time presentation fields
    name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    image_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    metadata_uri: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    # Timestamps
    minted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC), nullable=False
    )

    def __repr__(self) -> str:
        return f"<NFT(fid={self.fid}, token_id={self.token_id}, minted={self.minted})>"


class SyncCheckpoint(Base):
    """
    Sync checkpoint - append-only cursor log per sync task

    The newest row (created_at, then id) holds the current cursor.
    Rows are never deleted during normal operation.
    """

    __tablename__ = "sync_checkpoints"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    task_name: Mapped[str] = mapped_column(
        String(100), nullable=False, comment="Sync task owning this cursor"
    )
    cursor_value: Mapped[int] = mapped_column(
        BigInteger, nullable=False, comment="Last processed id"
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC), nullable=False
    )

    __table_args__ = (
        Index("ix_sync_checkpoints_task_created", "task_name", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<SyncCheckpoint(task={self.task_name}, cursor={self.cursor_value})>"


# ===========================
# ENGAGEMENT (leaderboards)
# ===========================


class CheckIn(Base):
    """Daily check-in log (append-only), streak is stored per row"""

    __tablename__ = "checkins"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    fid: Mapped[int] = mapped_column(BigInteger, index=True, nullable=False)
    streak: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    check_in_date: Mapped[date] = mapped_column(Date, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC), nullable=False
    )


class Claim(Base):
    """Token claim log (append-only)"""

    __tablename__ = "claims"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    fid: Mapped[int] = mapped_column(BigInteger, index=True, nullable=False)
    amount: Mapped[float] = mapped_column(Numeric(20, 4, asdecimal=False), default=0, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC), nullable=False
    )
