from __future__ import annotations

"""
Data models for customers, per-day check-in records, venue settings and the audit log.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import JSON, Boolean, DateTime, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .database import Base


class Customer(Base):
    __tablename__ = "customers"
    """
    Visitor identity. Soft-deleted rows stay in the table with is_deleted set.
    """

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, index=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    __table_args__ = (
        Index("ix_customers_is_deleted", "is_deleted"),
    )


class DailyRecord(Base):
    __tablename__ = "daily_records"
    """
    One row per venue-local calendar date. active_check_ins is a list of
    {"customer_id", "check_in_time"} dicts; check-out removes the entry.
    """

    date: Mapped[str] = mapped_column(String(10), primary_key=True)
    created_at: Mapped[str] = mapped_column(String(40), nullable=False)
    active_check_ins: Mapped[list] = mapped_column(JSON, default=list, nullable=False)


class VenueSettings(Base):
    __tablename__ = "venue_settings"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default="default")
    max_stay_time: Mapped[int] = mapped_column(Integer, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )


class SystemLog(Base):
    __tablename__ = "system_log"
    """
    Append-only trail of check-in, check-out and edit actions.
    """

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    ts: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    actor: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    action: Mapped[str] = mapped_column(String(64), nullable=False)
    entity: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    entity_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    status: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
