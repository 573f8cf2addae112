"""Notification: one row per recipient, append-only except the read/deleted flags.

user_id: owning user (opaque id from the auth provider); exactly one recipient per row.
notification_type: 'signal' | 'event' | 'announcement' | 'system'.
read / read_at: set together when the owner marks the row read; never reset.
deleted / deleted_at: soft delete; deleted rows are excluded from every read path.
metadata: JSON payload specific to the type (e.g. signal_id, trading_pair).
"""
import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, Boolean, Column, DateTime, Index, String, Text, false
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.sql import func

from app.db.base import Base

NOTIFICATION_TYPES = ("signal", "event", "announcement", "system")


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Notification(Base):
    __tablename__ = "notifications"
    __table_args__ = (
        Index("ix_notifications_user_deleted_read_created", "user_id", "deleted", "read", "created_at"),
    )

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(String(64), nullable=False, index=True)
    notification_type = Column(String(32), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    action_url = Column(String(512), nullable=True)
    payload = Column("metadata", JSON().with_variant(JSONB(), "postgresql"), nullable=True)  # column name 'metadata' in DB
    read = Column(Boolean, nullable=False, default=False, server_default=false())
    deleted = Column(Boolean, nullable=False, default=False, server_default=false())
    created_at = Column(DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False)
    read_at = Column(DateTime(timezone=True), nullable=True)
    deleted_at = Column(DateTime(timezone=True), nullable=True)
