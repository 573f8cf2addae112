"""Per-user push preferences: one nullable flag per notification type.

NULL (or no row at all) means push is enabled; only an explicit False suppresses push.
"""
from sqlalchemy import Boolean, Column, DateTime, Integer, String
from sqlalchemy.sql import func

from app.db.base import Base


class NotificationPreference(Base):
    __tablename__ = "notification_preferences"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(64), nullable=False, unique=True, index=True)
    push_signals = Column(Boolean, nullable=True)
    push_events = Column(Boolean, nullable=True)
    push_announcements = Column(Boolean, nullable=True)
    push_system = Column(Boolean, nullable=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
