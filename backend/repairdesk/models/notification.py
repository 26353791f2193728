from __future__ import annotations
from typing import Optional
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import Integer, String, Text, Boolean, ForeignKey, DateTime, func

from .authz import Base
from repairdesk.constants.statuses import OutboundStatus, Channel, values


class Notification(Base):
    """In-app (dashboard) notice for one user. Only ``is_read``/``read_at`` ever change."""
    __tablename__ = 'notifications'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    type: Mapped[str] = mapped_column(String(64), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    related_service_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, index=True)
    related_user_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    priority: Mapped[str] = mapped_column(String(16), nullable=False, default='normal')
    is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    read_at: Mapped[Optional[str]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[str] = mapped_column(DateTime(timezone=True), server_default=func.now())


class OutboundMessage(Base):
    """Outbox row for one external delivery (SMS / WhatsApp / email).

    Written in the same transaction as the state change that caused it; delivered
    after commit by repairdesk.services.dispatch. Each row is attempted at most once.
    """
    __tablename__ = 'outbound_messages'
    ALL_STATUSES = values(OutboundStatus)
    ALL_CHANNELS = values(Channel)
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    channel: Mapped[str] = mapped_column(String(16), nullable=False, index=True)
    recipient: Mapped[str] = mapped_column(String(128), nullable=False)
    recipient_label: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    subject: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    event: Mapped[str] = mapped_column(String(64), nullable=False)
    related_service_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, index=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=OutboundStatus.QUEUED.value, index=True)
    provider_message_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    error: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    attempted_at: Mapped[Optional[str]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[str] = mapped_column(DateTime(timezone=True), server_default=func.now())

__all__ = ["Notification", "OutboundMessage"]
