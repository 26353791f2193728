from __future__ import annotations
from typing import Optional
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import Integer, String, Text, Boolean, ForeignKey, DateTime, func
from repairdesk.models.authz import Base
from repairdesk.constants.statuses import ServiceStatus, values

class Service(Base):
    __tablename__ = 'services'
    # Status constants
    STATUS_PENDING = ServiceStatus.PENDING.value
    STATUS_ASSIGNED = ServiceStatus.ASSIGNED.value
    STATUS_IN_PROGRESS = ServiceStatus.IN_PROGRESS.value
    STATUS_WAITING_PARTS = ServiceStatus.WAITING_PARTS.value
    STATUS_DEVICE_PARTS_REMOVED = ServiceStatus.DEVICE_PARTS_REMOVED.value
    STATUS_COMPLETED = ServiceStatus.COMPLETED.value
    ALL_STATUSES = values(ServiceStatus)
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    client_id: Mapped[int] = mapped_column(ForeignKey('clients.id'), nullable=False, index=True)
    appliance_id: Mapped[int] = mapped_column(ForeignKey('appliances.id'), nullable=False)
    technician_id: Mapped[Optional[int]] = mapped_column(ForeignKey('users.id'), nullable=True, index=True)
    business_partner_id: Mapped[Optional[int]] = mapped_column(ForeignKey('users.id'), nullable=True, index=True)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default=STATUS_PENDING, index=True)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    technician_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    cost: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    is_completely_fixed: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)
    scheduled_date: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    completed_date: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    created_by: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[str] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[str] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

# Spare-part and removed-part events move status through the coordinator
# (repairdesk.services.coordinator); manual steps go through SERVICE_FSM in routes/services.py.
