from __future__ import annotations
from typing import Optional
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import Integer, String, Text, ForeignKey, DateTime, CheckConstraint, func

from .authz import Base
from repairdesk.constants.statuses import SparePartStatus, Urgency, WarrantyStatus, values


class SparePartOrder(Base):
    __tablename__ = 'spare_part_orders'
    # Status constants
    STATUS_PENDING = SparePartStatus.PENDING.value
    STATUS_ORDERED = SparePartStatus.ORDERED.value
    STATUS_DELIVERED = SparePartStatus.DELIVERED.value
    STATUS_CANCELLED = SparePartStatus.CANCELLED.value
    ALL_STATUSES = values(SparePartStatus)
    ALL_URGENCIES = values(Urgency)
    ALL_WARRANTY_STATUSES = values(WarrantyStatus)
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    service_id: Mapped[Optional[int]] = mapped_column(ForeignKey('services.id', ondelete='CASCADE'), nullable=True, index=True)
    part_name: Mapped[str] = mapped_column(String(255), nullable=False)
    part_number: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    urgency: Mapped[str] = mapped_column(String(16), nullable=False, default=Urgency.NORMAL.value)
    warranty_status: Mapped[str] = mapped_column(String(32), nullable=False)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default=STATUS_PENDING, index=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    supplier_name: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    estimated_cost: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    estimated_delivery: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    requested_by: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[str] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[str] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (CheckConstraint('quantity >= 1', name='ck_spare_part_quantity_positive'),)

    @property
    def is_open(self) -> bool:
        return self.status in (self.STATUS_PENDING, self.STATUS_ORDERED)

__all__ = ["SparePartOrder"]
