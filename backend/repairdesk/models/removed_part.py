from __future__ import annotations
from typing import Optional
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import Integer, String, Text, ForeignKey, DateTime, func

from .authz import Base
from repairdesk.constants.statuses import PartLocation, values


class RemovedPart(Base):
    __tablename__ = 'removed_parts'
    ALL_LOCATIONS = values(PartLocation)
    PART_STATUS_REMOVED = 'removed'
    PART_STATUS_IN_REPAIR = 'in_repair'
    PART_STATUS_RETURNED = 'returned'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    service_id: Mapped[int] = mapped_column(ForeignKey('services.id', ondelete='CASCADE'), nullable=False, index=True)
    part_name: Mapped[str] = mapped_column(String(255), nullable=False)
    removal_date: Mapped[str] = mapped_column(String(32), nullable=False)
    removal_reason: Mapped[str] = mapped_column(Text, nullable=False)
    current_location: Mapped[str] = mapped_column(String(32), nullable=False, default=PartLocation.WORKSHOP.value)
    expected_return_date: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    actual_return_date: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    part_status: Mapped[str] = mapped_column(String(32), nullable=False, default=PART_STATUS_REMOVED)
    technician_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_by: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[str] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[str] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    @property
    def is_returned(self) -> bool:
        return self.actual_return_date is not None

__all__ = ["RemovedPart"]
