from __future__ import annotations
from datetime import datetime, date
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import Integer, String, Date, ForeignKey, DateTime, func
from typing import Optional

from .authz import Base


class Employee(Base):
    __tablename__ = 'employees'
    STATUS_ACTIVE = 'active'
    STATUS_INACTIVE = 'inactive'
    STATUS_ON_LEAVE = 'on_leave'
    ALL_STATUSES = (STATUS_ACTIVE, STATUS_INACTIVE, STATUS_ON_LEAVE)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    business_id: Mapped[int] = mapped_column(ForeignKey('businesses.id', ondelete='CASCADE'), index=True, nullable=False)
    branch_id: Mapped[Optional[int]] = mapped_column(ForeignKey('branches.id', ondelete='SET NULL'), index=True, nullable=True)
    # Login linked to this employee record, if any
    identity_id: Mapped[Optional[int]] = mapped_column(ForeignKey('identities.id', ondelete='SET NULL'), index=True, nullable=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    email: Mapped[str] = mapped_column(String(150), nullable=False, index=True)
    job_title: Mapped[str] = mapped_column(String(64), nullable=False)
    phone: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    address: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    hire_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=STATUS_ACTIVE, index=True)
    branch = relationship('Branch', back_populates='employees')
    employee_roles = relationship('EmployeeRole', back_populates='employee', passive_deletes=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


__all__ = ['Employee']
