from __future__ import annotations
from datetime import datetime, date
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import Integer, String, Text, Date, ForeignKey, DateTime, UniqueConstraint, func
from typing import Optional

from .authz import Base


class Invoice(Base):
    __tablename__ = 'invoices'
    __table_args__ = (UniqueConstraint('business_id', 'invoice_number', name='uq_invoice_business_number'),)
    STATUS_UNPAID = 'unpaid'
    STATUS_PAID = 'paid'
    STATUS_OVERDUE = 'overdue'
    ALL_STATUSES = (STATUS_UNPAID, STATUS_PAID, STATUS_OVERDUE)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    business_id: Mapped[int] = mapped_column(ForeignKey('businesses.id', ondelete='CASCADE'), index=True, nullable=False)
    branch_id: Mapped[Optional[int]] = mapped_column(ForeignKey('branches.id', ondelete='SET NULL'), index=True, nullable=True)
    client_id: Mapped[int] = mapped_column(ForeignKey('clients.id', ondelete='RESTRICT'), index=True, nullable=False)
    invoice_number: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    issue_date: Mapped[date] = mapped_column(Date, nullable=False)
    due_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=STATUS_UNPAID, index=True)
    # Sum of item quantity * price, maintained server-side
    total_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_by: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    items = relationship('InvoiceItem', back_populates='invoice', order_by='InvoiceItem.id', cascade='all, delete-orphan')
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class InvoiceItem(Base):
    __tablename__ = 'invoice_items'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    invoice_id: Mapped[int] = mapped_column(ForeignKey('invoices.id', ondelete='CASCADE'), index=True, nullable=False)
    product_id: Mapped[int] = mapped_column(ForeignKey('products.id', ondelete='RESTRICT'), index=True, nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    price_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    invoice = relationship('Invoice', back_populates='items')
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    @property
    def line_total_cents(self) -> int:
        return self.quantity * self.price_cents


__all__ = ['Invoice', 'InvoiceItem']
