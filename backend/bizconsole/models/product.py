from __future__ import annotations
from datetime import datetime
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import Integer, String, Text, ForeignKey, DateTime, func
from typing import Optional

from .authz import Base


class Product(Base):
    __tablename__ = 'products'
    TYPE_PRODUCT = 'product'
    TYPE_SERVICE = 'service'
    ALL_TYPES = (TYPE_PRODUCT, TYPE_SERVICE)
    STATUS_ACTIVE = 'active'
    STATUS_INACTIVE = 'inactive'
    ALL_STATUSES = (STATUS_ACTIVE, STATUS_INACTIVE)
    LOW_STOCK_THRESHOLD = 5

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    business_id: Mapped[int] = mapped_column(ForeignKey('businesses.id', ondelete='CASCADE'), index=True, nullable=False)
    branch_id: Mapped[Optional[int]] = mapped_column(ForeignKey('branches.id', ondelete='SET NULL'), index=True, nullable=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    price_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    type: Mapped[str] = mapped_column(String(16), nullable=False, default=TYPE_PRODUCT)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=STATUS_ACTIVE, index=True)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    @classmethod
    def low_stock_criteria(cls):
        """Stocked, active items at or below the threshold. Services never count."""
        return (
            cls.type == cls.TYPE_PRODUCT,
            cls.status == cls.STATUS_ACTIVE,
            cls.quantity <= cls.LOW_STOCK_THRESHOLD,
        )

    @property
    def is_low_stock(self) -> bool:
        return (
            self.type == self.TYPE_PRODUCT
            and self.status == self.STATUS_ACTIVE
            and self.quantity <= self.LOW_STOCK_THRESHOLD
        )


__all__ = ['Product']
