from __future__ import annotations
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import Integer, String, Numeric, Date, ForeignKey, DateTime, text
from typing import Optional
from datetime import date
from decimal import Decimal

from .authz import Base


class Invoice(Base):
    __tablename__ = 'invoices'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    invoice_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    customer_id: Mapped[int] = mapped_column(ForeignKey('customers.id', ondelete='RESTRICT'), nullable=False, index=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(20, 3), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, index=True)
    created_by: Mapped[Optional[int]] = mapped_column(ForeignKey('users.id'), index=True)
    created_at: Mapped[str] = mapped_column(DateTime(timezone=True), server_default=text('CURRENT_TIMESTAMP'))
    updated_at: Mapped[str] = mapped_column(DateTime(timezone=True), server_default=text('CURRENT_TIMESTAMP'), server_onupdate=text('CURRENT_TIMESTAMP'))
