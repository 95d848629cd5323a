from __future__ import annotations
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import Integer, String, Text, Date, ForeignKey, DateTime, text
from typing import Optional
from datetime import date, datetime

from .authz import Base


class SalesFunnel(Base):
    __tablename__ = 'sales_funnel'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    rfq_id: Mapped[int] = mapped_column(ForeignKey('rfq.id', ondelete='RESTRICT'), nullable=False, index=True)
    quote_date: Mapped[date] = mapped_column(Date, nullable=False)
    sent_by: Mapped[int] = mapped_column(ForeignKey('users.id', ondelete='RESTRICT'), nullable=False, index=True)
    description: Mapped[Optional[str]] = mapped_column(Text)
    exp_win_date: Mapped[date] = mapped_column(Date, nullable=False)
    last_updated: Mapped[Optional[datetime]] = mapped_column(DateTime)
    status: Mapped[Optional[str]] = mapped_column(String(50), index=True)
    remarks: Mapped[Optional[str]] = mapped_column(Text)
    rfq = relationship('RFQ')
    created_at: Mapped[str] = mapped_column(DateTime(timezone=True), server_default=text('CURRENT_TIMESTAMP'))
    updated_at: Mapped[str] = mapped_column(DateTime(timezone=True), server_default=text('CURRENT_TIMESTAMP'), server_onupdate=text('CURRENT_TIMESTAMP'))
