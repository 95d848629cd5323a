from __future__ import annotations
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import Integer, String, Text, Numeric, Date, ForeignKey, DateTime, UniqueConstraint, text
from typing import Optional
from datetime import date
from decimal import Decimal

from .authz import Base
from salesflow.constants.permissions import RFQ_PROGRESS_DEFAULT


class RFQ(Base):
    __tablename__ = 'rfq'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    receive_date: Mapped[date] = mapped_column(Date, nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    customer_id: Mapped[int] = mapped_column(ForeignKey('customers.id', ondelete='RESTRICT'), nullable=False, index=True)
    salesperson_id: Mapped[int] = mapped_column(ForeignKey('users.id', ondelete='RESTRICT'), nullable=False, index=True)
    quantity: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    price: Mapped[str] = mapped_column(String(100), nullable=False)
    progress: Mapped[str] = mapped_column(String(64), nullable=False, default=RFQ_PROGRESS_DEFAULT, index=True)
    rfq_location: Mapped[Optional[str]] = mapped_column(String(255))
    remarks: Mapped[Optional[str]] = mapped_column(Text)
    prepared_people = relationship('RFQPreparedPerson', cascade='all, delete-orphan', order_by='RFQPreparedPerson.user_id')
    created_at: Mapped[str] = mapped_column(DateTime(timezone=True), server_default=text('CURRENT_TIMESTAMP'))
    updated_at: Mapped[str] = mapped_column(DateTime(timezone=True), server_default=text('CURRENT_TIMESTAMP'), server_onupdate=text('CURRENT_TIMESTAMP'))

    @property
    def prepared_by(self):
        return [p.user_id for p in self.prepared_people]


class RFQPreparedPerson(Base):
    __tablename__ = 'rfq_prepared_people'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    rfq_id: Mapped[int] = mapped_column(ForeignKey('rfq.id', ondelete='CASCADE'), nullable=False)
    user_id: Mapped[int] = mapped_column(ForeignKey('users.id', ondelete='RESTRICT'), nullable=False, index=True)
    __table_args__ = (UniqueConstraint('rfq_id', 'user_id', name='uq_rfq_prepared_person'),)
