"""SQLAlchemy ORM models for the four financial record collections"""

import uuid
from sqlalchemy import Column, String, Float, DateTime, Date, Text
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

Base = declarative_base()


def _uuid() -> str:
    return str(uuid.uuid4())


class IncomeRow(Base):
    """Income source record"""

    __tablename__ = "income"

    id = Column(String(36), primary_key=True, default=_uuid)
    owner_id = Column(Text, nullable=True, index=True)
    income_source = Column(String(100), nullable=False)
    amount = Column(Float, nullable=False)
    frequency = Column(String(16), nullable=False, index=True)
    date_received = Column(Date, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class AssetRow(Base):
    """Asset holding record"""

    __tablename__ = "asset"

    id = Column(String(36), primary_key=True, default=_uuid)
    owner_id = Column(Text, nullable=True, index=True)
    name = Column(String(100), nullable=False)
    asset_type = Column(String(32), nullable=False, index=True)
    current_value = Column(Float, nullable=False)
    interest_rate = Column(Float, nullable=False, default=0.0)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class LiabilityRow(Base):
    """Outstanding debt record"""

    __tablename__ = "liability"

    id = Column(String(36), primary_key=True, default=_uuid)
    owner_id = Column(Text, nullable=True, index=True)
    name = Column(String(100), nullable=False)
    liability_type = Column(String(32), nullable=False, index=True)
    outstanding_amount = Column(Float, nullable=False)
    interest_rate = Column(Float, nullable=False, default=0.0)
    due_date = Column(Date, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class CreditCardRow(Base):
    """Credit card account record"""

    __tablename__ = "credit_card"

    id = Column(String(36), primary_key=True, default=_uuid)
    owner_id = Column(Text, nullable=True, index=True)
    bank_name = Column(String(100), nullable=False)
    card_name = Column(String(100), nullable=False)
    credit_limit = Column(Float, nullable=False)
    outstanding_balance = Column(Float, nullable=False, default=0.0)
    interest_rate = Column(Float, nullable=False, default=0.0)
    due_date = Column(Date, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
