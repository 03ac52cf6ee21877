"""Read-only data access for the financial record collections"""

import asyncio
from typing import Callable, List, Optional, Type, TypeVar
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from advisor_gateway.infrastructure.database.models import AssetRow, CreditCardRow, IncomeRow, LiabilityRow
from advisor_gateway.domain.exceptions import DataError
from advisor_gateway.domain.models import AssetRecord, CreditCardRecord, IncomeRecord, LiabilityRecord

T = TypeVar("T")


class FinancialRecordRepository:
    """
    Repository over the income, asset, liability and credit card tables.

    Each read opens its own session and runs in a worker thread, so the four
    collections can be fetched concurrently from the event loop.
    """

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    async def list_incomes(self, owner_id: Optional[str] = None) -> List[IncomeRecord]:
        return await self._read(IncomeRow, owner_id, lambda row: IncomeRecord(
            income_source=row.income_source,
            amount=row.amount,
            frequency=row.frequency,
            date_received=row.date_received,
            owner_id=row.owner_id,
        ))

    async def list_assets(self, owner_id: Optional[str] = None) -> List[AssetRecord]:
        return await self._read(AssetRow, owner_id, lambda row: AssetRecord(
            name=row.name,
            asset_type=row.asset_type,
            current_value=row.current_value,
            interest_rate=row.interest_rate or 0.0,
            owner_id=row.owner_id,
        ))

    async def list_liabilities(self, owner_id: Optional[str] = None) -> List[LiabilityRecord]:
        return await self._read(LiabilityRow, owner_id, lambda row: LiabilityRecord(
            name=row.name,
            liability_type=row.liability_type,
            outstanding_amount=row.outstanding_amount,
            interest_rate=row.interest_rate or 0.0,
            due_date=row.due_date,
            owner_id=row.owner_id,
        ))

    async def list_credit_cards(self, owner_id: Optional[str] = None) -> List[CreditCardRecord]:
        return await self._read(CreditCardRow, owner_id, lambda row: CreditCardRecord(
            bank_name=row.bank_name,
            card_name=row.card_name,
            credit_limit=row.credit_limit,
            outstanding_balance=row.outstanding_balance or 0.0,
            interest_rate=row.interest_rate or 0.0,
            due_date=row.due_date,
            owner_id=row.owner_id,
        ))

    async def _read(self, model: Type, owner_id: Optional[str], to_record: Callable[[object], T]) -> List[T]:
        return await asyncio.to_thread(self._query, model, owner_id, to_record)

    def _query(self, model: Type, owner_id: Optional[str], to_record: Callable[[object], T]) -> List[T]:
        """Fetch a whole collection, optionally restricted to one owner"""
        db = self.session_factory()
        try:
            query = db.query(model)
            if owner_id is not None:
                query = query.filter(model.owner_id == owner_id)
            rows = query.order_by(model.created_at, model.id).all()
            return [to_record(row) for row in rows]
        except SQLAlchemyError as e:
            raise DataError(f"Record store query on {model.__tablename__} failed: {e.__class__.__name__}") from e
        finally:
            db.close()
