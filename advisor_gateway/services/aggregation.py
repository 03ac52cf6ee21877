"""Data aggregation engine - concurrent record reads reduced into a FinancialSnapshot"""

import asyncio
import logging
from typing import List, Optional, Protocol

from advisor_gateway.config import settings
from advisor_gateway.domain.aggregation import build_snapshot
from advisor_gateway.domain.exceptions import DataError
from advisor_gateway.domain.models import (
    AssetRecord,
    CreditCardRecord,
    FinancialSnapshot,
    IncomeRecord,
    LiabilityRecord,
    RecordCollections,
)
from advisor_gateway.infrastructure.observability.metrics import record_store_failures_counter


class FinancialRecordStore(Protocol):
    """Read side of the record store consumed by the aggregation engine"""

    async def list_incomes(self, owner_id: Optional[str] = None) -> List[IncomeRecord]: ...

    async def list_assets(self, owner_id: Optional[str] = None) -> List[AssetRecord]: ...

    async def list_liabilities(self, owner_id: Optional[str] = None) -> List[LiabilityRecord]: ...

    async def list_credit_cards(self, owner_id: Optional[str] = None) -> List[CreditCardRecord]: ...


class AggregationEngine:
    """Builds snapshots from the record store; all-or-nothing on failure"""

    def __init__(self, store: FinancialRecordStore, one_time_policy: str | None = None):
        self.store = store
        self.one_time_policy = one_time_policy or settings.one_time_income_policy

    async def fetch_records(self, owner_id: Optional[str] = None) -> RecordCollections:
        """
        Read all four collections concurrently and wait for every read.

        Raises:
            DataError: If any read fails; no partial collections are returned
        """
        results = await asyncio.gather(
            self.store.list_incomes(owner_id),
            self.store.list_assets(owner_id),
            self.store.list_liabilities(owner_id),
            self.store.list_credit_cards(owner_id),
            return_exceptions=True,
        )

        failures = [r for r in results if isinstance(r, BaseException)]
        if failures:
            record_store_failures_counter.inc()
            first = failures[0]
            if isinstance(first, asyncio.CancelledError):
                raise first
            if isinstance(first, DataError):
                raise first
            raise DataError(f"Record store unavailable: {first.__class__.__name__}") from first

        incomes, assets, liabilities, credit_cards = results
        logging.info(
            "Financial data fetched successfully",
            extra={
                "owner_id": owner_id,
                "income_count": len(incomes),
                "assets_count": len(assets),
                "liabilities_count": len(liabilities),
                "credit_cards_count": len(credit_cards),
            },
        )
        return RecordCollections(
            incomes=list(incomes),
            assets=list(assets),
            liabilities=list(liabilities),
            credit_cards=list(credit_cards),
        )

    async def aggregate(self, owner_id: Optional[str] = None) -> FinancialSnapshot:
        """
        Main entry point: fetch every collection for the scope and derive metrics.

        Raises:
            DataError: Store unavailable or a record is malformed
        """
        logging.info("Starting financial data aggregation", extra={"owner_id": owner_id})
        records = await self.fetch_records(owner_id)
        return build_snapshot(records, owner_id=owner_id, one_time_policy=self.one_time_policy)
