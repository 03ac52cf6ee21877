"""In-memory advice cache keyed by a fingerprint of (recommendation type, snapshot)"""

import asyncio
import hashlib
import json
import logging
import time
from dataclasses import replace
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple

from advisor_gateway.domain.exceptions import CacheError
from advisor_gateway.domain.models import Advice, CacheEntry, CacheStats, FinancialSnapshot
from advisor_gateway.infrastructure.observability.metrics import (
    cache_eviction_counter,
    cache_hit_counter,
    cache_miss_counter,
    metric_label,
)

DEFAULT_TTL_SECONDS = 30 * 60
DEFAULT_MAX_SIZE = 100


def _amount(value: Optional[float]) -> Optional[float]:
    return None if value is None else round(float(value), 2)


def _snapshot_fingerprint_fields(snapshot: FinancialSnapshot) -> Dict[str, Any]:
    """Numeric and categorical content of a snapshot, independent of record order"""
    return {
        "owner_id": snapshot.owner_id,
        "total_assets": _amount(snapshot.total_assets),
        "total_liabilities": _amount(snapshot.total_liabilities),
        "total_credit_card_debt": _amount(snapshot.total_credit_card_debt),
        "total_credit_limit": _amount(snapshot.total_credit_limit),
        "monthly_income": _amount(snapshot.monthly_income),
        "net_worth": _amount(snapshot.net_worth),
        "credit_utilization": _amount(snapshot.credit_utilization),
        "debt_to_income_ratio": _amount(snapshot.debt_to_income_ratio),
        "asset_breakdown": [[g.category, g.count, _amount(g.total)] for g in snapshot.asset_breakdown],
        "income_breakdown": [[g.category, g.count, _amount(g.total)] for g in snapshot.income_breakdown],
        "liability_breakdown": [[g.category, g.count, _amount(g.total)] for g in snapshot.liability_breakdown],
        "assets": sorted(
            [a.name, a.asset_type, _amount(a.current_value), _amount(a.interest_rate)]
            for a in snapshot.assets
        ),
        "incomes": sorted(
            [i.income_source, i.frequency, _amount(i.amount)]
            for i in snapshot.incomes
        ),
        "liabilities": sorted(
            [
                l.name,
                l.liability_type,
                _amount(l.outstanding_amount),
                _amount(l.interest_rate),
                l.due_date.isoformat() if l.due_date else "",
            ]
            for l in snapshot.liabilities
        ),
        "credit_cards": sorted(
            [
                c.bank_name,
                c.card_name,
                _amount(c.credit_limit),
                _amount(c.outstanding_balance),
                _amount(c.interest_rate),
                c.due_date.isoformat() if c.due_date else "",
            ]
            for c in snapshot.credit_cards
        ),
    }


def fingerprint(recommendation_type: str, snapshot: FinancialSnapshot) -> str:
    """
    Stable cache key for a recommendation type over a snapshot.

    Amounts are rounded to cents and record lists sorted, so two snapshots
    built from the same records in a different order share a key.
    """
    canonical = json.dumps(
        _snapshot_fingerprint_fields(snapshot),
        sort_keys=True,
        separators=(",", ":"),
        default=str,
    )
    digest = hashlib.sha256(canonical.encode("utf-8")).hexdigest()
    return f"{recommendation_type}:{digest}"


def _type_label(recommendation_type) -> str:
    return getattr(recommendation_type, "value", recommendation_type)


class AdviceCache:
    """
    Bounded TTL cache for generated advice.

    Entries expire a fixed TTL after creation and are dropped lazily on
    lookup. When full, expired entries go first, then the entry with the
    oldest creation time. Concurrent misses for one key share a single
    computation. Invalidating or clearing also drops generations still in
    flight, so their results reach the callers already waiting but are
    never stored.
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        max_size: int = DEFAULT_MAX_SIZE,
        clock: Callable[[], float] = time.time,
    ):
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self.ttl_seconds = ttl_seconds
        self.max_size = max_size
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._in_flight: Dict[str, Tuple[str, asyncio.Task]] = {}
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, recommendation_type, snapshot: FinancialSnapshot) -> Optional[Advice]:
        """Return cached advice for a valid entry, or None on a miss"""
        label = _type_label(recommendation_type)
        key = fingerprint(label, snapshot)
        entry = self._lookup(key)

        if entry is None:
            self.misses += 1
            cache_miss_counter.labels(type=metric_label(label)).inc()
            return None

        self.hits += 1
        cache_hit_counter.labels(type=metric_label(label)).inc()
        logging.info(
            "Cache hit",
            extra={"cache_key": key, "age_seconds": round(self._clock() - entry.created_at, 3)},
        )
        return replace(entry.value, from_cache=True)

    def put(self, recommendation_type, snapshot: FinancialSnapshot, advice: Advice) -> CacheEntry:
        """Store advice, replacing any prior entry for the same key"""
        label = _type_label(recommendation_type)
        key = fingerprint(label, snapshot)
        return self._store(key, label, advice)

    async def get_or_compute(
        self,
        recommendation_type,
        snapshot: FinancialSnapshot,
        compute_fn: Callable[[], Awaitable[Advice]],
    ) -> Advice:
        """
        Return cached advice, or run compute_fn on a miss and cache its result.

        A failing compute_fn caches nothing and its exception propagates to
        every caller waiting on the same key.
        """
        label = _type_label(recommendation_type)
        cached = self.get(label, snapshot)
        if cached is not None:
            return cached

        key = fingerprint(label, snapshot)
        task = self._in_flight.get(key, (label, None))[1]
        if task is None:
            logging.info("Generating new recommendation", extra={"recommendation_type": label, "cache_key": key})
            task = asyncio.ensure_future(self._compute_and_store(key, label, compute_fn))
            self._in_flight[key] = (label, task)
            task.add_done_callback(lambda done, key=key: self._forget(key, done))
        else:
            logging.info("Joining in-flight generation", extra={"recommendation_type": label, "cache_key": key})

        advice = await asyncio.shield(task)
        return replace(advice, from_cache=False)

    def invalidate(self, recommendation_type) -> int:
        """Remove every entry for one recommendation type"""
        label = _type_label(recommendation_type)
        self._drop_in_flight(label)
        keys = [k for k, e in self._entries.items() if e.recommendation_type == label]
        for key in keys:
            del self._entries[key]
        if keys:
            logging.info("Invalidated cache for type", extra={"recommendation_type": label, "count": len(keys)})
        return len(keys)

    def clear(self) -> int:
        count = len(self._entries)
        self._drop_in_flight()
        self._entries.clear()
        logging.info("Cache cleared", extra={"count": count})
        return count

    def clean_expired(self) -> int:
        now = self._clock()
        expired = [k for k, e in self._entries.items() if e.is_expired(now)]
        for key in expired:
            del self._entries[key]
        if expired:
            logging.info("Cleaned expired cache entries", extra={"count": len(expired)})
        return len(expired)

    def stats(self) -> CacheStats:
        now = self._clock()
        expired = sum(1 for e in self._entries.values() if e.is_expired(now))
        return CacheStats(
            total_entries=len(self._entries),
            valid_entries=len(self._entries) - expired,
            expired_entries=expired,
            max_size=self.max_size,
            default_ttl_minutes=self.ttl_seconds / 60,
            hits=self.hits,
            misses=self.misses,
        )

    # ------------------------------------------------------------------

    def _lookup(self, key: str) -> Optional[CacheEntry]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.key != key:
            raise CacheError(f"Cache entry stored under {key} carries key {entry.key}")
        if entry.is_expired(self._clock()):
            del self._entries[key]
            logging.info("Cache expired and removed", extra={"cache_key": key})
            return None
        return entry

    def _store(self, key: str, label: str, advice: Advice) -> CacheEntry:
        # Re-inserting moves the key to the end of insertion order
        self._entries.pop(key, None)
        if len(self._entries) >= self.max_size:
            self.clean_expired()
        while len(self._entries) >= self.max_size:
            self._evict_oldest()

        now = self._clock()
        entry = CacheEntry(
            key=key,
            recommendation_type=label,
            value=replace(advice, from_cache=False),
            created_at=now,
            expires_at=now + self.ttl_seconds,
        )
        self._entries[key] = entry
        logging.info(
            "Data cached",
            extra={"cache_key": key, "ttl_minutes": self.ttl_seconds / 60, "cache_size": len(self._entries)},
        )
        return entry

    def _evict_oldest(self) -> None:
        # min() keeps the first of equal timestamps, i.e. the earliest inserted
        oldest_key = min(self._entries, key=lambda k: self._entries[k].created_at)
        del self._entries[oldest_key]
        cache_eviction_counter.inc()
        logging.info("Evicted oldest cache entry", extra={"cache_key": oldest_key})

    async def _compute_and_store(
        self,
        key: str,
        label: str,
        compute_fn: Callable[[], Awaitable[Advice]],
    ) -> Advice:
        advice = await compute_fn()
        # A generation dropped by invalidate/clear still answers its waiters but is not stored
        if self._in_flight.get(key, (label, None))[1] is asyncio.current_task():
            self._store(key, label, advice)
        return advice

    def _forget(self, key: str, task: asyncio.Task) -> None:
        if self._in_flight.get(key, (None, None))[1] is task:
            del self._in_flight[key]

    def _drop_in_flight(self, label: Optional[str] = None) -> None:
        keys = [k for k, (l, _) in self._in_flight.items() if label is None or l == label]
        for key in keys:
            del self._in_flight[key]
