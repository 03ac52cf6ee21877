"""Financial metrics engine - reduces raw records into a FinancialSnapshot"""

import math
from collections import defaultdict
from typing import Dict, Iterable, List, Optional, Tuple

from advisor_gateway.domain.exceptions import DataError
from advisor_gateway.domain.models import (
    ASSET_TYPES,
    INCOME_FREQUENCIES,
    LIABILITY_TYPES,
    AssetRecord,
    BreakdownGroup,
    CreditCardDetail,
    CreditCardRecord,
    FinancialSnapshot,
    IncomeRecord,
    Insight,
    LiabilityRecord,
    RecordCollections,
)

# Multipliers converting an amount at a given cadence into a monthly equivalent
MONTHLY_MULTIPLIERS: Dict[str, float] = {
    "daily": 30.0,
    "weekly": 4.33,
    "bi-weekly": 2.17,
    "monthly": 1.0,
    "quarterly": 1 / 3,
    "yearly": 1 / 12,
}

# One-time income spread over a year when amortized
ONE_TIME_AMORTIZATION_MONTHS = 12

# Insight thresholds
HIGH_UTILIZATION_PCT = 30.0
EXCELLENT_UTILIZATION_PCT = 10.0
HIGH_DEBT_TO_INCOME = 0.4
EMERGENCY_FUND_MONTHS = 6


def _check_amount(value, field_name: str, record_kind: str, index: int) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise DataError(f"Malformed {record_kind} record #{index}: {field_name} is not a number")
    if not math.isfinite(value) or value < 0:
        raise DataError(f"Malformed {record_kind} record #{index}: {field_name} must be a non-negative number")


def _check_choice(value, allowed: Tuple[str, ...], field_name: str, record_kind: str, index: int) -> None:
    if value not in allowed:
        raise DataError(f"Malformed {record_kind} record #{index}: unknown {field_name} {value!r}")


def validate_records(records: RecordCollections) -> None:
    """
    Basic shape checks over every record.

    Raises:
        DataError: On the first record with a non-numeric, negative or
            non-finite amount, or an unknown category/frequency
    """
    for i, inc in enumerate(records.incomes):
        _check_amount(inc.amount, "amount", "income", i)
        _check_choice(inc.frequency, INCOME_FREQUENCIES, "frequency", "income", i)

    for i, asset in enumerate(records.assets):
        _check_amount(asset.current_value, "current_value", "asset", i)
        _check_amount(asset.interest_rate, "interest_rate", "asset", i)
        _check_choice(asset.asset_type, ASSET_TYPES, "asset_type", "asset", i)

    for i, liab in enumerate(records.liabilities):
        _check_amount(liab.outstanding_amount, "outstanding_amount", "liability", i)
        _check_amount(liab.interest_rate, "interest_rate", "liability", i)
        _check_choice(liab.liability_type, LIABILITY_TYPES, "liability_type", "liability", i)

    for i, card in enumerate(records.credit_cards):
        _check_amount(card.credit_limit, "credit_limit", "credit card", i)
        _check_amount(card.outstanding_balance, "outstanding_balance", "credit card", i)
        _check_amount(card.interest_rate, "interest_rate", "credit card", i)


def normalize_monthly_amount(amount: float, frequency: str, one_time_policy: str = "exclude") -> float:
    """
    Convert an income amount to its monthly equivalent.

    One-time income is either left out of the recurring total ("exclude")
    or spread over twelve months ("amortize").
    """
    if frequency == "one-time":
        if one_time_policy == "amortize":
            return amount / ONE_TIME_AMORTIZATION_MONTHS
        return 0.0
    return amount * MONTHLY_MULTIPLIERS[frequency]


def calculate_monthly_income(incomes: Iterable[IncomeRecord], one_time_policy: str = "exclude") -> float:
    return sum(normalize_monthly_amount(inc.amount, inc.frequency, one_time_policy) for inc in incomes)


def card_utilization_rate(card: CreditCardRecord) -> float:
    """Balance as a percentage of limit; a zero limit yields 0.0"""
    if card.credit_limit <= 0:
        return 0.0
    return max(0.0, card.outstanding_balance / card.credit_limit * 100)


def calculate_credit_utilization(credit_cards: Iterable[CreditCardRecord]) -> float:
    """Aggregate utilization percentage across all cards, clamped to [0, inf)"""
    cards = list(credit_cards)
    total_debt = sum(c.outstanding_balance for c in cards)
    total_limit = sum(c.credit_limit for c in cards)
    if total_limit <= 0:
        return 0.0
    return max(0.0, total_debt / total_limit * 100)


def _group(items: Iterable[Tuple[str, float]]) -> Tuple[BreakdownGroup, ...]:
    counts: Dict[str, int] = defaultdict(int)
    totals: Dict[str, float] = defaultdict(float)
    for category, value in items:
        counts[category] += 1
        totals[category] += value
    return tuple(
        BreakdownGroup(category=category, count=counts[category], total=totals[category])
        for category in sorted(counts)
    )


def categorize_assets(assets: Iterable[AssetRecord]) -> Tuple[BreakdownGroup, ...]:
    return _group((a.asset_type, a.current_value) for a in assets)


def categorize_income(incomes: Iterable[IncomeRecord]) -> Tuple[BreakdownGroup, ...]:
    return _group((i.income_source or "other", i.amount) for i in incomes)


def categorize_liabilities(liabilities: Iterable[LiabilityRecord]) -> Tuple[BreakdownGroup, ...]:
    return _group((l.liability_type, l.outstanding_amount) for l in liabilities)


def describe_credit_cards(credit_cards: Iterable[CreditCardRecord]) -> Tuple[CreditCardDetail, ...]:
    return tuple(
        CreditCardDetail(
            bank_name=card.bank_name,
            card_name=card.card_name,
            credit_limit=card.credit_limit,
            outstanding_balance=card.outstanding_balance,
            interest_rate=card.interest_rate,
            due_date=card.due_date,
            utilization_rate=card_utilization_rate(card),
            available_credit=max(0.0, card.credit_limit - card.outstanding_balance),
        )
        for card in credit_cards
    )


def generate_insights(
    net_worth: float,
    monthly_income: float,
    credit_utilization: float,
    debt_to_income_ratio: float,
    total_assets: float,
    total_credit_limit: float,
) -> List[Insight]:
    """
    Threshold rules over the derived metrics.

    Rules:
    - Net worth above zero is positive, below zero is a warning
    - Utilization above 30% is a warning, at or below 10% is positive
      (only when some credit limit exists)
    - Debt-to-income above 0.4 is a warning
    - Assets below six months of income suggest building an emergency fund
    """
    insights: List[Insight] = []

    if net_worth > 0:
        insights.append(Insight(
            type="positive",
            category="net_worth",
            message=f"Positive net worth of ${net_worth:,.2f} indicates healthy financial position",
        ))
    elif net_worth < 0:
        insights.append(Insight(
            type="warning",
            category="net_worth",
            message=f"Negative net worth of ${abs(net_worth):,.2f} requires immediate attention",
        ))

    if credit_utilization > HIGH_UTILIZATION_PCT:
        insights.append(Insight(
            type="warning",
            category="credit_utilization",
            message=f"High credit utilization at {credit_utilization:.1f}% - aim for under 30%",
        ))
    elif total_credit_limit > 0 and credit_utilization <= EXCELLENT_UTILIZATION_PCT:
        insights.append(Insight(
            type="positive",
            category="credit_utilization",
            message=f"Excellent credit utilization at {credit_utilization:.1f}%",
        ))

    if debt_to_income_ratio > HIGH_DEBT_TO_INCOME:
        insights.append(Insight(
            type="warning",
            category="debt_to_income",
            message=(
                f"High debt-to-income ratio of {debt_to_income_ratio * 100:.1f}% "
                "- consider debt reduction"
            ),
        ))

    emergency_fund_target = monthly_income * EMERGENCY_FUND_MONTHS
    if total_assets < emergency_fund_target:
        insights.append(Insight(
            type="recommendation",
            category="emergency_fund",
            message=(
                f"Consider building emergency fund of ${emergency_fund_target:,.2f} "
                f"({EMERGENCY_FUND_MONTHS} months expenses)"
            ),
        ))

    return insights


def build_snapshot(
    records: RecordCollections,
    owner_id: Optional[str] = None,
    one_time_policy: str = "exclude",
) -> FinancialSnapshot:
    """
    Main entry point: validate records and compute every derived metric.

    Empty collections produce a zero-valued snapshot.

    Raises:
        DataError: If any record fails shape checks
    """
    validate_records(records)

    total_assets = sum(a.current_value for a in records.assets)
    total_income = sum(i.amount for i in records.incomes)
    total_liabilities = sum(l.outstanding_amount for l in records.liabilities)
    total_credit_card_debt = sum(c.outstanding_balance for c in records.credit_cards)
    total_credit_limit = sum(c.credit_limit for c in records.credit_cards)
    cards = describe_credit_cards(records.credit_cards)
    total_available_credit = sum(c.available_credit for c in cards)

    net_worth = total_assets - total_liabilities - total_credit_card_debt
    monthly_income = calculate_monthly_income(records.incomes, one_time_policy)
    credit_utilization = calculate_credit_utilization(records.credit_cards)

    # Zero income defines the ratio as 0 rather than infinity
    debt_to_income_ratio = (
        (total_liabilities + total_credit_card_debt) / monthly_income if monthly_income > 0 else 0.0
    )

    insights = generate_insights(
        net_worth=net_worth,
        monthly_income=monthly_income,
        credit_utilization=credit_utilization,
        debt_to_income_ratio=debt_to_income_ratio,
        total_assets=total_assets,
        total_credit_limit=total_credit_limit,
    )

    return FinancialSnapshot(
        owner_id=owner_id,
        total_assets=total_assets,
        total_liabilities=total_liabilities,
        total_credit_card_debt=total_credit_card_debt,
        total_income=total_income,
        total_credit_limit=total_credit_limit,
        total_available_credit=total_available_credit,
        net_worth=net_worth,
        monthly_income=monthly_income,
        debt_to_income_ratio=debt_to_income_ratio,
        credit_utilization=credit_utilization,
        asset_breakdown=categorize_assets(records.assets),
        income_breakdown=categorize_income(records.incomes),
        liability_breakdown=categorize_liabilities(records.liabilities),
        credit_cards=cards,
        assets=tuple(records.assets),
        incomes=tuple(records.incomes),
        liabilities=tuple(records.liabilities),
        insights=tuple(insights),
    )
