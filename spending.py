"""Per-category spending totals and budget threshold checks.

Everything here is a pure function over in-memory snapshots. Callers load the
transactions and categories for one user, pick a window label and pass the
reference instant explicitly; the result is rebuilt from scratch on every call.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Iterable, Optional, Sequence, Union

from periods import resolve_window

logger = logging.getLogger(__name__)

UNCATEGORIZED = "Uncategorized"

Amount = Union[int, float, Decimal]
# category name, or None for the "Uncategorized" fallback bucket
BucketKey = Optional[str]


class SummaryInputError(ValueError):
    pass


@dataclass(frozen=True)
class CategoryRecord:
    id: int
    name: str
    limit: Optional[Amount] = None

    def __post_init__(self) -> None:
        if not self.name:
            raise SummaryInputError(f"Category {self.id} has an empty name")
        if self.limit is not None and not self.limit > 0:
            raise SummaryInputError(
                f"Category {self.id} limit must be positive, got {self.limit!r}"
            )


@dataclass(frozen=True)
class TransactionRecord:
    id: int
    category_id: Optional[int]
    amount: Amount
    date: datetime
    user_id: int = 1


@dataclass(frozen=True)
class CategoryTotal:
    name: str
    total: Amount
    limit: Optional[Amount]


@dataclass(frozen=True)
class CategorySummary:
    name: str
    total_spent: Amount
    limit: Optional[Amount]
    over_limit: bool


@dataclass(frozen=True)
class ChartSeries:
    labels: list[str]
    totals: list[Amount]
    over_limit: dict[str, bool]


def _naive_utc(value: object, what: str) -> datetime:
    if not isinstance(value, datetime):
        raise SummaryInputError(f"{what} must be a datetime, got {value!r}")
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _is_valid_amount(txn: TransactionRecord) -> bool:
    amount = txn.amount
    if isinstance(amount, bool) or not isinstance(amount, (int, float, Decimal)):
        raise SummaryInputError(
            f"Transaction {txn.id} amount must be numeric, got {amount!r}"
        )
    return math.isfinite(amount) and amount > 0


def filter_transactions(
    transactions: Iterable[TransactionRecord],
    now: datetime,
    duration: Optional[timedelta],
) -> list[TransactionRecord]:
    """Keep transactions dated no more than ``duration`` before ``now``.

    ``duration=None`` keeps everything. Future-dated transactions have a
    negative elapsed time and are always kept.
    """
    reference = _naive_utc(now, "now")
    if duration is None:
        return list(transactions)
    kept: list[TransactionRecord] = []
    for txn in transactions:
        elapsed = reference - _naive_utc(txn.date, f"Transaction {txn.id} date")
        if elapsed <= duration:
            kept.append(txn)
    return kept


def aggregate_by_category(
    transactions: Iterable[TransactionRecord],
    categories: Iterable[CategoryRecord],
) -> dict[BucketKey, CategoryTotal]:
    """Sum valid amounts per category name, in first-appearance order.

    Unresolved transactions are keyed by ``None`` rather than by name, so a
    real category that happens to be called "Uncategorized" never lends its
    limit to them.
    """
    by_id = {category.id: category for category in categories}
    totals: dict[BucketKey, CategoryTotal] = {}
    seen_float = seen_decimal = False

    for txn in transactions:
        if not _is_valid_amount(txn):
            logger.warning(
                f"transaction_skipped: id={txn.id} amount={txn.amount!r} "
                "reason=non_positive_amount"
            )
            continue

        seen_float = seen_float or isinstance(txn.amount, float)
        seen_decimal = seen_decimal or isinstance(txn.amount, Decimal)
        if seen_float and seen_decimal:
            raise SummaryInputError(
                f"Transaction {txn.id} mixes float and Decimal amounts"
            )

        category = by_id.get(txn.category_id) if txn.category_id is not None else None
        if category is None:
            key: BucketKey = None
            name, limit = UNCATEGORIZED, None
        else:
            key = name = category.name
            limit = category.limit

        current = totals.get(key)
        if current is None:
            totals[key] = CategoryTotal(name=name, total=txn.amount, limit=limit)
            continue
        if current.limit != limit:
            logger.warning(
                f"limit_conflict: category={name!r} kept={current.limit!r} "
                f"ignored={limit!r} transaction_id={txn.id}"
            )
        totals[key] = CategoryTotal(
            name=name, total=current.total + txn.amount, limit=current.limit
        )

    return totals


def is_over_limit(total: Amount, limit: Optional[Amount]) -> bool:
    if limit is None:
        return False
    return total > limit


def classify(aggregated: dict[BucketKey, CategoryTotal]) -> dict[BucketKey, bool]:
    return {
        key: is_over_limit(entry.total, entry.limit)
        for key, entry in aggregated.items()
    }


def build_summary(
    aggregated: dict[BucketKey, CategoryTotal], flags: dict[BucketKey, bool]
) -> list[CategorySummary]:
    # insertion order of ``aggregated`` is first appearance in the filtered input
    return [
        CategorySummary(
            name=entry.name,
            total_spent=entry.total,
            limit=entry.limit,
            over_limit=flags.get(key, False),
        )
        for key, entry in aggregated.items()
    ]


def summarize(
    transactions: Sequence[TransactionRecord],
    categories: Sequence[CategoryRecord],
    window_label: Optional[str],
    now: datetime,
) -> list[CategorySummary]:
    window = resolve_window(window_label)
    filtered = filter_transactions(transactions, now, window.duration)
    aggregated = aggregate_by_category(filtered, categories)
    flags = classify(aggregated)
    summary = build_summary(aggregated, flags)
    logger.debug(
        f"summarize: window={window.label} input={len(transactions)} "
        f"filtered={len(filtered)} items={len(summary)}"
    )
    return summary


def chart_series(summaries: Iterable[CategorySummary]) -> ChartSeries:
    labels: list[str] = []
    totals: list[Amount] = []
    over_limit: dict[str, bool] = {}
    for item in summaries:
        labels.append(item.name)
        totals.append(item.total_spent)
        over_limit[item.name] = over_limit.get(item.name, False) or item.over_limit
    return ChartSeries(labels=labels, totals=totals, over_limit=over_limit)
