import logging
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from spending import (
    UNCATEGORIZED,
    CategoryRecord,
    CategorySummary,
    SummaryInputError,
    TransactionRecord,
    aggregate_by_category,
    build_summary,
    chart_series,
    classify,
    filter_transactions,
    is_over_limit,
    summarize,
)

T0 = datetime(2025, 1, 1, 12, 0)

CATEGORIES = [
    CategoryRecord(id=1, name="Food", limit=500),
    CategoryRecord(id=2, name="Rent", limit=1200),
]


def _txn(txn_id: int, category_id, amount, when: datetime = T0) -> TransactionRecord:
    return TransactionRecord(
        id=txn_id, category_id=category_id, amount=amount, date=when, user_id=1
    )


def test_all_time_summary_flags_only_strict_overspend():
    transactions = [_txn(1, 1, 300), _txn(2, 1, 250), _txn(3, 2, 1200)]

    summary = summarize(transactions, CATEGORIES, "All Time", T0)

    assert summary == [
        CategorySummary(name="Food", total_spent=550, limit=500, over_limit=True),
        CategorySummary(name="Rent", total_spent=1200, limit=1200, over_limit=False),
    ]


def test_one_month_window_drops_old_transactions():
    transactions = [_txn(1, 1, 300), _txn(2, 1, 250), _txn(3, 2, 1200)]

    summary = summarize(transactions, CATEGORIES, "1 Month", T0 + timedelta(days=40))

    assert summary == []


def test_unknown_category_goes_to_uncategorized():
    summary = summarize([_txn(1, 99, 50)], CATEGORIES, "All Time", T0)

    assert summary == [
        CategorySummary(name=UNCATEGORIZED, total_spent=50, limit=None, over_limit=False)
    ]


def test_missing_category_reference_goes_to_uncategorized():
    summary = summarize([_txn(1, None, 10), _txn(2, 42, 15)], CATEGORIES, None, T0)

    assert [(s.name, s.total_spent) for s in summary] == [(UNCATEGORIZED, 25)]


def test_empty_input_gives_empty_summary():
    assert summarize([], CATEGORIES, "1 Year", T0) == []


def test_order_follows_first_appearance_not_name_or_amount():
    categories = CATEGORIES + [CategoryRecord(id=3, name="Books", limit=None)]
    transactions = [_txn(1, 2, 10), _txn(2, 3, 999), _txn(3, 1, 5), _txn(4, 2, 1)]

    summary = summarize(transactions, categories, "All Time", T0)

    assert [s.name for s in summary] == ["Rent", "Books", "Food"]


def test_zero_activity_categories_are_not_listed():
    summary = summarize([_txn(1, 1, 20)], CATEGORIES, "All Time", T0)

    assert [s.name for s in summary] == ["Food"]


def test_filter_keeps_boundary_and_future_transactions():
    now = T0 + timedelta(days=30)
    on_boundary = _txn(1, 1, 1, T0)
    just_outside = _txn(2, 1, 1, T0 - timedelta(seconds=1))
    future = _txn(3, 1, 1, now + timedelta(days=3))

    kept = filter_transactions(
        [on_boundary, just_outside, future], now, timedelta(days=30)
    )

    assert kept == [on_boundary, future]


def test_filter_without_duration_returns_everything_in_order():
    transactions = [_txn(2, 1, 1), _txn(1, 1, 1), _txn(2, 1, 1)]

    assert filter_transactions(transactions, T0, None) == transactions


def test_filter_handles_aware_now_against_naive_dates():
    now = datetime(2025, 1, 31, 12, 0, tzinfo=timezone.utc)
    kept = filter_transactions([_txn(1, 1, 5, T0)], now, timedelta(days=30))

    assert len(kept) == 1


def test_non_positive_amounts_are_excluded(caplog):
    transactions = [
        _txn(1, 1, 100),
        _txn(2, 1, 0),
        _txn(3, 1, -40),
        _txn(4, 1, float("nan")),
    ]

    with caplog.at_level(logging.WARNING, logger="spending"):
        summary = summarize(transactions, CATEGORIES, "All Time", T0)

    assert summary == [
        CategorySummary(name="Food", total_spent=100, limit=500, over_limit=False)
    ]
    assert "transaction_skipped" in caplog.text


def test_category_with_only_invalid_amounts_is_not_listed():
    assert summarize([_txn(1, 2, -5)], CATEGORIES, "All Time", T0) == []


def test_conflicting_limits_keep_first_seen(caplog):
    categories = [
        CategoryRecord(id=1, name="Food", limit=500),
        CategoryRecord(id=7, name="Food", limit=50),
    ]
    transactions = [_txn(1, 1, 100), _txn(2, 7, 100)]

    with caplog.at_level(logging.WARNING, logger="spending"):
        aggregated = aggregate_by_category(transactions, categories)

    assert aggregated["Food"].total == 200
    assert aggregated["Food"].limit == 500
    assert "limit_conflict" in caplog.text


def test_threshold_is_strict_and_unbounded_never_over():
    assert is_over_limit(501, 500) is True
    assert is_over_limit(500, 500) is False
    assert is_over_limit(499, 500) is False
    assert is_over_limit(10**9, None) is False


def test_classify_and_build_summary_line_up():
    aggregated = aggregate_by_category(
        [_txn(1, 1, 600), _txn(2, 99, 5)], CATEGORIES
    )
    flags = classify(aggregated)

    assert flags == {"Food": True, None: False}
    assert [s.over_limit for s in build_summary(aggregated, flags)] == [True, False]


def test_decimal_amounts_are_supported():
    transactions = [_txn(1, 1, Decimal("250.25")), _txn(2, 1, Decimal("249.75"))]

    summary = summarize(transactions, CATEGORIES, "All Time", T0)

    assert summary[0].total_spent == Decimal("500.00")
    assert summary[0].over_limit is False


def test_repeated_runs_are_identical():
    transactions = [_txn(i, (i % 3) + 1, 10 * i) for i in range(1, 20)]

    first = summarize(transactions, CATEGORIES, "All Time", T0)
    second = summarize(transactions, CATEGORIES, "All Time", T0)

    assert first == second


def test_wider_window_never_reduces_totals():
    now = T0 + timedelta(days=400)
    transactions = [
        _txn(i, (i % 2) + 1, 7, now - timedelta(days=i * 11)) for i in range(60)
    ]
    labels = ["1 Month", "3 Months", "6 Months", "1 Year", "5 Years", "All Time"]

    totals = [
        {s.name: s.total_spent for s in summarize(transactions, CATEGORIES, label, now)}
        for label in labels
    ]

    for narrow, wide in zip(totals, totals[1:]):
        for name, amount in narrow.items():
            assert amount <= wide[name]


def test_totals_sum_to_filtered_amounts():
    now = T0 + timedelta(days=100)
    transactions = [
        _txn(i, [1, 2, 99][i % 3], i + 1, T0 + timedelta(days=i)) for i in range(50)
    ]

    filtered = filter_transactions(transactions, now, timedelta(days=90))
    summary = summarize(transactions, CATEGORIES, "3 Months", now)

    assert sum(s.total_spent for s in summary) == sum(t.amount for t in filtered)


def test_chart_series_exposes_flags_by_name():
    summary = summarize(
        [_txn(1, 1, 600), _txn(2, 2, 100)], CATEGORIES, "All Time", T0
    )

    series = chart_series(summary)

    assert series.labels == ["Food", "Rent"]
    assert series.totals == [600, 100]
    assert series.over_limit == {"Food": True, "Rent": False}


def test_now_must_be_a_datetime():
    with pytest.raises(SummaryInputError):
        summarize([_txn(1, 1, 5)], CATEGORIES, "1 Month", None)
    with pytest.raises(SummaryInputError):
        summarize([_txn(1, 1, 5)], CATEGORIES, "All Time", float("inf"))


def test_non_numeric_amount_fails_fast():
    with pytest.raises(SummaryInputError):
        summarize([_txn(1, 1, "12")], CATEGORIES, "All Time", T0)


def test_category_limit_must_be_positive():
    with pytest.raises(SummaryInputError):
        CategoryRecord(id=1, name="Food", limit=0)
    with pytest.raises(SummaryInputError):
        CategoryRecord(id=2, name="", limit=None)


def test_real_uncategorized_category_does_not_absorb_orphans():
    categories = [CategoryRecord(id=5, name=UNCATEGORIZED, limit=10)]
    transactions = [_txn(1, 5, 5), _txn(2, 99, 50)]

    summary = summarize(transactions, categories, "All Time", T0)

    assert summary == [
        CategorySummary(name=UNCATEGORIZED, total_spent=5, limit=10, over_limit=False),
        CategorySummary(
            name=UNCATEGORIZED, total_spent=50, limit=None, over_limit=False
        ),
    ]


def test_int_amounts_mix_with_decimal_or_float():
    with_decimal = summarize(
        [_txn(1, 1, Decimal("1.5")), _txn(2, 1, 2)], CATEGORIES, "All Time", T0
    )
    with_float = summarize([_txn(1, 1, 1.5), _txn(2, 1, 2)], CATEGORIES, "All Time", T0)

    assert with_decimal[0].total_spent == Decimal("3.5")
    assert with_float[0].total_spent == 3.5


def test_float_and_decimal_amounts_fail_fast():
    with pytest.raises(SummaryInputError):
        summarize(
            [_txn(1, 1, Decimal("1.5")), _txn(2, 1, 2.5)], CATEGORIES, "All Time", T0
        )
    with pytest.raises(SummaryInputError):
        summarize(
            [_txn(1, 1, 2.5), _txn(2, 2, Decimal("1"))], CATEGORIES, "All Time", T0
        )
