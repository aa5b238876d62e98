"""
Dashboard Aggregation

Turns the raw transaction list into everything the dashboard shows:
headline stats, the current year's monthly series, the top expense
categories and spend per contributor.

DESIGN DECISION: This is a pure function of (transactions, as_of). No I/O,
no caching, no rounding. Calling it again with the same inputs gives the
same Dashboard; calling it with a later as_of can move transactions out of
the "today" and "month" buckets.

Amounts are Decimal throughout so totals add up exactly and
total_income - total_expense == balance always holds.
"""

import datetime as dt
from collections import defaultdict
from decimal import Decimal
from typing import Iterable

from nexora.models.finance import (
    ZERO,
    BreakdownEntry,
    Dashboard,
    DashboardStats,
    MonthlyPoint,
    Transaction,
    TransactionType,
)

MONTH_LABELS = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)

UNKNOWN_CONTRIBUTOR = "Unknown"

DEFAULT_TOP_CATEGORIES = 6


def _ranked(totals: dict[str, Decimal]) -> list[BreakdownEntry]:
    # sorted() is stable and dicts keep insertion order, so equal totals
    # stay in the order they were first seen
    ordered = sorted(totals.items(), key=lambda item: item[1], reverse=True)
    return [BreakdownEntry(name=name, value=value) for name, value in ordered]


def compute_dashboard(
    transactions: Iterable[Transaction],
    as_of: dt.datetime,
    top_categories: int = DEFAULT_TOP_CATEGORIES,
) -> Dashboard:
    """
    Aggregate transactions into the dashboard snapshot.

    Args:
        transactions: Every transaction visible to the viewer
        as_of: The instant "today", "this month" and "this year" refer to.
               Its calendar date is read in its own timezone.
        top_categories: How many expense categories to keep

    Returns:
        Dashboard with stats, 12 monthly points (Jan..Dec), the top
        categories and all contributors, both sorted by descending total
    """
    today = as_of.date()

    totals = {TransactionType.INCOME: ZERO, TransactionType.EXPENSE: ZERO}
    today_totals = dict(totals)
    month_totals = dict(totals)
    year_totals = dict(totals)
    monthly = [dict(totals) for _ in MONTH_LABELS]

    categories: dict[str, Decimal] = defaultdict(Decimal)
    contributors: dict[str, Decimal] = defaultdict(Decimal)

    for t in transactions:
        kind = t.type
        amount = t.amount

        totals[kind] += amount

        if t.date == today:
            today_totals[kind] += amount

        if t.date.year == today.year:
            year_totals[kind] += amount
            monthly[t.date.month - 1][kind] += amount
            if t.date.month == today.month:
                month_totals[kind] += amount

        if kind == TransactionType.EXPENSE:
            categories[t.category] += amount
            contributors[t.user_name or UNKNOWN_CONTRIBUTOR] += amount

    income = TransactionType.INCOME
    expense = TransactionType.EXPENSE

    stats = DashboardStats(
        total_income=totals[income],
        total_expense=totals[expense],
        balance=totals[income] - totals[expense],
        today_income=today_totals[income],
        today_expense=today_totals[expense],
        month_income=month_totals[income],
        month_expense=month_totals[expense],
        year_income=year_totals[income],
        year_expense=year_totals[expense],
    )

    return Dashboard(
        as_of=as_of,
        stats=stats,
        monthly=[
            MonthlyPoint(month=label, income=bucket[income], expense=bucket[expense])
            for label, bucket in zip(MONTH_LABELS, monthly)
        ],
        categories=_ranked(categories)[:max(top_categories, 0)],
        contributors=_ranked(contributors),
    )
