"""
Transaction list filtering.

Deterministic, in-memory narrowing of an already-fetched transaction list,
the same view the transactions page shows and exports.
"""

from typing import Iterable, Optional

from nexora.models.finance import (
    InvestmentFilter,
    InvestmentType,
    Transaction,
    TransactionFilter,
    TypeFilter,
)


def _matches_search(t: Transaction, needle: str) -> bool:
    if not needle:
        return True
    haystacks = (t.description, t.user_name, t.category)
    return any(needle in value.lower() for value in haystacks if value)


def _matches_type(t: Transaction, wanted: TypeFilter) -> bool:
    if wanted == TypeFilter.ALL:
        return True
    return t.type.value == wanted.value.lower()


def _matches_investment(t: Transaction, wanted: InvestmentFilter) -> bool:
    if wanted == InvestmentFilter.ALL:
        return True
    is_team = t.investment_type == InvestmentType.TEAM
    # SINGLE means "not a team expense", so incomes match it too
    return is_team if wanted == InvestmentFilter.TEAM else not is_team


def filter_transactions(
    transactions: Iterable[Transaction],
    criteria: Optional[TransactionFilter] = None,
) -> list[Transaction]:
    """
    Keep the transactions matching every criterion, in their original order.

    Search is a case-insensitive substring match on description, user name
    or category.
    """
    criteria = criteria or TransactionFilter()
    needle = criteria.search.strip().lower()

    return [
        t for t in transactions
        if _matches_search(t, needle)
        and _matches_type(t, criteria.type)
        and _matches_investment(t, criteria.investment)
    ]
