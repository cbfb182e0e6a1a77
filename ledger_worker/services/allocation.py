"""Budget allocation engine: per-category daily allowance with deficit redistribution.

All arithmetic is plain float arithmetic evaluated in category order, so results are
reproducible bit for bit for the same inputs.
"""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import NamedTuple

from ledger_worker.core.models import Spend

GENERAL_CATEGORY = "general"
# Daily rate approximation: every month is treated as 30 days long.
DAYS_PER_BUDGET_MONTH = 30


class CategoryBudget(NamedTuple):
    """A budgeted category: its name and fixed monthly budget."""

    name: str
    budget: float


@dataclass
class CategoryAllocation:
    """Computed figures for one category."""

    name: str
    budget: float
    total_spent: float
    initial_allowance: float
    daily_allowance: float

    @property
    def is_negative(self) -> bool:
        return self.initial_allowance < 0


@dataclass
class AllocationResult:
    """Outcome of an allocation pass over every category of a month."""

    categories: list[CategoryAllocation] = field(default_factory=list)
    total_spent: float = 0.0
    total_negative: float = 0.0
    total_positive: float = 0.0
    redistributed: bool = False


def excluded_categories(names: Iterable[str]) -> set[str]:
    """Return the tracked category names that ``general`` must not count."""
    return {name for name in names if name != GENERAL_CATEGORY}


def category_spend(name: str, spends: Iterable[Spend], excluded: set[str]) -> float:
    """Sum the spend attributed to a category.

    ``general`` is a residual: it counts every transaction carrying none of the
    excluded tags (untagged transactions included). Any other category counts the
    transactions tagged with exactly its name.
    """
    total = 0.0
    for spend in spends:
        if name == GENERAL_CATEGORY:
            matches = excluded.isdisjoint(spend.tags)
        else:
            matches = name in spend.tags
        if matches:
            total += spend.amount
    return total


def daily_left_to_spend(spent: float, monthly_budget: float, days_into_month: int) -> float:
    """Return how much of the budget accrued so far this month is still unspent."""
    daily_budget = monthly_budget / DAYS_PER_BUDGET_MONTH
    allowance_up_to_now = daily_budget * days_into_month
    return allowance_up_to_now - spent


def redistribute(allowances: Sequence[float]) -> tuple[list[float], bool]:
    """Cover overspent allowances from the positive ones, in a single global pass.

    When the positive total covers the deficit, every negative allowance becomes 0 and
    every positive one is scaled by ``1 - needed / total_positive``. Otherwise the
    allowances are returned unchanged. The second element tells whether scaling happened.
    """
    total_negative = 0.0
    total_positive = 0.0
    for allowance in allowances:
        if allowance < 0:
            total_negative += allowance
        else:
            total_positive += allowance

    if total_negative < 0 and total_positive > 0:
        needed = -total_negative
        if total_positive >= needed:
            ratio = needed / total_positive
            return [0.0 if allowance < 0 else allowance * (1 - ratio) for allowance in allowances], True
    return list(allowances), False


def allocate(categories: Sequence[CategoryBudget], spends: Sequence[Spend], days_into_month: int) -> AllocationResult:
    """Compute spend and final daily allowance for every category of a month."""
    excluded = excluded_categories(category.name for category in categories)
    result = AllocationResult()
    for category in categories:
        spent = category_spend(category.name, spends, excluded)
        allowance = daily_left_to_spend(spent, category.budget, days_into_month)
        result.total_spent += spent
        if allowance < 0:
            result.total_negative += allowance
        else:
            result.total_positive += allowance
        result.categories.append(
            CategoryAllocation(
                name=category.name,
                budget=category.budget,
                total_spent=spent,
                initial_allowance=allowance,
                daily_allowance=allowance,
            )
        )

    final, result.redistributed = redistribute([c.initial_allowance for c in result.categories])
    for allocation, allowance in zip(result.categories, final, strict=True):
        allocation.daily_allowance = allowance
    return result
