"""Unit tests for the budget allocation engine."""

import math

from ledger_worker.services.allocation import (
    GENERAL_CATEGORY,
    CategoryBudget,
    Spend,
    allocate,
    category_spend,
    daily_left_to_spend,
    redistribute,
)

TOLERANCE = 1e-9


def test_daily_left_to_spend_worked_example() -> None:
    """Test budget 300, spend 80 on day 10 leaves 20, and budget 90, spend 120 leaves -90."""
    if daily_left_to_spend(80, 300, 10) != 20:  # noqa: PLR2004
        msg = f"Expected 20, got {daily_left_to_spend(80, 300, 10)}"
        raise AssertionError(msg)
    if daily_left_to_spend(120, 90, 10) != -90:  # noqa: PLR2004
        msg = f"Expected -90, got {daily_left_to_spend(120, 90, 10)}"
        raise AssertionError(msg)


def test_redistribute_worked_example() -> None:
    """Test a deficit of 90 against a single positive 150 scales it by 0.4 and zeroes the deficit."""
    final, redistributed = redistribute([-90.0, 150.0])
    if not redistributed:
        msg = "Expected redistribution to happen"
        raise AssertionError(msg)
    if final[0] != 0.0:
        msg = f"Expected negative allowance to become exactly 0, got {final[0]}"
        raise AssertionError(msg)
    if not math.isclose(final[1], 60.0, abs_tol=TOLERANCE):
        msg = f"Expected 60, got {final[1]}"
        raise AssertionError(msg)


def test_redistribute_conserves_total() -> None:
    """Test coverable deficits leave positives summing to total_positive - needed."""
    allowances = [12.5, -7.25, 40.0, -3.0, 0.0, 8.75]
    final, redistributed = redistribute(allowances)
    total_positive = sum(a for a in allowances if a >= 0)
    needed = -sum(a for a in allowances if a < 0)
    if not redistributed:
        msg = "Expected redistribution to happen"
        raise AssertionError(msg)
    for original, value in zip(allowances, final, strict=True):
        if original < 0 and value != 0.0:
            msg = f"Expected negative allowance {original} to become 0, got {value}"
            raise AssertionError(msg)
        if original >= 0 and value < 0:
            msg = f"Non-negative allowance {original} flipped sign to {value}"
            raise AssertionError(msg)
    if not math.isclose(sum(final), total_positive - needed, abs_tol=TOLERANCE):
        msg = f"Expected allowances to sum to {total_positive - needed}, got {sum(final)}"
        raise AssertionError(msg)


def test_redistribute_no_op_when_not_coverable() -> None:
    """Test allowances are untouched when positives cannot cover the deficit."""
    allowances = [-100.0, 30.0, 20.0]
    final, redistributed = redistribute(allowances)
    if redistributed or final != allowances:
        msg = f"Expected unchanged allowances, got {final} (redistributed={redistributed})"
        raise AssertionError(msg)


def test_redistribute_no_op_without_positives_or_negatives() -> None:
    """Test all-negative and all-positive inputs are returned unchanged."""
    for allowances in ([-5.0, -1.0], [5.0, 1.0], []):
        final, redistributed = redistribute(allowances)
        if redistributed or final != allowances:
            msg = f"Expected {allowances} unchanged, got {final}"
            raise AssertionError(msg)


def test_general_is_residual() -> None:
    """Test general counts untagged and untracked-tag spends but not tracked categories."""
    spends = [
        Spend(40.0, ["dining"]),
        Spend(25.0, ["groceries"]),
        Spend(10.0, []),
        Spend(5.0, ["travel"]),
    ]
    excluded = {"dining", "groceries"}
    general = category_spend(GENERAL_CATEGORY, spends, excluded)
    if general != 15.0:  # noqa: PLR2004
        msg = f"Expected general spend 15, got {general}"
        raise AssertionError(msg)
    if category_spend("dining", spends, excluded) != 40.0:  # noqa: PLR2004
        msg = "Expected dining spend 40"
        raise AssertionError(msg)


def test_allocate_spend_totals_match_transactions() -> None:
    """Test category spends add up to the month's transaction total."""
    categories = [CategoryBudget("general", 600.0), CategoryBudget("dining", 90.0), CategoryBudget("groceries", 300.0)]
    spends = [Spend(120.0, ["dining"]), Spend(80.0, ["groceries"]), Spend(33.0, []), Spend(7.0, ["pets"])]
    result = allocate(categories, spends, 10)
    total = sum(spend.amount for spend in spends)
    if not math.isclose(result.total_spent, total, abs_tol=TOLERANCE):
        msg = f"Expected total spent {total}, got {result.total_spent}"
        raise AssertionError(msg)
    by_name = {c.name: c for c in result.categories}
    if by_name["general"].total_spent != 40.0:  # noqa: PLR2004
        msg = f"Expected general spend 40, got {by_name['general'].total_spent}"
        raise AssertionError(msg)


def test_allocate_worked_example() -> None:
    """Test dining's -90 deficit is absorbed by general's +150, leaving general at 60."""
    categories = [CategoryBudget("dining", 90.0), CategoryBudget("general", 450.0)]
    spends = [Spend(120.0, ["dining"])]
    result = allocate(categories, spends, 10)
    dining, general = result.categories
    if dining.initial_allowance != -90.0 or general.initial_allowance != 150.0:  # noqa: PLR2004
        msg = f"Unexpected initial allowances: {dining.initial_allowance}, {general.initial_allowance}"
        raise AssertionError(msg)
    if dining.daily_allowance != 0.0:
        msg = f"Expected dining allowance 0, got {dining.daily_allowance}"
        raise AssertionError(msg)
    if not math.isclose(general.daily_allowance, 60.0, abs_tol=TOLERANCE):
        msg = f"Expected general allowance 60, got {general.daily_allowance}"
        raise AssertionError(msg)
    if not result.redistributed or result.total_negative != -90.0:  # noqa: PLR2004
        msg = f"Expected a redistributed deficit of 90, got {result}"
        raise AssertionError(msg)


def test_allowance_monotonic_in_budget() -> None:
    """Test a bigger budget never lowers a category's pre-redistribution allowance."""
    spends = [Spend(50.0, ["dining"])]
    previous = None
    for budget in (0.0, 30.0, 90.0, 150.0, 600.0):
        result = allocate([CategoryBudget("dining", budget)], spends, 12)
        allowance = result.categories[0].initial_allowance
        if previous is not None and allowance < previous:
            msg = f"Allowance decreased from {previous} to {allowance} at budget {budget}"
            raise AssertionError(msg)
        previous = allowance
