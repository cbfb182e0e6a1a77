"""Daily balance handler: recompute a month's per-category spend and daily allowance."""

from ledger_worker.core.models import Job, ProcessDailyBalancePayload
from ledger_worker.core.utils import get_logger
from ledger_worker.handlers.base import BaseHandler, parse_payload
from ledger_worker.handlers.registry import HandlerRegistry
from ledger_worker.services.allocation import AllocationResult, CategoryBudget, allocate

logger = get_logger("ledger-worker.handlers.daily_balance")


@HandlerRegistry.register("process_daily_balance")
class ProcessDailyBalanceHandler(BaseHandler):
    """Run the allocation engine over a user's month and persist the results.

    The whole read-modify-write happens inside :meth:`LedgerGateway.budget_month`, so two
    jobs for the same user and month never interleave.
    """

    def process(self, job: Job) -> AllocationResult:
        payload = parse_payload(ProcessDailyBalancePayload, job)
        days_into_month = self.context.today().day

        with self.context.gateway.budget_month(payload.user_id, payload.month_year) as month:
            result = allocate(
                [CategoryBudget(name=row.category, budget=row.budget or 0.0) for row in month.categories],
                month.spends,
                days_into_month,
            )
            for row, allocation in zip(month.categories, result.categories, strict=True):
                row.total_spent = allocation.total_spent
                row.daily_allowance = allocation.daily_allowance
                logger.info(
                    f"Category '{allocation.name}': spent {allocation.total_spent:.2f}, "
                    f"daily allowance {allocation.daily_allowance:.2f}"
                )
            month.summary.total_spent = result.total_spent

        if result.redistributed:
            logger.info(
                f"Redistributed a deficit of {-result.total_negative:.2f} across positive categories "
                f"for user {payload.user_id}, month {payload.month_year}"
            )
        logger.info(
            f"Daily balance processed for user {payload.user_id}, month {payload.month_year}: "
            f"total spent {result.total_spent:.2f}"
        )
        return result
