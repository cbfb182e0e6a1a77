"""Plaid job handlers: first sync of an item, account fan-out and monthly transaction sync."""

from datetime import timedelta

from ledger_worker.core.models import (
    FetchPlaidTransactionsPayload,
    InitialPlaidSyncPayload,
    Job,
    SyncPlaidAccountsPayload,
)
from ledger_worker.core.utils import current_month_year, get_logger, month_bounds
from ledger_worker.handlers.base import BaseHandler, parse_payload
from ledger_worker.handlers.registry import HandlerRegistry

logger = get_logger("ledger-worker.handlers.plaid")


@HandlerRegistry.register("initial_plaid_sync")
class InitialPlaidSyncHandler(BaseHandler):
    """Consume a freshly linked Plaid token: save its accounts and fan out transaction syncs."""

    def process(self, job: Job) -> list[str]:
        payload = parse_payload(InitialPlaidSyncPayload, job)
        gateway = self.context.gateway

        accounts = self.context.plaid.get_accounts(payload.access_token)
        token_id, user_id = gateway.get_pending_plaid_token(payload.access_token)
        if payload.user_id is not None and payload.user_id != user_id:
            logger.warning(f"Job {job.id} names user {payload.user_id} but the token belongs to user {user_id}")
        gateway.mark_plaid_token_processed(token_id)
        saved = gateway.upsert_plaid_accounts(user_id, token_id, accounts)
        logger.info(f"Saved {saved} Plaid accounts for user {user_id}")

        return [
            self.context.queue.enqueue(
                "fetch_plaid_transactions",
                {"account_id": account.account_id, "user_id": user_id},
            )
            for account in accounts
        ]


@HandlerRegistry.register("sync_plaid_accounts")
class SyncPlaidAccountsHandler(BaseHandler):
    """Enqueue a transaction sync for every known Plaid account of a user."""

    def process(self, job: Job) -> list[str]:
        payload = parse_payload(SyncPlaidAccountsPayload, job)
        account_ids = self.context.gateway.list_plaid_account_ids(payload.user_id)
        enqueued = [
            self.context.queue.enqueue(
                "fetch_plaid_transactions",
                {"account_id": account_id, "user_id": payload.user_id},
            )
            for account_id in account_ids
        ]
        logger.info(f"Enqueued {len(enqueued)} fetch_plaid_transactions jobs for user {payload.user_id}")
        return enqueued


@HandlerRegistry.register("fetch_plaid_transactions")
class FetchPlaidTransactionsHandler(BaseHandler):
    """Sync one Plaid account's transactions for a month (the current month by default)."""

    def process(self, job: Job) -> int:
        payload = parse_payload(FetchPlaidTransactionsPayload, job)
        gateway = self.context.gateway

        month_year = payload.month_year or current_month_year(self.context.today())
        start, next_month = month_bounds(month_year)
        end = next_month - timedelta(days=1)

        access_token = gateway.get_plaid_access_token(payload.account_id)
        transactions = self.context.plaid.get_transactions(access_token, start, end, account_ids=[payload.account_id])
        saved = gateway.upsert_plaid_transactions(payload.user_id, payload.account_id, transactions)
        gateway.mark_plaid_account_synced(payload.account_id)

        if gateway.all_plaid_accounts_synced(payload.user_id):
            logger.info(f"All Plaid accounts of user {payload.user_id} are synced")
        else:
            logger.info(f"User {payload.user_id} still has Plaid accounts waiting for a first sync")
        return saved
