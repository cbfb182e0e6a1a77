"""Teller job handlers: link a new enrollment and sync an account's transactions."""

from ledger_worker.core.models import FetchTransactionsPayload, Job, NewTellerLinkPayload
from ledger_worker.core.utils import get_logger
from ledger_worker.handlers.base import BaseHandler, parse_payload
from ledger_worker.handlers.registry import HandlerRegistry

logger = get_logger("ledger-worker.handlers.teller")


@HandlerRegistry.register("new_teller_link")
class NewTellerLinkHandler(BaseHandler):
    """Save every account of a new Teller enrollment and fan out one transaction sync per account.

    A failure to save one account is logged and that account is skipped; the others are
    still saved and synced.
    """

    def process(self, job: Job) -> list[str]:
        payload = parse_payload(NewTellerLinkPayload, job)
        accounts = self.context.teller.list_accounts(payload.access_token)

        enqueued = []
        for account in accounts:
            try:
                institution_id = self.context.gateway.get_teller_institution_id(payload.user_id, payload.access_token)
                saved = self.context.gateway.upsert_teller_account(payload.user_id, institution_id, account)
            except Exception:
                logger.exception(f"Failed to save Teller account {account.id}; skipping")
                continue
            logger.info(f"Saved Teller account {saved.id} ({saved.account_name})")
            if not saved.transactions_link:
                logger.warning(f"Teller account {saved.id} has no transactions link; not syncing")
                continue
            job_id = self.context.queue.enqueue(
                "fetch_transactions",
                {
                    "account_id": saved.id,
                    "user_id": payload.user_id,
                    "access_token": payload.access_token,
                    "transactions_link": saved.transactions_link,
                    "teller_institution_id": institution_id,
                },
            )
            enqueued.append(job_id)
        logger.info(f"Enqueued {len(enqueued)} fetch_transactions jobs for user {payload.user_id}")
        return enqueued


@HandlerRegistry.register("fetch_transactions")
class FetchTransactionsHandler(BaseHandler):
    """Fetch a Teller account's transactions and upsert them in one database transaction."""

    def process(self, job: Job) -> int:
        payload = parse_payload(FetchTransactionsPayload, job)
        transactions = self.context.teller.list_transactions(payload.transactions_link, payload.access_token)
        return self.context.gateway.upsert_teller_transactions(
            payload.user_id,
            payload.teller_institution_id,
            payload.account_id,
            transactions,
        )
