"""PlaidClient wraps the Plaid SDK and flattens its models into plain records."""

from datetime import date
from typing import Any

import plaid
from plaid.api import plaid_api
from plaid.exceptions import ApiException
from plaid.model.accounts_get_request import AccountsGetRequest
from plaid.model.transactions_get_request import TransactionsGetRequest
from plaid.model.transactions_get_request_options import TransactionsGetRequestOptions

from ledger_worker.core.errors import AggregatorError, StartupError
from ledger_worker.core.models import PlaidAccountRecord, PlaidTransactionRecord
from ledger_worker.core.settings import Settings
from ledger_worker.core.utils import get_logger

logger = get_logger("ledger-worker.plaid")

PLAID_HOSTS = {
    "sandbox": plaid.Environment.Sandbox,
    "production": plaid.Environment.Production,
}


def account_record(raw: dict[str, Any]) -> PlaidAccountRecord:
    """Flatten an ``AccountBase`` dict into a :class:`PlaidAccountRecord`."""
    balances = raw.get("balances") or {}
    return PlaidAccountRecord(
        account_id=raw["account_id"],
        name=raw.get("name") or "",
        official_name=raw.get("official_name"),
        type=_enum_value(raw.get("type")),
        subtype=_enum_value(raw.get("subtype")),
        available_balance=balances.get("available"),
        current_balance=balances.get("current"),
        limit=balances.get("limit"),
        iso_currency_code=balances.get("iso_currency_code"),
    )


def transaction_record(raw: dict[str, Any]) -> PlaidTransactionRecord:
    """Flatten a ``Transaction`` dict into a :class:`PlaidTransactionRecord`."""
    personal_finance = raw.get("personal_finance_category") or {}
    return PlaidTransactionRecord(
        transaction_id=raw["transaction_id"],
        account_id=raw["account_id"],
        amount=raw["amount"],
        date=raw["date"],
        name=raw.get("name") or "",
        category=raw.get("category"),
        personal_finance_primary=personal_finance.get("primary"),
        iso_currency_code=raw.get("iso_currency_code"),
        pending=bool(raw.get("pending")),
        payment_channel=_enum_value(raw.get("payment_channel")),
    )


def _enum_value(value: object) -> str | None:
    if value is None:
        return None
    return str(getattr(value, "value", value))


class PlaidClient:
    """Client for the Plaid accounts and transactions endpoints."""

    def __init__(self, api: plaid_api.PlaidApi, page_size: int = 500) -> None:
        """Initialize PlaidClient with an SDK API instance."""
        self.api = api
        self.page_size = page_size

    @classmethod
    def from_settings(cls, settings: Settings) -> "PlaidClient":
        """Build a client from the configured credentials; missing credentials abort startup."""
        if not settings.plaid_client_id or not settings.plaid_secret:
            msg = "PLAID_CLIENT_ID or PLAID_SECRET is not set"
            raise StartupError(msg)
        host = PLAID_HOSTS.get(settings.plaid_env)
        if host is None:
            msg = f"Invalid PLAID_ENV '{settings.plaid_env}'. Must be one of: {', '.join(PLAID_HOSTS)}"
            raise StartupError(msg)
        configuration = plaid.Configuration(
            host=host,
            api_key={"clientId": settings.plaid_client_id, "secret": settings.plaid_secret},
        )
        api = plaid_api.PlaidApi(plaid.ApiClient(configuration))
        logger.info(f"Plaid client initialized for environment '{settings.plaid_env}'")
        return cls(api, page_size=settings.plaid_page_size)

    def get_accounts(self, access_token: str) -> list[PlaidAccountRecord]:
        """Fetch every account attached to an item's access token."""
        try:
            response = self.api.accounts_get(AccountsGetRequest(access_token=access_token)).to_dict()
        except ApiException as exc:
            msg = f"Plaid accounts request failed: {exc}"
            raise AggregatorError(msg) from exc
        accounts = [account_record(raw) for raw in response.get("accounts", [])]
        logger.info(f"Fetched {len(accounts)} accounts from Plaid")
        return accounts

    def get_transactions(
        self, access_token: str, start_date: date, end_date: date, account_ids: list[str] | None = None
    ) -> list[PlaidTransactionRecord]:
        """Fetch all transactions between two dates (inclusive), following pagination.

        When ``account_ids`` is given only those accounts of the item are returned.
        """
        collected: list[dict[str, Any]] = []
        filters = {"account_ids": account_ids} if account_ids else {}
        while True:
            request = TransactionsGetRequest(
                access_token=access_token,
                start_date=start_date,
                end_date=end_date,
                options=TransactionsGetRequestOptions(
                    count=self.page_size,
                    offset=len(collected),
                    include_personal_finance_category=True,
                    **filters,
                ),
            )
            try:
                response = self.api.transactions_get(request).to_dict()
            except ApiException as exc:
                msg = f"Plaid transactions request failed: {exc}"
                raise AggregatorError(msg) from exc
            page = response.get("transactions", [])
            collected.extend(page)
            if not page or len(collected) >= response.get("total_transactions", 0):
                break
        transactions = [transaction_record(raw) for raw in collected]
        logger.info(f"Fetched {len(transactions)} transactions from Plaid ({start_date} to {end_date})")
        return transactions
