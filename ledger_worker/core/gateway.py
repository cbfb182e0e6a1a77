"""Persistence gateway used by job handlers.

Every public method opens its own transactional scope, so a failure in one call never
leaks into another. Batch upserts run as a single transaction: either every row of
the batch is written or none is.
"""

import uuid
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import Table, func, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session, sessionmaker

from ledger_worker.core.db import (
    MonthlyBudgetCategory,
    MonthlySummary,
    PlaidAccount,
    PlaidToken,
    TellerAccount,
    TellerInstitution,
    Transaction,
    session_scope,
)
from ledger_worker.core.errors import RecordNotFoundError, TokenAlreadyProcessedError
from ledger_worker.core.models import (
    PlaidAccountRecord,
    PlaidTransactionRecord,
    TellerAccountRecord,
    Spend,
    TellerTransactionRecord,
)
from ledger_worker.core.utils import KeyedLock, get_logger, month_bounds

logger = get_logger("ledger-worker.gateway")

UPSERT_CHUNK_SIZE = 500

TELLER_ACCOUNT_MUTABLE = (
    "account_name",
    "account_type",
    "account_subtype",
    "currency",
    "last_four",
    "status",
    "institution_name",
    "self_link",
    "details_link",
    "balances_link",
    "transactions_link",
)
TELLER_TRANSACTION_MUTABLE = (
    "amount",
    "description",
    "date",
    "type",
    "status",
    "running_balance",
    "processing_status",
    "category",
    "counterparty_name",
    "counterparty_type",
    "self_link",
    "account_link",
)
PLAID_ACCOUNT_MUTABLE = (
    "user_id",
    "plaid_token_id",
    "available_balance",
    "current_balance",
    "account_limit",
    "currency",
    "account_name",
    "official_name",
    "account_type",
    "account_subtype",
)
PLAID_TRANSACTION_MUTABLE = (
    "amount",
    "date",
    "description",
    "category",
    "currency",
    "status",
    "type",
)


@dataclass
class BudgetMonth:
    """A month's summary, its categories and its transactions, loaded for update."""

    summary: MonthlySummary
    categories: list[MonthlyBudgetCategory]
    spends: list[Spend]


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _upsert(session: Session, table: Table, rows: Sequence[dict[str, Any]], key: str, mutable: Sequence[str]) -> None:
    """Insert ``rows`` into ``table``, updating ``mutable`` columns when ``key`` already exists."""
    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        insert = pg_insert
    elif dialect == "sqlite":
        insert = sqlite_insert
    else:
        msg = f"Batch upsert is not supported on the '{dialect}' dialect"
        raise NotImplementedError(msg)
    for start in range(0, len(rows), UPSERT_CHUNK_SIZE):
        stmt = insert(table).values(list(rows[start : start + UPSERT_CHUNK_SIZE]))
        set_ = {column: stmt.excluded[column] for column in mutable}
        if "updated_at" in table.c:
            set_["updated_at"] = stmt.excluded.updated_at
        session.execute(stmt.on_conflict_do_update(index_elements=[table.c[key]], set_=set_))


def _last_by_key(rows: list[dict[str, Any]], key: str) -> list[dict[str, Any]]:
    """Drop earlier duplicates of the same natural key, keeping the latest values."""
    return list({row[key]: row for row in rows}.values())


class LedgerGateway:
    """Read/write surface over accounts, transactions and monthly budget rows."""

    def __init__(self, session_factory: sessionmaker) -> None:
        """Initialize the gateway with a session factory."""
        self.session_factory = session_factory
        self._month_locks = KeyedLock()

    # --- Teller ---

    def get_teller_institution_id(self, user_id: int, access_token: str) -> str:
        """Resolve the institution a Teller access token was linked under."""
        with session_scope(self.session_factory) as session:
            institution_id = session.scalar(
                select(TellerInstitution.id).where(
                    TellerInstitution.user_id == user_id,
                    TellerInstitution.access_token == access_token,
                )
            )
        if institution_id is None:
            msg = f"No Teller institution for user {user_id} and the given access token"
            raise RecordNotFoundError(msg)
        return institution_id

    def upsert_teller_account(self, user_id: int, institution_id: str, account: TellerAccountRecord) -> TellerAccount:
        """Insert or update one Teller account; identity columns never change."""
        now = _utcnow()
        row = {
            "id": account.id,
            "user_id": user_id,
            "teller_institution_id": institution_id,
            "enrollment_id": account.enrollment_id,
            "account_name": account.name,
            "account_type": account.type,
            "account_subtype": account.subtype,
            "currency": account.currency,
            "last_four": account.last_four,
            "status": account.status,
            "institution_id": account.institution.id,
            "institution_name": account.institution.name,
            "self_link": account.links.self_link,
            "details_link": account.links.details,
            "balances_link": account.links.balances,
            "transactions_link": account.links.transactions,
            "created_at": now,
            "updated_at": now,
        }
        with session_scope(self.session_factory) as session:
            _upsert(session, TellerAccount.__table__, [row], "id", TELLER_ACCOUNT_MUTABLE)
            saved = session.get(TellerAccount, account.id)
        return saved

    def upsert_teller_transactions(
        self,
        user_id: int,
        institution_id: str,
        account_id: str,
        transactions: Sequence[TellerTransactionRecord],
    ) -> int:
        """Upsert every transaction of a Teller account in one database transaction."""
        if not transactions:
            return 0
        now = _utcnow()
        rows = []
        for txn in transactions:
            try:
                amount = float(txn.amount)
            except ValueError as exc:
                msg = f"Transaction {txn.id} has a non-numeric amount: {txn.amount!r}"
                raise ValueError(msg) from exc
            counterparty = txn.details.counterparty
            rows.append(
                {
                    "id": str(uuid.uuid4()),
                    "user_id": user_id,
                    "provider_type": "teller",
                    "teller_institution_id": institution_id,
                    "teller_account_id": account_id,
                    "teller_transaction_id": txn.id,
                    "amount": amount,
                    "description": txn.description,
                    "date": txn.date,
                    "type": txn.type,
                    "status": txn.status,
                    "running_balance": txn.running_balance,
                    "processing_status": txn.details.processing_status,
                    "category": txn.category_tags(),
                    "counterparty_name": counterparty.name if counterparty else None,
                    "counterparty_type": counterparty.type if counterparty else None,
                    "self_link": txn.links.self_link,
                    "account_link": txn.links.account,
                    "created_at": now,
                    "updated_at": now,
                }
            )
        rows = _last_by_key(rows, "teller_transaction_id")
        with session_scope(self.session_factory) as session:
            _upsert(session, Transaction.__table__, rows, "teller_transaction_id", TELLER_TRANSACTION_MUTABLE)
        logger.info(f"Saved {len(rows)} Teller transactions for account {account_id}")
        return len(rows)

    # --- Plaid ---

    def get_pending_plaid_token(self, access_token: str) -> tuple[str, int]:
        """Return ``(token_id, user_id)`` for a token that has not been synced yet."""
        with session_scope(self.session_factory) as session:
            token = session.scalar(select(PlaidToken).where(PlaidToken.access_token == access_token))
        if token is None:
            msg = "No Plaid token record for the given access token"
            raise RecordNotFoundError(msg)
        if token.is_processed:
            msg = "access token already processed"
            raise TokenAlreadyProcessedError(msg)
        return token.id, token.user_id

    def mark_plaid_token_processed(self, token_id: str) -> None:
        """Flip a token's processed flag; a token can only be flipped once."""
        with session_scope(self.session_factory) as session:
            result = session.execute(
                update(PlaidToken)
                .where(PlaidToken.id == token_id, PlaidToken.is_processed.is_(False))
                .values(is_processed=True, updated_at=_utcnow())
            )
            if result.rowcount == 0:
                msg = f"Plaid token {token_id} missing or already processed"
                raise TokenAlreadyProcessedError(msg)

    def upsert_plaid_accounts(self, user_id: int, token_id: str, accounts: Sequence[PlaidAccountRecord]) -> int:
        """Upsert a batch of Plaid accounts keyed by their Plaid account id."""
        if not accounts:
            return 0
        rows = [
            {
                "id": account.account_id,
                "user_id": user_id,
                "plaid_token_id": token_id,
                "available_balance": account.available_balance or 0.0,
                "current_balance": account.current_balance or 0.0,
                "account_limit": account.limit,
                "currency": account.iso_currency_code,
                "account_name": account.name,
                "official_name": account.official_name,
                "account_type": account.type,
                "account_subtype": account.subtype,
                "is_processed": False,
            }
            for account in accounts
        ]
        rows = _last_by_key(rows, "id")
        with session_scope(self.session_factory) as session:
            _upsert(session, PlaidAccount.__table__, rows, "id", PLAID_ACCOUNT_MUTABLE)
        return len(rows)

    def list_plaid_account_ids(self, user_id: int) -> list[str]:
        """Return the ids of every Plaid account known for a user."""
        with session_scope(self.session_factory) as session:
            return list(
                session.scalars(select(PlaidAccount.id).where(PlaidAccount.user_id == user_id).order_by(PlaidAccount.id))
            )

    def get_plaid_access_token(self, account_id: str) -> str:
        """Resolve the access token of the item a Plaid account belongs to."""
        with session_scope(self.session_factory) as session:
            access_token = session.scalar(
                select(PlaidToken.access_token)
                .join(PlaidAccount, PlaidAccount.plaid_token_id == PlaidToken.id)
                .where(PlaidAccount.id == account_id)
            )
        if access_token is None:
            msg = f"No access token for Plaid account {account_id}"
            raise RecordNotFoundError(msg)
        return access_token

    def upsert_plaid_transactions(
        self, user_id: int, account_id: str, transactions: Sequence[PlaidTransactionRecord]
    ) -> int:
        """Upsert a batch of Plaid transactions keyed by their Plaid transaction id."""
        if not transactions:
            return 0
        now = _utcnow()
        rows = [
            {
                "id": str(uuid.uuid4()),
                "user_id": user_id,
                "provider_type": "plaid",
                "plaid_account_id": account_id,
                "plaid_transaction_id": txn.transaction_id,
                "amount": txn.amount,
                "date": txn.date,
                "description": txn.name,
                "category": txn.category_tags(),
                "currency": txn.iso_currency_code,
                "status": txn.status,
                "type": txn.payment_channel,
                "created_at": now,
                "updated_at": now,
            }
            for txn in transactions
        ]
        rows = _last_by_key(rows, "plaid_transaction_id")
        with session_scope(self.session_factory) as session:
            _upsert(session, Transaction.__table__, rows, "plaid_transaction_id", PLAID_TRANSACTION_MUTABLE)
        logger.info(f"Saved {len(rows)} Plaid transactions for account {account_id}")
        return len(rows)

    def mark_plaid_account_synced(self, account_id: str) -> None:
        """Set an account's synced flag (idempotent)."""
        with session_scope(self.session_factory) as session:
            session.execute(update(PlaidAccount).where(PlaidAccount.id == account_id).values(is_processed=True))
        logger.info(f"Marked Plaid account as synced: {account_id}")

    def all_plaid_accounts_synced(self, user_id: int) -> bool:
        """Tell whether every Plaid account of a user has been synced at least once."""
        with session_scope(self.session_factory) as session:
            pending = session.scalar(
                select(func.count())
                .select_from(PlaidAccount)
                .where(PlaidAccount.user_id == user_id, PlaidAccount.is_processed.is_(False))
            )
        return pending == 0

    # --- Monthly budget ---

    @contextmanager
    def budget_month(self, user_id: int, month_year: int) -> Iterator[BudgetMonth]:
        """Load a month for read-modify-write; changes to the yielded rows commit on exit.

        Concurrent callers for the same ``(user_id, month_year)`` are serialized by an
        in-process lock and by a row lock on the summary where the database has one.
        """
        start, end = month_bounds(month_year)
        with self._month_locks.hold((user_id, month_year)), session_scope(self.session_factory) as session:
            summary = session.scalar(
                select(MonthlySummary)
                .where(MonthlySummary.user_id == user_id, MonthlySummary.monthyear == month_year)
                .with_for_update()
            )
            if summary is None:
                msg = f"No monthly summary for user {user_id} and month {month_year}"
                raise RecordNotFoundError(msg)
            categories = list(
                session.scalars(
                    select(MonthlyBudgetCategory)
                    .where(MonthlyBudgetCategory.monthly_summary_id == summary.id)
                    .order_by(MonthlyBudgetCategory.created_at, MonthlyBudgetCategory.id)
                )
            )
            rows = session.execute(
                select(Transaction.amount, Transaction.category).where(
                    Transaction.user_id == user_id,
                    Transaction.date >= start,
                    Transaction.date < end,
                )
            )
            spends = [Spend(amount=amount, tags=tags or []) for amount, tags in rows]
            yield BudgetMonth(summary=summary, categories=categories, spends=spends)
