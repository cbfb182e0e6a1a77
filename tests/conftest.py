"""Shared fixtures: an in-memory Redis double, an in-memory SQLite ledger, and aggregator fakes."""

import base64
import threading
from collections.abc import Callable, Iterator
from datetime import date

import httpx
import pytest
import redis
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from ledger_worker.core.db import init_db, make_session_factory, session_scope
from ledger_worker.core.gateway import LedgerGateway
from ledger_worker.core.models import PlaidAccountRecord, PlaidTransactionRecord
from ledger_worker.core.queue import JobQueue
from ledger_worker.handlers import JobContext
from ledger_worker.services.teller_client import TellerClient
from ledger_worker.workers.dispatcher import Dispatcher

TELLER_BASE_URL = "https://api.teller.test"
TELLER_TOKEN = "token_abc123"  # noqa: S105
TODAY = date(2024, 5, 10)


class FakeRedis:
    """The subset of the redis-py client used by JobQueue, backed by in-memory lists."""

    def __init__(self) -> None:
        self.lists: dict[str, list[bytes]] = {}
        self.fail = False
        self._cond = threading.Condition()

    def _check(self) -> None:
        if self.fail:
            msg = "connection refused"
            raise redis.ConnectionError(msg)

    def ping(self) -> bool:
        self._check()
        return True

    def lpush(self, name: str, value: str | bytes) -> int:
        self._check()
        if isinstance(value, str):
            value = value.encode()
        with self._cond:
            items = self.lists.setdefault(name, [])
            items.insert(0, value)
            self._cond.notify_all()
            return len(items)

    def brpop(self, keys: list[str], timeout: float = 0) -> tuple[bytes, bytes] | None:
        self._check()
        with self._cond:
            ready = self._cond.wait_for(lambda: any(self.lists.get(key) for key in keys), timeout=timeout)
            if not ready:
                return None
            for key in keys:
                if self.lists.get(key):
                    return key.encode(), self.lists[key].pop()
        return None

    def llen(self, name: str) -> int:
        self._check()
        with self._cond:
            return len(self.lists.get(name, []))


class FakePlaid:
    """Stands in for PlaidClient; records every call it receives."""

    def __init__(
        self,
        accounts: list[PlaidAccountRecord] | None = None,
        transactions: list[PlaidTransactionRecord] | None = None,
    ) -> None:
        self.accounts = accounts or []
        self.transactions = transactions or []
        self.calls: list[tuple] = []

    def get_accounts(self, access_token: str) -> list[PlaidAccountRecord]:
        self.calls.append(("get_accounts", access_token))
        return list(self.accounts)

    def get_transactions(
        self, access_token: str, start_date: date, end_date: date, account_ids: list[str] | None = None
    ) -> list[PlaidTransactionRecord]:
        self.calls.append(("get_transactions", access_token, start_date, end_date, account_ids))
        return [txn for txn in self.transactions if not account_ids or txn.account_id in account_ids]


def basic_auth_username(request: httpx.Request) -> str:
    """Decode the basic-auth username of a request."""
    scheme, _, encoded = request.headers.get("authorization", "").partition(" ")
    if scheme.lower() != "basic":
        return ""
    return base64.b64decode(encoded).decode().partition(":")[0]


def teller_account_json(account_id: str, name: str = "Checking") -> dict:
    """Build an account object shaped like Teller's ``GET /accounts`` items."""
    return {
        "id": account_id,
        "enrollment_id": "enr_1",
        "name": name,
        "type": "depository",
        "subtype": "checking",
        "currency": "USD",
        "last_four": "1234",
        "status": "open",
        "institution": {"id": "chase", "name": "Chase"},
        "links": {
            "self": f"{TELLER_BASE_URL}/accounts/{account_id}",
            "details": f"{TELLER_BASE_URL}/accounts/{account_id}/details",
            "balances": f"{TELLER_BASE_URL}/accounts/{account_id}/balances",
            "transactions": f"{TELLER_BASE_URL}/accounts/{account_id}/transactions",
        },
    }


def teller_transaction_json(txn_id: str, account_id: str, amount: str, category: str | None = "dining") -> dict:
    """Build a transaction object shaped like Teller's transactions-link items."""
    return {
        "id": txn_id,
        "account_id": account_id,
        "amount": amount,
        "description": f"Purchase {txn_id}",
        "date": "2024-05-03",
        "type": "card_payment",
        "status": "posted",
        "running_balance": None,
        "details": {
            "processing_status": "complete",
            "category": category,
            "counterparty": {"name": "Cafe", "type": "organization"},
        },
        "links": {
            "self": f"{TELLER_BASE_URL}/accounts/{account_id}/transactions/{txn_id}",
            "account": f"{TELLER_BASE_URL}/accounts/{account_id}",
        },
    }


def make_teller_client(routes: dict[str, object], status_code: int = 200) -> TellerClient:
    """Build a TellerClient whose requests are answered from ``routes`` (path -> JSON body)."""

    def handler(request: httpx.Request) -> httpx.Response:
        if basic_auth_username(request) != TELLER_TOKEN:
            return httpx.Response(401, json={"error": {"code": "unauthorized"}})
        if request.url.path not in routes:
            return httpx.Response(404, json={"error": {"code": "not_found"}})
        return httpx.Response(status_code, json=routes[request.url.path])

    client = httpx.Client(base_url=TELLER_BASE_URL, transport=httpx.MockTransport(handler))
    return TellerClient(client)


def add_rows(session_factory: sessionmaker, *rows: object) -> None:
    """Insert ORM rows in one transaction."""
    with session_scope(session_factory) as session:
        session.add_all(rows)


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def queue(fake_redis: FakeRedis) -> JobQueue:
    return JobQueue(fake_redis, "test_queue")


@pytest.fixture
def session_factory() -> Iterator[sessionmaker]:
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)
    yield make_session_factory(engine)
    engine.dispose()


@pytest.fixture
def gateway(session_factory: sessionmaker) -> LedgerGateway:
    return LedgerGateway(session_factory)


@pytest.fixture
def make_context(queue: JobQueue, gateway: LedgerGateway) -> Callable[..., JobContext]:
    def _make(teller: TellerClient | None = None, plaid: FakePlaid | None = None) -> JobContext:
        return JobContext(queue=queue, gateway=gateway, teller=teller, plaid=plaid, today=lambda: TODAY)

    return _make


@pytest.fixture
def make_dispatcher(make_context: Callable[..., JobContext]) -> Callable[..., Dispatcher]:
    def _make(teller: TellerClient | None = None, plaid: FakePlaid | None = None) -> Dispatcher:
        return Dispatcher(make_context(teller=teller, plaid=plaid))

    return _make
