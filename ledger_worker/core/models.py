"""Pydantic models for the ledger worker.

This module defines the job envelope that travels through the durable queue, the
request/response bodies of the worker's HTTP surface, the typed payload of each job
type, and the result the dispatcher reports for every processed job.
"""

import datetime as dt
import time
from collections.abc import Sequence
from datetime import UTC, datetime
from typing import Any, NamedTuple

from pydantic import AliasChoices, BaseModel, Field


def new_job_id() -> str:
    """Return a process-unique, time-derived job identifier."""
    return f"job_{time.time_ns()}"


class Job(BaseModel):
    """A unit of asynchronous work as serialized onto the queue."""

    id: str = Field(default_factory=new_job_id)
    type: str
    data: Any = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class JobResult(BaseModel):
    """Outcome of dispatching a single job."""

    job_id: str
    job_type: str
    success: bool
    error: str | None = None
    duration_seconds: float = 0.0


class EnqueueRequest(BaseModel):
    """Body accepted by ``POST /enqueue``."""

    type: str = Field(min_length=1)
    data: Any = None


class EnqueueResponse(BaseModel):
    """Body returned by ``POST /enqueue``."""

    success: bool
    job_id: str | None = None
    message: str | None = None


class HealthStatus(BaseModel):
    """Body returned by ``GET /health``."""

    status: str
    time: str


# --- Job payloads ---


class NewTellerLinkPayload(BaseModel):
    """Payload of ``new_teller_link``; producers send the token as ``token``."""

    user_id: int
    access_token: str = Field(validation_alias=AliasChoices("access_token", "token"))


class FetchTransactionsPayload(BaseModel):
    """Payload of ``fetch_transactions`` for a single Teller account."""

    account_id: str
    user_id: int
    access_token: str
    transactions_link: str
    teller_institution_id: str = Field(validation_alias=AliasChoices("teller_institution_id", "institution_id"))


class InitialPlaidSyncPayload(BaseModel):
    """Payload of ``initial_plaid_sync``."""

    access_token: str
    user_id: int | None = None


class SyncPlaidAccountsPayload(BaseModel):
    """Payload of ``sync_plaid_accounts``."""

    user_id: int


class FetchPlaidTransactionsPayload(BaseModel):
    """Payload of ``fetch_plaid_transactions``; ``month_year`` defaults to the current month."""

    account_id: str
    user_id: int
    month_year: int | None = None


class ProcessDailyBalancePayload(BaseModel):
    """Payload of ``process_daily_balance``."""

    user_id: int
    month_year: int


class Spend(NamedTuple):
    """A stored transaction as seen by the allocation engine: its amount and its category tags."""

    amount: float
    tags: Sequence[str]



# --- Aggregator records ---


class TellerInstitutionRef(BaseModel):
    """Institution sub-object of a Teller account."""

    id: str = ""
    name: str = ""


class TellerAccountLinks(BaseModel):
    """Links sub-object of a Teller account."""

    self_link: str | None = Field(default=None, alias="self")
    details: str | None = None
    balances: str | None = None
    transactions: str | None = None


class TellerAccountRecord(BaseModel):
    """An account as returned by Teller's ``GET /accounts``."""

    id: str
    enrollment_id: str = ""
    name: str = ""
    type: str = ""
    subtype: str = ""
    currency: str = ""
    last_four: str = ""
    status: str = "open"
    institution: TellerInstitutionRef = Field(default_factory=TellerInstitutionRef)
    links: TellerAccountLinks = Field(default_factory=TellerAccountLinks)


class TellerCounterparty(BaseModel):
    """Counterparty of a Teller transaction."""

    name: str | None = None
    type: str | None = None


class TellerTransactionDetails(BaseModel):
    """Details sub-object of a Teller transaction."""

    processing_status: str | None = None
    category: str | None = None
    counterparty: TellerCounterparty | None = None


class TellerTransactionLinks(BaseModel):
    """Links sub-object of a Teller transaction."""

    self_link: str | None = Field(default=None, alias="self")
    account: str | None = None


class TellerTransactionRecord(BaseModel):
    """A transaction as returned by a Teller account's transactions link.

    Teller sends ``amount`` and ``running_balance`` as decimal strings.
    """

    id: str
    account_id: str = ""
    amount: str
    description: str = ""
    date: dt.date
    type: str = ""
    status: str = ""
    running_balance: str | None = None
    details: TellerTransactionDetails = Field(default_factory=TellerTransactionDetails)
    links: TellerTransactionLinks = Field(default_factory=TellerTransactionLinks)

    def category_tags(self) -> list[str]:
        """Return the transaction's category as a tag list (at most one tag)."""
        return [self.details.category] if self.details.category else []


class PlaidAccountRecord(BaseModel):
    """A Plaid account, flattened from the SDK's ``AccountBase``."""

    account_id: str
    name: str = ""
    official_name: str | None = None
    type: str | None = None
    subtype: str | None = None
    available_balance: float | None = None
    current_balance: float | None = None
    limit: float | None = None
    iso_currency_code: str | None = None


class PlaidTransactionRecord(BaseModel):
    """A Plaid transaction, flattened from the SDK's ``Transaction``."""

    transaction_id: str
    account_id: str
    amount: float
    date: dt.date
    name: str = ""
    category: list[str] | None = None
    personal_finance_primary: str | None = None
    iso_currency_code: str | None = None
    pending: bool = False
    payment_channel: str | None = None

    @property
    def status(self) -> str:
        """Return ``pending`` or ``posted``."""
        return "pending" if self.pending else "posted"

    def category_tags(self) -> list[str]:
        """Normalize the Plaid categories to a single lower-case tag.

        The personal-finance primary category wins; the first legacy category is the fallback.
        """
        tag = self.personal_finance_primary or (self.category[0] if self.category else None)
        return [tag.lower()] if tag else []
