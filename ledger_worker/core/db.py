"""DB engine, session helpers and ORM models for the ledger worker."""

import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, datetime

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    create_engine,
)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, relationship, sessionmaker

Base = declarative_base()


def _uuid() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(UTC)


class TellerInstitution(Base):
    """A linked Teller enrollment; created by the API process, read by the worker."""

    __tablename__ = "teller_institutions"
    id = Column(String, primary_key=True, default=_uuid)
    user_id = Column(Integer, nullable=False, index=True)
    name = Column(String(255), nullable=False)
    teller_id = Column(String(255), nullable=False, index=True)
    access_token = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)


class TellerAccount(Base):
    """A Teller account keyed by its Teller-assigned id."""

    __tablename__ = "teller_accounts"
    id = Column(String, primary_key=True)
    user_id = Column(Integer, nullable=False, index=True)
    teller_institution_id = Column(String, ForeignKey("teller_institutions.id", ondelete="CASCADE"), nullable=False)
    enrollment_id = Column(String(255), nullable=False, index=True)
    account_name = Column(String(255), nullable=False)
    account_type = Column(String(50), nullable=False)
    account_subtype = Column(String(50), nullable=False)
    currency = Column(String(3), nullable=False)
    last_four = Column(String(4), nullable=False)
    status = Column(String(20), nullable=False, default="open")
    institution_id = Column(String(255), nullable=False)
    institution_name = Column(String(255), nullable=False)
    self_link = Column(Text)
    details_link = Column(Text)
    balances_link = Column(Text)
    transactions_link = Column(Text)
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)


class PlaidToken(Base):
    """A Plaid access token; ``is_processed`` is set once the initial sync consumed it."""

    __tablename__ = "plaid_tokens"
    id = Column(String, primary_key=True, default=_uuid)
    user_id = Column(Integer, nullable=False, index=True)
    access_token = Column(String, nullable=False, unique=True)
    item_id = Column(String, nullable=False, unique=True)
    is_processed = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)


class PlaidAccount(Base):
    """A Plaid account keyed by its Plaid-assigned id."""

    __tablename__ = "plaid_accounts"
    id = Column(String, primary_key=True)
    user_id = Column(Integer, index=True)
    plaid_token_id = Column(String, ForeignKey("plaid_tokens.id"), index=True)
    available_balance = Column(Float)
    current_balance = Column(Float)
    account_limit = Column(Float)
    currency = Column(String)
    account_name = Column(String)
    official_name = Column(String)
    account_type = Column(String)
    account_subtype = Column(String)
    is_processed = Column(Boolean, nullable=False, default=False)


class Transaction(Base):
    """A bank transaction from either aggregator.

    ``category`` is a JSON list of tags; both aggregators store at most one tag.
    """

    __tablename__ = "transactions"
    id = Column(String, primary_key=True, default=_uuid)
    user_id = Column(Integer, nullable=False, index=True)
    provider_type = Column(String, nullable=False, default="teller")
    teller_institution_id = Column(String, ForeignKey("teller_institutions.id", ondelete="CASCADE"))
    teller_account_id = Column(String, ForeignKey("teller_accounts.id", ondelete="CASCADE"), index=True)
    teller_transaction_id = Column(String(255), unique=True)
    plaid_account_id = Column(String, ForeignKey("plaid_accounts.id"), index=True)
    plaid_transaction_id = Column(String, unique=True)
    amount = Column(Float, nullable=False)
    description = Column(String(500), nullable=False, default="")
    date = Column(Date, nullable=False, index=True)
    type = Column(String(100))
    status = Column(String(50))
    running_balance = Column(String(50))
    processing_status = Column(String(50))
    category = Column(JSON, nullable=False, default=list)
    counterparty_name = Column(String(255))
    counterparty_type = Column(String(50))
    self_link = Column(Text)
    account_link = Column(Text)
    currency = Column(String, default="USD")
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)


class MonthlySummary(Base):
    """Per-user, per-month aggregate figures. The worker only writes ``total_spent``."""

    __tablename__ = "monthly_summary"
    __table_args__ = (UniqueConstraint("user_id", "monthyear"),)
    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, nullable=False)
    monthyear = Column(Integer, nullable=False, index=True)
    total_spent = Column(Float, nullable=False, default=0.0)
    starting_balance = Column(Float, nullable=False, default=0.0)
    income = Column(Float, nullable=False, default=0.0)
    saved_amount = Column(Float, nullable=False, default=0.0)
    invested = Column(Float, nullable=False, default=0.0)
    fixed_expenses = Column(Float, nullable=False, default=0.0)
    saving_target_percentage = Column(Float, nullable=False, default=0.0)
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    categories = relationship("MonthlyBudgetCategory", back_populates="summary", order_by="MonthlyBudgetCategory.id")


class MonthlyBudgetCategory(Base):
    """A budgeted spending category of a month, including the residual ``general`` row."""

    __tablename__ = "monthly_budget_spend_category"
    id = Column(String, primary_key=True, default=_uuid)
    user_id = Column(Integer, nullable=False)
    monthly_summary_id = Column(Integer, ForeignKey("monthly_summary.id"), nullable=False, index=True)
    month_year = Column(Integer, nullable=False)
    category = Column(String(255), nullable=False)
    budget = Column(Float, nullable=False)
    total_spent = Column(Float, nullable=False, default=0.0)
    daily_allowance = Column(Float, nullable=False, default=0.0)
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    summary = relationship("MonthlySummary", back_populates="categories")


def create_db_engine(database_url: str) -> Engine:
    """Create a SQLAlchemy engine shared by every worker thread."""
    connect_args: dict[str, object] = {}
    if database_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    return create_engine(database_url, connect_args=connect_args, pool_pre_ping=True)


def init_db(engine: Engine) -> None:
    """Create any missing tables."""
    Base.metadata.create_all(engine)


def make_session_factory(engine: Engine) -> sessionmaker:
    """Return a session factory bound to ``engine``."""
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@contextmanager
def session_scope(session_factory: sessionmaker) -> Iterator[Session]:
    """Provide a transactional scope: commit on success, roll back on any error."""
    session: Session = session_factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
