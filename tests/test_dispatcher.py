"""Tests for job dispatch and the handler registry."""

import pytest

from ledger_worker.core.errors import UnknownJobTypeError
from ledger_worker.core.models import Job
from ledger_worker.handlers import HandlerRegistry

EXPECTED_JOB_TYPES = {
    "hello_world",
    "print_message",
    "new_teller_link",
    "fetch_transactions",
    "initial_plaid_sync",
    "fetch_plaid_transactions",
    "sync_plaid_accounts",
    "process_daily_balance",
}


def test_every_job_type_is_registered() -> None:
    """Test the registry holds exactly the supported job types."""
    if set(HandlerRegistry.available()) != EXPECTED_JOB_TYPES:
        msg = f"Unexpected job types: {sorted(HandlerRegistry.available())}"
        raise AssertionError(msg)


def test_registry_rejects_unknown_type() -> None:
    """Test looking up an unregistered type raises UnknownJobTypeError."""
    with pytest.raises(UnknownJobTypeError):
        HandlerRegistry.get("does_not_exist")


def test_dispatch_diagnostic_jobs_succeed(make_dispatcher) -> None:
    """Test hello_world and print_message succeed without any collaborators."""
    dispatcher = make_dispatcher()
    for job in (Job(type="hello_world"), Job(type="print_message", data="hi")):
        result = dispatcher.dispatch(job)
        if not result.success or result.job_id != job.id:
            msg = f"Expected success for {job.type}, got {result}"
            raise AssertionError(msg)


def test_dispatch_unknown_type_fails(make_dispatcher) -> None:
    """Test an unknown job type yields a failed result naming the type."""
    result = make_dispatcher().dispatch(Job(type="mystery"))
    if result.success or "unknown job type: mystery" not in (result.error or ""):
        msg = f"Expected an unknown-type failure, got {result}"
        raise AssertionError(msg)


def test_dispatch_malformed_payload_fails(make_dispatcher) -> None:
    """Test a payload missing required fields fails the job instead of raising."""
    result = make_dispatcher().dispatch(Job(type="process_daily_balance", data={"user_id": "not a number"}))
    if result.success or "Invalid payload" not in (result.error or ""):
        msg = f"Expected a malformed-payload failure, got {result}"
        raise AssertionError(msg)
    if result.duration_seconds < 0:
        msg = "Expected a non-negative duration"
        raise AssertionError(msg)
