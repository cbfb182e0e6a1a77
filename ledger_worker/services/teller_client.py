"""TellerClient provides mutually authenticated access to the Teller API."""

import ssl
from pathlib import Path

import httpx
from pydantic import TypeAdapter, ValidationError

from ledger_worker.core.errors import AggregatorError, StartupError
from ledger_worker.core.models import TellerAccountRecord, TellerTransactionRecord
from ledger_worker.core.settings import Settings
from ledger_worker.core.utils import get_logger

logger = get_logger("ledger-worker.teller")

TOKEN_LOG_LEN = 10

_accounts_adapter = TypeAdapter(list[TellerAccountRecord])
_transactions_adapter = TypeAdapter(list[TellerTransactionRecord])


def load_client_certificate(cert_path: str, key_path: str) -> ssl.SSLContext:
    """Load the Teller client certificate into an SSL context, or abort startup."""
    for path in (cert_path, key_path):
        if not Path(path).is_file():
            msg = f"Teller client certificate file not found: {path}"
            raise StartupError(msg)
    context = ssl.create_default_context()
    context.minimum_version = ssl.TLSVersion.TLSv1_2
    try:
        context.load_cert_chain(certfile=cert_path, keyfile=key_path)
    except (ssl.SSLError, OSError) as exc:
        msg = f"Failed to load Teller client certificate: {exc}"
        raise StartupError(msg) from exc
    return context


class TellerClient:
    """Client for Teller's accounts and transactions endpoints.

    Every request authenticates twice: the process-wide client certificate at the TLS
    layer, and the enrollment's access token as the HTTP basic-auth username.
    """

    def __init__(self, http_client: httpx.Client) -> None:
        """Initialize TellerClient with a configured httpx client."""
        self.http = http_client

    @classmethod
    def from_settings(cls, settings: Settings) -> "TellerClient":
        """Build a client whose certificate is loaded once, at process start."""
        context = load_client_certificate(settings.teller_cert_path, settings.teller_key_path)
        http_client = httpx.Client(
            base_url=settings.teller_base_url,
            verify=context,
            timeout=settings.http_timeout_seconds,
        )
        logger.info(f"Loaded Teller client certificate from {settings.teller_cert_path}")
        return cls(http_client)

    def close(self) -> None:
        """Close the underlying HTTP connection pool."""
        self.http.close()

    def _get_json(self, url: str, access_token: str) -> object:
        try:
            response = self.http.get(url, auth=(access_token, ""))
        except httpx.HTTPError as exc:
            msg = f"Teller request to {url} failed: {exc}"
            raise AggregatorError(msg) from exc
        if response.status_code != httpx.codes.OK:
            msg = f"Teller API request failed with status {response.status_code}: {response.text}"
            raise AggregatorError(msg)
        try:
            return response.json()
        except ValueError as exc:
            msg = f"Teller returned a non-JSON body for {url}"
            raise AggregatorError(msg) from exc

    def list_accounts(self, access_token: str) -> list[TellerAccountRecord]:
        """Fetch every account visible to an enrollment's access token."""
        logger.info(f"Fetching Teller accounts for token: {access_token[:TOKEN_LOG_LEN]}...")
        payload = self._get_json("/accounts", access_token)
        try:
            accounts = _accounts_adapter.validate_python(payload)
        except ValidationError as exc:
            msg = f"Failed to parse Teller accounts response: {exc}"
            raise AggregatorError(msg) from exc
        logger.info(f"Fetched {len(accounts)} accounts from Teller")
        return accounts

    def list_transactions(self, transactions_link: str, access_token: str) -> list[TellerTransactionRecord]:
        """Fetch the transactions behind an account's transactions link."""
        logger.info(f"Fetching Teller transactions for link: {transactions_link}")
        payload = self._get_json(transactions_link, access_token)
        try:
            transactions = _transactions_adapter.validate_python(payload)
        except ValidationError as exc:
            msg = f"Failed to parse Teller transactions response: {exc}"
            raise AggregatorError(msg) from exc
        logger.info(f"Fetched {len(transactions)} transactions from Teller")
        return transactions
