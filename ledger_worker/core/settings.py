"""Configuration and environment settings for the ledger worker."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings for the ledger worker."""

    redis_url: str = "redis://localhost:6379/0"
    queue_name: str = "job_queue"
    dequeue_timeout_seconds: int = 5
    worker_count: int = 10
    enqueue_sample_jobs: bool = False

    database_url: str = "sqlite:///ledger.db"

    teller_base_url: str = "https://api.teller.io"
    teller_cert_path: str = "certs/certificate.pem"
    teller_key_path: str = "certs/private_key.pem"

    plaid_client_id: str = ""
    plaid_secret: str = ""
    plaid_env: str = "sandbox"
    plaid_page_size: int = 500

    http_timeout_seconds: float = 30.0
    server_host: str = "127.0.0.1"
    server_port: int = 8081
    log_file: str = "logs/worker.log"

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")


def get_settings() -> "Settings":
    """Return an instance of the application settings."""
    return Settings()
