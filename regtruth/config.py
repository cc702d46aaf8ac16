"""
Application configuration. Loads from environment variables.
Secrets and sensitive config must never be hardcoded.
"""

import os

from dotenv import load_dotenv

load_dotenv()
from functools import lru_cache
from typing import Optional


@lru_cache(maxsize=1)
def get_settings() -> "Settings":
    """Return cached settings instance."""
    return Settings()


def _psycopg_url(raw_url: str) -> str:
    """Ensure psycopg3 driver if URL uses generic postgresql://."""
    if raw_url.startswith("postgresql://") and not raw_url.startswith("postgresql+psycopg"):
        return raw_url.replace("postgresql://", "postgresql+psycopg://", 1)
    return raw_url


class Settings:
    """Application settings loaded from environment."""

    # App
    app_name: str = "RegTruth"
    debug: bool = False

    # Database (postgresql+psycopg for psycopg3; sqlite+pysqlite accepted for local tests)
    database_url: str = "postgresql+psycopg://localhost:5432/regtruth_dev"
    db_connect_timeout: int = 10  # seconds

    # Security
    internal_job_token: str = ""  # Required for /internal/* endpoints

    # LLM (extraction only)
    llm_provider: str = "openai"
    llm_api_key: Optional[str] = None
    llm_model_extraction: str = "gpt-4o"
    llm_timeout: float = 60.0
    llm_max_retries: int = 3
    extractor_version: str = "llm-extractor-v1"

    # Review / composition
    auto_approve_confidence_floor: float = 0.90  # T2/T3 only

    # Parser
    parser_id: str = "nn-structural"
    parser_version: str = "1.0.0"
    parse_min_coverage: float = 50.0  # percent; below this a parse is PARTIAL

    # Evidence
    evidence_stale_days: int = 90

    # Content sync
    content_dir: str = "content"
    content_sync_max_attempts: int = 8
    content_sync_backoff_seconds: int = 30
    celery_broker_url: str = "redis://localhost:6379/0"
    celery_result_backend: Optional[str] = None

    # Parity (two physically separate copies of the rule tables)
    core_database_url: Optional[str] = None
    regulatory_database_url: Optional[str] = None

    # Health gates
    grounding_failure_warn_rate: float = 0.05
    grounding_failure_fail_rate: float = 0.10
    ocr_failure_warn_rate: float = 0.10
    ocr_failure_fail_rate: float = 0.20
    ocr_min_confidence: float = 0.70
    content_sync_stuck_minutes: int = 30
    content_sync_backlog_threshold: int = 500
    open_conflict_stale_days: int = 7

    def __init__(self) -> None:
        self.app_name = os.getenv("APP_NAME", self.app_name)
        self.debug = os.getenv("DEBUG", "false").lower() == "true"

        default_user = os.getenv("PGUSER") or os.getenv("USER") or "postgres"
        default_url = (
            f"postgresql+psycopg://{default_user}:"
            f"{os.getenv('PGPASSWORD', '')}@"
            f"{os.getenv('PGHOST', 'localhost')}:"
            f"{os.getenv('PGPORT', '5432')}/"
            f"{os.getenv('PGDATABASE', 'regtruth_dev')}"
        )
        self.database_url = _psycopg_url(os.getenv("DATABASE_URL", default_url))
        self.db_connect_timeout = int(os.getenv("DB_CONNECT_TIMEOUT", str(self.db_connect_timeout)))

        self.internal_job_token = os.getenv("INTERNAL_JOB_TOKEN", "")

        self.llm_provider = os.getenv("LLM_PROVIDER", self.llm_provider)
        self.llm_api_key = os.getenv("LLM_API_KEY")
        self.llm_model_extraction = (
            os.getenv("LLM_MODEL_EXTRACTION") or os.getenv("LLM_MODEL") or self.llm_model_extraction
        )
        self.llm_timeout = float(os.getenv("LLM_TIMEOUT", str(self.llm_timeout)))
        self.llm_max_retries = int(os.getenv("LLM_MAX_RETRIES", str(self.llm_max_retries)))
        self.extractor_version = os.getenv("EXTRACTOR_VERSION", self.extractor_version)

        self.auto_approve_confidence_floor = float(
            os.getenv("AUTO_APPROVE_CONFIDENCE_FLOOR", str(self.auto_approve_confidence_floor))
        )

        self.parser_id = os.getenv("PARSER_ID", self.parser_id)
        self.parser_version = os.getenv("PARSER_VERSION", self.parser_version)
        self.parse_min_coverage = float(
            os.getenv("PARSE_MIN_COVERAGE", str(self.parse_min_coverage))
        )

        self.evidence_stale_days = int(
            os.getenv("EVIDENCE_STALE_DAYS", str(self.evidence_stale_days))
        )

        self.content_dir = os.getenv("CONTENT_DIR", self.content_dir)
        self.content_sync_max_attempts = int(
            os.getenv("CONTENT_SYNC_MAX_ATTEMPTS", str(self.content_sync_max_attempts))
        )
        self.content_sync_backoff_seconds = int(
            os.getenv("CONTENT_SYNC_BACKOFF_SECONDS", str(self.content_sync_backoff_seconds))
        )
        self.celery_broker_url = os.getenv("CELERY_BROKER_URL", self.celery_broker_url)
        self.celery_result_backend = os.getenv("CELERY_RESULT_BACKEND") or None

        # Parity: the regulatory copy defaults to the application database
        core_url = os.getenv("CORE_DATABASE_URL")
        self.core_database_url = _psycopg_url(core_url) if core_url else None
        self.regulatory_database_url = _psycopg_url(
            os.getenv("REGULATORY_DATABASE_URL", self.database_url)
        )

        self.grounding_failure_warn_rate = float(
            os.getenv("GROUNDING_FAILURE_WARN_RATE", str(self.grounding_failure_warn_rate))
        )
        self.grounding_failure_fail_rate = float(
            os.getenv("GROUNDING_FAILURE_FAIL_RATE", str(self.grounding_failure_fail_rate))
        )
        self.ocr_failure_warn_rate = float(
            os.getenv("OCR_FAILURE_WARN_RATE", str(self.ocr_failure_warn_rate))
        )
        self.ocr_failure_fail_rate = float(
            os.getenv("OCR_FAILURE_FAIL_RATE", str(self.ocr_failure_fail_rate))
        )
        self.ocr_min_confidence = float(
            os.getenv("OCR_MIN_CONFIDENCE", str(self.ocr_min_confidence))
        )
        self.content_sync_stuck_minutes = int(
            os.getenv("CONTENT_SYNC_STUCK_MINUTES", str(self.content_sync_stuck_minutes))
        )
        self.content_sync_backlog_threshold = int(
            os.getenv("CONTENT_SYNC_BACKLOG_THRESHOLD", str(self.content_sync_backlog_threshold))
        )
        self.open_conflict_stale_days = int(
            os.getenv("OPEN_CONFLICT_STALE_DAYS", str(self.open_conflict_stale_days))
        )
