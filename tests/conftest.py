"""
Pytest configuration and fixtures.
"""

from __future__ import annotations

import os
import tempfile
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from tests.test_constants import TEST_INTERNAL_JOB_TOKEN, TEST_LLM_API_KEY

# Force a throwaway test DB; don't inherit DATABASE_URL from .env.
# TEST_DATABASE_URL points the suite at PostgreSQL instead of a temp SQLite file.
_test_dir = Path(tempfile.mkdtemp(prefix="regtruth-test-"))
_test_url = os.getenv("TEST_DATABASE_URL") or f"sqlite+pysqlite:///{_test_dir / 'regtruth_test.db'}"
os.environ["DATABASE_URL"] = _test_url
os.environ["CONTENT_DIR"] = str(_test_dir / "content")
os.environ.setdefault("INTERNAL_JOB_TOKEN", TEST_INTERNAL_JOB_TOKEN)
os.environ.setdefault("LLM_API_KEY", TEST_LLM_API_KEY)


@pytest.fixture
def client() -> TestClient:
    """FastAPI test client."""
    from regtruth.main import app

    return TestClient(app)


@pytest.fixture
def client_with_db(db: Session) -> TestClient:
    """TestClient with get_db overridden to use the test db session."""
    from regtruth.db.session import get_db
    from regtruth.main import app

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    c = TestClient(app)
    yield c
    app.dependency_overrides.pop(get_db, None)


@pytest.fixture(autouse=True)
def _clear_loader_caches() -> None:
    """Clear the concept registry, settings and LLM provider caches around each test.

    Tests that patch the registry file or environment must not leak into the next test.
    """
    from regtruth.concepts.loader import clear_registry_caches
    from regtruth.config import get_settings
    from regtruth.llm.router import clear_provider_cache

    clear_registry_caches()
    get_settings.cache_clear()
    clear_provider_cache()
    yield
    clear_registry_caches()
    get_settings.cache_clear()
    clear_provider_cache()


@pytest.fixture(scope="session")
def _ensure_migrations() -> None:
    """Run migrations once per test session."""
    import subprocess
    import sys

    project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
    result = subprocess.run(
        [sys.executable, "-m", "alembic", "upgrade", "head"],
        cwd=project_root,
        capture_output=True,
        text=True,
        timeout=60,
        env=os.environ.copy(),
    )
    assert result.returncode == 0, f"alembic upgrade head failed: {result.stderr}"


@pytest.fixture
def db(_ensure_migrations: None) -> Session:
    """Database session for model tests. All changes are rolled back after each test."""
    from regtruth.db import engine

    connection = engine.connect()
    transaction = connection.begin()
    session = Session(
        bind=connection,
        expire_on_commit=False,
        join_transaction_mode="create_savepoint",
    )
    try:
        yield session
    finally:
        session.close()
        transaction.rollback()
        connection.close()


@pytest.fixture
def content_root(tmp_path: Path) -> Path:
    """Content directory holding one .mdx file per path in the concept registry."""
    from regtruth.concepts.loader import get_concepts

    root = tmp_path / "content"
    for concept in get_concepts().values():
        for rel in concept.content_paths:
            path = root / rel
            if path.exists():
                continue
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(
                f"---\ntitle: {path.stem}\nlastUpdated: '2025-01-01'\n---\n\n# {path.stem}\n",
                encoding="utf-8",
            )
    return root
