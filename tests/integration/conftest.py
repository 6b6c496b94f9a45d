import os
import uuid
from collections.abc import Generator
from typing import Any

import psycopg
import pytest

from bgv.config.settings import Settings
from bgv.database.connection import apply_schema, close_pool, get_connection, init_pool


def _test_settings() -> Settings:
    os.environ.setdefault("DB_DATABASE", "bgv_test")
    return Settings()


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    return _test_settings()


@pytest.fixture(scope="session")
def integration_pool(test_settings: Settings) -> Generator[None, None, None]:
    try:
        init_pool(test_settings)
        with get_connection() as conn:
            apply_schema(conn)
    except Exception as e:
        close_pool()
        pytest.skip(
            f"PostgreSQL test DB not available: {e}. "
            "Set DB_* env to point at a disposable database"
        )
    try:
        yield
    finally:
        close_pool()


@pytest.fixture
def db_conn(integration_pool: None) -> Generator[psycopg.Connection[Any], None, None]:
    with get_connection() as conn:
        yield conn


@pytest.fixture
def candidate_id(integration_pool: None) -> Generator[str, None, None]:
    """A fresh candidate id whose rows are removed after the test."""
    cand = f"it-{uuid.uuid4()}"
    yield cand
    with get_connection() as conn:
        with conn.cursor() as cur:
            cur.execute("DELETE FROM lookup_queue WHERE candidate_id = %s", (cand,))
            cur.execute("DELETE FROM lookup_records WHERE candidate_id = %s", (cand,))
            cur.execute("DELETE FROM api_call_logs WHERE candidate_id = %s", (cand,))
        conn.commit()
