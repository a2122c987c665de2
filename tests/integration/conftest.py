import os
import uuid
from collections.abc import Generator
from typing import Any

import psycopg
import pytest

from app.config.settings import Settings
from app.database.connection import apply_schema, close_pool, get_connection, init_pool
from app.database.models import DocumentRecord
from app.database.repositories.document_repository import DocumentRepository


def _test_settings() -> Settings:
    os.environ.setdefault("DB_DATABASE", "docrecon_test")
    return Settings()


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    return _test_settings()


@pytest.fixture(scope="session")
def integration_pool(test_settings: Settings) -> Generator[None, None, None]:
    try:
        init_pool(test_settings)
        apply_schema()
    except Exception as e:
        close_pool()
        pytest.skip(
            f"PostgreSQL test DB not available: {e}. "
            "Set DB_* env to point at a scratch database"
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
def owner_id() -> int:
    """A principal id no other test run will reuse."""
    return uuid.uuid4().int % 1_000_000_000


@pytest.fixture
def integration_cleanup(integration_pool: None) -> Generator[list[int], None, None]:
    cleanup: list[int] = []
    yield cleanup
    if not cleanup:
        return
    with get_connection() as conn:
        with conn.cursor() as cur:
            for document_id in cleanup:
                cur.execute("DELETE FROM documents WHERE id = %s", (document_id,))
        conn.commit()


@pytest.fixture
def seed_document(
    integration_cleanup: list[int],
    owner_id: int,
):
    """Factory inserting an uploading document owned by ``owner_id``."""
    repo = DocumentRepository()

    def _seed(owner: int | None = None, category: str | None = None) -> DocumentRecord:
        record = repo.create(
            owner_id=owner if owner is not None else owner_id,
            external_job_id=f"it-{uuid.uuid4()}",
            name="invoice.pdf",
            size_bytes=1024,
            mime_type="application/pdf",
        )
        integration_cleanup.append(record.id)
        if category is not None:
            with get_connection() as conn:
                conn.execute(
                    "UPDATE documents SET category = %s WHERE id = %s",
                    (category, record.id),
                )
                conn.commit()
        return repo.find_by_id(record.id)

    return _seed
