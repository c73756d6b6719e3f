"""
pytest configuration and fixtures for the portfolio API.

Provides:
- Settings pointed at per-test temporary directories
- Test clients for the file-backed and database-backed setups
- A logged-in admin client
"""

import asyncio
import os

import pytest
from fastapi.testclient import TestClient

from portfolio_api.app import create_app
from portfolio_api.config import Settings
from portfolio_api.db import create_db_and_tables, create_engine, make_sessionmaker

ADMIN_USERNAME = "admin"
ADMIN_PASSWORD = "correct-horse-battery"

PNG_HEADER = b"\x89PNG\r\n\x1a\n"


def png_bytes(size: int) -> bytes:
    return PNG_HEADER + os.urandom(size - len(PNG_HEADER))


def login(client, username=ADMIN_USERNAME, password=ADMIN_PASSWORD):
    return client.post("/api/admin/login", json={"username": username, "password": password})


def run_with_db(database_url, scenario):
    """Run `scenario(session_factory)` against freshly created tables inside one event loop."""

    async def _main():
        engine = create_engine(database_url)
        await create_db_and_tables(engine)
        try:
            return await scenario(make_sessionmaker(engine))
        finally:
            await engine.dispose()

    return asyncio.run(_main())


# ============================================================================
# SETTINGS
# ============================================================================

@pytest.fixture
def make_settings(tmp_path):
    """Build Settings that only touch tmp_path."""

    def _make(**overrides):
        values = {
            "content_file": tmp_path / "data" / "content.json",
            "uploads_dir": tmp_path / "public" / "uploads",
            "resume_path": tmp_path / "attached_assets" / "resume.pdf",
            "admin_username": ADMIN_USERNAME,
            "admin_password": ADMIN_PASSWORD,
            "sweep_interval_seconds": 3600,
        }
        values.update(overrides)
        return Settings(**values)

    return _make


@pytest.fixture
def sqlite_url(tmp_path):
    return f"sqlite+aiosqlite:///{tmp_path / 'portfolio.db'}"


# ============================================================================
# CLIENTS
# ============================================================================

@pytest.fixture
def client(make_settings):
    """File content store, disk uploads, in-memory sessions."""
    with TestClient(create_app(make_settings())) as test_client:
        yield test_client


@pytest.fixture
def admin_client(client):
    response = login(client)
    assert response.status_code == 200
    return client


@pytest.fixture
def db_client(make_settings, sqlite_url):
    """Database content store, database uploads, database sessions."""
    settings = make_settings(database_url=sqlite_url, upload_strategy="database")
    with TestClient(create_app(settings)) as test_client:
        yield test_client
