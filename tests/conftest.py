"""Pytest configuration and shared fixtures."""

import os
import uuid
from datetime import datetime

import pytest
import pytest_asyncio

# Settings are read at import time
os.environ.setdefault("DB_URL", "sqlite+aiosqlite://")
os.environ.setdefault("LOG_FORMAT", "text")

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402

from backoffice import models  # noqa: E402
from backoffice.models import Base  # noqa: E402


@pytest_asyncio.fixture
async def engine(tmp_path):
    """Fresh on-disk SQLite database per test."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'backoffice.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(bind=engine, expire_on_commit=False, class_=AsyncSession)


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def add_submission(session_factory):
    """Insert a stored submission and return its id."""

    async def _add(
        answers=None,
        *,
        email=None,
        phone=None,
        created_at=None,
        raw_json=None,
    ) -> str:
        submission = models.FormSubmission(
            id=str(uuid.uuid4()),
            source="google_form",
            source_row_id=str(uuid.uuid4()),
            email=email,
            phone=phone,
            raw_json=raw_json if raw_json is not None else {"answers": answers or {}},
            created_at=created_at or datetime.utcnow(),
        )
        async with session_factory() as s:
            s.add(submission)
            await s.commit()
        return submission.id

    return _add


@pytest.fixture
def text_payload():
    def _payload(*values):
        return {"textAnswers": {"answers": [{"value": v} for v in values]}}

    return _payload


@pytest.fixture
def file_payload():
    def _payload(*files):
        return {"fileUploadAnswers": {"answers": list(files)}}

    return _payload
