"""Batch normalization of every stored submission lacking answer rows.

A submission counts as normalized once it has at least one row in
form_submission_answers. Submissions that produce no rows therefore stay
eligible and are re-attempted on every run.

Each submission is normalized in its own session and committed on its own,
so a failed run leaves an unknown prefix committed and can simply be re-run.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from backoffice import models
from backoffice.config import settings
from backoffice.pipelines.normalization import normalize_submission_answers

logger = logging.getLogger(__name__)


@dataclass
class BatchNormalizationResult:
    """Aggregate counts of one batch run."""
    total: int
    normalized: int
    answers_created: int


async def load_normalized_submission_ids(session: AsyncSession) -> set[str]:
    """Ids of submissions that already have at least one answer row."""
    result = await session.execute(
        select(models.FormSubmissionAnswer.submission_id).distinct()
    )
    return set(result.scalars().all())


async def load_submissions(session: AsyncSession) -> list[tuple[str, dict]]:
    """All submissions as (id, raw_json) pairs."""
    result = await session.execute(
        select(models.FormSubmission.id, models.FormSubmission.raw_json)
    )
    return [(row.id, row.raw_json) for row in result.all()]


async def normalize_all_submissions(
    session_factory: async_sessionmaker[AsyncSession],
    *,
    concurrency: int | None = None,
) -> BatchNormalizationResult:
    """Normalize every submission that has no answer rows yet.

    Steps:
    1. Load ids that already have answer rows
    2. Load all submissions with their raw payload
    3. Keep the ones not yet normalized
    4. Normalize each in its own committed session, at most
       `concurrency` at a time
    5. Return aggregate counts

    Args:
        session_factory: Factory producing independent sessions
        concurrency: Max submissions in flight (defaults to settings)

    Returns:
        BatchNormalizationResult

    Raises:
        Any storage error, unchanged. Pending submissions are cancelled;
        already committed ones stay committed.
    """
    concurrency = concurrency or settings.normalization.concurrency

    async with session_factory() as session:
        existing_ids = await load_normalized_submission_ids(session)
        submissions = await load_submissions(session)

    if not submissions:
        return BatchNormalizationResult(total=0, normalized=0, answers_created=0)

    to_normalize = [(sid, raw) for sid, raw in submissions if sid not in existing_ids]
    logger.info(
        f"Normalizing {len(to_normalize)} of {len(submissions)} submissions "
        f"(concurrency={concurrency})"
    )

    semaphore = asyncio.Semaphore(concurrency)

    async def _normalize_one(submission_id: str, raw_json: dict) -> int:
        async with semaphore:
            async with session_factory() as session:
                count = await normalize_submission_answers(session, submission_id, raw_json)
                await session.commit()
                return count

    tasks = [asyncio.create_task(_normalize_one(sid, raw)) for sid, raw in to_normalize]
    try:
        counts = await asyncio.gather(*tasks)
    except Exception:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        logger.error("Batch normalization aborted", exc_info=True)
        raise

    empty = sum(1 for c in counts if c == 0)
    if empty:
        logger.info(f"{empty} submissions had no extractable answers and remain unnormalized")

    result = BatchNormalizationResult(
        total=len(submissions),
        normalized=len(to_normalize),
        answers_created=sum(counts),
    )
    logger.info(
        f"Batch normalization complete: {result.normalized} normalized, "
        f"{result.answers_created} answers created (total: {result.total})"
    )
    return result
