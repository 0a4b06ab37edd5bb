"""Question label map: opaque form question ids to human-readable labels."""
from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice import models

logger = logging.getLogger(__name__)


@dataclass
class QuestionLabel:
    """One question id / label pair."""
    question_id: str
    label: str
    display_order: int | None = None


async def fetch_question_map(session: AsyncSession) -> list[QuestionLabel]:
    """All labels ordered by display_order, unordered entries last."""
    result = await session.execute(
        select(models.FormQuestionMap).order_by(
            models.FormQuestionMap.display_order.is_(None),
            models.FormQuestionMap.display_order,
            models.FormQuestionMap.question_id,
        )
    )
    return [
        QuestionLabel(question_id=q.question_id, label=q.label, display_order=q.display_order)
        for q in result.scalars().all()
    ]


async def fetch_question_labels(session: AsyncSession) -> dict[str, str]:
    """Question id -> label lookup."""
    return {q.question_id: q.label for q in await fetch_question_map(session)}


async def upsert_question_map(
    session: AsyncSession,
    items: list[QuestionLabel],
) -> list[QuestionLabel]:
    """Create or update labels keyed on question_id.

    Args:
        session: Database session (committed here)
        items: Labels to write

    Returns:
        The written labels, empty when nothing was given
    """
    if not items:
        return []

    for item in items:
        await session.merge(
            models.FormQuestionMap(
                question_id=item.question_id,
                label=item.label,
                display_order=item.display_order,
            )
        )
    await session.commit()

    logger.info(f"Upserted {len(items)} question labels")
    return list(items)
