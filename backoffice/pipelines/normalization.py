"""Submission normalization: raw answer maps to queryable answer rows.

Each submission's `raw_json["answers"]` is flattened into
(submission_id, question_id, answer_index, value_text) rows which are
upserted on that natural key. Re-normalizing a submission overwrites
`value_text` in place and never duplicates rows.
"""
from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Any, Iterable, Mapping

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice import models
from backoffice.config import settings
from backoffice.pipelines.extraction import extract_answer_values

logger = logging.getLogger(__name__)

ANSWER_KEY = ("submission_id", "question_id", "answer_index")


@dataclass(frozen=True)
class NormalizedAnswerRow:
    """One scalar answer value addressed by (submission, question, position)."""
    submission_id: str
    question_id: str
    answer_index: int
    value_text: str | None


def answers_from_raw_json(raw_json: Any) -> Mapping[str, Any]:
    """Return the question-id keyed answer map of a stored submission.

    Anything other than a mapping under `answers` is treated as empty.
    """
    if not isinstance(raw_json, Mapping):
        return {}
    answers = raw_json.get("answers")
    return answers if isinstance(answers, Mapping) else {}


def flatten_answers(submission_id: str, answers: Mapping[str, Any]) -> list[NormalizedAnswerRow]:
    """Flatten one submission's answer map into ordered rows.

    Args:
        submission_id: Id of the stored submission
        answers: Mapping of question id to provider payload

    Returns:
        Rows grouped by question in the map's iteration order, with
        `answer_index` counting 0..N-1 within each question. Questions
        with no extractable value contribute no rows.
    """
    rows: list[NormalizedAnswerRow] = []
    for question_id, payload in answers.items():
        for index, value in enumerate(extract_answer_values(payload)):
            rows.append(
                NormalizedAnswerRow(
                    submission_id=submission_id,
                    question_id=str(question_id),
                    answer_index=index,
                    value_text=value,
                )
            )
    return rows


def dedupe_answer_rows(rows: Iterable[NormalizedAnswerRow]) -> list[NormalizedAnswerRow]:
    """Keep the last row for each natural key, in first-seen key order.

    A single ON CONFLICT statement may not touch the same key twice.
    """
    by_key: dict[tuple, NormalizedAnswerRow] = {}
    for row in rows:
        by_key[tuple(getattr(row, name) for name in ANSWER_KEY)] = row
    return list(by_key.values())


def _insert_for(session: AsyncSession):
    """Dialect-specific INSERT construct supporting ON CONFLICT."""
    dialect = session.bind.dialect.name if session.bind is not None else "postgresql"
    if dialect == "sqlite":
        return sqlite.insert
    return postgresql.insert


async def upsert_answer_rows(
    session: AsyncSession,
    rows: Iterable[NormalizedAnswerRow],
    *,
    batch_size: int | None = None,
) -> int:
    """Upsert rows on (submission_id, question_id, answer_index).

    Conflicting rows get their `value_text` overwritten. Statements are
    chunked to `batch_size` rows. The caller owns the transaction.

    Returns:
        Number of rows written
    """
    payload = [asdict(row) for row in rows]
    if not payload:
        return 0

    batch_size = batch_size or settings.normalization.upsert_batch_size
    insert = _insert_for(session)

    for start in range(0, len(payload), batch_size):
        chunk = payload[start:start + batch_size]
        stmt = insert(models.FormSubmissionAnswer).values(chunk)
        stmt = stmt.on_conflict_do_update(
            index_elements=list(ANSWER_KEY),
            set_={"value_text": stmt.excluded.value_text},
        )
        await session.execute(stmt)

    return len(payload)


async def normalize_submission_answers(
    session: AsyncSession,
    submission_id: str,
    raw_json: Any,
) -> int:
    """Normalize and upsert the answers of a single submission.

    Args:
        session: Database session (not committed here)
        submission_id: Id of the stored submission
        raw_json: Stored raw payload, `{"answers": {question_id: payload}}`

    Returns:
        Number of rows written, 0 when nothing was extractable
    """
    rows = flatten_answers(submission_id, answers_from_raw_json(raw_json))
    if not rows:
        logger.debug(f"Submission {submission_id}: no extractable answers")
        return 0

    written = await upsert_answer_rows(session, rows)
    logger.debug(f"Submission {submission_id}: upserted {written} answer rows")
    return written
