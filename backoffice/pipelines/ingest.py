"""Ingestion of Google Forms responses into form_submissions.

Takes the body of a `forms.responses.list` call (already fetched by the
caller) and:
- Skips responses not newer than the last logged import of the same form.
- Creates or updates one submission per response, keyed on (source, responseId).
- Normalizes every imported response's answers in the same transaction.
- Logs every non-empty run in form_import_log.
"""

from __future__ import annotations

import logging
import re
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Mapping

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice import models
from backoffice.config import settings
from backoffice.pipelines.extraction import all_text_values
from backoffice.pipelines.normalization import (
    NormalizedAnswerRow,
    dedupe_answer_rows,
    flatten_answers,
    upsert_answer_rows,
)

logger = logging.getLogger(__name__)

NON_DIGIT = re.compile(r"\D")
PHONE_MIN_DIGITS = 9
PHONE_MAX_DIGITS = 15


@dataclass
class ImportSummary:
    """Counts of one import run."""
    total: int
    imported: int
    updated: int
    skipped: int


class FormImportError(Exception):
    """Raised when an import request body is malformed."""
    pass


def build_source_row_id(response: Mapping[str, Any]) -> str:
    response_id = response.get("responseId")
    if not response_id:
        raise FormImportError("Form response without responseId")
    return str(response_id)


def extract_email(answers: Mapping[str, Any]) -> str | None:
    """First text answer that looks like an email address, lower-cased."""
    for value in all_text_values(answers):
        if "@" in value and "." in value:
            return value.strip().lower()
    return None


def extract_phone(answers: Mapping[str, Any]) -> str | None:
    """First text answer holding 9 to 15 digits."""
    for value in all_text_values(answers):
        digits = NON_DIGIT.sub("", value)
        if PHONE_MIN_DIGITS <= len(digits) <= PHONE_MAX_DIGITS:
            return value.strip()
    return None


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an RFC 3339 timestamp into naive UTC, None when unparseable."""
    if not value or not isinstance(value, str):
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        logger.warning(f"Unparseable timestamp: {value!r}")
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


async def last_import_at(session: AsyncSession, source: str, form_id: str) -> datetime | None:
    """Timestamp of the most recent logged import of a form."""
    result = await session.execute(
        select(models.FormImportLog.last_import_at)
        .where(
            models.FormImportLog.source == source,
            models.FormImportLog.form_id == form_id,
        )
        .order_by(models.FormImportLog.created_at.desc(), models.FormImportLog.id.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def upsert_submission(
    session: AsyncSession,
    *,
    source: str,
    source_row_id: str,
    submitted_at: datetime | None,
    email: str | None,
    phone: str | None,
    raw_json: dict,
) -> tuple[models.FormSubmission, bool]:
    """Create or update a submission keyed on (source, source_row_id).

    Returns:
        Tuple of (submission, created)
    """
    result = await session.execute(
        select(models.FormSubmission).where(
            models.FormSubmission.source == source,
            models.FormSubmission.source_row_id == source_row_id,
        )
    )
    submission = result.scalar_one_or_none()

    if submission is None:
        submission = models.FormSubmission(
            id=str(uuid.uuid4()),
            source=source,
            source_row_id=source_row_id,
            submitted_at=submitted_at,
            email=email,
            phone=phone,
            raw_json=raw_json,
        )
        session.add(submission)
        await session.flush()
        return submission, True

    submission.submitted_at = submitted_at
    submission.email = email
    submission.phone = phone
    submission.raw_json = raw_json
    await session.flush()
    return submission, False


async def import_form_responses(
    session: AsyncSession,
    *,
    form_id: str,
    responses: Any,
    source: str | None = None,
) -> ImportSummary:
    """Import a list of Google Forms responses.

    Args:
        session: Database session (committed here)
        form_id: Google form id, used for delta tracking
        responses: The `responses` list of a forms.responses.list body
        source: Submission source tag (defaults to settings)

    Returns:
        ImportSummary

    Raises:
        FormImportError: If the request body is malformed
    """
    if not isinstance(responses, list):
        raise FormImportError("responses must be a list")

    if not responses:
        logger.info("No responses to import")
        return ImportSummary(total=0, imported=0, updated=0, skipped=0)

    source = source or settings.imports.source
    since = await last_import_at(session, source, form_id)
    logger.info(
        f"Last import: {since.isoformat() if since else 'never'} - "
        f"processing {len(responses)} total responses"
    )

    imported = updated = skipped = 0
    answer_rows: list[NormalizedAnswerRow] = []

    for response in responses:
        if not isinstance(response, Mapping):
            raise FormImportError("Each response must be an object")

        source_row_id = build_source_row_id(response)
        raw_answers = response.get("answers")
        answers = raw_answers if isinstance(raw_answers, Mapping) else {}
        submitted_at = parse_timestamp(response.get("lastSubmittedTime") or response.get("createTime"))

        if since is not None and submitted_at is not None and submitted_at <= since:
            skipped += 1
            continue

        email = response.get("respondentEmail") or extract_email(answers)
        phone = extract_phone(answers)

        submission, created = await upsert_submission(
            session,
            source=source,
            source_row_id=source_row_id,
            submitted_at=submitted_at,
            email=email,
            phone=phone,
            raw_json={"responseId": source_row_id, "answers": dict(answers)},
        )
        if created:
            imported += 1
        else:
            updated += 1

        answer_rows.extend(flatten_answers(submission.id, answers))

    await upsert_answer_rows(session, dedupe_answer_rows(answer_rows))

    session.add(
        models.FormImportLog(
            source=source,
            form_id=form_id,
            last_import_at=datetime.utcnow(),
            total_responses=len(responses),
            imported_count=imported,
            updated_count=updated,
            skipped_count=skipped,
        )
    )
    await session.commit()

    logger.info(
        f"Import complete: {imported} imported, {updated} updated, "
        f"{skipped} skipped (total: {len(responses)})"
    )
    return ImportSummary(
        total=len(responses),
        imported=imported,
        updated=updated,
        skipped=skipped,
    )
