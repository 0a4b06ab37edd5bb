"""Tests for submission normalization and answer upserts."""

import pytest
from sqlalchemy import func, select

from backoffice import models
from backoffice.pipelines.normalization import (
    NormalizedAnswerRow,
    dedupe_answer_rows,
    answers_from_raw_json,
    flatten_answers,
    normalize_submission_answers,
    upsert_answer_rows,
)


class TestFlattenAnswers:
    """Pure flattening of an answer map."""

    def test_text_extraction(self, text_payload):
        rows = flatten_answers("s1", {"q1": text_payload("Paris", "Lyon")})
        assert rows == [
            NormalizedAnswerRow(submission_id="s1", question_id="q1", answer_index=0, value_text="Paris"),
            NormalizedAnswerRow(submission_id="s1", question_id="q1", answer_index=1, value_text="Lyon"),
        ]

    def test_file_fallback(self, file_payload):
        rows = flatten_answers("s1", {"q2": file_payload({"fileId": "f1"}, {"fileName": "photo.png"})})
        assert [(r.question_id, r.answer_index, r.value_text) for r in rows] == [
            ("q2", 0, "f1"),
            ("q2", 1, "photo.png"),
        ]

    def test_indices_are_contiguous_per_question(self, text_payload):
        answers = {
            "q1": text_payload("a", "", "b", "c"),
            "q2": text_payload("x"),
            "q3": {"textAnswers": {"answers": [{"value": ""}]}},
        }
        rows = flatten_answers("s1", answers)

        by_question = {}
        for row in rows:
            by_question.setdefault(row.question_id, []).append(row.answer_index)

        assert by_question == {"q1": [0, 1, 2], "q2": [0]}
        assert len({(r.submission_id, r.question_id, r.answer_index) for r in rows}) == len(rows)

    def test_question_without_values_has_no_placeholder(self):
        assert flatten_answers("s1", {"q1": {}, "q2": None}) == []

    def test_deterministic(self, text_payload):
        answers = {"q1": text_payload("a", "b"), "q2": text_payload("c")}
        assert flatten_answers("s1", answers) == flatten_answers("s1", answers)


@pytest.mark.parametrize(
    "raw_json, expected",
    [
        ({"answers": {"q1": {}}}, {"q1": {}}),
        ({"responseId": "r1"}, {}),
        ({"answers": ["not", "a", "map"]}, {}),
        (None, {}),
        ("garbage", {}),
    ],
)
def test_answers_from_raw_json(raw_json, expected):
    assert dict(answers_from_raw_json(raw_json)) == expected


async def _answer_rows(session, submission_id):
    result = await session.execute(
        select(models.FormSubmissionAnswer)
        .where(models.FormSubmissionAnswer.submission_id == submission_id)
        .order_by(models.FormSubmissionAnswer.question_id, models.FormSubmissionAnswer.answer_index)
    )
    return [(a.question_id, a.answer_index, a.value_text) for a in result.scalars().all()]


def test_dedupe_answer_rows_keeps_last():
    rows = [
        NormalizedAnswerRow("s1", "q1", 0, "old"),
        NormalizedAnswerRow("s1", "q2", 0, "x"),
        NormalizedAnswerRow("s1", "q1", 0, "new"),
        NormalizedAnswerRow("s2", "q1", 0, "other"),
    ]

    assert dedupe_answer_rows(rows) == [
        NormalizedAnswerRow("s1", "q1", 0, "new"),
        NormalizedAnswerRow("s1", "q2", 0, "x"),
        NormalizedAnswerRow("s2", "q1", 0, "other"),
    ]


class TestNormalizeSubmissionAnswers:
    """Persisted normalization of one submission."""

    @pytest.mark.asyncio
    async def test_upserts_rows_and_returns_count(self, session, add_submission, text_payload, file_payload):
        answers = {"q1": text_payload("Paris", "Lyon"), "q2": file_payload({"fileId": "f1"})}
        submission_id = await add_submission(answers)

        written = await normalize_submission_answers(session, submission_id, {"answers": answers})
        await session.commit()

        assert written == 3
        assert await _answer_rows(session, submission_id) == [
            ("q1", 0, "Paris"),
            ("q1", 1, "Lyon"),
            ("q2", 0, "f1"),
        ]

    @pytest.mark.asyncio
    async def test_no_extractable_answers(self, session, add_submission):
        submission_id = await add_submission({"q1": {"unknown": 1}})

        written = await normalize_submission_answers(session, submission_id, {"answers": {"q1": {"unknown": 1}}})

        assert written == 0
        assert await _answer_rows(session, submission_id) == []

    @pytest.mark.asyncio
    async def test_renormalization_overwrites_in_place(self, session, add_submission, text_payload):
        submission_id = await add_submission({"q1": text_payload("old")})

        await normalize_submission_answers(session, submission_id, {"answers": {"q1": text_payload("old")}})
        await session.commit()
        await normalize_submission_answers(session, submission_id, {"answers": {"q1": text_payload("new")}})
        await session.commit()

        assert await _answer_rows(session, submission_id) == [("q1", 0, "new")]

    @pytest.mark.asyncio
    async def test_upsert_in_small_batches(self, session, add_submission):
        submission_id = await add_submission({})
        rows = [
            NormalizedAnswerRow(submission_id=submission_id, question_id="q1", answer_index=i, value_text=str(i))
            for i in range(7)
        ]

        written = await upsert_answer_rows(session, rows, batch_size=3)
        await session.commit()

        count = await session.scalar(select(func.count()).select_from(models.FormSubmissionAnswer))
        assert written == 7
        assert count == 7

    @pytest.mark.asyncio
    async def test_upsert_nothing(self, session):
        assert await upsert_answer_rows(session, []) == 0
