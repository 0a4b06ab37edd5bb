"""Tests for the question label map and search reads."""

from datetime import datetime

import pytest
import pytest_asyncio

from backoffice.pipelines.normalization import normalize_submission_answers
from backoffice.pipelines.question_map import (
    QuestionLabel,
    fetch_question_labels,
    fetch_question_map,
    upsert_question_map,
)
from backoffice.pipelines.search import (
    ParsedQuery,
    SearchQuestions,
    clamp_number,
    fetch_submission_answers,
    parse_freetext_query,
    resolve_search_questions,
    search_submissions,
    strip_accents,
)


class TestQuestionMap:
    @pytest.mark.asyncio
    async def test_upsert_and_fetch_in_display_order(self, session):
        await upsert_question_map(
            session,
            [
                QuestionLabel(question_id="q3", label="Unordered"),
                QuestionLabel(question_id="q2", label="Ville", display_order=2),
                QuestionLabel(question_id="q1", label="Prénom", display_order=1),
            ],
        )

        labels = await fetch_question_map(session)
        assert [q.question_id for q in labels] == ["q1", "q2", "q3"]

    @pytest.mark.asyncio
    async def test_upsert_updates_existing_label(self, session):
        await upsert_question_map(session, [QuestionLabel(question_id="q1", label="Old", display_order=1)])
        await upsert_question_map(session, [QuestionLabel(question_id="q1", label="New", display_order=1)])

        assert await fetch_question_labels(session) == {"q1": "New"}

    @pytest.mark.asyncio
    async def test_empty_upsert(self, session):
        assert await upsert_question_map(session, []) == []


class TestSearch:
    @pytest.mark.asyncio
    async def test_fetch_submission_answers_ordered(self, session, add_submission, text_payload):
        answers = {"q2": text_payload("b"), "q1": text_payload("x", "y")}
        submission_id = await add_submission(answers)
        await normalize_submission_answers(session, submission_id, {"answers": answers})
        await session.commit()

        rows = await fetch_submission_answers(session, submission_id)
        assert [(r.question_id, r.answer_index, r.value_text) for r in rows] == [
            ("q1", 0, "x"),
            ("q1", 1, "y"),
            ("q2", 0, "b"),
        ]

    @pytest.mark.asyncio
    async def test_filters_and_newest_first(self, session, add_submission, text_payload):
        older = await add_submission(
            {"q1": text_payload("a")}, email="jane@example.com", phone="0611111111",
            created_at=datetime(2024, 1, 1),
        )
        newer = await add_submission(
            {"q1": text_payload("b")}, email="JANE.doe@example.com", phone="0622222222",
            created_at=datetime(2024, 6, 1),
        )
        await add_submission({}, email="bob@example.com", created_at=datetime(2024, 3, 1))
        await normalize_submission_answers(session, older, {"answers": {"q1": text_payload("a")}})
        await session.commit()

        by_email = await search_submissions(session, email="jane")
        assert [s.id for s in by_email] == [newer, older]
        assert by_email[1].answers[0].value_text == "a"
        assert by_email[0].answers == []

        by_phone = await search_submissions(session, phone="0622")
        assert [s.id for s in by_phone] == [newer]

        assert len(await search_submissions(session)) == 3


@pytest.mark.parametrize(
    "text,expected",
    [
        (
            "Femme entre 25 et 35 ans sans enfant aimant la cuisine",
            ParsedQuery(gender="femme", age_min=25, age_max=35, no_children=True, keywords=["cuisine"]),
        ),
        ("homme de 30 ans", ParsedQuery(gender="homme", age_min=28, age_max=32)),
        ("42 ans", ParsedQuery(age_min=40, age_max=44)),
        ("de 25 à 30 ans", ParsedQuery(age_min=25, age_max=30)),
        ("25-30 ans", ParsedQuery(age_min=25, age_max=30)),
        ("moins de 40 ans", ParsedQuery(age_min=18, age_max=40)),
        ("plus de 50 ans", ParsedQuery(age_min=50, age_max=120)),
        ("Garçon", ParsedQuery(gender="homme")),
        (
            "Madame, pas d'enfants, passionnée de randonnée à Lyon",
            ParsedQuery(gender="femme", no_children=True, keywords=["passionnée", "randonnée", "lyon"]),
        ),
        ("n’a pas d’enfant", ParsedQuery(no_children=True)),
        ("fillette numéro 7", ParsedQuery(keywords=["fillette", "numéro"])),
        ("", ParsedQuery()),
    ],
)
def test_parse_freetext_query(text, expected):
    assert parse_freetext_query(text) == expected


@pytest.mark.parametrize(
    "value,expected",
    [(None, 200), ("50", 200), (True, 200), (float("nan"), 200), (0, 1), (-3, 1), (42, 42), (42.9, 42), (1000, 500)],
)
def test_clamp_limit(value, expected):
    assert clamp_number(value, 1, 500, 200) == expected


def test_strip_accents():
    assert strip_accents("Élodie Hélène ça") == "Elodie Helene ca"


def test_resolve_search_questions():
    labels = {
        "q1": "Prénom",
        "q2": "Nom de famille",
        "q3": "Téléphone portable",
        "q4": "Âge",
        "q5": "Êtes-vous ?",
        "q6": "Avez-vous des enfants ?",
        "q7": "Nom d'usage",
        "q8": "Âge du premier enfant",
    }

    assert resolve_search_questions(labels) == SearchQuestions(
        first_name="q1", last_name="q7", phone="q3", age="q4", gender="q5", children="q6"
    )
    assert resolve_search_questions({}) == SearchQuestions()


class TestLabelDrivenSearch:
    """Search over columns resolved from the question label map."""

    @pytest_asyncio.fixture
    async def people(self, session, add_submission, text_payload):
        await upsert_question_map(
            session,
            [
                QuestionLabel(question_id="q_first", label="Prénom"),
                QuestionLabel(question_id="q_last", label="Nom de famille"),
                QuestionLabel(question_id="q_phone", label="Téléphone portable"),
                QuestionLabel(question_id="q_age", label="Âge"),
                QuestionLabel(question_id="q_gender", label="Êtes-vous ?"),
                QuestionLabel(question_id="q_children", label="Avez-vous des enfants ?"),
                QuestionLabel(question_id="q_hobby", label="Passions"),
            ],
        )

        async def person(first, last, age, gender, children, hobbies, *, phone=None, phone_answer=None):
            answers = {
                "q_first": text_payload(first),
                "q_last": text_payload(last),
                "q_age": text_payload(age),
                "q_gender": text_payload(gender),
                "q_children": text_payload(*children),
                "q_hobby": text_payload(*hobbies),
            }
            if phone_answer:
                answers["q_phone"] = text_payload(phone_answer)
            submission_id = await add_submission(answers, phone=phone)
            await normalize_submission_answers(session, submission_id, {"answers": answers})
            await session.commit()
            return submission_id

        return {
            "elodie": await person(
                "Élodie", "Martin", "29 ans", "Femme", ["Non"], ["Randonnée", "cuisine"], phone_answer="0611111111"
            ),
            "marc": await person("Marc", "Dupont", "41", "Homme", ["Oui", "deux"], ["Cuisine"], phone="0622222222"),
            "julie": await person("Julie", "Bernard", "35", "Femme", ["Oui"], ["Lecture"]),
        }

    @pytest.mark.asyncio
    async def test_resolved_columns(self, session, people):
        rows = {s.id: s for s in await search_submissions(session)}

        elodie = rows[people["elodie"]]
        assert (elodie.first_name, elodie.last_name, elodie.age, elodie.gender, elodie.children) == (
            "Élodie", "Martin", "29 ans", "Femme", "Non",
        )
        assert elodie.contact_phone == "0611111111"
        assert rows[people["marc"]].contact_phone == "0622222222"
        assert rows[people["marc"]].children == "Oui, deux"

    @pytest.mark.asyncio
    async def test_ordered_by_last_name(self, session, people):
        rows = await search_submissions(session)
        assert [s.id for s in rows] == [people["julie"], people["marc"], people["elodie"]]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "filters,expected",
        [
            ({"name": "elodie"}, ["elodie"]),
            ({"name": "Martin Élodie"}, ["elodie"]),
            ({"name": "elodie martin"}, ["elodie"]),
            ({"phone": "0611"}, ["elodie"]),
            ({"phone": "0622"}, ["marc"]),
            ({"age": "41"}, ["marc"]),
            ({"gender": "femme"}, ["julie", "elodie"]),
            ({"children": "oui"}, ["julie", "marc"]),
            ({"name": "   "}, ["julie", "marc", "elodie"]),
        ],
    )
    async def test_column_filters(self, session, people, filters, expected):
        rows = await search_submissions(session, **filters)
        assert [s.id for s in rows] == [people[key] for key in expected]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "freetext,expected",
        [
            ("femme de 30 ans sans enfant", ["elodie"]),
            ("femme", ["julie", "elodie"]),
            ("plus de 40 ans", ["marc"]),
            ("cuisine randonnee", ["elodie", "marc"]),
            ("lecture", ["julie"]),
            ("astronomie", []),
        ],
    )
    async def test_freetext(self, session, people, freetext, expected):
        rows = await search_submissions(session, freetext=freetext)
        assert [s.id for s in rows] == [people[key] for key in expected]

    @pytest.mark.asyncio
    async def test_limit_and_offset(self, session, people):
        assert [s.id for s in await search_submissions(session, limit=1, offset=1)] == [people["marc"]]
        assert len(await search_submissions(session, limit=0)) == 1
        assert len(await search_submissions(session, limit=1000)) == 3
        assert len(await search_submissions(session, offset=-5)) == 3
        assert await search_submissions(session, offset=3) == []
