"""Read helpers for the search and display screens.

Search resolves well-known questions (name, phone, age, gender, children)
from the question label map, joins each submission's values for those
questions with ", " in answer order, and filters on them. A free-text
query is parsed into gender / age range / no-children constraints plus
keywords matched against all of a submission's answers, accents ignored.
"""
from __future__ import annotations

import logging
import math
import re
import unicodedata
from dataclasses import dataclass, field, fields
from datetime import datetime
from typing import Any, Iterable, Mapping

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from backoffice import models
from backoffice.pipelines.normalization import NormalizedAnswerRow
from backoffice.pipelines.question_map import fetch_question_labels

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 200
MAX_LIMIT = 500
MAX_OFFSET = 10_000

# Words dropped from free-text keywords
STOP_WORDS = {
    # articles
    "le", "la", "les", "un", "une", "des", "du", "de", "d", "l",
    # pronouns
    "je", "tu", "il", "elle", "on", "nous", "vous", "ils", "elles",
    "me", "te", "se", "ce", "ça", "cela", "ceci",
    "mon", "ma", "mes", "ton", "ta", "tes", "son", "sa", "ses",
    "notre", "votre", "leur", "leurs", "nos", "vos",
    # prepositions and conjunctions
    "à", "au", "aux", "en", "et", "ou", "mais", "donc", "car", "ni",
    "dans", "par", "pour", "sur", "sous", "avec", "chez", "entre",
    # verbs
    "est", "suis", "es", "sont", "être", "etre", "avoir", "ai", "as", "ont",
    "fait", "faire", "peut", "veut", "doit",
    "prend", "prendre", "prenne", "soit", "serait",
    "aime", "aimer", "aimant", "adore", "adorer",
    # adverbs
    "ne", "pas", "plus", "très", "tres", "bien", "aussi", "tout", "tous",
    "qui", "que", "quoi", "dont", "où",
    "encore", "déjà", "deja", "jamais", "toujours", "assez", "trop",
    "comme", "comment", "quand",
    # time
    "ans", "an", "année", "annee", "années", "annees", "mois",
    # search phrasing
    "recherche", "cherche", "voudrais", "veux", "souhaite",
    "personne", "profil", "quelqu", "quelque", "quelques",
    "soin", "soins", "idéal", "ideal", "idéale", "ideale",
}

# Words already consumed by the structured part of the query
PARSED_NOISE = {
    "femme", "homme", "fille", "garçon", "garcon", "madame", "monsieur",
    "enfant", "enfants", "sans", "avec",
}

APOSTROPHES = re.compile(r"[’']")
PUNCTUATION = re.compile(r"[,;.!?:()]")
FEMALE_WORDS = re.compile(r"\bfemme\b|\bfille\b|\bmadame\b")
MALE_WORDS = re.compile(r"\bhomme\b|\bgarçon\b|\bgarcon\b|\bmonsieur\b")

AGE_RANGE_PATTERNS = [
    re.compile(r"entre\s+(\d+)\s+et\s+(\d+)"),
    re.compile(r"de\s+(\d+)\s+[àa]\s+(\d+)"),
    re.compile(r"(\d+)\s*[-–]\s*(\d+)\s*ans"),
]
AGE_BELOW = re.compile(r"moins\s+de\s+(\d+)\s*ans")
AGE_ABOVE = re.compile(r"plus\s+de\s+(\d+)\s*ans")
AGE_EXACT_PATTERNS = [
    re.compile(r"de\s+(\d+)\s+ans"),
    re.compile(r"(\d+)\s+ans"),
]
AGE_TOLERANCE = 2
AGE_FLOOR = 18
AGE_CEILING = 120

AGE_PHRASES = [
    re.compile(r"entre\s+\d+\s+et\s+\d+\s*(?:ans)?"),
    re.compile(r"de\s+\d+\s+[àa]\s+\d+\s*(?:ans)?"),
    re.compile(r"\d+\s*[-–]\s*\d+\s*ans"),
    re.compile(r"moins\s+de\s+\d+\s*ans"),
    re.compile(r"plus\s+de\s+\d+\s*ans"),
    re.compile(r"de\s+\d+\s+ans"),
    re.compile(r"\d+\s+ans"),
]
NO_CHILDREN_PHRASES = [
    re.compile(r"sans\s+enfants?"),
    re.compile(r"pas\s+(?:d'|d\s+|de\s+)enfants?"),
    re.compile(r"pas\s+encore\s+(?:d'|d\s+|de\s+)enfants?"),
    re.compile(r"n'a\s+pas\s+(?:d'|d\s+|de\s+)enfants?"),
    re.compile(r"aucun\s+enfants?"),
]
NO_CHILDREN_ANSWERS = ("non", "pas", "aucun")
NON_DIGIT = re.compile(r"\D")


@dataclass
class ParsedQuery:
    """Structured constraints extracted from a free-text query."""
    gender: str | None = None
    age_min: int | None = None
    age_max: int | None = None
    no_children: bool = False
    keywords: list[str] = field(default_factory=list)


@dataclass
class SearchQuestions:
    """Question ids holding the searchable columns, None when not in the map."""
    first_name: str | None = None
    last_name: str | None = None
    phone: str | None = None
    age: str | None = None
    gender: str | None = None
    children: str | None = None


@dataclass
class SubmissionWithAnswers:
    """Submission summary with its normalized answers (raw payload excluded)."""
    id: str
    source: str
    source_row_id: str
    submitted_at: datetime | None
    email: str | None
    phone: str | None
    created_at: datetime
    answers: list[NormalizedAnswerRow] = field(default_factory=list)
    first_name: str = ""
    last_name: str = ""
    contact_phone: str = ""
    age: str = ""
    gender: str = ""
    children: str = ""


def strip_accents(text: str) -> str:
    decomposed = unicodedata.normalize("NFD", text)
    return "".join(c for c in decomposed if unicodedata.category(c) != "Mn")


def _fold(text: str) -> str:
    return strip_accents(text).lower()


def clamp_number(value: Any, low: int, high: int, fallback: int) -> int:
    """Clamp an integer parameter, fallback when it is not a number."""
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        return fallback
    return max(low, min(high, math.floor(value)))


def _normalize_term(value: str | None) -> str | None:
    value = value.strip() if value else None
    return value or None


def parse_freetext_query(text: str) -> ParsedQuery:
    """Parse a French free-text search such as "femme de 30 ans sans enfant".

    Args:
        text: Query typed by the operator

    Returns:
        ParsedQuery. Gender is "femme" or "homme"; a single age becomes a
        +/-2 years range; keywords are the remaining words minus stop
        words, already-parsed words and bare numbers.
    """
    lower = APOSTROPHES.sub("'", text.lower())
    lower = PUNCTUATION.sub(" ", lower).strip()
    parsed = ParsedQuery()

    if FEMALE_WORDS.search(lower):
        parsed.gender = "femme"
    elif MALE_WORDS.search(lower):
        parsed.gender = "homme"

    range_match = next((m for m in (p.search(lower) for p in AGE_RANGE_PATTERNS) if m), None)
    if range_match:
        parsed.age_min, parsed.age_max = int(range_match.group(1)), int(range_match.group(2))
    else:
        below = AGE_BELOW.search(lower)
        above = AGE_ABOVE.search(lower)
        exact = next((m for m in (p.search(lower) for p in AGE_EXACT_PATTERNS) if m), None)
        if below:
            parsed.age_min, parsed.age_max = AGE_FLOOR, int(below.group(1))
        elif above:
            parsed.age_min, parsed.age_max = int(above.group(1)), AGE_CEILING
        elif exact:
            age = int(exact.group(1))
            parsed.age_min, parsed.age_max = age - AGE_TOLERANCE, age + AGE_TOLERANCE

    parsed.no_children = any(p.search(lower) for p in NO_CHILDREN_PHRASES)

    remaining = lower
    for pattern in AGE_PHRASES + NO_CHILDREN_PHRASES:
        remaining = pattern.sub(" ", remaining)

    parsed.keywords = [
        word
        for word in remaining.replace("'", " ").split()
        if len(word) >= 2
        and word not in STOP_WORDS
        and word not in PARSED_NOISE
        and not word.isdigit()
    ]
    return parsed


def resolve_search_questions(labels: Mapping[str, str]) -> SearchQuestions:
    """Pick the question behind each searchable column from its label.

    When several questions match, the greatest question id wins.
    """
    candidates: dict[str, list[str]] = {f.name: [] for f in fields(SearchQuestions)}

    for question_id, label in labels.items():
        lower = label.lower()
        has_first_name = "prénom" in lower or "prenom" in lower
        if has_first_name:
            candidates["first_name"].append(question_id)
        if ("nom de famille" in lower or "nom" in lower or "last name" in lower) and not has_first_name:
            candidates["last_name"].append(question_id)
        if any(w in lower for w in ("téléphone", "telephone", "portable", "mobile", "numéro", "numero")):
            candidates["phone"].append(question_id)
        if lower.strip() in ("âge", "age"):
            candidates["age"].append(question_id)
        if lower.startswith("êtes-vous") or any(w in lower for w in ("sexe", "genre", "gender")):
            candidates["gender"].append(question_id)
        if "avez-vous des enfant" in lower:
            candidates["children"].append(question_id)

    return SearchQuestions(**{name: max(ids) if ids else None for name, ids in candidates.items()})


def _joined_values(answers: Iterable[models.FormSubmissionAnswer], question_id: str | None) -> str:
    if question_id is None:
        return ""
    return ", ".join(a.value_text for a in answers if a.question_id == question_id and a.value_text)


def _full_text(answers: Iterable[models.FormSubmissionAnswer]) -> str:
    return _fold(" ".join(a.value_text for a in answers if a.value_text))


def _age_number(age: str) -> int | None:
    digits = NON_DIGIT.sub("", age)
    return int(digits) if digits else None


def _to_row(answer: models.FormSubmissionAnswer) -> NormalizedAnswerRow:
    return NormalizedAnswerRow(
        submission_id=answer.submission_id,
        question_id=answer.question_id,
        answer_index=answer.answer_index,
        value_text=answer.value_text,
    )


async def fetch_submission(session: AsyncSession, submission_id: str) -> models.FormSubmission | None:
    return await session.get(models.FormSubmission, submission_id)


async def fetch_submission_answers(
    session: AsyncSession,
    submission_id: str,
) -> list[NormalizedAnswerRow]:
    """Normalized answers of one submission ordered by question then position."""
    result = await session.execute(
        select(models.FormSubmissionAnswer)
        .where(models.FormSubmissionAnswer.submission_id == submission_id)
        .order_by(
            models.FormSubmissionAnswer.question_id,
            models.FormSubmissionAnswer.answer_index,
        )
    )
    return [_to_row(a) for a in result.scalars().all()]


def _matches(
    row: SubmissionWithAnswers,
    age_number: int | None,
    full_text: str,
    filters: Mapping[str, str | None],
    parsed: ParsedQuery | None,
) -> bool:
    name = filters["name"]
    if name:
        needle = _fold(name)
        haystacks = (
            row.last_name,
            row.first_name,
            f"{row.first_name} {row.last_name}",
            f"{row.last_name} {row.first_name}",
        )
        if not any(needle in _fold(h) for h in haystacks):
            return False
    if filters["phone"] and filters["phone"].lower() not in row.contact_phone.lower():
        return False
    if filters["age"] and filters["age"].lower() not in row.age.lower():
        return False
    if filters["gender"] and _fold(filters["gender"]) not in _fold(row.gender):
        return False
    if filters["children"] and _fold(filters["children"]) not in _fold(row.children):
        return False

    if parsed is None:
        return True
    if parsed.gender and _fold(parsed.gender) not in _fold(row.gender):
        return False
    if parsed.age_min is not None:
        if age_number is None or not parsed.age_min <= age_number <= parsed.age_max:
            return False
    if parsed.no_children:
        children = _fold(row.children)
        if not (any(word in children for word in NO_CHILDREN_ANSWERS) or row.children == "0"):
            return False
    if parsed.keywords and _keyword_hits(parsed, full_text) == 0:
        return False
    return True


def _keyword_hits(parsed: ParsedQuery | None, full_text: str) -> int:
    if parsed is None:
        return 0
    return sum(1 for word in parsed.keywords if _fold(word) in full_text)


async def search_submissions(
    session: AsyncSession,
    *,
    name: str | None = None,
    email: str | None = None,
    phone: str | None = None,
    age: str | None = None,
    gender: str | None = None,
    children: str | None = None,
    freetext: str | None = None,
    limit: int | None = None,
    offset: int | None = None,
) -> list[SubmissionWithAnswers]:
    """Search submissions by contact, label-resolved columns and free text.

    Args:
        session: Database session
        name: Accent-insensitive substring of first name, last name or both
        email: Case-insensitive substring filter on email
        phone: Substring of the stored phone, or of the phone answer when none is stored
        age: Substring of the age answer
        gender: Accent-insensitive substring of the gender answer
        children: Accent-insensitive substring of the children answer
        freetext: French free-text query, see parse_freetext_query
        limit: Page size, clamped to 1..500 (default 200)
        offset: Rows to skip, clamped to 0..10000

    Returns:
        List of SubmissionWithAnswers ordered by keyword hits (when the
        free text has keywords), then last name, first name, newest first.
    """
    filters = {
        "name": _normalize_term(name),
        "phone": _normalize_term(phone),
        "age": _normalize_term(age),
        "gender": _normalize_term(gender),
        "children": _normalize_term(children),
    }
    email = _normalize_term(email)
    freetext = _normalize_term(freetext)
    parsed = parse_freetext_query(freetext) if freetext else None
    limit = clamp_number(limit, 1, MAX_LIMIT, DEFAULT_LIMIT)
    offset = clamp_number(offset, 0, MAX_OFFSET, 0)

    query = (
        select(models.FormSubmission)
        .options(selectinload(models.FormSubmission.answers))
        .order_by(models.FormSubmission.created_at.desc())
    )
    if email:
        query = query.where(models.FormSubmission.email.ilike(f"%{email}%"))

    result = await session.execute(query)
    submissions = result.scalars().all()
    questions = resolve_search_questions(await fetch_question_labels(session))

    ranked: list[tuple[int, SubmissionWithAnswers]] = []
    for s in submissions:
        answers = sorted(s.answers, key=lambda a: (a.question_id, a.answer_index))
        row = SubmissionWithAnswers(
            id=s.id,
            source=s.source,
            source_row_id=s.source_row_id,
            submitted_at=s.submitted_at,
            email=s.email,
            phone=s.phone,
            created_at=s.created_at,
            answers=[_to_row(a) for a in answers],
            first_name=_joined_values(answers, questions.first_name),
            last_name=_joined_values(answers, questions.last_name),
            contact_phone=s.phone or _joined_values(answers, questions.phone),
            age=_joined_values(answers, questions.age),
            gender=_joined_values(answers, questions.gender),
            children=_joined_values(answers, questions.children),
        )
        full_text = _full_text(answers)
        if _matches(row, _age_number(row.age), full_text, filters, parsed):
            ranked.append((_keyword_hits(parsed, full_text), row))

    ranked.sort(key=lambda item: (-item[0], _fold(item[1].last_name), _fold(item[1].first_name)))
    page = [row for _, row in ranked[offset:offset + limit]]

    logger.debug(
        f"Search email={email!r} phone={filters['phone']!r} freetext={freetext!r}: "
        f"{len(ranked)} matches, returning {len(page)}"
    )
    return page
