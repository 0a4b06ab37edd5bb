"""Map a submission's normalized answers onto profile fields.

Question labels (from form_question_map) are matched against keyword rules
to find the profile column each answer fills. Only the first value of a
question (answer_index 0) is used. Values of typed columns are converted:
- height_cm: "1,75", "1.75 m" or "175 cm" -> 175
- children_has, smoker, has_vehicle: oui/non -> True/False
- gender: homme/femme -> male/female, anything else -> other
- alcohol: non/occasionnellement/oui -> no/occasional/yes

The resulting profile dict is what compute_completion scores.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Callable, Iterable, Mapping

from backoffice.pipelines.merge import AnswerLike

logger = logging.getLogger(__name__)

NUMBER_CHARS = re.compile(r"[^0-9.,]")
LEADING_NUMBER = re.compile(r"\d+(?:\.\d*)?|\.\d+")

HEIGHT_MIN_CM = 100
HEIGHT_MAX_CM = 250

TRUE_WORDS = {"oui", "yes", "true"}
FALSE_WORDS = {"non", "no", "false"}
MALE_WORDS = {"homme", "masculin", "male", "m"}
FEMALE_WORDS = {"femme", "féminin", "female", "f"}


def _has(label: str, *words: str) -> bool:
    return any(word in label for word in words)


# First matching rule wins; labels are lower-cased before matching
LABEL_RULES: list[tuple[str, Callable[[str], bool]]] = [
    (
        "first_name",
        lambda label: _has(label, "prénom", "prenom", "first name") and not _has(label, "nom de famille"),
    ),
    (
        "last_name",
        lambda label: _has(label, "nom de famille", "last name")
        or (_has(label, "nom") and not _has(label, "prénom", "prenom", "surnom")),
    ),
    ("birthdate", lambda label: _has(label, "date de naissance", "birth")),
    ("gender", lambda label: _has(label, "sexe", "genre", "gender")),
    ("city", lambda label: _has(label, "ville", "commune", "city", "résidence")),
    ("profession", lambda label: _has(label, "profession", "métier", "activité professionnelle")),
    ("height_cm", lambda label: _has(label, "taille", "height")),
    ("children_has", lambda label: _has(label, "enfant", "children")),
    ("smoker", lambda label: _has(label, "tabac", "fume", "smoking")),
    ("alcohol", lambda label: _has(label, "alcool", "drinking", "boire")),
    ("bio_short", lambda label: _has(label, "décri", "présent", "à propos", "bio")),
    ("zodiac_sign", lambda label: "signe" in label and "astro" in label),
    ("religion", lambda label: "religion" in label),
    ("has_vehicle", lambda label: _has(label, "véhicule", "voiture", "permis")),
    ("relationship_status", lambda label: "situation" in label and _has(label, "matrimonial", "amoureuse")),
    ("housing_status", lambda label: _has(label, "logement", "hébergement")),
    ("sport_frequency", lambda label: "sport" in label),
    ("sector", lambda label: "secteur" in label and "activ" in label),
]


@dataclass
class ProfileMapping:
    """Profile values built from one submission."""
    profile: dict[str, Any] = field(default_factory=dict)
    mapped_fields: list[str] = field(default_factory=list)
    unmapped_questions: list[str] = field(default_factory=list)


def map_label_to_field(label: str) -> str | None:
    """Profile field a question label fills, None when no rule matches."""
    lower = label.lower()
    for field_name, matches in LABEL_RULES:
        if matches(lower):
            return field_name
    return None


def parse_height_cm(value: str) -> int | None:
    """Height in centimetres from metres or centimetres, None when implausible."""
    digits = NUMBER_CHARS.sub("", value).replace(",", ".", 1)
    match = LEADING_NUMBER.match(digits)
    if not match:
        return None
    try:
        number = Decimal(match.group())
    except InvalidOperation:
        return None

    if number == 0:
        return None
    if number < 3:
        number *= 100
    elif not HEIGHT_MIN_CM <= number <= HEIGHT_MAX_CM:
        return None
    return int(number.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def parse_boolean(value: str) -> bool | None:
    lower = value.strip().lower()
    if lower in TRUE_WORDS:
        return True
    if lower in FALSE_WORDS:
        return False
    return None


def parse_gender(value: str) -> str:
    lower = value.strip().lower()
    if lower in MALE_WORDS:
        return "male"
    if lower in FEMALE_WORDS:
        return "female"
    return "other"


def parse_alcohol(value: str) -> str | None:
    lower = value.strip().lower()
    if lower in {"non", "jamais", "no"}:
        return "no"
    if "occasion" in lower:
        return "occasional"
    if lower in {"oui", "yes"} or "réguli" in lower:
        return "yes"
    return None


CONVERTERS: dict[str, Callable[[str], Any]] = {
    "height_cm": parse_height_cm,
    "children_has": parse_boolean,
    "smoker": parse_boolean,
    "has_vehicle": parse_boolean,
    "gender": parse_gender,
    "alcohol": parse_alcohol,
}


def map_answers_to_profile(
    answers: Iterable[AnswerLike],
    labels: Mapping[str, str],
) -> ProfileMapping:
    """Build profile values from normalized answers.

    Args:
        answers: Normalized answer rows of one submission
        labels: Question id -> label lookup

    Returns:
        ProfileMapping. Rows past index 0, rows without a label and empty
        values are ignored. Labelled questions no rule matches are listed
        in `unmapped_questions`; values a converter rejects are dropped.
        When two questions fill the same field the later row wins.
    """
    mapping = ProfileMapping()

    for answer in answers:
        if answer.answer_index != 0:
            continue
        label = labels.get(answer.question_id)
        if not label or not answer.value_text:
            continue

        field_name = map_label_to_field(label)
        if field_name is None:
            mapping.unmapped_questions.append(label)
            continue

        convert = CONVERTERS.get(field_name)
        value = convert(answer.value_text) if convert else answer.value_text
        if value is None:
            logger.debug(f"Dropped unparseable {field_name} value {answer.value_text!r}")
            continue

        mapping.profile[field_name] = value
        if field_name not in mapping.mapped_fields:
            mapping.mapped_fields.append(field_name)

    logger.debug(
        f"Mapped {len(mapping.mapped_fields)} profile fields, "
        f"{len(mapping.unmapped_questions)} questions unmapped"
    )
    return mapping
