"""Document merge: fill `{{Label}}` placeholders from a submission's answers."""
from __future__ import annotations

import re
from typing import Iterable, Mapping, Protocol

PLACEHOLDER_PATTERN = re.compile(r"\{\{(.+?)\}\}")


class AnswerLike(Protocol):
    question_id: str
    answer_index: int
    value_text: str | None


def build_variables_map(
    answers: Iterable[AnswerLike],
    question_labels: Mapping[str, str],
) -> dict[str, str]:
    """Build a label -> text map from normalized answers.

    Empty values are skipped, multiple values of one question are joined
    with ", " in answer order, and questions without a label are dropped.

    Args:
        answers: Normalized answer rows of one submission
        question_labels: Mapping of question id to human label

    Returns:
        Dictionary keyed by question label
    """
    grouped: dict[str, list[tuple[int, str]]] = {}
    for answer in answers:
        if not answer.value_text:
            continue
        grouped.setdefault(answer.question_id, []).append((answer.answer_index, answer.value_text))

    variables: dict[str, str] = {}
    for question_id, values in grouped.items():
        label = question_labels.get(question_id)
        if label:
            variables[label] = ", ".join(text for _, text in sorted(values, key=lambda v: v[0]))
    return variables


def merge_template(template_html: str, variables: Mapping[str, str]) -> str:
    """Replace `{{ name }}` placeholders; unknown names are left as-is."""

    def _replace(match: re.Match) -> str:
        key = match.group(1).strip()
        return variables[key] if key in variables else match.group(0)

    return PLACEHOLDER_PATTERN.sub(_replace, template_html)
