"""Answer extraction for Google Forms answer payloads.

A provider payload for one question looks like either::

    {"textAnswers": {"answers": [{"value": "Paris"}, ...]}}
    {"fileUploadAnswers": {"answers": [{"fileId": "...", "fileName": "..."}]}}

Payloads are parsed into a small tagged union first, then flattened into an
ordered list of scalar values. Anything that matches neither shape yields
no values; nothing in this module raises on malformed input.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Union


@dataclass(frozen=True)
class FileRef:
    """One uploaded file reference."""
    file_id: str | None = None
    file_name: str | None = None


@dataclass(frozen=True)
class TextAnswers:
    """Text variant: raw `value` of every entry, in provider order."""
    values: tuple[Any, ...]


@dataclass(frozen=True)
class FileAnswers:
    """File-upload variant."""
    files: tuple[FileRef, ...]


AnswerPayload = Union[TextAnswers, FileAnswers]


def _answer_list(container: Any) -> list[Any]:
    """Return `container["answers"]` when it is a list, else an empty list."""
    if not isinstance(container, Mapping):
        return []
    answers = container.get("answers")
    return answers if isinstance(answers, list) else []


def _entry_field(entry: Any, key: str) -> Any:
    return entry.get(key) if isinstance(entry, Mapping) else None


def parse_answer_payload(payload: Any) -> AnswerPayload | None:
    """Classify a raw payload into one of the known variants.

    A non-empty text answer list always wins, so a co-present
    `fileUploadAnswers` is ignored in that case.

    Args:
        payload: Raw payload for a single question (any JSON value)

    Returns:
        TextAnswers, FileAnswers, or None when neither variant is populated
    """
    if not isinstance(payload, Mapping):
        return None

    text_entries = _answer_list(payload.get("textAnswers"))
    if text_entries:
        return TextAnswers(values=tuple(_entry_field(e, "value") for e in text_entries))

    file_entries = _answer_list(payload.get("fileUploadAnswers"))
    if file_entries:
        return FileAnswers(
            files=tuple(
                FileRef(
                    file_id=_entry_field(e, "fileId"),
                    file_name=_entry_field(e, "fileName"),
                )
                for e in file_entries
            )
        )

    return None


def extract_answer_values(payload: Any) -> list[str | None]:
    """Flatten one question's payload into ordered scalar values.

    Text answers drop absent or empty values, so positions refer to the
    filtered list. File answers emit one value per entry, preferring the
    file name, then the file id, then None.
    """
    parsed = payload if isinstance(payload, (TextAnswers, FileAnswers)) else parse_answer_payload(payload)

    if isinstance(parsed, TextAnswers):
        return [str(v) for v in parsed.values if v is not None and v != ""]

    if isinstance(parsed, FileAnswers):
        return [f.file_name or f.file_id or None for f in parsed.files]

    return []


def all_text_values(answers: Mapping[str, Any]) -> list[str]:
    """All text-variant values across a submission, in question order.

    Used by the importer's contact heuristics; file answers are ignored.
    """
    values: list[str] = []
    for payload in answers.values():
        parsed = parse_answer_payload(payload)
        if isinstance(parsed, TextAnswers):
            values.extend(str(v) for v in parsed.values if v is not None)
    return values
