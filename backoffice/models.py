"""Core SQLAlchemy models (2.x style) for the back-office schema.

Timestamps are stored as naive UTC datetimes.
"""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import JSON, DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


def _new_id() -> str:
    return str(uuid.uuid4())


class FormSubmission(Base):
    """Imported form responses, one row per respondent submission."""
    __tablename__ = "form_submissions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    source: Mapped[str] = mapped_column(String(50), nullable=False)
    source_row_id: Mapped[str] = mapped_column(String(255), nullable=False)
    submitted_at: Mapped[datetime | None] = mapped_column(DateTime)
    email: Mapped[str | None] = mapped_column(String(255), index=True)
    phone: Mapped[str | None] = mapped_column(String(50), index=True)
    raw_json: Mapped[dict] = mapped_column(JSON, nullable=False)
    created_at: Mapped[datetime] = mapped_column(default=datetime.utcnow, nullable=False)

    # Relationships
    answers: Mapped[list[FormSubmissionAnswer]] = relationship(
        "FormSubmissionAnswer",
        back_populates="submission",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        UniqueConstraint("source", "source_row_id", name="uq_form_submissions_source_row"),
        Index("ix_form_submissions_created_at", "created_at"),
    )


class FormSubmissionAnswer(Base):
    """Normalized answers: one scalar value per (submission, question, position)."""
    __tablename__ = "form_submission_answers"

    submission_id: Mapped[str] = mapped_column(
        ForeignKey("form_submissions.id", ondelete="CASCADE"),
        primary_key=True,
    )
    question_id: Mapped[str] = mapped_column(String(255), primary_key=True)
    answer_index: Mapped[int] = mapped_column(Integer, primary_key=True)
    value_text: Mapped[str | None] = mapped_column(Text)

    # Relationship
    submission: Mapped[FormSubmission] = relationship("FormSubmission", back_populates="answers")

    __table_args__ = (
        Index("ix_form_submission_answers_question", "question_id"),
    )


class FormQuestionMap(Base):
    """Mapping between opaque form question ids and human-readable labels."""
    __tablename__ = "form_question_map"

    question_id: Mapped[str] = mapped_column(String(255), primary_key=True)
    label: Mapped[str] = mapped_column(Text, nullable=False)
    display_order: Mapped[int | None] = mapped_column(Integer, index=True)


class FormImportLog(Base):
    """One row per import run, used for delta imports."""
    __tablename__ = "form_import_log"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    source: Mapped[str] = mapped_column(String(50), nullable=False)
    form_id: Mapped[str] = mapped_column(String(255), nullable=False)
    last_import_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    total_responses: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    imported_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    updated_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    skipped_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(default=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index("ix_form_import_log_source_form", "source", "form_id", "created_at"),
    )
