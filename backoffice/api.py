"""FastAPI app exposing import, normalization, search, completion and merge.

Storage errors are mapped to 500 responses by a single exception handler.
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any

from fastapi import Depends, FastAPI, HTTPException, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from config.profile_fields import FIELD_LABELS

from .config import settings
from .db import get_session, get_session_factory
from .logging_config import setup_logging
from .pipelines.batch import normalize_all_submissions
from .pipelines.completion import compute_completion
from .pipelines.ingest import FormImportError, import_form_responses
from .pipelines.merge import build_variables_map, merge_template
from .pipelines.profile_mapping import map_answers_to_profile
from .pipelines.question_map import (
    QuestionLabel,
    fetch_question_labels,
    fetch_question_map,
    upsert_question_map,
)
from .pipelines.search import fetch_submission, fetch_submission_answers, search_submissions

logger = logging.getLogger(__name__)


# Pydantic request/response models
class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    version: str


class ErrorResponse(BaseModel):
    """Error response."""
    error: str
    detail: str | None = None


class ImportRequest(BaseModel):
    """Body of a forms.responses.list call plus the form id."""
    form_id: str = Field(min_length=1)
    responses: list[dict[str, Any]] = Field(default_factory=list)


class ImportResponse(BaseModel):
    total: int
    imported: int
    updated: int
    skipped: int


class NormalizeResponse(BaseModel):
    """Batch normalization counts."""
    total: int
    normalized: int
    answers_created: int


class AnswerDTO(BaseModel):
    """Normalized answer row."""
    question_id: str
    answer_index: int
    value_text: str | None


class SubmissionDTO(BaseModel):
    """Submission with normalized answers."""
    id: str
    source: str
    source_row_id: str
    submitted_at: datetime | None
    email: str | None
    phone: str | None
    created_at: datetime
    answers: list[AnswerDTO]
    first_name: str = ""
    last_name: str = ""
    contact_phone: str = ""
    age: str = ""
    gender: str = ""
    children: str = ""


class QuestionLabelDTO(BaseModel):
    question_id: str = Field(min_length=1)
    label: str = Field(min_length=1)
    display_order: int | None = None


class CompletionRequest(BaseModel):
    """Candidate record to score."""
    profile: dict[str, Any] = Field(default_factory=dict)
    fun_facts: dict[str, Any] | None = None


class CompletionResponse(BaseModel):
    pct: int = Field(ge=0, le=100)
    missing: list[str]
    missing_labels: list[str]


class ProfileMappingResponse(BaseModel):
    """Profile fields read from a submission, scored for completion."""
    submission_id: str
    profile: dict[str, Any]
    mapped_fields: list[str]
    unmapped_questions: list[str]
    completion: CompletionResponse


class MergeRequest(BaseModel):
    """Template merge request."""
    submission_id: str
    template_html: str


class MergeResponse(BaseModel):
    submission_id: str
    html: str
    variables: dict[str, str]


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup/shutdown logic."""
    # Startup
    setup_logging()
    logger.info("Application starting up")

    yield

    # Shutdown
    logger.info("Application shutting down")


app = FastAPI(
    title=settings.app_name,
    version=settings.version,
    description="Form submission import, normalization and profile completion",
    lifespan=lifespan,
)


app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://localhost:5173"],  # Frontend URLs
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Exception handlers
@app.exception_handler(FormImportError)
async def import_error_handler(request, exc: FormImportError):
    """Handle malformed import bodies."""
    logger.error(f"Import error: {exc}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=ErrorResponse(
            error="import_error",
            detail=str(exc),
        ).model_dump(),
    )


@app.exception_handler(SQLAlchemyError)
async def storage_error_handler(request, exc: SQLAlchemyError):
    """Handle storage failures."""
    logger.error(f"Storage error: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=ErrorResponse(
            error="storage_error",
            detail=str(exc),
        ).model_dump(),
    )


@app.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    """Health check endpoint."""
    return HealthResponse(
        status="ok",
        version=settings.version,
    )


@app.get("/")
async def root():
    """Root endpoint with API info."""
    return {
        "app": settings.app_name,
        "version": settings.version,
        "endpoints": {
            "health": "/health",
            "import": "/submissions/import",
            "normalize": "/submissions/normalize",
            "search": "/submissions",
            "answers": "/submissions/{submission_id}/answers",
            "profile": "/submissions/{submission_id}/profile",
            "question_map": "/question-map",
            "completion": "/completion",
            "merge": "/documents/merge",
            "docs": "/docs",
        },
    }


@app.post("/submissions/import", response_model=ImportResponse)
async def import_submissions(
    request: ImportRequest,
    session: AsyncSession = Depends(get_session),
) -> ImportResponse:
    """Import Google Forms responses and normalize their answers."""
    logger.info(f"Importing {len(request.responses)} responses for form {request.form_id}")

    summary = await import_form_responses(
        session,
        form_id=request.form_id,
        responses=request.responses,
    )
    return ImportResponse(
        total=summary.total,
        imported=summary.imported,
        updated=summary.updated,
        skipped=summary.skipped,
    )


@app.post("/submissions/normalize", response_model=NormalizeResponse)
async def normalize_submissions(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> NormalizeResponse:
    """Normalize every submission that has no answer rows yet."""
    result = await normalize_all_submissions(session_factory)
    return NormalizeResponse(
        total=result.total,
        normalized=result.normalized,
        answers_created=result.answers_created,
    )


@app.get("/submissions", response_model=list[SubmissionDTO])
async def list_submissions(
    name: str | None = None,
    email: str | None = None,
    phone: str | None = None,
    age: str | None = None,
    gender: str | None = None,
    children: str | None = None,
    freetext: str | None = None,
    limit: int | None = None,
    offset: int | None = None,
    session: AsyncSession = Depends(get_session),
) -> list[SubmissionDTO]:
    """Search submissions by contact, name, age, gender, children or free text."""
    submissions = await search_submissions(
        session,
        name=name,
        email=email,
        phone=phone,
        age=age,
        gender=gender,
        children=children,
        freetext=freetext,
        limit=limit,
        offset=offset,
    )
    return [
        SubmissionDTO(
            id=s.id,
            source=s.source,
            source_row_id=s.source_row_id,
            submitted_at=s.submitted_at,
            email=s.email,
            phone=s.phone,
            created_at=s.created_at,
            answers=[
                AnswerDTO(
                    question_id=a.question_id,
                    answer_index=a.answer_index,
                    value_text=a.value_text,
                )
                for a in s.answers
            ],
            first_name=s.first_name,
            last_name=s.last_name,
            contact_phone=s.contact_phone,
            age=s.age,
            gender=s.gender,
            children=s.children,
        )
        for s in submissions
    ]


@app.get("/submissions/{submission_id}/answers", response_model=list[AnswerDTO])
async def get_submission_answers(
    submission_id: str,
    session: AsyncSession = Depends(get_session),
) -> list[AnswerDTO]:
    """Normalized answers of one submission."""
    if await fetch_submission(session, submission_id) is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Submission {submission_id} not found",
        )

    answers = await fetch_submission_answers(session, submission_id)
    return [
        AnswerDTO(question_id=a.question_id, answer_index=a.answer_index, value_text=a.value_text)
        for a in answers
    ]


@app.get("/submissions/{submission_id}/profile", response_model=ProfileMappingResponse)
async def get_submission_profile(
    submission_id: str,
    session: AsyncSession = Depends(get_session),
) -> ProfileMappingResponse:
    """Profile fields mapped from a submission's answers, with their completion score.

    The returned `profile` can be posted as is to /completion.
    """
    if await fetch_submission(session, submission_id) is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Submission {submission_id} not found",
        )

    answers = await fetch_submission_answers(session, submission_id)
    labels = await fetch_question_labels(session)
    mapping = map_answers_to_profile(answers, labels)
    logger.info(
        f"Mapped {len(mapping.mapped_fields)} profile fields for submission {submission_id}"
    )

    result = compute_completion(mapping.profile, None)
    return ProfileMappingResponse(
        submission_id=submission_id,
        profile=mapping.profile,
        mapped_fields=mapping.mapped_fields,
        unmapped_questions=mapping.unmapped_questions,
        completion=CompletionResponse(
            pct=result.pct,
            missing=result.missing,
            missing_labels=[FIELD_LABELS.get(key, key) for key in result.missing],
        ),
    )


@app.get("/question-map", response_model=list[QuestionLabelDTO])
async def get_question_map(
    session: AsyncSession = Depends(get_session),
) -> list[QuestionLabelDTO]:
    """Question id to label map, in display order."""
    return [
        QuestionLabelDTO(question_id=q.question_id, label=q.label, display_order=q.display_order)
        for q in await fetch_question_map(session)
    ]


@app.put("/question-map", response_model=list[QuestionLabelDTO])
async def put_question_map(
    items: list[QuestionLabelDTO],
    session: AsyncSession = Depends(get_session),
) -> list[QuestionLabelDTO]:
    """Create or update question labels."""
    written = await upsert_question_map(
        session,
        [
            QuestionLabel(question_id=i.question_id, label=i.label, display_order=i.display_order)
            for i in items
        ],
    )
    return [
        QuestionLabelDTO(question_id=q.question_id, label=q.label, display_order=q.display_order)
        for q in written
    ]


@app.post("/completion", response_model=CompletionResponse)
async def score_completion(request: CompletionRequest) -> CompletionResponse:
    """Profile completion percentage and missing fields."""
    result = compute_completion(request.profile, request.fun_facts)
    return CompletionResponse(
        pct=result.pct,
        missing=result.missing,
        missing_labels=[FIELD_LABELS.get(key, key) for key in result.missing],
    )


@app.post("/documents/merge", response_model=MergeResponse)
async def merge_document(
    request: MergeRequest,
    session: AsyncSession = Depends(get_session),
) -> MergeResponse:
    """Fill a template's `{{Label}}` placeholders from a submission's answers."""
    if await fetch_submission(session, request.submission_id) is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Submission {request.submission_id} not found",
        )

    answers = await fetch_submission_answers(session, request.submission_id)
    labels = await fetch_question_labels(session)
    variables = build_variables_map(answers, labels)

    return MergeResponse(
        submission_id=request.submission_id,
        html=merge_template(request.template_html, variables),
        variables=variables,
    )
