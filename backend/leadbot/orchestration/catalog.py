"""
Question Catalog - static, ordered question definitions.

The catalog is loaded once at startup and split into text questions and
document questions, preserving source order within each partition. Loading is
all-or-nothing: any problem raises LoadError and no conversation can start.
"""
import json
from pathlib import Path
from typing import Dict, List, Literal, Optional, Tuple, Union

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError as SchemaError, field_validator, model_validator

from leadbot.core.errors import LoadError
from leadbot.core.logging import logger
from leadbot.orchestration.document_types import DOCUMENT_TYPE_CODES


QuestionType = Literal["text", "email", "tel", "date", "select", "file_upload"]

# Answers are sent alongside the tracking id under this key
RESERVED_ID = "id"


class AnswerValidation(BaseModel):
    """Format check applied to a free-text answer."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    pattern: Optional[str] = None
    error_message: Optional[str] = Field(default=None, alias="errorMessage")


class Dependency(BaseModel):
    """A question is only asked when a parent answer is one of `value`."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    value: Tuple[str, ...]

    @field_validator("value", mode="before")
    @classmethod
    def coerce_value(cls, value):
        if isinstance(value, str):
            return (value,)
        return value

    def is_satisfied_by(self, answers: Dict[str, str]) -> bool:
        answer = answers.get(self.id)
        return bool(answer) and answer in self.value


class Question(BaseModel):
    """A single catalog entry."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    type: QuestionType
    question: str
    options: Optional[Tuple[str, ...]] = None
    placeholder: Optional[str] = None
    validation: Optional[AnswerValidation] = None
    depends_on: Optional[Dependency] = Field(default=None, alias="dependsOn")
    accepted_docs: Tuple[str, ...] = Field(default=(), alias="acceptedDocs")

    @model_validator(mode="after")
    def check_options(self) -> "Question":
        if self.type == "select" and not self.options:
            raise ValueError(f"select question '{self.id}' needs options")
        return self

    @property
    def is_document(self) -> bool:
        return self.type == "file_upload"

    @property
    def label(self) -> str:
        """Display label for document questions."""
        return self.accepted_docs[0] if self.accepted_docs else self.id

    def to_dict(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


class QuestionCatalog:
    """Ordered questions, partitioned into text and document questions."""

    def __init__(self, questions: List[Question]):
        self.questions: Tuple[Question, ...] = tuple(questions)
        self.text_questions: Tuple[Question, ...] = tuple(q for q in questions if not q.is_document)
        self.doc_questions: Tuple[Question, ...] = tuple(q for q in questions if q.is_document)

    @property
    def document_count(self) -> int:
        return len(self.doc_questions)

    def to_dict(self) -> dict:
        return {"questions": [q.to_dict() for q in self.questions]}


def parse_catalog(data: Union[dict, str, bytes]) -> QuestionCatalog:
    """
    Build a catalog from a `{"questions": [...]}` document.

    Raises:
        LoadError: on malformed JSON, schema violations, duplicate ids or
            dependencies on unknown/later questions.
    """
    if isinstance(data, (str, bytes)):
        try:
            data = json.loads(data)
        except json.JSONDecodeError as exc:
            raise LoadError(f"Question catalog is not valid JSON: {exc}") from exc

    if not isinstance(data, dict) or not isinstance(data.get("questions"), list):
        raise LoadError("Question catalog must be an object with a 'questions' list")

    try:
        questions = [Question.model_validate(item) for item in data["questions"]]
    except SchemaError as exc:
        raise LoadError(f"Question catalog failed validation: {exc}") from exc

    seen = set()
    for question in questions:
        if question.id == RESERVED_ID:
            raise LoadError(f"Question id '{RESERVED_ID}' is reserved for the tracking id")
        if question.id in seen:
            raise LoadError(f"Duplicate question id '{question.id}'")
        if question.depends_on and question.depends_on.id not in seen:
            # Dependencies must point backwards; the scan never looks ahead
            raise LoadError(
                f"Question '{question.id}' depends on '{question.depends_on.id}', "
                "which is not an earlier question"
            )
        seen.add(question.id)

    catalog = QuestionCatalog(questions)
    _warn_unmapped_documents(catalog)
    return catalog


def _warn_unmapped_documents(catalog: QuestionCatalog) -> None:
    for question in catalog.doc_questions:
        if question.id not in DOCUMENT_TYPE_CODES:
            logger.warning(f"Document question '{question.id}' has no document type mapping")


def load_catalog_file(path: Union[str, Path]) -> QuestionCatalog:
    """Load the catalog from a JSON file on disk."""
    try:
        raw = Path(path).read_text(encoding="utf-8")
    except OSError as exc:
        raise LoadError(f"Failed to read question catalog {path}: {exc}") from exc

    catalog = parse_catalog(raw)
    logger.info(
        f"Loaded {len(catalog.questions)} questions from {path} "
        f"({len(catalog.text_questions)} text, {catalog.document_count} documents)"
    )
    return catalog


async def load_catalog(
    source: str,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    timeout: float = 10.0,
) -> QuestionCatalog:
    """
    Load the catalog from a file path or an http(s) URL.

    Raises:
        LoadError: if the catalog cannot be fetched or parsed.
    """
    if not source.startswith(("http://", "https://")):
        return load_catalog_file(source)

    try:
        async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:
            response = await client.get(source)
            response.raise_for_status()
    except httpx.HTTPError as exc:
        raise LoadError(f"Failed to fetch question catalog from {source}: {exc}") from exc

    catalog = parse_catalog(response.content)
    logger.info(f"Loaded {len(catalog.questions)} questions from {source}")
    return catalog
