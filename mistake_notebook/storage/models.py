"""
Record types persisted by the Mistake Notebook store.

Key components:
- Subject / AIProviderType: closed enums with a parse() fallback for
  unrecognized text
- Partition: the active/trashed split of question records
- Question: one notebook entry, mapped to a row of the questions table
- AIConfig: the singleton AI provider configuration row
- QuestionPage: one page of a filtered question listing

Sequence fields (options, knowledge_points) are stored as compact JSON
arrays. In memory, an absent sequence (None) and an empty one ([]) are
different states, but both are written as NULL: "[]" never reaches the
database.

Example:
    >>> encode_string_list(["基本不等式", "其他"])
    '["基本不等式","其他"]'
    >>> encode_string_list([]) is None
    True
    >>> Subject.parse("unknown subject")
    <Subject.OTHER: '其他'>
"""

import json
import logging
import sqlite3
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

logger = logging.getLogger(__name__)


class Subject(StrEnum):
    """School subject of a question. Values are the stored (Chinese) labels."""

    MATH = "数学"
    PHYSICS = "物理"
    CHEMISTRY = "化学"
    BIOLOGY = "生物"
    ENGLISH = "英语"
    CHINESE = "语文"
    OTHER = "其他"

    @classmethod
    def parse(cls, value: "str | Subject | None") -> "Subject":
        """
        Map free text to a Subject, falling back to OTHER.

        Accepts the stored label ("数学") or the member name in any case
        ("math", "MATH"). Anything else is OTHER.
        """
        if isinstance(value, Subject):
            return value
        if not value:
            return cls.OTHER

        text = value.strip()
        for subject in cls:
            if text == subject.value or text.upper() == subject.name:
                return subject
        return cls.OTHER


class AIProviderType(StrEnum):
    """Built-in AI providers. Unrecognized text falls back to GEMINI."""

    GEMINI = "GEMINI"
    QWEN = "QWEN"
    DOUBAO = "DOUBAO"
    OPENAI = "OPENAI"

    @classmethod
    def parse(cls, value: "str | AIProviderType | None") -> "AIProviderType":
        if isinstance(value, AIProviderType):
            return value
        if value:
            try:
                return cls(value.strip().upper())
            except ValueError:
                pass
        return DEFAULT_PROVIDER


DEFAULT_PROVIDER = AIProviderType.GEMINI


class Partition(StrEnum):
    """Active questions have no deleted_at; trashed questions have one."""

    ACTIVE = "active"
    TRASHED = "trashed"


def encode_string_list(values: list[str] | None) -> str | None:
    """
    Serialize a sequence of strings for storage.

    None and [] both become None (NULL column). Non-ASCII characters are
    written literally so that substring filters can match them.
    """
    if not values:
        return None
    return json.dumps(list(values), ensure_ascii=False, separators=(",", ":"))


def decode_string_list(text: str | None) -> list[str] | None:
    """
    Deserialize a stored JSON array.

    NULL (and the empty string) decode to None; a legacy "[]" decodes to [].
    Malformed values decode to [] and are logged, matching how clients have
    always treated unreadable arrays.
    """
    if text is None or text == "":
        return None
    try:
        values = json.loads(text)
    except json.JSONDecodeError:
        logger.warning(f"Unreadable JSON array in store, treating as empty: {text!r}")
        return []
    if not isinstance(values, list):
        logger.warning(f"Stored value is not a JSON array, treating as empty: {text!r}")
        return []
    return [str(v) for v in values]


@dataclass
class Question:
    """
    One notebook entry.

    Attributes:
        id: Opaque unique id (UUID4 text), immutable once assigned
        content: Question text (may contain LaTeX)
        analysis: Worked solution
        learning_guide: Study advice
        knowledge_points: Tags; None when absent
        subject: Subject enum
        difficulty: 1..5
        created_at: Creation timestamp, immutable
        options: Multiple-choice options; None when absent
        image: Original photo (data URL or path)
        cropped_diagram: Diagram cut out of the photo
        diagram_description: Text description of the diagram
        answer: Reference answer
        last_reviewed_at: Last review timestamp
        deleted_at: Soft-deletion timestamp; None while active
    """

    id: str
    content: str
    analysis: str
    learning_guide: str
    knowledge_points: list[str] | None
    subject: Subject
    difficulty: int
    created_at: str
    options: list[str] | None = None
    image: str | None = None
    cropped_diagram: str | None = None
    diagram_description: str | None = None
    answer: str | None = None
    last_reviewed_at: str | None = None
    deleted_at: str | None = None

    @property
    def partition(self) -> Partition:
        return Partition.ACTIVE if self.deleted_at is None else Partition.TRASHED

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "Question":
        """Build a Question from a questions-table row (sqlite3.Row)."""
        return cls(
            id=row["id"],
            content=row["content"],
            analysis=row["analysis"],
            learning_guide=row["learning_guide"],
            knowledge_points=decode_string_list(row["knowledge_points"]),
            subject=Subject.parse(row["subject"]),
            difficulty=row["difficulty"],
            created_at=row["created_at"],
            options=decode_string_list(row["options"]),
            image=row["image"],
            cropped_diagram=row["cropped_diagram"],
            diagram_description=row["diagram_description"],
            answer=row["answer"],
            last_reviewed_at=row["last_reviewed_at"],
            deleted_at=row["deleted_at"],
        )

    def to_row(self) -> dict[str, Any]:
        """Column name -> stored value mapping for INSERT statements."""
        return {
            "id": self.id,
            "image": self.image,
            "cropped_diagram": self.cropped_diagram,
            "content": self.content,
            "options": encode_string_list(self.options),
            "diagram_description": self.diagram_description,
            "answer": self.answer,
            "analysis": self.analysis,
            "learning_guide": self.learning_guide,
            "knowledge_points": encode_string_list(self.knowledge_points),
            "subject": str(self.subject),
            "difficulty": self.difficulty,
            "created_at": self.created_at,
            "last_reviewed_at": self.last_reviewed_at,
            "deleted_at": self.deleted_at,
        }

    def to_dict(self) -> dict[str, Any]:
        """
        camelCase JSON shape used by the HTTP API, the CLI and backups.

        Optional fields are omitted while unset; knowledgePoints is always a list.
        """
        data: dict[str, Any] = {
            "id": self.id,
            "content": self.content,
            "analysis": self.analysis,
            "learningGuide": self.learning_guide,
            "knowledgePoints": list(self.knowledge_points or []),
            "subject": str(self.subject),
            "difficulty": self.difficulty,
            "createdAt": self.created_at,
        }
        optional = {
            "image": self.image,
            "croppedDiagram": self.cropped_diagram,
            "options": list(self.options) if self.options is not None else None,
            "diagramDescription": self.diagram_description,
            "answer": self.answer,
            "lastReviewedAt": self.last_reviewed_at,
            "deletedAt": self.deleted_at,
        }
        data.update({key: value for key, value in optional.items() if value is not None})
        return data


@dataclass
class AIConfig:
    """
    AI provider configuration (singleton row).

    Holds either the legacy discrete fields or a single opaque config_data
    blob written by newer clients.
    """

    provider: AIProviderType | None = None
    api_key: str | None = None
    base_url: str | None = None
    model_name: str | None = None
    system_prompt: str | None = None
    config_data: str | None = None

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "AIConfig":
        return cls(
            provider=AIProviderType.parse(row["type"]),
            api_key=row["api_key"],
            base_url=row["base_url"],
            model_name=row["model_name"],
            system_prompt=row["system_prompt"],
            config_data=row["config_data"],
        )

    def public_view(self) -> dict[str, Any]:
        """
        Response shape for GET /api/config.

        The blob is returned as-is when present. Otherwise the legacy fields
        are returned without the API key.
        """
        if self.config_data:
            return {"configData": self.config_data}
        return {
            "type": str(self.provider or DEFAULT_PROVIDER),
            "baseUrl": self.base_url or "",
            "modelName": self.model_name or "",
            "systemPrompt": self.system_prompt or "",
        }


@dataclass
class QuestionPage:
    """One page of a filtered listing plus the total match count."""

    items: list[Question] = field(default_factory=list)
    total: int = 0
    page: int = 1
    page_size: int = 20

    def to_dict(self) -> dict[str, Any]:
        return {
            "items": [q.to_dict() for q in self.items],
            "total": self.total,
            "page": self.page,
            "pageSize": self.page_size,
        }
