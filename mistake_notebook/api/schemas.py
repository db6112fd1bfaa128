"""
Request bodies for the HTTP API.

JSON field names are camelCase (the frontend's convention); the models
expose snake_case attributes and accept either spelling on input.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..storage.models import AIConfig, AIProviderType, Subject
from ..storage.questions import QuestionDraft
from ..utils.time import normalize_timestamp


class QuestionCreate(BaseModel):
    """Body of POST /api/questions."""

    model_config = ConfigDict(populate_by_name=True)

    content: str = Field(..., min_length=1)
    analysis: str
    learning_guide: str = Field(..., alias="learningGuide")
    knowledge_points: list[str] = Field(..., alias="knowledgePoints", min_length=1)
    subject: str
    difficulty: int = Field(1, ge=1, le=5)
    options: list[str] | None = None
    image: str | None = None
    cropped_diagram: str | None = Field(None, alias="croppedDiagram")
    diagram_description: str | None = Field(None, alias="diagramDescription")
    answer: str | None = None

    def to_draft(self) -> QuestionDraft:
        return QuestionDraft(
            content=self.content,
            analysis=self.analysis,
            learning_guide=self.learning_guide,
            knowledge_points=self.knowledge_points,
            subject=Subject.parse(self.subject),
            difficulty=self.difficulty,
            options=self.options,
            image=self.image,
            cropped_diagram=self.cropped_diagram,
            diagram_description=self.diagram_description,
            answer=self.answer,
        )


class QuestionUpdate(BaseModel):
    """
    Body of PUT /api/questions/{id}.

    Every field is optional; only the fields present in the body change.
    Required record fields may be omitted but not set to null.
    """

    model_config = ConfigDict(populate_by_name=True)

    content: str | None = Field(None, min_length=1)
    analysis: str | None = None
    learning_guide: str | None = Field(None, alias="learningGuide")
    knowledge_points: list[str] | None = Field(None, alias="knowledgePoints", min_length=1)
    subject: str | None = None
    difficulty: int | None = Field(None, ge=1, le=5)
    options: list[str] | None = None
    image: str | None = None
    cropped_diagram: str | None = Field(None, alias="croppedDiagram")
    diagram_description: str | None = Field(None, alias="diagramDescription")
    answer: str | None = None
    last_reviewed_at: str | None = Field(None, alias="lastReviewedAt")

    @field_validator(
        "content", "analysis", "learning_guide", "knowledge_points", "subject", "difficulty"
    )
    @classmethod
    def validate_not_null(cls, v: Any) -> Any:
        """Reject an explicit null for fields the record cannot lack."""
        if v is None:
            raise ValueError("field cannot be null")
        return v

    @field_validator("last_reviewed_at")
    @classmethod
    def validate_last_reviewed_at(cls, v: str | None) -> str | None:
        """Store review timestamps in the canonical UTC format."""
        return normalize_timestamp(v)

    def to_changes(self) -> dict[str, Any]:
        """snake_case field -> value for the fields the client sent."""
        return self.model_dump(exclude_unset=True)


class AIConfigIn(BaseModel):
    """
    Body of PUT /api/config.

    Newer clients send only configData; older ones send the discrete fields.
    """

    model_config = ConfigDict(populate_by_name=True)

    type: str | None = None
    api_key: str | None = Field(None, alias="apiKey")
    base_url: str | None = Field(None, alias="baseUrl")
    model_name: str | None = Field(None, alias="modelName")
    system_prompt: str | None = Field(None, alias="systemPrompt")
    config_data: str | None = Field(None, alias="configData")

    def to_config(self) -> AIConfig:
        return AIConfig(
            provider=AIProviderType.parse(self.type) if self.type else None,
            api_key=self.api_key,
            base_url=self.base_url,
            model_name=self.model_name,
            system_prompt=self.system_prompt,
            config_data=self.config_data,
        )


class AnalyzeRequest(BaseModel):
    """Body of POST /api/analyze."""

    image: str = Field(..., min_length=1)
