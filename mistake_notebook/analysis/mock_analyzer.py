"""
Mock question analyzer.

Provides MockQuestionAnalyzer, which stands in for a real AI provider: it
returns a fixed sample analysis for any image and never makes network
calls. The stored AI config is only used to report which provider would
have handled the request.

Example:
    >>> analyzer = MockQuestionAnalyzer()
    >>> result = analyzer.analyze("data:image/png;base64,iVBORw0...", AIProviderType.QWEN)
    >>> result.answer
    'C. 11'
    >>> result.provider
    'QWEN'
"""

import logging
from dataclasses import dataclass, field
from typing import Any

from ..storage.models import DEFAULT_PROVIDER, AIProviderType, Subject

logger = logging.getLogger(__name__)


@dataclass
class AnalysisResult:
    """
    Structured analysis of a photographed question.

    Field names mirror the Question record so a client can save the result
    after review.
    """

    content: str
    analysis: str
    learning_guide: str
    knowledge_points: list[str]
    subject: Subject
    difficulty: int
    options: list[str] = field(default_factory=list)
    answer: str = ""
    diagram_description: str = ""
    provider: str = str(DEFAULT_PROVIDER)

    def to_dict(self) -> dict[str, Any]:
        return {
            "content": self.content,
            "options": list(self.options),
            "diagramDescription": self.diagram_description,
            "answer": self.answer,
            "analysis": self.analysis,
            "learningGuide": self.learning_guide,
            "knowledgePoints": list(self.knowledge_points),
            "subject": str(self.subject),
            "difficulty": self.difficulty,
        }


@dataclass
class MockQuestionAnalyzer:
    """
    Analyzer returning a canned arithmetic question.

    Attributes:
        content: Question text to return
        options: Multiple-choice options to return
        answer: Reference answer to return
        analysis: Worked solution to return
        learning_guide: Study advice to return
        knowledge_points: Tags to return
        subject: Subject to return
        difficulty: Difficulty to return
    """

    content: str = "这是一个示例题目。如果 $x = 2$，求 $x^2 + 3x + 1$ 的值。"
    options: list[str] = field(
        default_factory=lambda: ["A. 9", "B. 10", "C. 11", "D. 12"]
    )
    answer: str = "C. 11"
    analysis: str = (
        "将 $x = 2$ 代入公式：$x^2 + 3x + 1 = 2^2 + 3(2) + 1 = 4 + 6 + 1 = 11$"
    )
    learning_guide: str = "记住代数替换的基本步骤，先代入数值再按运算顺序计算。"
    knowledge_points: list[str] = field(
        default_factory=lambda: ["代数表达式", "数值替换"]
    )
    subject: Subject = Subject.MATH
    difficulty: int = 2

    def analyze(
        self, image: str, provider: AIProviderType | None = None
    ) -> AnalysisResult:
        """
        Return the canned analysis for an image.

        Args:
            image: Data URL or path of the photo (only checked for presence)
            provider: Provider from the stored AI config

        Returns:
            AnalysisResult: The sample analysis

        Raises:
            ValueError: If image is empty
        """
        if not image:
            raise ValueError("image is required")

        provider_name = str(provider or DEFAULT_PROVIDER)
        logger.info(
            f"Mock analysis of {len(image)}-character image (provider={provider_name})"
        )

        return AnalysisResult(
            content=self.content,
            analysis=self.analysis,
            learning_guide=self.learning_guide,
            knowledge_points=list(self.knowledge_points),
            subject=self.subject,
            difficulty=self.difficulty,
            options=list(self.options),
            answer=self.answer,
            provider=provider_name,
        )
