"""
Question image analysis.

Only a mocked analyzer ships: it returns a fixed sample analysis and never
calls an AI provider.
"""

from .mock_analyzer import AnalysisResult, MockQuestionAnalyzer

__all__ = ["AnalysisResult", "MockQuestionAnalyzer"]
