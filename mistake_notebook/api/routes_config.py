"""
AI config API and the (mocked) image analysis endpoint.
"""

import sqlite3

from fastapi import APIRouter, Depends

from ..analysis.mock_analyzer import MockQuestionAnalyzer
from ..storage.ai_config import get_ai_config, save_ai_config
from .deps import get_analyzer, get_db
from .schemas import AIConfigIn, AnalyzeRequest

router = APIRouter(prefix="/api", tags=["config"])


@router.get("/config")
def config_get(conn: sqlite3.Connection = Depends(get_db)) -> dict:
    """Current AI config; the API key is never returned for legacy rows."""
    return get_ai_config(conn).public_view()


@router.put("/config")
def config_save(body: AIConfigIn, conn: sqlite3.Connection = Depends(get_db)) -> dict:
    save_ai_config(conn, body.to_config())
    return {"status": "success"}


@router.post("/analyze")
def analyze_image(
    body: AnalyzeRequest,
    conn: sqlite3.Connection = Depends(get_db),
    analyzer: MockQuestionAnalyzer = Depends(get_analyzer),
) -> dict:
    config = get_ai_config(conn)
    return analyzer.analyze(body.image, config.provider).to_dict()
