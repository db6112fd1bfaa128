"""
HTTP API for Mistake Notebook (FastAPI).

Example:
    >>> from mistake_notebook.api import create_app
    >>> from mistake_notebook.config.loader import load_config
    >>> app = create_app(load_config())
    >>> # uvicorn.run(app, host="0.0.0.0", port=8080)
"""

from .server import create_app

__all__ = ["create_app"]
