"""
Entry point for running Mistake Notebook as a module.

Enables execution via:
    python -m mistake_notebook [command] [options]

This is equivalent to running the installed CLI:
    mistake-notebook [command] [options]

Examples:
    python -m mistake_notebook --help
    python -m mistake_notebook serve --config examples/mistake_notebook.config.yaml
    python -m mistake_notebook migrate status --db ./data/ebu.db
"""

from mistake_notebook.cli import app

if __name__ == "__main__":
    app()
