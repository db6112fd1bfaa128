"""
Mistake Notebook: a personal notebook of exam questions.

Questions live in an embedded SQLite store with soft-delete, substring
search, tag filtering and pagination; the schema is upgraded through a
versioned migration ledger.
"""

__version__ = "0.1.0"
