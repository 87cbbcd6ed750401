"""
FastAPI Todo Backend package.

Todos, tags and their associations behind a small JSON API. The application
object lives in `todo_api.main`.
"""

__version__ = "0.2.0"
