"""
# InkWell

Blogging platform API: accounts, Markdown posts, threaded comments, likes, bookmarks,
search and an admin moderation surface, served by FastAPI on MongoDB.

Entry points:
- `inkwell.main:app` - the ASGI application
- `inkwell-admin` - maintenance CLI (`inkwell.cli.maintenance_cli`)
- `inkwell.client.InkwellClient` - async HTTP client for the API
"""

__version__ = "1.0.0"
