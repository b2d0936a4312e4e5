"""
Routers package for FastAPI endpoints.

Organized by domain:
- extract: Text extraction and structured processing
- export: Spreadsheet generation
- table: Table view queries
- schemas: Schema template management
- batches: Background batch processing of uploaded PDFs
- history: Batch history and stored results
"""

from . import batches, export, extract, history, schemas, table

# Root-level extract-batch route
from .batches import extract_router

__all__ = ["batches", "export", "extract", "history", "schemas", "table", "extract_router"]
