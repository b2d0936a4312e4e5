"""
Schema-driven PDF extraction backend.

A FastAPI service that compiles user-authored field schemas into
structured-output contracts, extracts data from PDF text with OpenAI,
and projects the results into tables and spreadsheets.
"""

__version__ = "1.0.0"
