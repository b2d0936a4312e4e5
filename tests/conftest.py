"""Pytest configuration and fixtures."""

import os

# Tests run against an in-memory database and never reach OpenAI
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["OPENAI_API_KEY"] = ""

from typing import Any, Callable, Generator

import pytest
from fastapi.testclient import TestClient

from app.extractor.database import Base, engine, init_db
from app.extractor.main import app
from app.extractor.models import GroupField, NumberField, TextField
from app.extractor.services import ai as ai_module
from app.extractor.services import pdf_service as pdf_module
from app.extractor.services.ai import AIService
from tests.fakes import FakeOpenAI, build_blank_pdf, build_text_pdf


@pytest.fixture(autouse=True)
def reset_database() -> Generator[None, None, None]:
    """Give every test empty tables."""
    init_db()
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def reset_services(monkeypatch: pytest.MonkeyPatch) -> None:
    """Drop service singletons so tests never share fakes."""
    monkeypatch.setattr(ai_module, "_ai_service", None)
    monkeypatch.setattr(pdf_module, "_pdf_service", None)


@pytest.fixture
def client() -> Generator[TestClient, None, None]:
    """Create a test client for the FastAPI application."""
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def sample_pdf_bytes() -> bytes:
    """A two-page PDF with a text layer."""
    return build_text_pdf([
        "INVOICE INV-001 Acme Corporation",
        "Widget 2 x 10.00 Total 20.00",
    ])


@pytest.fixture
def blank_pdf_bytes() -> bytes:
    """A PDF with one page and no text layer."""
    return build_blank_pdf(1)


@pytest.fixture
def invalid_file_bytes() -> bytes:
    """Create invalid (non-PDF) file bytes for testing."""
    return b"This is not a PDF file"


@pytest.fixture
def invoice_fields() -> list:
    """Top-level fields of a small invoice schema."""
    return [
        TextField(name="invoice_number", description="Invoice number or reference"),
        NumberField(name="total_amount", description="Total invoice amount"),
        GroupField(
            name="items",
            description="Line items",
            sub_fields=[
                TextField(name="description", description="Item description"),
                NumberField(name="amount", description="Line amount"),
            ],
        ),
    ]


@pytest.fixture
def invoice_schema_payload() -> list[dict[str, Any]]:
    """The invoice schema as a client would post it."""
    return [
        {"name": "invoice_number", "type": "text", "description": "Invoice number or reference"},
        {"name": "total_amount", "type": "number", "description": "Total invoice amount"},
        {
            "name": "items",
            "type": "group",
            "description": "Line items",
            "fields": [
                {"name": "description", "type": "text", "description": "Item description"},
                {"name": "amount", "type": "number", "description": "Line amount"},
            ],
        },
    ]


@pytest.fixture
def fake_openai() -> Callable[..., FakeOpenAI]:
    """Factory for fake OpenAI clients."""
    return FakeOpenAI


@pytest.fixture
def mock_ai_service() -> AIService:
    """AI service in mock mode."""
    return AIService(use_mock=True)
