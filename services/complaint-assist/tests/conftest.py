"""Shared test fixtures for complaint assist tests."""

import sys
from pathlib import Path

import pytest

# Add parent directory to path so we can import the modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from models import ExtractionResult


@pytest.fixture
def scenario_payload() -> dict:
    """Extraction response with one high, one borderline and one blocked field."""
    return {
        "extracted_data": {
            "customer": {"name": "Acme"},
            "items": [{"sku": "X1", "qty": 2}],
        },
        "confidence_scores": {
            "customer.name": 0.9,
            "items[0].sku": 0.4,
            "items[0].qty": 0.2,
        },
        "unresolved_fields": ["items[0].qty"],
        "warnings": [],
        "suggestions": [],
    }


@pytest.fixture
def scenario_result(scenario_payload: dict) -> ExtractionResult:
    return ExtractionResult.model_validate(scenario_payload)


@pytest.fixture
def service_payload() -> dict:
    """Full response as returned by the extraction service for a WhatsApp message."""
    return {
        "extracted_data": {
            "source": "whatsapp",
            "customer": {
                "name": "John Doe",
                "phone": "+1234567890",
                "email": "john.doe@email.com",
                "company": None,
                "address": "123 Main St, City, State 12345",
            },
            "items": [
                {
                    "sku": "PROD-001",
                    "item_description": "Sample Product",
                    "qty": 1,
                    "uom": "pcs",
                    "unit_price": 1000,
                    "currency": "INR",
                    "line_total": 1000,
                    "issue_type": "defect",
                    "problem_description": "Product has issues",
                }
            ],
            "summary": "Customer reports a defective product",
            "attachments": [],
            "priority": "medium",
        },
        "confidence_scores": {
            "customer.name": 0.9,
            "customer.phone": 0.8,
            "customer.email": 0.85,
            "items[0].item_description": 0.7,
            "items[0].qty": 0.95,
            "items[0].issue_type": 0.6,
            "summary": 0.8,
        },
        "unresolved_fields": ["customer.address", "items[0].sku"],
        "suggestions": [
            "Consider verifying the customer phone number",
            "Product SKU could not be determined from the text",
        ],
        "warnings": ["Multiple products mentioned but only one extracted"],
    }


@pytest.fixture
def blank_form() -> dict:
    """Complaint form as initialized before any AI assistance."""
    return {
        "source": "webform",
        "customer": {
            "name": "",
            "phone": None,
            "email": None,
            "company": "Existing Co",
            "address": None,
        },
        "items": [
            {
                "sku": "",
                "item_description": "",
                "qty": 1,
                "uom": "pcs",
                "unit_price": 0,
                "currency": "INR",
                "issue_type": "defect",
                "problem_description": "",
            }
        ],
        "summary": "",
        "attachments": [],
        "priority": "medium",
    }
