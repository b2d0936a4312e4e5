"""
Built-in starter schemas for common document types.
"""

from typing import Any

from ..models import SchemaDefinition

_TEMPLATES: dict[str, dict[str, Any]] = {
    "purchase": {
        "name": "Purchase",
        "description": "Purchase order or supplier bill",
        "fields": [
            {"name": "company", "type": "text", "description": "name of company"},
            {"name": "address", "type": "text", "description": "address of company"},
            {"name": "total_sum", "type": "number", "description": "total amount we purchased"},
            {
                "name": "items",
                "type": "group",
                "description": "list of items purchased",
                "fields": [
                    {"name": "item", "type": "text", "description": "name of item"},
                    {"name": "unit_price", "type": "number", "description": "unit price of item"},
                    {"name": "quantity", "type": "number", "description": "quantity we purchased"},
                    {"name": "sum", "type": "number", "description": "total amount we purchased"},
                ],
            },
        ],
    },
    "invoice": {
        "name": "Invoice",
        "description": "Invoice with line items",
        "fields": [
            {"name": "invoice_number", "type": "text", "description": "Invoice number or reference"},
            {"name": "date", "type": "text", "description": "Invoice date"},
            {"name": "total_amount", "type": "number", "description": "Total invoice amount"},
            {
                "name": "items",
                "type": "group",
                "description": "List of items in the invoice",
                "fields": [
                    {"name": "description", "type": "text", "description": "Item description"},
                    {"name": "quantity", "type": "number", "description": "Quantity of items"},
                    {"name": "unit_price", "type": "number", "description": "Price per unit"},
                    {"name": "amount", "type": "number", "description": "Total amount for this item"},
                ],
            },
        ],
    },
    "receipt": {
        "name": "Receipt",
        "description": "Store receipt",
        "fields": [
            {"name": "merchant", "type": "text", "description": "Name of the merchant"},
            {"name": "date", "type": "text", "description": "Receipt date"},
            {"name": "total", "type": "number", "description": "Total amount"},
            {
                "name": "items",
                "type": "group",
                "description": "List of purchased items",
                "fields": [
                    {"name": "item", "type": "text", "description": "Item name"},
                    {"name": "price", "type": "number", "description": "Item price"},
                ],
            },
        ],
    },
}


def get_template(name: str) -> SchemaDefinition:
    """
    Build a template schema with freshly generated field ids.

    Raises:
        KeyError: If no template has this name.
    """
    return SchemaDefinition.model_validate(_TEMPLATES[name])


def get_templates() -> dict[str, SchemaDefinition]:
    return {name: get_template(name) for name in _TEMPLATES}
