"""
Schema compiler: turns a user-authored field tree into a structured-output
contract and the matching extraction instructions.

The contract is a pydantic model built at request time with
``create_model``. Top-level text/number fields are wrapped in a list so
repeated occurrences across a document are captured independently, while
group fields compile to a single list of item objects.
"""

import re
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, create_model

from ...models import FieldDefinition, GroupField, NumberField, TextField

ROOT_MODEL_NAME = "pdf_data_extraction"

_CONTRACT_CONFIG = ConfigDict(extra="forbid")

EXTRACTION_RULES = """Important instructions:
1. Extract ALL matching data from the document
2. For group fields, find and extract ALL matching items
3. For number fields:
   - Convert values from string format (like "-55,26" or "1.349,36") to proper numbers (-55.26 or 1349.36)
   - Remove any currency symbols or thousand separators
   - Maintain negative signs
4. For text fields:
   - Keep the exact format as in the document
   - Include the complete text
5. If a specific value is not found, use null
6. Process the entire document thoroughly
7. Maintain the order of items as they appear in the document

Remember: This document may contain multiple entries or rows of data. Make sure to extract ALL of them, not just the first one."""


@dataclass(frozen=True)
class CompiledSchema:
    """Runtime contract and instructions derived from one schema."""

    model: type[BaseModel]
    json_schema: dict[str, Any]
    instructions: str


def _model_name(*parts: str) -> str:
    """Build a deterministic model name that is safe for JSON schema refs."""
    cleaned = [re.sub(r"[^0-9A-Za-z]+", "_", p).strip("_") or "field" for p in parts]
    return "_".join(cleaned)


def _leaf_type(field: FieldDefinition, path: tuple[str, ...], index: int) -> Any:
    """Annotation for one field inside an object model."""
    if isinstance(field, GroupField):
        item_model = _object_model(field.sub_fields, path + (f"{index}", field.name, "item"))
        return list[item_model]
    if isinstance(field, NumberField):
        return float | None
    if isinstance(field, TextField):
        return str | None
    raise TypeError(f"Unsupported field type: {type(field).__name__}")


def _object_model(
    fields: list[FieldDefinition],
    path: tuple[str, ...],
    *,
    top_level: bool = False,
) -> type[BaseModel]:
    """
    Compile a sibling list into an object model.

    Python attribute names are positional (``f0``, ``f1``...) and the user's
    field name is the alias, so any label can be used as an output key.
    An empty list yields an empty-shape object.
    """
    definitions: dict[str, Any] = {}
    for index, field in enumerate(fields):
        annotation = _leaf_type(field, path, index)
        if top_level and not isinstance(field, GroupField):
            annotation = list[annotation]
        definitions[f"f{index}"] = (
            annotation,
            Field(..., alias=field.name, description=field.description or None),
        )

    return create_model(
        _model_name(*path),
        __config__=_CONTRACT_CONFIG,
        **definitions,
    )


def build_contract_model(fields: list[FieldDefinition]) -> type[BaseModel]:
    """Build the pydantic model the completion response must conform to."""
    return _object_model(fields, (ROOT_MODEL_NAME,), top_level=True)


def _describe(fields: list[FieldDefinition], depth: int = 0) -> list[str]:
    indent = "    " * depth
    lines: list[str] = []
    for field in fields:
        if isinstance(field, GroupField):
            header = f"{indent}- {field.name} (collection of items):"
            lines.append(f"{header} {field.description}" if field.description else header)
            lines.extend(_describe(field.sub_fields, depth + 1))
        else:
            lines.append(f"{indent}- {field.name}: {field.description}")
    return lines


def build_instructions(fields: list[FieldDefinition]) -> str:
    """Build the system instruction block for an extraction request."""
    field_descriptions = "\n".join(_describe(fields))
    return f"""You are an expert at extracting structured data from documents.
Your task is to extract data according to the provided schema.

For each field in the schema, extract the following information:
{field_descriptions}

{EXTRACTION_RULES}"""


def compile_schema(fields: list[FieldDefinition]) -> CompiledSchema:
    """
    Compile a schema into its validation contract and instruction text.

    Deterministic: the same field list always yields an equal JSON schema
    and identical instructions. Malformed schemas (e.g. a group without
    sub-fields) are not rejected here; they compile to empty-shape objects.

    Args:
        fields: Ordered top-level fields.

    Returns:
        CompiledSchema with the contract model, its JSON schema and the
        instructions.
    """
    model = build_contract_model(fields)
    return CompiledSchema(
        model=model,
        json_schema=model.model_json_schema(),
        instructions=build_instructions(fields),
    )
