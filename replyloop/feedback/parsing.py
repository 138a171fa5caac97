"""Strict parsing of structured model output.

The model's text is reduced to one JSON block and validated against a
pydantic schema. Anything that does not validate raises MalformedModelOutput;
callers decide whether that means an empty result. Nothing is patched up.
"""

import json
import re
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from replyloop.lib.errors import MalformedModelOutput
from replyloop.models.knowledge import RelationType

_FENCE = re.compile(r"```(?:json|JSON)?\s*(.*?)```", re.DOTALL)


class ExtractedKnowledge(BaseModel):
    """One knowledge point as the extraction prompt asks for it."""

    model_config = ConfigDict(extra="ignore")

    title: str = Field(min_length=1)
    content: str = Field(min_length=1)
    category: str
    tags: list[str]
    source: str
    confidence: float = Field(ge=0.0, le=1.0)


class SuggestedCategory(BaseModel):
    name: str = Field(min_length=1)
    description: str = ""
    parent_category: str | None = None
    confidence: float = Field(ge=0.0, le=1.0)


class SuggestedTag(BaseModel):
    name: str = Field(min_length=1)
    description: str = ""
    confidence: float = Field(ge=0.0, le=1.0)


class SuggestedRelation(BaseModel):
    target_id: str
    relation_type: RelationType
    strength: float = Field(ge=0.0, le=1.0)
    reason: str | None = None


class OrganizationOutput(BaseModel):
    model_config = ConfigDict(extra="ignore")

    suggested_categories: list[SuggestedCategory]
    suggested_tags: list[SuggestedTag]
    suggested_relations: list[SuggestedRelation]


class NamedSuggestion(BaseModel):
    name: str
    description: str = ""


class CategoryMerge(BaseModel):
    categories: list[str]
    new_category: str
    reason: str = ""


class TagMerge(BaseModel):
    tags: list[str]
    new_tag: str
    reason: str = ""


class StructureSuggestions(BaseModel):
    model_config = ConfigDict(extra="ignore")

    suggested_new_categories: list[NamedSuggestion] = []
    suggested_category_merges: list[CategoryMerge] = []
    suggested_new_tags: list[NamedSuggestion] = []
    suggested_tag_merges: list[TagMerge] = []


def extract_json_block(text: str) -> str:
    """Return the JSON part of a model reply.

    A fenced ```json block wins; otherwise the span from the first opening
    bracket to the last matching closing bracket.
    """
    fence = _FENCE.search(text)
    if fence:
        return fence.group(1).strip()

    starts = [i for i in (text.find("["), text.find("{")) if i >= 0]
    if not starts:
        raise MalformedModelOutput("no JSON found", text)

    start = min(starts)
    closer = "]" if text[start] == "[" else "}"
    end = text.rfind(closer)
    if end <= start:
        raise MalformedModelOutput("unterminated JSON", text)
    return text[start : end + 1]


def parse_model_output(text: str, schema: Any) -> Any:
    """Parse text against a schema (a model class or a typing form such as list[Model]).

    Raises:
        MalformedModelOutput: If no JSON is found, it does not decode, or it
            does not match the schema
    """
    block = extract_json_block(text or "")

    try:
        data = json.loads(block)
    except json.JSONDecodeError as e:
        raise MalformedModelOutput(f"invalid JSON: {e}", text) from e

    try:
        return TypeAdapter(schema).validate_python(data)
    except PydanticValidationError as e:
        raise MalformedModelOutput(f"schema mismatch: {e.error_count()} errors", text) from e
