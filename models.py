"""
Request and result models.

Defines the JSON structure of discovery and extraction requests. Wire names
are camelCase (listItemSelector, detailUrlFieldName, ...); Python code uses
the snake_case attribute names.
"""

from __future__ import annotations

import re
from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from scrape_errors import ValidationError
from selector_utils import split_selector_list

_HTTP_URL_RE = re.compile(r"^https?://", re.IGNORECASE)

PaginationType = Literal["load_more_button", "traditional_pagination", "infinite_scroll", "none"]
PaginationStrategy = Literal["auto", "load_more_button", "traditional_pagination", "infinite_scroll", "none"]
MatchType = Literal["exact", "contains", "startsWith", "endsWith"]


class WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FieldSpec(WireModel):
    """A named extraction rule: selector chain + text/attribute mode."""
    name: str = Field(min_length=1)
    selector: str = ""
    type: Literal["text", "attr"] = "text"
    attr: Optional[str] = None

    @field_validator("selector", mode="before")
    @classmethod
    def _join_selector_list(cls, value: Any) -> Any:
        if isinstance(value, (list, tuple)):
            return ", ".join(str(v) for v in value)
        return value

    @model_validator(mode="after")
    def _check_attr(self) -> FieldSpec:
        if self.type == "attr" and not self.attr:
            raise ValueError(f"field '{self.name}': 'attr' is required when type is 'attr'")
        return self

    def selectors(self) -> list[str]:
        return split_selector_list(self.selector)


class Suggestion(FieldSpec):
    confidence: float = Field(ge=0.0, le=1.0)
    source: str


class PaginationDescriptor(WireModel):
    type: PaginationType = "none"
    next_button_selector: Optional[str] = None
    prev_button_selector: Optional[str] = None
    load_more_selector: Optional[str] = None
    page_number_selectors: list[str] = Field(default_factory=list)
    has_numbered_pages: bool = False
    has_load_more: bool = False
    has_infinite_scroll: bool = False
    current_page_selector: Optional[str] = None
    total_pages_selector: Optional[str] = None


class ExclusionFilter(WireModel):
    field_name: str
    existing_items: list[dict[str, Any]] = Field(default_factory=list)
    match_type: MatchType = "exact"

    def is_active(self) -> bool:
        return bool(self.field_name and self.existing_items)


def _positive(value: Optional[int]) -> Optional[int]:
    return value if value is not None and value > 0 else None


class ExtractionRequest(WireModel):
    url: str
    mode: Literal["single", "list"] = "list"
    list_item_selector: Optional[str] = None
    fields: list[FieldSpec]
    limit: Optional[int] = None
    min: Optional[int] = None
    offset: Optional[int] = None
    pages: Optional[int] = None
    pagination_strategy: PaginationStrategy = "auto"
    deep_search: bool = False
    detail_url_field_name: Optional[str] = None
    exclusion_filter: Optional[ExclusionFilter] = None
    wait_for_selector: Optional[str] = None
    timeout_ms: Optional[int] = None
    next_button_selector: Optional[str] = None
    prev_button_selector: Optional[str] = None
    load_more_selector: Optional[str] = None
    page_number_selectors: Optional[list[str]] = None

    @field_validator("url")
    @classmethod
    def _check_url(cls, value: str) -> str:
        if not value or not _HTTP_URL_RE.match(value):
            raise ValueError("Valid url is required")
        return value

    @field_validator("fields")
    @classmethod
    def _check_fields(cls, value: list[FieldSpec]) -> list[FieldSpec]:
        if not value:
            raise ValueError("At least one field is required")
        seen = set()
        for f in value:
            if f.name in seen:
                raise ValueError(f"Duplicate field name: {f.name}")
            seen.add(f.name)
        return value

    @model_validator(mode="after")
    def _check_invariants(self) -> ExtractionRequest:
        if self.mode == "list" and not (self.list_item_selector or "").strip():
            raise ValueError("listItemSelector is required for list mode")
        if self.deep_search and not self.detail_url_field_name:
            raise ValueError("detailUrlFieldName is required when deepSearch is enabled")
        if self.min is not None and self.limit is not None and self.min > self.limit:
            raise ValueError("min cannot be greater than max (limit)")
        return self

    # Non-positive budgets mean "unset"

    @property
    def max_items(self) -> Optional[int]:
        return _positive(self.limit)

    @property
    def min_items(self) -> Optional[int]:
        return _positive(self.min)

    @property
    def max_pages(self) -> Optional[int]:
        return _positive(self.pages)

    @property
    def skip(self) -> int:
        return _positive(self.offset) or 0

    def field_names(self) -> list[str]:
        return [f.name for f in self.fields]


class DiscoveryRequest(WireModel):
    url: str
    timeout_ms: Optional[int] = None

    @field_validator("url")
    @classmethod
    def _check_url(cls, value: str) -> str:
        if not value or not _HTTP_URL_RE.match(value):
            raise ValueError("Valid url is required")
        return value


class DiscoveryResult(WireModel):
    mode: Literal["single", "list", "unknown"]
    list_item_selector: Optional[str] = None
    suggestions: list[Suggestion] = Field(default_factory=list)
    pagination: PaginationDescriptor = Field(default_factory=PaginationDescriptor)

    def to_response(self) -> dict[str, Any]:
        return {"ok": True, **self.model_dump(by_alias=True, exclude_none=True)}


class ExtractionResult(BaseModel):
    mode: Literal["single", "list"]
    data: Union[list[dict[str, Any]], dict[str, Any]]

    @property
    def count(self) -> int:
        return len(self.data) if isinstance(self.data, list) else 1

    def to_response(self) -> dict[str, Any]:
        if self.mode == "list":
            return {"ok": True, "mode": self.mode, "count": self.count, "data": self.data}
        return {"ok": True, "mode": self.mode, "data": self.data}


def _flatten(err: PydanticValidationError) -> str:
    messages = []
    for e in err.errors():
        msg = e.get("msg", "")
        if msg.startswith("Value error, "):
            msg = msg[len("Value error, "):]
        loc = ".".join(str(p) for p in e.get("loc", ()))
        messages.append(f"{loc}: {msg}" if loc else msg)
    return "; ".join(messages)


def parse_extraction_request(data: Any) -> ExtractionRequest:
    """
    Build an ExtractionRequest, raising the scraper's ValidationError on bad input.
    """
    if isinstance(data, ExtractionRequest):
        return data
    if not isinstance(data, dict):
        raise ValidationError("Request must be a JSON object")
    try:
        return ExtractionRequest.model_validate(data)
    except PydanticValidationError as e:
        raise ValidationError(_flatten(e)) from e


def parse_discovery_request(data: Any) -> DiscoveryRequest:
    if isinstance(data, DiscoveryRequest):
        return data
    if not isinstance(data, dict):
        raise ValidationError("Request must be a JSON object")
    try:
        return DiscoveryRequest.model_validate(data)
    except PydanticValidationError as e:
        raise ValidationError(_flatten(e)) from e
