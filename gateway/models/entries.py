"""Request and response models for the REST surface."""

from typing import Any, Dict, List

from pydantic import BaseModel, ConfigDict, Field, StrictStr


class EntryWriteRequest(BaseModel):
    """Body of POST /v1/entries."""

    date: StrictStr = Field(..., description="Entry date (YYYY-MM-DD)")
    content: StrictStr = Field(..., description="Entry content, at most 100KB after sanitization")


class Pagination(BaseModel):
    has_more: bool
    limit: int


class DateRange(BaseModel):
    start: str
    end: str


class EntryListMeta(BaseModel):
    request_id: str
    date_range: DateRange


class EntryListResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    data: List[Dict[str, Any]]
    pagination: Pagination
    meta: EntryListMeta = Field(..., alias="_meta")


class EntryWriteResponse(BaseModel):
    data: Dict[str, Any]


class SearchMeta(BaseModel):
    request_id: str
    query: str
    result_count: int


class SearchResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    data: List[Dict[str, Any]]
    meta: SearchMeta = Field(..., alias="_meta")


class ProblemDetails(BaseModel):
    """RFC 7807 problem document returned for every REST error."""

    model_config = ConfigDict(extra="allow")

    type: str
    title: str
    status: int
    detail: str
    trace_id: str


class HealthResponse(BaseModel):
    status: str
    version: str
    active_sessions: int
