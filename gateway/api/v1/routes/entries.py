"""Journal entry and search endpoints."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, Response
from pydantic import ValidationError

from gateway.api.deps import get_container, require_scope
from gateway.core.api_keys import SCOPE_READ_ENTRIES, SCOPE_WRITE_ENTRIES, Principal
from gateway.core.audit import hash_input
from gateway.core.collaborators import call_collaborator
from gateway.core.exceptions import BadRequestError, EntryStoreError
from gateway.core.sanitizer import sanitize
from gateway.core.services import ServiceContainer
from gateway.core.validation import (
    DEFAULT_LIST_LIMIT,
    DEFAULT_SEARCH_LIMIT,
    MAX_ENTRY_BYTES,
    MAX_LIST_LIMIT,
    MAX_RANGE_DAYS,
    MAX_SEARCH_LIMIT,
    parse_entry_date,
    parse_limit,
    resolve_date_range,
    validate_content_size,
    validate_search_query,
)
from gateway.models.entries import (
    DateRange,
    EntryListMeta,
    EntryListResponse,
    EntryWriteRequest,
    EntryWriteResponse,
    Pagination,
    SearchMeta,
    SearchResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1", tags=["entries"])


async def _store_call(container: ServiceContainer, fn, *args):
    """Entry-store call where data errors become 400s."""
    try:
        return await call_collaborator(fn, *args, timeout=container.settings.collaborator_timeout_seconds)
    except EntryStoreError as e:
        raise BadRequestError(str(e))


@router.get("/entries", response_model=EntryListResponse)
async def list_entries(
    request: Request,
    start_date: Optional[str] = Query(None, description="Range start (YYYY-MM-DD), default end_date - 30 days"),
    end_date: Optional[str] = Query(None, description="Range end (YYYY-MM-DD), default today"),
    limit: Optional[str] = Query(None, description="Max entries, default 30, capped at 100"),
    principal: Principal = Depends(require_scope(SCOPE_READ_ENTRIES)),
    container: ServiceContainer = Depends(get_container),
):
    """
    List the caller's entries in a date range, newest first.

    ``pagination.has_more`` is true when exactly ``limit`` entries came back.
    """
    start, end = resolve_date_range(start_date, end_date, MAX_RANGE_DAYS)
    page_size = parse_limit(limit, DEFAULT_LIST_LIMIT, MAX_LIST_LIMIT)

    entries = await _store_call(container, container.entry_store.get_entries, principal.user_id, start, end, page_size)

    return EntryListResponse(
        data=entries,
        pagination=Pagination(has_more=len(entries) == page_size, limit=page_size),
        meta=EntryListMeta(
            request_id=request.state.request_id,
            date_range=DateRange(start=start.isoformat(), end=end.isoformat()),
        ),
    )


@router.post("/entries", status_code=201, response_model=EntryWriteResponse)
async def upsert_entry(
    request: Request,
    response: Response,
    principal: Principal = Depends(require_scope(SCOPE_WRITE_ENTRIES)),
    container: ServiceContainer = Depends(get_container),
):
    """
    Create or replace the caller's entry for a day.

    Content is sanitized before the 100KB size check and before persistence.
    """
    try:
        payload = await request.json()
    except ValueError:
        raise BadRequestError("Request body must be valid JSON")
    try:
        body = EntryWriteRequest.model_validate(payload)
    except ValidationError:
        raise BadRequestError("Missing required fields: date, content")

    entry_date = parse_entry_date(body.date)
    content = validate_content_size(sanitize(body.content), MAX_ENTRY_BYTES, "")

    entry = await _store_call(container, container.entry_store.upsert_entry, principal.user_id, entry_date, content)

    request.state.input_hash = hash_input(content)
    response.headers["Location"] = f"/v1/entries?date={entry_date.isoformat()}"
    logger.info("Entry %s saved for user %s", entry_date.isoformat(), principal.user_id)
    return EntryWriteResponse(data=entry)


@router.get("/search", response_model=SearchResponse)
async def search_entries(
    request: Request,
    q: Optional[str] = Query(None, description="Search text, 2-200 characters"),
    limit: Optional[str] = Query(None, description="Max results, default 10, capped at 10"),
    principal: Principal = Depends(require_scope(SCOPE_READ_ENTRIES)),
    container: ServiceContainer = Depends(get_container),
):
    """Search the caller's entries."""
    query = validate_search_query(q)
    max_results = parse_limit(limit, DEFAULT_SEARCH_LIMIT, MAX_SEARCH_LIMIT)

    results = await _store_call(container, container.entry_store.search_journal, principal.user_id, query, max_results)

    return SearchResponse(
        data=results,
        meta=SearchMeta(request_id=request.state.request_id, query=query, result_count=len(results)),
    )
