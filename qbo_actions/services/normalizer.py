from __future__ import annotations

from copy import deepcopy
from typing import TYPE_CHECKING, Any

from qbo_actions.services.errors import QuickBooksApiError
from qbo_actions.services.resources import ResourceSchema

if TYPE_CHECKING:
    from qbo_actions.services.qbo_client import QuickBooksClient


def unwrap_entity(schema: ResourceSchema, payload: Any) -> dict[str, Any]:
    entity = payload.get(schema.entity) if isinstance(payload, dict) else None
    if not isinstance(entity, dict):
        raise QuickBooksApiError(f"QuickBooks response is missing the {schema.entity} envelope")
    return deepcopy(entity)


def unwrap_listing(schema: ResourceSchema, payload: Any) -> list[dict[str, Any]]:
    query_response = payload.get("QueryResponse") if isinstance(payload, dict) else None
    if not isinstance(query_response, dict):
        raise QuickBooksApiError("QuickBooks response is missing the QueryResponse envelope")
    # QuickBooks omits the entity key entirely when nothing matches.
    records = query_response.get(schema.entity, [])
    if isinstance(records, dict):
        records = [records]
    return [deepcopy(record) for record in records]


async def fetch_all_pages(
    client: QuickBooksClient,
    schema: ResourceSchema,
    statement: str,
    *,
    page_size: int,
) -> list[dict[str, Any]]:
    """Page through a query until QuickBooks returns a short page."""
    records: list[dict[str, Any]] = []
    startposition = 1
    while True:
        payload = await client.query(statement, startposition=startposition, maxresults=page_size)
        page = unwrap_listing(schema, payload)
        records.extend(page)
        if len(page) < page_size:
            return records
        startposition += page_size


async def fetch_page(
    client: QuickBooksClient,
    schema: ResourceSchema,
    statement: str,
    *,
    limit: int,
) -> list[dict[str, Any]]:
    payload = await client.query(statement, maxresults=limit)
    return unwrap_listing(schema, payload)
