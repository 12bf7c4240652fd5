from __future__ import annotations

from dataclasses import dataclass, field
from time import perf_counter
from types import MappingProxyType
from typing import Any, Awaitable, Callable, Mapping, Optional, Union

from qbo_actions.core import logging as logging_utils
from qbo_actions.core.config import Settings
from qbo_actions.services import request_builder as builder
from qbo_actions.services.errors import (
    QuickBooksActionError,
    QuickBooksApiError,
    QuickBooksValidationError,
    UnsupportedOperationError,
)
from qbo_actions.services.normalizer import fetch_all_pages, fetch_page, unwrap_entity
from qbo_actions.services.parameters import ParameterSource
from qbo_actions.services.qbo_client import PreparedRequest, QuickBooksClient
from qbo_actions.services.resources import OPTION_RESOURCES, RESOURCES, ResourceSchema
from qbo_actions.services.sync_tokens import SyncTokenResolver


@dataclass(frozen=True)
class BinaryAttachment:
    item_index: int
    property_name: str
    file_name: str
    data: bytes
    file_extension: str = "pdf"
    mime_type: str = "application/pdf"


@dataclass(frozen=True)
class ListingQuery:
    statement: str
    return_all: bool
    limit: int


@dataclass
class ActionContext:
    schema: ResourceSchema
    operation: str
    item_index: int
    params: ParameterSource
    client: QuickBooksClient
    tokens: SyncTokenResolver
    settings: Settings


ActionPlan = Union[PreparedRequest, ListingQuery]
ActionOutput = Union[dict[str, Any], list[dict[str, Any]], BinaryAttachment]


@dataclass(frozen=True)
class OperationHandler:
    build: Callable[[ActionContext], Awaitable[ActionPlan]]
    parse: Callable[[ActionContext, Any], ActionOutput]


@dataclass
class RunResult:
    records: list[dict[str, Any]] = field(default_factory=list)
    binary: Optional[BinaryAttachment] = None


# ----------------------------------------------------------------------
# request construction per operation kind
# ----------------------------------------------------------------------


# QuickBooks rejects MAXRESULTS above 1000.
MAX_QUERY_RESULTS = 1000

_FLAG_STRINGS = {"true": True, "false": False}


def _get_flag(ctx: ActionContext, name: str) -> bool:
    value = ctx.params.get_parameter(name, ctx.item_index, default=False)
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in _FLAG_STRINGS:
        return _FLAG_STRINGS[value.strip().lower()]
    raise QuickBooksValidationError(f"'{name}' must be true or false, got {value!r}")


def _get_limit(ctx: ActionContext) -> int:
    value = ctx.params.get_parameter("limit", ctx.item_index, default=ctx.settings.default_list_limit)
    limit = int(value) if isinstance(value, str) and value.strip().isdigit() else value
    if isinstance(limit, bool) or not isinstance(limit, int) or not 1 <= limit <= MAX_QUERY_RESULTS:
        raise QuickBooksValidationError(
            f"'limit' must be a whole number between 1 and {MAX_QUERY_RESULTS}, got {value!r}"
        )
    return limit


async def _build_create(ctx: ActionContext) -> ActionPlan:
    body = builder.build_create_body(ctx.schema, ctx.params, ctx.item_index)
    return builder.create_request(ctx.schema, body)


async def _build_get(ctx: ActionContext) -> ActionPlan:
    entity_id = builder.get_entity_id(ctx.schema, ctx.params, ctx.item_index)
    if ctx.schema.downloadable and _get_flag(ctx, "download"):
        return builder.download_request(ctx.schema, entity_id)
    return builder.get_request(ctx.schema, entity_id)


async def _build_get_all(ctx: ActionContext) -> ActionPlan:
    statement = builder.build_listing_statement(ctx.schema, ctx.params, ctx.item_index)
    return_all = _get_flag(ctx, "returnAll")
    limit = _get_limit(ctx)
    return ListingQuery(statement=statement, return_all=return_all, limit=limit)


async def _build_update(ctx: ActionContext) -> ActionPlan:
    entity_id = builder.get_entity_id(ctx.schema, ctx.params, ctx.item_index)
    # Validated before the token read so bad input never reaches QuickBooks.
    update_fields = builder.get_update_fields(ctx.schema, ctx.params, ctx.item_index)
    state = await ctx.tokens.resolve(ctx.schema, entity_id, ref_field=ctx.schema.update_ref)
    body = builder.build_update_body(ctx.schema, entity_id, state, update_fields)
    return builder.create_request(ctx.schema, body)


async def _build_delete(ctx: ActionContext) -> ActionPlan:
    entity_id = builder.get_entity_id(ctx.schema, ctx.params, ctx.item_index)
    state = await ctx.tokens.resolve(ctx.schema, entity_id)
    return builder.delete_request(ctx.schema, entity_id, state)


async def _build_void(ctx: ActionContext) -> ActionPlan:
    entity_id = builder.get_entity_id(ctx.schema, ctx.params, ctx.item_index)
    state = await ctx.tokens.resolve(ctx.schema, entity_id)
    return builder.void_request(ctx.schema, entity_id, state)


async def _build_send(ctx: ActionContext) -> ActionPlan:
    entity_id = builder.get_entity_id(ctx.schema, ctx.params, ctx.item_index)
    email = ctx.params.get_parameter("email", ctx.item_index)
    return builder.send_request(ctx.schema, entity_id, str(email))


# ----------------------------------------------------------------------
# response normalization
# ----------------------------------------------------------------------


def _parse_entity(ctx: ActionContext, payload: Any) -> ActionOutput:
    return unwrap_entity(ctx.schema, payload)


def _parse_get(ctx: ActionContext, payload: Any) -> ActionOutput:
    if isinstance(payload, bytes):
        entity_id = builder.get_entity_id(ctx.schema, ctx.params, ctx.item_index)
        return BinaryAttachment(
            item_index=ctx.item_index,
            property_name=str(ctx.params.get_parameter("binaryProperty", ctx.item_index, default="data")),
            file_name=str(
                ctx.params.get_parameter(
                    "fileName",
                    ctx.item_index,
                    default=f"{ctx.schema.name}-{entity_id}.pdf",
                )
            ),
            data=payload,
        )
    return unwrap_entity(ctx.schema, payload)


def _parse_listing(ctx: ActionContext, records: Any) -> ActionOutput:
    return list(records)


OPERATION_HANDLERS: Mapping[str, OperationHandler] = MappingProxyType(
    {
        "create": OperationHandler(build=_build_create, parse=_parse_entity),
        "get": OperationHandler(build=_build_get, parse=_parse_get),
        "getAll": OperationHandler(build=_build_get_all, parse=_parse_listing),
        "update": OperationHandler(build=_build_update, parse=_parse_entity),
        "delete": OperationHandler(build=_build_delete, parse=_parse_entity),
        "void": OperationHandler(build=_build_void, parse=_parse_entity),
        "send": OperationHandler(build=_build_send, parse=_parse_entity),
    }
)

HANDLERS: Mapping[tuple[str, str], OperationHandler] = MappingProxyType(
    {
        (schema.name, operation): OPERATION_HANDLERS[operation]
        for schema in RESOURCES.values()
        for operation in sorted(schema.operations)
    }
)


def resolve_handler(resource: str, operation: str) -> tuple[ResourceSchema, OperationHandler]:
    handler = HANDLERS.get((resource, operation))
    if handler is None:
        raise UnsupportedOperationError(resource, operation)
    return RESOURCES[resource], handler


class QuickBooksActionRunner:
    """Runs one (resource, operation) action over every input item, in order.

    Items are processed strictly one after another; any error aborts the run
    and no partial output is returned.
    """

    def __init__(self, client: QuickBooksClient, settings: Settings | None = None):
        self.client = client
        self.settings = settings or client.settings
        self.tokens = SyncTokenResolver(client)

    async def run(
        self,
        resource: str,
        operation: str,
        params: ParameterSource,
        item_count: int,
    ) -> RunResult:
        schema, handler = resolve_handler(resource, operation)
        result = RunResult()
        logging_utils.set_action_context(resource=resource, operation=operation)
        try:
            for item_index in range(item_count):
                ctx = ActionContext(
                    schema=schema,
                    operation=operation,
                    item_index=item_index,
                    params=params,
                    client=self.client,
                    tokens=self.tokens,
                    settings=self.settings,
                )
                output = await self._run_item(handler, ctx)
                if isinstance(output, BinaryAttachment):
                    # A download ends the run with that item's file.
                    return RunResult(binary=output)
                if isinstance(output, list):
                    result.records.extend(output)
                else:
                    result.records.append(output)
        finally:
            logging_utils.clear_action_context()
        return result

    async def _run_item(self, handler: OperationHandler, ctx: ActionContext) -> ActionOutput:
        logging_utils.set_action_context(item_index=ctx.item_index)
        logging_utils.log_action_started(
            resource=ctx.schema.name,
            operation=ctx.operation,
            item_index=ctx.item_index,
        )
        start = perf_counter()
        try:
            plan = await handler.build(ctx)
            if isinstance(plan, ListingQuery):
                payload: Any = await self._fetch_listing(ctx, plan)
            else:
                payload = await ctx.client.send(plan)
            output = handler.parse(ctx, payload)
        except QuickBooksActionError as exc:
            logging_utils.log_action_finished(
                resource=ctx.schema.name,
                operation=ctx.operation,
                item_index=ctx.item_index,
                latency_ms=(perf_counter() - start) * 1000,
                result="error",
                error_code=exc.error_code if isinstance(exc, QuickBooksApiError) else type(exc).__name__,
                error_message=str(exc),
            )
            raise

        logging_utils.log_action_finished(
            resource=ctx.schema.name,
            operation=ctx.operation,
            item_index=ctx.item_index,
            latency_ms=(perf_counter() - start) * 1000,
            result="success",
            record_count=len(output) if isinstance(output, list) else 1,
        )
        return output

    async def _fetch_listing(self, ctx: ActionContext, plan: ListingQuery) -> list[dict[str, Any]]:
        if plan.return_all:
            return await fetch_all_pages(
                ctx.client,
                ctx.schema,
                plan.statement,
                page_size=self.settings.query_page_size,
            )
        return await fetch_page(ctx.client, ctx.schema, plan.statement, limit=plan.limit)


async def list_options(client: QuickBooksClient, resource: str) -> list[dict[str, Any]]:
    """Name/value pairs for every customer or vendor, for host-side pickers."""
    schema = RESOURCES.get(resource)
    if schema is None or resource not in OPTION_RESOURCES:
        raise UnsupportedOperationError(resource, "loadOptions")
    records = await fetch_all_pages(
        client,
        schema,
        f"SELECT * FROM {schema.name}",
        page_size=client.settings.query_page_size,
    )
    return [{"name": record.get("DisplayName"), "value": str(record.get("Id"))} for record in records]
