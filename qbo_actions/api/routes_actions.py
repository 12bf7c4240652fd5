from __future__ import annotations

import base64
from typing import Optional

import httpx
from fastapi import APIRouter, Depends, Header, HTTPException, status

from qbo_actions.core import logging as logging_utils
from qbo_actions.core.config import Settings, get_settings
from qbo_actions.schemas.actions import (
    ActionRunRequest,
    ActionRunResponse,
    BinaryAttachmentRead,
    OperationName,
    ResourceName,
    ResourceOption,
    ResourceOptionsResponse,
)
from qbo_actions.services.dispatcher import QuickBooksActionRunner, list_options
from qbo_actions.services.errors import UnsupportedOperationError
from qbo_actions.services.parameters import ItemParameters
from qbo_actions.services.qbo_client import QuickBooksClient, QuickBooksCredentials
from qbo_actions.utils.validators import parse_bearer_token, require_realm_id, resolve_environment


router = APIRouter(prefix="/qbo", tags=["qbo"])


def get_qbo_transport() -> httpx.AsyncBaseTransport | None:
    """Outbound transport override; `None` uses the default network transport."""
    return None


async def get_credentials(
    authorization: str | None = Header(default=None),
    realm_id: str | None = Header(default=None, alias="X-QBO-Realm-Id"),
    environment: str | None = Header(default=None, alias="X-QBO-Environment"),
    settings: Settings = Depends(get_settings),
) -> QuickBooksCredentials:
    credentials = QuickBooksCredentials(
        access_token=parse_bearer_token(authorization),
        realm_id=require_realm_id(realm_id),
        environment=resolve_environment(environment, settings.environment),
    )
    logging_utils.set_request_context(realm_id=credentials.realm_id)
    return credentials


@router.post(
    "/actions/{resource}/{operation}",
    response_model=ActionRunResponse,
    summary="Run QuickBooks action",
    description=(
        "Runs one QuickBooks operation for every item in the request, in order. "
        "The first failing item aborts the run and nothing is returned for the others."
    ),
)
async def run_action(
    resource: ResourceName,
    operation: OperationName,
    payload: ActionRunRequest,
    credentials: QuickBooksCredentials = Depends(get_credentials),
    settings: Settings = Depends(get_settings),
    transport: httpx.AsyncBaseTransport | None = Depends(get_qbo_transport),
) -> ActionRunResponse:
    client = QuickBooksClient(credentials, settings, transport=transport)
    runner = QuickBooksActionRunner(client, settings)
    parameters = ItemParameters(payload.items)
    result = await runner.run(resource, operation, parameters, len(parameters))

    binary: Optional[BinaryAttachmentRead] = None
    if result.binary is not None:
        binary = BinaryAttachmentRead(
            item_index=result.binary.item_index,
            property_name=result.binary.property_name,
            file_name=result.binary.file_name,
            file_extension=result.binary.file_extension,
            mime_type=result.binary.mime_type,
            data=base64.b64encode(result.binary.data).decode("ascii"),
        )
    return ActionRunResponse(
        resource=resource,
        operation=operation,
        count=len(result.records) if binary is None else 1,
        items=result.records,
        binary=binary,
    )


@router.get(
    "/options/{resource}",
    response_model=ResourceOptionsResponse,
    summary="List resource options",
    description="Returns name/value pairs for every customer or vendor.",
)
async def get_resource_options(
    resource: ResourceName,
    credentials: QuickBooksCredentials = Depends(get_credentials),
    settings: Settings = Depends(get_settings),
    transport: httpx.AsyncBaseTransport | None = Depends(get_qbo_transport),
) -> ResourceOptionsResponse:
    client = QuickBooksClient(credentials, settings, transport=transport)
    try:
        options = await list_options(client, resource)
    except UnsupportedOperationError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return ResourceOptionsResponse(
        resource=resource,
        options=[ResourceOption(**option) for option in options],
    )
