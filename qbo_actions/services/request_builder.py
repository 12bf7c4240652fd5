from __future__ import annotations

from typing import Any, Mapping

from qbo_actions.services.errors import QuickBooksValidationError
from qbo_actions.services.lines import process_lines
from qbo_actions.services.parameters import ParameterSource
from qbo_actions.services.qbo_client import PreparedRequest
from qbo_actions.services.resources import ResourceSchema
from qbo_actions.services.sync_tokens import SyncState


# QuickBooks partial updates: fields absent from the body keep their values.
UPDATE_POLICY: Mapping[str, Any] = {"sparse": True}


def populate_fields(
    schema: ResourceSchema,
    body: dict[str, Any],
    fields: Mapping[str, Any],
) -> dict[str, Any]:
    for key, value in fields.items():
        transform = schema.transform_for(key)
        if transform is None:
            body[key] = value
        else:
            body.update(transform(key, value))
    return body


def _require_mapping(value: Any, name: str) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise QuickBooksValidationError(f"'{name}' must be an object of field names to values.")
    return value


def build_create_body(schema: ResourceSchema, params: ParameterSource, item_index: int) -> dict[str, Any]:
    body: dict[str, Any] = {}
    for required in schema.create_fields:
        value = params.get_parameter(required.parameter, item_index)
        body[required.body_key] = {"value": value} if required.reference else value

    if schema.has_lines:
        lines = params.get_parameter("Line", item_index, default=[])
        body["Line"] = process_lines(schema, lines)

    additional_fields = _require_mapping(
        params.get_parameter("additionalFields", item_index, default={}), "additionalFields"
    )
    return populate_fields(schema, body, additional_fields)


def get_update_fields(schema: ResourceSchema, params: ParameterSource, item_index: int) -> Mapping[str, Any]:
    update_fields = _require_mapping(params.get_parameter("updateFields", item_index, default={}), "updateFields")
    if not update_fields:
        raise QuickBooksValidationError(f"Please enter at least one field to update for the {schema.name}.")
    return update_fields


def build_update_body(
    schema: ResourceSchema,
    entity_id: str,
    state: SyncState,
    update_fields: Mapping[str, Any],
) -> dict[str, Any]:
    body: dict[str, Any] = {"Id": entity_id, "SyncToken": state.token, **UPDATE_POLICY}
    if schema.update_ref is not None and state.ref is not None:
        body[schema.update_ref] = {"name": state.ref.get("name"), "value": state.ref["value"]}
    return populate_fields(schema, body, update_fields)


def build_listing_statement(schema: ResourceSchema, params: ParameterSource, item_index: int) -> str:
    statement = f"SELECT * FROM {schema.name}"
    clause = params.get_parameter("filters.query", item_index, default="")
    if clause:
        statement = f"{statement} {clause.strip()}"
    return statement


def get_entity_id(schema: ResourceSchema, params: ParameterSource, item_index: int) -> str:
    return str(params.get_parameter(schema.id_parameter, item_index))


def create_request(schema: ResourceSchema, body: dict[str, Any]) -> PreparedRequest:
    return PreparedRequest(method="POST", path=f"/{schema.name}", json=body)


def get_request(schema: ResourceSchema, entity_id: str) -> PreparedRequest:
    return PreparedRequest(method="GET", path=f"/{schema.name}/{entity_id}")


def download_request(schema: ResourceSchema, entity_id: str) -> PreparedRequest:
    return PreparedRequest(method="GET", path=f"/{schema.name}/{entity_id}/pdf", binary=True)


def delete_request(schema: ResourceSchema, entity_id: str, state: SyncState) -> PreparedRequest:
    return PreparedRequest(
        method="POST",
        path=f"/{schema.name}",
        params={"operation": "delete"},
        json={"Id": entity_id, "SyncToken": state.token},
    )


def void_request(schema: ResourceSchema, entity_id: str, state: SyncState) -> PreparedRequest:
    return PreparedRequest(
        method="POST",
        path=f"/{schema.name}",
        params={"Id": entity_id, "SyncToken": state.token, "operation": "void"},
        headers={"Content-Type": "application/json"},
    )


def send_request(schema: ResourceSchema, entity_id: str, email: str) -> PreparedRequest:
    return PreparedRequest(
        method="POST",
        path=f"/{schema.name}/{entity_id}/send",
        params={"sendTo": email},
        headers={"Content-Type": "application/octet-stream"},
    )
