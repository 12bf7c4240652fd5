from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from qbo_actions.services.errors import QuickBooksApiError
from qbo_actions.services.normalizer import unwrap_entity
from qbo_actions.services.qbo_client import QuickBooksClient
from qbo_actions.services.resources import ResourceSchema


@dataclass(frozen=True)
class SyncState:
    token: str
    ref: Optional[dict[str, Any]] = None


class SyncTokenResolver:
    """Reads the current revision of an entity right before it is mutated.

    Nothing is cached: every update, delete or void re-reads the entity so the
    echoed SyncToken is as fresh as possible.
    """

    def __init__(self, client: QuickBooksClient):
        self.client = client
        self.logger = logging.getLogger("qbo_actions.services.sync_tokens")

    async def resolve(
        self,
        schema: ResourceSchema,
        entity_id: str,
        *,
        ref_field: Optional[str] = None,
    ) -> SyncState:
        payload = await self.client.get_entity(schema.name, entity_id)
        entity = unwrap_entity(schema, payload)

        token = entity.get("SyncToken")
        if token is None:
            raise QuickBooksApiError(
                f"QuickBooks {schema.entity} {entity_id} was returned without a SyncToken"
            )

        ref: Optional[dict[str, Any]] = None
        if ref_field is not None:
            raw_ref = entity.get(ref_field)
            if not isinstance(raw_ref, dict) or raw_ref.get("value") is None:
                raise QuickBooksApiError(
                    f"QuickBooks {schema.entity} {entity_id} was returned without {ref_field}"
                )
            ref = {"name": raw_ref.get("name"), "value": raw_ref["value"]}

        self.logger.debug(
            "sync_token_resolved",
            extra={"entity": schema.entity, "entity_id": entity_id, "sync_token": str(token)},
        )
        return SyncState(token=str(token), ref=ref)
