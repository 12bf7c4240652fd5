from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


ResourceName = Literal[
    "bill",
    "customer",
    "employee",
    "estimate",
    "invoice",
    "item",
    "payment",
    "vendor",
]
OperationName = Literal["create", "get", "getAll", "update", "delete", "send", "void"]
Environment = Literal["sandbox", "prod"]


class ActionRunRequest(BaseModel):
    items: list[dict[str, Any]] = Field(
        min_length=1,
        description="One parameter mapping per input item, processed in order.",
    )


class BinaryAttachmentRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    item_index: int
    property_name: str
    file_name: str
    file_extension: str
    mime_type: str
    data: str = Field(description="Base64 encoded file content.")


class ActionRunResponse(BaseModel):
    resource: ResourceName
    operation: OperationName
    count: int
    items: list[dict[str, Any]] = Field(default_factory=list)
    binary: Optional[BinaryAttachmentRead] = None


class ResourceOption(BaseModel):
    name: Optional[str] = None
    value: str


class ResourceOptionsResponse(BaseModel):
    resource: ResourceName
    options: list[ResourceOption] = Field(default_factory=list)
