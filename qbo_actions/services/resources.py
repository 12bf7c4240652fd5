"""Declarative description of every QuickBooks resource the actions expose.

Each `ResourceSchema` lists the supported operations, the parameters a create
call requires, the reference denormalized on sparse updates, the line detail
rules and how caller supplied fields are translated into API fields.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Callable, Mapping, Optional


FieldTransform = Callable[[str, Any], dict[str, Any]]


def _ref_details(key: str, value: Any) -> dict[str, Any]:
    details = value.get("details", value) if isinstance(value, Mapping) else {"value": value}
    reference = {"value": details.get("value")}
    if details.get("name"):
        reference = {"name": details["name"], **reference}
    return {key: reference}


def _address(key: str, value: Any) -> dict[str, Any]:
    details = value.get("details", value) if isinstance(value, Mapping) else {}
    return {key: {name: part for name, part in details.items() if part != ""}}


def _wrap(inner_key: str) -> FieldTransform:
    def transform(key: str, value: Any) -> dict[str, Any]:
        return {key: {inner_key: value}}

    return transform


def _total_tax(_: str, value: Any) -> dict[str, Any]:
    return {"TxnTaxDetail": {"TotalTax": value}}


def _custom_fields(_: str, value: Any) -> dict[str, Any]:
    entries = value.get("Field", []) if isinstance(value, Mapping) else value
    return {
        "CustomField": [
            {
                "DefinitionId": entry.get("DefinitionId"),
                "StringValue": entry.get("StringValue"),
                "Type": "StringType",
            }
            for entry in entries or []
        ]
    }


@dataclass(frozen=True)
class RequiredField:
    """A create parameter copied into the body, optionally as a `{value}` reference."""

    parameter: str
    body_key: str
    reference: bool = False


@dataclass(frozen=True)
class LineDetailRule:
    ref_key: str
    parameter: str
    label: str


@dataclass(frozen=True)
class ResourceSchema:
    name: str
    operations: frozenset[str]
    create_fields: tuple[RequiredField, ...] = ()
    has_lines: bool = False
    line_rules: Mapping[str, LineDetailRule] = field(default_factory=lambda: MappingProxyType({}))
    update_ref: Optional[str] = None
    field_transforms: Mapping[str, FieldTransform] = field(default_factory=lambda: MappingProxyType({}))
    transform_ref_suffix: bool = False
    downloadable: bool = False

    @property
    def entity(self) -> str:
        return self.name[:1].upper() + self.name[1:]

    @property
    def id_parameter(self) -> str:
        return f"{self.name}Id"

    def supports(self, operation: str) -> bool:
        return operation in self.operations

    def transform_for(self, key: str) -> Optional[FieldTransform]:
        transform = self.field_transforms.get(key)
        if transform is None and self.transform_ref_suffix and key.endswith("Ref"):
            return _ref_details
        return transform


_READ = frozenset({"get", "getAll"})
_CRUD = _READ | {"create", "update"}
_SALES_DOCUMENT = _CRUD | {"delete", "send", "void"}

_CONTACT_FIELDS = MappingProxyType(
    {
        "BillAddr": _address,
        "PrimaryEmailAddr": _wrap("Address"),
        "PrimaryPhone": _wrap("FreeFormNumber"),
    }
)

_SALES_FIELDS = MappingProxyType(
    {
        "BillAddr": _address,
        "ShipAddr": _address,
        "BillEmail": _wrap("Address"),
        "CustomerMemo": _wrap("value"),
        "TotalTax": _total_tax,
        "CustomFields": _custom_fields,
    }
)

_SALES_ITEM_LINES = MappingProxyType(
    {
        "SalesItemLineDetail": LineDetailRule("ItemRef", "itemId", "an item ID"),
    }
)

_CUSTOMER_REF = RequiredField("CustomerRef", "CustomerRef", reference=True)

RESOURCES: Mapping[str, ResourceSchema] = MappingProxyType(
    {
        "bill": ResourceSchema(
            name="bill",
            operations=_CRUD,
            create_fields=(RequiredField("VendorRef", "VendorRef", reference=True),),
            has_lines=True,
            line_rules=MappingProxyType(
                {
                    "AccountBasedExpenseLineDetail": LineDetailRule("AccountRef", "accountId", "an account ID"),
                    "ItemBasedExpenseLineDetail": LineDetailRule("ItemRef", "itemId", "an item ID"),
                }
            ),
            update_ref="VendorRef",
            transform_ref_suffix=True,
        ),
        "customer": ResourceSchema(
            name="customer",
            operations=_CRUD,
            create_fields=(RequiredField("displayName", "DisplayName"),),
            field_transforms=_CONTACT_FIELDS,
        ),
        "employee": ResourceSchema(
            name="employee",
            operations=_CRUD,
            create_fields=(
                RequiredField("FamilyName", "FamilyName"),
                RequiredField("GivenName", "GivenName"),
            ),
            field_transforms=_CONTACT_FIELDS,
        ),
        "estimate": ResourceSchema(
            name="estimate",
            operations=_CRUD,
            create_fields=(_CUSTOMER_REF,),
            has_lines=True,
            line_rules=_SALES_ITEM_LINES,
            update_ref="CustomerRef",
            field_transforms=_SALES_FIELDS,
            transform_ref_suffix=True,
            downloadable=True,
        ),
        "invoice": ResourceSchema(
            name="invoice",
            operations=_SALES_DOCUMENT,
            create_fields=(_CUSTOMER_REF,),
            has_lines=True,
            line_rules=_SALES_ITEM_LINES,
            update_ref="CustomerRef",
            field_transforms=_SALES_FIELDS,
            transform_ref_suffix=True,
            downloadable=True,
        ),
        "item": ResourceSchema(
            name="item",
            operations=_READ,
        ),
        "payment": ResourceSchema(
            name="payment",
            operations=_SALES_DOCUMENT,
            create_fields=(_CUSTOMER_REF, RequiredField("TotalAmt", "TotalAmt")),
            update_ref="CustomerRef",
            field_transforms=_SALES_FIELDS,
            transform_ref_suffix=True,
            downloadable=True,
        ),
        "vendor": ResourceSchema(
            name="vendor",
            operations=_CRUD,
            create_fields=(RequiredField("displayName", "DisplayName"),),
            field_transforms=_CONTACT_FIELDS,
        ),
    }
)

# Resources whose entities can populate a name/value picker.
OPTION_RESOURCES = frozenset({"customer", "vendor"})


def get_resource(name: str) -> Optional[ResourceSchema]:
    return RESOURCES.get(name)
