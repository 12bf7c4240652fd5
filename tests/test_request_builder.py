from __future__ import annotations

import pytest

from qbo_actions.services import request_builder as builder
from qbo_actions.services.errors import QuickBooksValidationError
from qbo_actions.services.parameters import ItemParameters
from qbo_actions.services.resources import RESOURCES
from qbo_actions.services.sync_tokens import SyncState


def test_bill_create_body_matches_expected_shape() -> None:
    params = ItemParameters(
        [
            {
                "VendorRef": "7",
                "Line": [
                    {
                        "DetailType": "AccountBasedExpenseLineDetail",
                        "Amount": 100,
                        "Description": "office",
                        "accountId": "42",
                    }
                ],
            }
        ]
    )

    body = builder.build_create_body(RESOURCES["bill"], params, 0)

    assert body == {
        "VendorRef": {"value": "7"},
        "Line": [
            {
                "DetailType": "AccountBasedExpenseLineDetail",
                "Amount": 100,
                "Description": "office",
                "AccountBasedExpenseLineDetail": {"AccountRef": {"value": "42"}},
            }
        ],
    }


def test_bill_reference_fields_are_translated() -> None:
    params = ItemParameters(
        [
            {
                "VendorRef": "7",
                "Line": [
                    {"DetailType": "ItemBasedExpenseLineDetail", "Amount": 1, "Description": "x", "itemId": "9"}
                ],
                "additionalFields": {
                    "APAccountRef": {"details": {"name": "Accounts Payable", "value": "33"}},
                    "DueDate": "2024-02-01",
                },
            }
        ]
    )

    body = builder.build_create_body(RESOURCES["bill"], params, 0)

    assert body["APAccountRef"] == {"name": "Accounts Payable", "value": "33"}
    assert body["DueDate"] == "2024-02-01"


def test_customer_create_merges_contact_fields() -> None:
    params = ItemParameters(
        [
            {
                "displayName": "Acme Corp",
                "additionalFields": {
                    "PrimaryEmailAddr": "billing@acme.test",
                    "PrimaryPhone": "555-0100",
                    "BillAddr": {"details": {"Line1": "1 Main St", "City": "Springfield", "PostalCode": ""}},
                    "CompanyName": "Acme",
                },
            }
        ]
    )

    body = builder.build_create_body(RESOURCES["customer"], params, 0)

    assert body == {
        "DisplayName": "Acme Corp",
        "PrimaryEmailAddr": {"Address": "billing@acme.test"},
        "PrimaryPhone": {"FreeFormNumber": "555-0100"},
        "BillAddr": {"Line1": "1 Main St", "City": "Springfield"},
        "CompanyName": "Acme",
    }


def test_employee_create_requires_both_names() -> None:
    params = ItemParameters([{"GivenName": "Ada"}])
    with pytest.raises(QuickBooksValidationError, match="FamilyName"):
        builder.build_create_body(RESOURCES["employee"], params, 0)


def test_payment_create_body_has_only_mandated_fields() -> None:
    params = ItemParameters([{"CustomerRef": "58", "TotalAmt": 25.5}])
    body = builder.build_create_body(RESOURCES["payment"], params, 0)
    assert body == {"CustomerRef": {"value": "58"}, "TotalAmt": 25.5}


def test_invoice_additional_fields_are_translated() -> None:
    fields = {
        "BillEmail": "ap@client.test",
        "CustomerMemo": "Thanks!",
        "TotalTax": 4.2,
        "ShipAddr": {"details": {"Line1": "2 Side St", "City": ""}},
        "SalesTermRef": {"details": {"name": "Net 30", "value": "3"}},
        "CustomFields": {"Field": [{"DefinitionId": "1", "StringValue": "PO-9"}]},
        "DocNumber": "1001",
    }

    body = builder.populate_fields(RESOURCES["invoice"], {}, fields)

    assert body == {
        "BillEmail": {"Address": "ap@client.test"},
        "CustomerMemo": {"value": "Thanks!"},
        "TxnTaxDetail": {"TotalTax": 4.2},
        "ShipAddr": {"Line1": "2 Side St"},
        "SalesTermRef": {"name": "Net 30", "value": "3"},
        "CustomField": [{"DefinitionId": "1", "StringValue": "PO-9", "Type": "StringType"}],
        "DocNumber": "1001",
    }


def test_contact_resources_pass_ref_suffixed_keys_through() -> None:
    body = builder.populate_fields(RESOURCES["vendor"], {}, {"TermRef": {"value": "2"}})
    assert body == {"TermRef": {"value": "2"}}


def test_empty_update_fields_are_rejected() -> None:
    params = ItemParameters([{"invoiceId": "55", "updateFields": {}}])
    with pytest.raises(QuickBooksValidationError, match="invoice"):
        builder.get_update_fields(RESOURCES["invoice"], params, 0)


def test_update_body_carries_identity_policy_and_reference() -> None:
    state = SyncState(token="4", ref={"name": "Amy's Bird Sanctuary", "value": "1"})

    body = builder.build_update_body(RESOURCES["invoice"], "55", state, {"DocNumber": "A-1"})

    assert body == {
        "Id": "55",
        "SyncToken": "4",
        "sparse": True,
        "CustomerRef": {"name": "Amy's Bird Sanctuary", "value": "1"},
        "DocNumber": "A-1",
    }


def test_update_body_without_reference() -> None:
    body = builder.build_update_body(RESOURCES["customer"], "8", SyncState(token="0"), {"Notes": "vip"})
    assert body == {"Id": "8", "SyncToken": "0", "sparse": True, "Notes": "vip"}


def test_listing_statement_appends_filter_clause() -> None:
    params = ItemParameters([{"filters": {"query": " WHERE Active = true "}}, {}])
    assert builder.build_listing_statement(RESOURCES["vendor"], params, 0) == "SELECT * FROM vendor WHERE Active = true"
    assert builder.build_listing_statement(RESOURCES["vendor"], params, 1) == "SELECT * FROM vendor"


def test_void_request_uses_query_parameters() -> None:
    request = builder.void_request(RESOURCES["payment"], "9", SyncState(token="3"))
    assert request.method == "POST"
    assert request.path == "/payment"
    assert request.params == {"Id": "9", "SyncToken": "3", "operation": "void"}
    assert request.json is None


def test_delete_request_sends_identity_body() -> None:
    request = builder.delete_request(RESOURCES["invoice"], "55", SyncState(token="2"))
    assert request.params == {"operation": "delete"}
    assert request.json == {"Id": "55", "SyncToken": "2"}


@pytest.mark.parametrize("fields", ["DocNumber=1", ["DocNumber"], 5], ids=["string", "list", "number"])
def test_update_fields_must_be_a_mapping(fields) -> None:
    params = ItemParameters([{"invoiceId": "55", "updateFields": fields}])
    with pytest.raises(QuickBooksValidationError, match="'updateFields' must be an object"):
        builder.get_update_fields(RESOURCES["invoice"], params, 0)


def test_additional_fields_must_be_a_mapping() -> None:
    params = ItemParameters([{"displayName": "Acme", "additionalFields": ["CompanyName"]}])
    with pytest.raises(QuickBooksValidationError, match="'additionalFields' must be an object"):
        builder.build_create_body(RESOURCES["customer"], params, 0)
