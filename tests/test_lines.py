from __future__ import annotations

import pytest

from qbo_actions.services.errors import QuickBooksValidationError
from qbo_actions.services.lines import process_lines
from qbo_actions.services.resources import RESOURCES


BILL = RESOURCES["bill"]
INVOICE = RESOURCES["invoice"]
ESTIMATE = RESOURCES["estimate"]


def test_empty_lines_are_rejected_with_resource_name() -> None:
    with pytest.raises(QuickBooksValidationError, match="at least one line for the bill"):
        process_lines(BILL, [])


@pytest.mark.parametrize("missing", ["DetailType", "Amount", "Description"])
def test_lines_require_base_fields(missing: str) -> None:
    line = {
        "DetailType": "SalesItemLineDetail",
        "Amount": 10,
        "Description": "consulting",
        "itemId": "1",
    }
    del line[missing]
    with pytest.raises(QuickBooksValidationError, match="detail type, amount and description"):
        process_lines(INVOICE, [line])


def test_account_based_bill_line_requires_account_id() -> None:
    line = {"DetailType": "AccountBasedExpenseLineDetail", "Amount": 100, "Description": "office"}
    with pytest.raises(QuickBooksValidationError, match="account ID"):
        process_lines(BILL, [line])


def test_account_based_bill_line_nests_account_ref() -> None:
    line = {
        "DetailType": "AccountBasedExpenseLineDetail",
        "Amount": 100,
        "Description": "office",
        "accountId": "42",
    }
    assert process_lines(BILL, [line]) == [
        {
            "DetailType": "AccountBasedExpenseLineDetail",
            "Amount": 100,
            "Description": "office",
            "AccountBasedExpenseLineDetail": {"AccountRef": {"value": "42"}},
        }
    ]


def test_item_based_bill_line_requires_item_id() -> None:
    line = {"DetailType": "ItemBasedExpenseLineDetail", "Amount": 5, "Description": "paper"}
    with pytest.raises(QuickBooksValidationError, match="item ID"):
        process_lines(BILL, [line])


@pytest.mark.parametrize("schema", [INVOICE, ESTIMATE], ids=["invoice", "estimate"])
def test_sales_item_line_nests_item_ref(schema) -> None:
    lines = [
        {"DetailType": "SalesItemLineDetail", "Amount": 50, "Description": "hours", "itemId": "7"},
    ]
    processed = process_lines(schema, lines)
    assert processed[0]["SalesItemLineDetail"] == {"ItemRef": {"value": "7"}}
    assert "itemId" not in processed[0]


def test_sales_item_line_without_item_id_is_rejected() -> None:
    lines = [{"DetailType": "SalesItemLineDetail", "Amount": 50, "Description": "hours"}]
    with pytest.raises(QuickBooksValidationError, match="item ID"):
        process_lines(ESTIMATE, lines)


def test_detail_types_without_a_rule_keep_base_fields_only() -> None:
    lines = [{"DetailType": "DescriptionOnly", "Amount": 0, "Description": "note", "itemId": "3"}]
    assert process_lines(INVOICE, lines) == [
        {"DetailType": "DescriptionOnly", "Amount": 0, "Description": "note"}
    ]


def test_a_single_invalid_line_fails_the_whole_sequence() -> None:
    lines = [
        {"DetailType": "AccountBasedExpenseLineDetail", "Amount": 1, "Description": "a", "accountId": "1"},
        {"DetailType": "ItemBasedExpenseLineDetail", "Amount": 2, "Description": "b"},
    ]
    with pytest.raises(QuickBooksValidationError):
        process_lines(BILL, lines)


def test_line_order_is_preserved() -> None:
    lines = [
        {"DetailType": "SalesItemLineDetail", "Amount": index, "Description": f"line {index}", "itemId": str(index)}
        for index in range(5)
    ]
    processed = process_lines(INVOICE, lines)
    assert [line["Description"] for line in processed] == [f"line {index}" for index in range(5)]


@pytest.mark.parametrize("lines", ["not a list", {"DetailType": "SalesItemLineDetail"}], ids=["string", "mapping"])
def test_lines_must_be_a_list(lines) -> None:
    with pytest.raises(QuickBooksValidationError, match="must be a list"):
        process_lines(INVOICE, lines)


def test_every_line_must_be_an_object() -> None:
    lines = [
        {"DetailType": "SalesItemLineDetail", "Amount": 1, "Description": "a", "itemId": "1"},
        "second line",
    ]
    with pytest.raises(QuickBooksValidationError, match="must be an object"):
        process_lines(INVOICE, lines)
