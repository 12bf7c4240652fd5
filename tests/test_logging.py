from __future__ import annotations

import logging

from qbo_actions.core import logging as logging_utils


def test_sanitize_payload_redacts_credentials_but_keeps_sync_token() -> None:
    payload = {
        "Id": "55",
        "SyncToken": "4",
        "access_token": "secret-value",
        "nested": [{"client_secret": "abc", "DisplayName": "Acme"}],
    }

    assert logging_utils.sanitize_payload(payload) == {
        "Id": "55",
        "SyncToken": "4",
        "access_token": "***redacted***",
        "nested": [{"client_secret": "***redacted***", "DisplayName": "Acme"}],
    }


def test_context_filter_fills_missing_fields_only() -> None:
    logging_utils.set_request_context(request_id="req-1", realm_id="123")
    logging_utils.set_action_context(resource="invoice", operation="void", item_index=2)
    try:
        record = logging.LogRecord("qbo_actions.test", logging.INFO, __file__, 1, "event", None, None)
        record.item_index = 7

        assert logging_utils.ActionContextFilter().filter(record)

        assert record.request_id == "req-1"
        assert record.realm_id == "123"
        assert record.resource == "invoice"
        assert record.operation == "void"
        assert record.item_index == 7
    finally:
        logging_utils.clear_request_context()

    assert logging_utils.resource_ctx.get() is None
    assert logging_utils.request_id_ctx.get() is None
