from __future__ import annotations

import base64
from unittest.mock import MagicMock, patch

import pytest

from agents.address_agent.config import ConfigurationError
from agents.delivery.relay import RelayDeliveryError, send_to_relay
from wrappers.delivery_wrapper import collect_email_entries, run_delivery


def test_send_to_relay_payload(delivery_env):
    with patch("agents.delivery.base.requests.post", return_value=MagicMock(status_code=200, text="OK")) as post:
        send_to_relay(b"xlsx-bytes", "verified_addresses.xlsx")

    payload = post.call_args.kwargs["json"]
    assert payload["service_id"] == "svc"
    assert payload["template_id"] == "tpl"
    assert payload["user_id"] == "pub"
    assert payload["accessToken"] == "priv"
    params = payload["template_params"]
    assert params["to_email"] == "team@example.com"
    assert params["subject"] == "New Verified Addresses"
    assert params["filename"] == "verified_addresses.xlsx"
    assert base64.b64decode(params["attachment"]) == b"xlsx-bytes"


def test_send_to_relay_without_private_key(delivery_env, monkeypatch):
    monkeypatch.delenv("EMAILJS_PRIVATE_KEY")
    with patch("agents.delivery.base.requests.post", return_value=MagicMock(status_code=200, text="OK")) as post:
        send_to_relay(b"x", "f.xlsx")
    assert "accessToken" not in post.call_args.kwargs["json"]


def test_send_to_relay_error(delivery_env):
    with patch("agents.delivery.base.requests.post", return_value=MagicMock(status_code=400, text="bad")):
        with pytest.raises(RelayDeliveryError):
            send_to_relay(b"x", "f.xlsx")


def test_send_to_relay_missing_config(monkeypatch):
    monkeypatch.delenv("EMAILJS_SERVICE_ID", raising=False)
    with pytest.raises(ConfigurationError):
        send_to_relay(b"x", "f.xlsx")


def test_collect_email_entries():
    rows = [
        {"Customer Email": " a@b.com ", "Original Address": "X", "Verified Address": "Y"},
        {"Customer Email": "", "Original Address": "X", "Verified Address": "Y"},
        {"Customer Email": "c@d.com", "Original Address": "", "Verified Address": ""},
    ]
    assert collect_email_entries(rows) == [("a@b.com", "X", "Y")]


def test_run_delivery_reports_failures_and_continues():
    rows = [{"Customer Email": "a@b.com", "Original Address": "X", "Verified Address": "Y"}]
    with patch("wrappers.delivery_wrapper.send_to_relay", side_effect=RuntimeError("relay down")) as relay, \
            patch("wrappers.delivery_wrapper.send_batch_address_verification_emails", return_value=1) as batch:
        messages = run_delivery(b"blob", "f.xlsx", rows, send_relay=True, send_emails=True)

    relay.assert_called_once_with(b"blob", "f.xlsx")
    batch.assert_called_once_with([("a@b.com", "X", "Y")])
    assert messages == [
        "Failed to send to relay channel: relay down",
        "Confirmation emails sent to 1 customers",
    ]


def test_run_delivery_email_failure_is_a_message():
    rows = [{"Customer Email": "a@b.com", "Original Address": "X", "Verified Address": "Y"}]
    with patch("wrappers.delivery_wrapper.send_to_relay"), \
            patch("wrappers.delivery_wrapper.send_batch_address_verification_emails",
                  side_effect=ConfigurationError("Missing required configuration value: SENDGRID_API_KEY")):
        messages = run_delivery(b"blob", "f.xlsx", rows, send_relay=True, send_emails=True)

    assert messages[0] == "File sent to relay channel successfully"
    assert messages[1].startswith("Failed to send confirmation emails:")


def test_run_delivery_nothing_enabled():
    with patch("wrappers.delivery_wrapper.send_to_relay") as relay:
        assert run_delivery(b"blob", "f.xlsx", [], send_relay=False, send_emails=False) == []
    relay.assert_not_called()


def test_run_delivery_skips_emails_without_recipients():
    messages = run_delivery(b"blob", "f.xlsx", [{"Customer Email": ""}], send_relay=False, send_emails=True)
    assert messages == ["No rows with a customer email, skipped confirmation emails"]
