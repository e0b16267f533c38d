# Shared pytest fixtures
from __future__ import annotations

import json
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from agents.address_agent.models import VerifiedAddress


def make_completion(content):
    """Shape of an OpenAI chat completion as far as the normalizer reads it."""
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


@pytest.fixture()
def verified_payload() -> dict:
    return {
        "address1": "221B Baker Street",
        "address2": "",
        "address3": "",
        "city": "London",
        "state": "Greater London",
        "zone": "",
        "postalCode": "NW1 6XE",
        "country": "United Kingdom",
        "fullAddress": "221B Baker Street, London, Greater London NW1 6XE, United Kingdom",
    }


@pytest.fixture()
def fake_client(verified_payload):
    client = MagicMock()
    client.chat.completions.create.return_value = make_completion(json.dumps(verified_payload))
    return client


@pytest.fixture()
def delivery_env(monkeypatch):
    values = {
        "SENDGRID_API_KEY": "sg-key",
        "FROM_EMAIL": "noreply@example.com",
        "SENDGRID_TEMPLATE_ID": "d-template",
        "APP_URL": "https://verify.example.com",
        "EMAILJS_SERVICE_ID": "svc",
        "EMAILJS_TEMPLATE_ID": "tpl",
        "EMAILJS_PUBLIC_KEY": "pub",
        "EMAILJS_PRIVATE_KEY": "priv",
        "RELAY_TO_EMAIL": "team@example.com",
    }
    for k, v in values.items():
        monkeypatch.setenv(k, v)
    return values


@pytest.fixture()
def echo_verifier():
    """Normalizer stand-in that upper-cases the address and records every call."""
    calls = []

    def verify(address: str) -> VerifiedAddress:
        calls.append(address)
        return VerifiedAddress(address1=address.upper(), city="CITY", fullAddress=address.upper())

    verify.calls = calls
    return verify
