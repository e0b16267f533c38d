from __future__ import annotations

import io
from pathlib import Path
from unittest.mock import patch

import pytest
from openpyxl import load_workbook

from agents.address_agent import config, main, pipeline
from agents.address_agent.config import ConfigurationError
from agents.address_agent.models import VerifiedAddress
from agents.address_agent.normalizer import AddressValidationError
from wrappers import address_wrapper

CSV = (
    "Ship To - Name,Ship To - Address 1,Ship To - City,Ship To - Country,Customer Email\n"
    "Sherlock,221B Baker St,London,UK,sh@example.com\n"
    "Nobody,,,,\n"
).encode("utf-8")


def _fake_batch(echo_verifier):
    """Route the default verifier of the pipeline to a local stand-in."""
    original = pipeline.verify_address_batch

    async def batch(addresses, verify_func=None, concurrency=None, on_progress=None):
        return await original(addresses, verify_func=echo_verifier, concurrency=concurrency or 4,
                              on_progress=on_progress)

    return batch


def test_run_address_agent_returns_rows_and_workbook(echo_verifier, monkeypatch):
    monkeypatch.setattr(pipeline, "verify_address_batch", _fake_batch(echo_verifier))
    progress = []

    merged, blob = address_wrapper.run_address_agent(CSV, "orders.csv", on_progress=lambda d, t: progress.append(d))

    assert [m["Ship To - Name"] for m in merged] == ["Sherlock", "Nobody"]
    assert merged[0]["Verified Address"] == "221B BAKER ST, LONDON, UK"
    assert merged[1]["Verified Address"] == ""
    assert progress[-1] == 2

    ws = load_workbook(io.BytesIO(blob)).active
    assert ws.max_row == 3


def test_run_single_verification_propagates_validation_error():
    with pytest.raises(AddressValidationError):
        address_wrapper.run_single_verification("   ")


def test_run_single_verification_returns_record():
    expected = VerifiedAddress(address1="1 Main St", fullAddress="1 Main St, Boston, MA 02108")
    with patch.object(address_wrapper, "verify_address", return_value=expected) as verify:
        assert address_wrapper.run_single_verification("1 main st boston") == expected
    verify.assert_called_once_with("1 main st boston")


def test_merged_preview_limits_rows():
    rows = [{"Ship To - Name": str(i)} for i in range(50)]
    assert len(address_wrapper.merged_preview(rows, limit=10)) == 10


def test_verify_concurrency_setting(monkeypatch):
    monkeypatch.delenv("ADDRESS_VERIFY_CONCURRENCY", raising=False)
    assert config.verify_concurrency() == config.DEFAULT_CONCURRENCY
    monkeypatch.setenv("ADDRESS_VERIFY_CONCURRENCY", "3")
    assert config.verify_concurrency() == 3
    monkeypatch.setenv("ADDRESS_VERIFY_CONCURRENCY", "0")
    with pytest.raises(ConfigurationError):
        config.verify_concurrency()
    monkeypatch.setenv("ADDRESS_VERIFY_CONCURRENCY", "many")
    with pytest.raises(ConfigurationError):
        config.verify_concurrency()


def test_require_reports_missing_name(monkeypatch):
    monkeypatch.delenv("SENDGRID_API_KEY", raising=False)
    with pytest.raises(ConfigurationError, match="SENDGRID_API_KEY"):
        config.require("SENDGRID_API_KEY")


def test_cli_writes_workbook(tmp_path: Path, echo_verifier, monkeypatch, capsys):
    monkeypatch.setattr(pipeline, "verify_address_batch", _fake_batch(echo_verifier))
    src = tmp_path / "orders.csv"
    src.write_bytes(CSV)

    main.run_cli(["--input", str(src), "--output-dir", str(tmp_path / "out")])

    out_file = tmp_path / "out" / "verified_addresses.xlsx"
    assert out_file.exists()
    assert "Verified 2 rows" in capsys.readouterr().out


def test_cli_relay_failure_does_not_remove_output(tmp_path: Path, echo_verifier, monkeypatch, capsys):
    monkeypatch.setattr(pipeline, "verify_address_batch", _fake_batch(echo_verifier))
    src = tmp_path / "orders.csv"
    src.write_bytes(CSV)

    with patch("agents.delivery.relay.send_to_relay", side_effect=RuntimeError("relay down")):
        main.run_cli(["--input", str(src), "--output-dir", str(tmp_path), "--relay"])

    assert (tmp_path / "verified_addresses.xlsx").exists()
    assert "Failed to send to relay channel" in capsys.readouterr().err


def test_cli_missing_input(tmp_path: Path):
    with pytest.raises(SystemExit) as exc:
        main.run_cli(["--input", str(tmp_path / "missing.csv")])
    assert exc.value.code == 1
