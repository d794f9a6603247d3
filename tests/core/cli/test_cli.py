"""Tests for the CLI entry point."""

import json
import os
import re
import sys

import pytest
from click.testing import CliRunner
from loguru import logger

from clubinvest.core.cli import main


@pytest.fixture(autouse=True)
def _restore_logger():
    """The CLI points loguru at the runner's stderr; put it back afterwards."""
    yield
    logger.remove()
    logger.add(sys.stderr)


@pytest.fixture
def invoke(tmp_config_file, tmp_dir):
    runner = CliRunner()

    def _invoke(*args):
        return runner.invoke(main, ["--config", tmp_config_file, "--data-dir", tmp_dir, *args])

    return _invoke


def _create_club(invoke):
    result = invoke("create", "Les Investisseurs", "--admin", "u-admin", "--admin-name", "Alice")
    assert result.exit_code == 0, result.output
    club_id = re.search(r"Club:\s+.+ \((.+)\)", result.output).group(1)
    invite = re.search(r"Invite code:\s+(\w+)", result.output).group(1)
    admin_id = re.search(r"Admin:\s+(\S+)", result.output).group(1)
    return club_id, invite, admin_id


class TestCliGroup:
    def test_help(self):
        result = CliRunner().invoke(main, ["--help"])
        assert result.exit_code == 0
        for command in ("create", "join", "deposit", "withdraw", "buy", "sell", "summary", "freeze", "history"):
            assert command in result.output

    def test_version(self):
        result = CliRunner().invoke(main, ["--version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.output


class TestWorkflow:
    def test_create_and_join(self, invoke):
        club_id, invite, _ = _create_club(invoke)
        result = invoke("join", invite.lower(), "--user", "u-bob", "--name", "Bob")
        assert result.exit_code == 0, result.output
        assert club_id in result.output

        roster = invoke("members", club_id)
        assert "Alice" in roster.output
        assert "Bob" in roster.output

    def test_deposit_trade_and_value(self, invoke):
        club_id, _, admin_id = _create_club(invoke)

        result = invoke("deposit", club_id, admin_id, "1000")
        assert result.exit_code == 0, result.output
        assert "10.0000 shares" in result.output
        assert "USD" in result.output

        result = invoke("buy", club_id, admin_id, "AAPL", "5", "100")
        assert result.exit_code == 0, result.output
        assert "BUY 5 AAPL" in result.output

        result = invoke("summary", club_id, "--price", "AAPL=120")
        assert result.exit_code == 0, result.output
        assert "110.0000" in result.output

        result = invoke("sell", club_id, admin_id, "AAPL", "5", "150")
        assert result.exit_code == 0, result.output
        assert "realized gain 250.00" in result.output
        assert "tax accrued 78.50" in result.output

    def test_freeze_and_history(self, invoke):
        club_id, _, admin_id = _create_club(invoke)
        invoke("deposit", club_id, admin_id, "500")
        result = invoke("freeze", club_id)
        assert result.exit_code == 0, result.output
        assert "NAV 100.0000" in result.output

        result = invoke("history", club_id)
        assert result.exit_code == 0, result.output
        assert "(live)" in result.output
        assert len(result.output.strip().splitlines()) == 2

    def test_ledger_error_exits_1(self, invoke):
        club_id, _, admin_id = _create_club(invoke)
        result = invoke("sell", club_id, admin_id, "AAPL", "1", "100")
        assert result.exit_code == 1
        assert "Insufficient holdings" in result.output

    def test_unknown_club(self, invoke):
        result = invoke("summary", "missing")
        assert result.exit_code == 1
        assert "Club not found" in result.output

    def test_bad_price_option(self, invoke):
        club_id, _, _ = _create_club(invoke)
        result = invoke("summary", club_id, "--price", "AAPL")
        assert result.exit_code == 2
        assert "TICKER=PRICE" in result.output

    def test_blank_ticker_exits_1(self, invoke):
        club_id, _, admin_id = _create_club(invoke)
        invoke("deposit", club_id, admin_id, "1000")
        result = invoke("buy", club_id, admin_id, "   ", "1", "10")
        assert result.exit_code == 1
        assert "Ticker cannot be empty" in result.output
        assert result.exception is None or isinstance(result.exception, SystemExit)

    def test_blank_club_name_exits_1(self, invoke):
        result = invoke("create", "   ", "--admin", "u-admin")
        assert result.exit_code == 1
        assert "Club name cannot be empty" in result.output

    def test_invalid_config_exits_1(self, invoke, monkeypatch):
        monkeypatch.setenv("CLUBINVEST_PRICES__TIMEOUT", "soon")
        result = invoke("summary", "any")
        assert result.exit_code == 1
        assert "Invalid configuration" in result.output

    def test_creates_data_directories(self, invoke, tmp_dir):
        _create_club(invoke)
        assert os.path.isdir(os.path.join(tmp_dir, "data", "ledger"))
        assert os.path.isdir(os.path.join(tmp_dir, "logs"))
        assert os.path.isdir(os.path.join(tmp_dir, "state"))


class TestLivePrices:
    def test_live_without_api_key_exits_1(self, invoke, monkeypatch):
        monkeypatch.setenv("CLUBINVEST_PRICES__PROVIDER", "twelvedata")
        monkeypatch.setenv("CLUBINVEST_PRICES__API_KEY", "")
        club_id, _, _ = _create_club(invoke)
        result = invoke("summary", club_id, "--live")
        assert result.exit_code == 1
        assert "api_key is required" in result.output

    def test_deposit_and_withdraw_accept_live(self, invoke, monkeypatch):
        monkeypatch.setenv("CLUBINVEST_PRICES__PROVIDER", "static")
        club_id, _, admin_id = _create_club(invoke)
        result = invoke("deposit", club_id, admin_id, "1000", "--live")
        assert result.exit_code == 0, result.output
        assert "10.0000 shares" in result.output

        result = invoke("withdraw", club_id, admin_id, "100", "--live")
        assert result.exit_code == 0, result.output
        assert "Withdrew 100.00" in result.output

    def test_unquoted_holdings_recorded_in_breaker_state(self, invoke, monkeypatch, tmp_dir):
        monkeypatch.setenv("CLUBINVEST_PRICES__PROVIDER", "static")
        club_id, _, admin_id = _create_club(invoke)
        invoke("deposit", club_id, admin_id, "1000")
        invoke("buy", club_id, admin_id, "AAPL", "5", "100")

        result = invoke("summary", club_id, "--live")
        assert result.exit_code == 0, result.output
        # the static provider has no quotes, so AAPL stays at cost
        assert "100.0000" in result.output

        with open(os.path.join(tmp_dir, "state", "price_breaker.json")) as f:
            state = json.load(f)
        assert state["static"]["failures"] == 1
