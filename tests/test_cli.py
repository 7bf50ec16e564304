"""Tests for the command-line entry point."""

import json

import pytest

import main


@pytest.fixture(autouse=True)
def no_logging_setup(monkeypatch):
    monkeypatch.setattr(main, "configure_logging", lambda config=None: None)


def _config(tmp_path):
    path = tmp_path / "client.json"
    path.write_text(json.dumps({
        "client_id": "cid",
        "client_secret": "secret",
        "token_file": str(tmp_path / "token.json"),
    }))
    return path


class TestParser:

    def test_orders_limit(self):
        args = main.build_parser().parse_args(["orders", "HASH", "--limit", "5"])
        assert args.command == "orders"
        assert args.account_id == "HASH"
        assert args.limit == 5

    def test_place_limit(self):
        args = main.build_parser().parse_args(
            ["place", "HASH", "buy", "aapl", "10", "--limit-price", "150.5"]
        )
        assert args.action == "buy"
        assert args.quantity == 10.0
        assert args.limit_price == 150.5

    def test_command_required(self):
        with pytest.raises(SystemExit):
            main.build_parser().parse_args([])


class TestExitCodes:

    def test_missing_config_exits_1(self, tmp_path):
        assert main.main(["--config", str(tmp_path / "missing.json"), "accounts"]) == 1

    def test_unconfigured_environment_exits_1(self):
        assert main.main(["accounts"]) == 1

    def test_not_authenticated_exits_2(self, tmp_path):
        assert main.main(["--config", str(_config(tmp_path)), "accounts"]) == 2

    def test_invalid_order_exits_2(self, tmp_path):
        code = main.main(["--config", str(_config(tmp_path)), "place", "HASH", "buy", "AAPL", "0"])
        assert code == 2
