"""Tests for the scanner CLI entry point."""

import asyncio
import logging
from decimal import Decimal
from pathlib import Path

import pytest
import yaml

import logging_config
import run_scanner
from dex.config import DEFAULT_CONFIG_PATH
from dex.store import ResultStore
from dex.types import ScanRecord
from pair_arbitrage.utils import get_current_timestamp_ms

CONFIG = str(Path(__file__).resolve().parent.parent / DEFAULT_CONFIG_PATH)


@pytest.fixture(autouse=True)
def restore_root_logging():
    """main() installs its own root handler; put pytest's back afterwards."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def db_env(tmp_path, monkeypatch):
    db_path = str(tmp_path / "cli.db")
    monkeypatch.setenv("DB_PATH", db_path)
    monkeypatch.delenv("RPC_URL", raising=False)
    return db_path


async def seed_profitable_scan(db_path):
    async with ResultStore(db_path) as store:
        await store.insert_scan(
            ScanRecord(
                timestamp=get_current_timestamp_ms(),
                dex_a="Uniswap",
                dex_b="Quickswap",
                pair="WETH/USDC",
                amount_in=Decimal("1"),
                direction="BuyUniswap_SellQuickswap",
                buy_price=Decimal("2000"),
                sell_price=Decimal("2012"),
                estimated_profit=Decimal("6.5"),
            )
        )


class TestParseArgs:
    def test_run_flags(self):
        args = run_scanner.parse_args(["run", "--once", "--no-api"])
        assert args.command == "run"
        assert args.once
        assert args.no_api
        assert args.config == DEFAULT_CONFIG_PATH

    def test_analyze_defaults(self):
        args = run_scanner.parse_args(["analyze"])
        assert args.limit == 1000
        assert args.csv is None

    def test_command_required(self):
        with pytest.raises(SystemExit):
            run_scanner.parse_args([])

    def test_debug_and_quiet_are_exclusive(self):
        assert run_scanner.parse_args(["--quiet", "check"]).quiet
        with pytest.raises(SystemExit):
            run_scanner.parse_args(["--debug", "--quiet", "check"])


class TestMain:
    def test_missing_config_exits_1(self, db_env, capsys):
        assert run_scanner.main(["--config", "/nonexistent.yaml", "analyze"]) == 1
        assert "Config error" in capsys.readouterr().err

    def test_invalid_rpc_url_exits_1(self, db_env, monkeypatch, capsys):
        monkeypatch.setenv("RPC_URL", "ws://not-http")
        assert run_scanner.main(["--config", CONFIG, "run", "--once", "--no-api"]) == 1
        assert "Invalid RPC URL" in capsys.readouterr().err

    def test_clean_db(self, db_env, capsys):
        assert run_scanner.main(["--config", CONFIG, "clean-db", "--days", "7"]) == 0
        assert "Removed 0 records older than 7 days" in capsys.readouterr().out

    def test_analyze_with_csv(self, db_env, tmp_path, capsys):
        asyncio.run(seed_profitable_scan(db_env))
        csv_dir = tmp_path / "reports"

        assert run_scanner.main(["--config", CONFIG, "analyze", "--csv", str(csv_dir)]) == 0

        out = capsys.readouterr().out
        assert "SUMMARY STATISTICS" in out
        assert "Uniswap -> Quickswap" in out
        assert len(list(csv_dir.glob("profitable_opportunities_*.csv"))) == 1

    def test_malformed_config_section_exits_1(self, db_env, tmp_path, capsys):
        with open(CONFIG) as f:
            raw = yaml.safe_load(f)
        raw["retry"] = 3
        bad_config = tmp_path / "bad.yaml"
        bad_config.write_text(yaml.safe_dump(raw))

        assert run_scanner.main(["--config", str(bad_config), "clean-db"]) == 1
        assert "retry must be a dict" in capsys.readouterr().err

    def test_quiet_uses_minimal_logging(self, db_env, monkeypatch):
        calls = []
        monkeypatch.setattr(logging_config, "setup_minimal", lambda: calls.append("minimal"))

        assert run_scanner.main(["--quiet", "--config", CONFIG, "clean-db"]) == 0
        assert calls == ["minimal"]
