"""Tests for the Typer CLI commands."""

import asyncio
from datetime import date
from pathlib import Path

import pytest
from typer.testing import CliRunner

import grantflow.cli.main as cli_main
from grantflow import __version__
from grantflow.config.settings import Settings
from grantflow.data_management.grant_store import InMemoryGrantStore
from grantflow.data_management.schemas import Grant, PipelineEntry

runner = CliRunner()


@pytest.fixture
def store_path(tmp_path: Path) -> str:
    path = str(tmp_path / "grants.json")
    store = InMemoryGrantStore(persistence_path=path)

    async def _seed() -> None:
        await store.add_grant(Grant(id="g-1", name="Digital Transition Voucher", application_window_closes=date(2026, 12, 31)))
        await store.add_pipeline_entry(PipelineEntry(grant_id="g-2", stage="Researching"))

    asyncio.run(_seed())
    return path


@pytest.fixture
def cli_settings(monkeypatch: pytest.MonkeyPatch, store_path: str) -> Settings:
    cfg = Settings(_env_file=None, gemini_api_key="", store_path=store_path)
    monkeypatch.setattr(cli_main, "settings", cfg)
    return cfg


class TestCli:
    def test_version(self) -> None:
        result = runner.invoke(cli_main.app, ["version"])
        assert result.exit_code == 0
        assert __version__ in result.stdout

    def test_candidates(self, cli_settings: Settings) -> None:
        result = runner.invoke(cli_main.app, ["candidates"])
        assert result.exit_code == 0
        assert "g-1" in result.stdout
        assert "g-2" in result.stdout

    def test_verify_grant_without_model_key(self, cli_settings: Settings) -> None:
        result = runner.invoke(cli_main.app, ["verify-grant", "g-1"])
        assert result.exit_code == 1
        assert "GEMINI_API_KEY" in result.stdout

    def test_verify_all_without_model_key(self, cli_settings: Settings) -> None:
        result = runner.invoke(cli_main.app, ["verify-all", "--budget", "5"])
        assert result.exit_code == 1

    def test_status(self, cli_settings: Settings) -> None:
        result = runner.invoke(cli_main.app, ["status"])
        assert result.exit_code == 0
        assert "In-memory" in result.stdout
