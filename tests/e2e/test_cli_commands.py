"""End-to-end tests for CLI commands."""

import json
import math
from unittest.mock import patch

import pytest
from conftest import FakeFetcher, make_batch
from typer.testing import CliRunner

from wiki_explorer import __version__
from wiki_explorer.cli.main import app
from wiki_explorer.core.exceptions import NetworkError

PAGES = {
    "Cat": (["Felidae", "Mammal", "Dog"], "Small domesticated carnivore"),
    "Felidae": (["Cat", "Lion"], "Family of cats"),
    "Dog": (["Wolf", "Cat"], None),
}


class TestCLICommands:
    """End-to-end tests for CLI commands."""

    @pytest.fixture
    def cli_runner(self):
        """Create CLI runner for testing."""
        return CliRunner()

    @pytest.fixture(autouse=True)
    def isolated(self, tmp_path, monkeypatch):
        """Run in an empty directory so no stray .env is picked up."""
        monkeypatch.chdir(tmp_path)
        monkeypatch.delenv("WIKI_EXPLORER_LINK_LIMIT", raising=False)

    @pytest.fixture
    def fake_fetch(self):
        fetcher = FakeFetcher(PAGES)
        with patch(
            "wiki_explorer.core.wiki_client.WikiClient.fetch",
            side_effect=fetcher.fetch,
        ) as mock_fetch:
            yield mock_fetch

    def test_version(self, cli_runner):
        result = cli_runner.invoke(app, ["--version"])

        assert result.exit_code == 0
        assert __version__ in result.output

    def test_fetch_table(self, cli_runner, fake_fetch):
        result = cli_runner.invoke(app, ["fetch", "Cat"])

        assert result.exit_code == 0
        assert "Felidae" in result.output
        assert "Small domesticated carnivore" in result.output
        fake_fetch.assert_called_once_with("Cat", 150)

    def test_fetch_json_with_limit(self, cli_runner, fake_fetch):
        result = cli_runner.invoke(app, ["fetch", "Cat", "--limit", "2", "--json"])

        assert result.exit_code == 0
        payload = json.loads(result.output)
        assert payload["center"]["id"] == "Cat"
        assert [c["id"] for c in payload["children"]] == ["Felidae", "Mammal"]
        assert payload["links"][0] == {"source": "Cat", "target": "Felidae", "weight": 1.0}

    def test_fetch_unlimited(self, cli_runner, fake_fetch):
        result = cli_runner.invoke(app, ["fetch", "Cat", "--unlimited", "--json"])

        assert result.exit_code == 0
        assert fake_fetch.call_args.args[1] == math.inf

    def test_fetch_url(self, cli_runner, fake_fetch):
        result = cli_runner.invoke(
            app, ["fetch", "https://en.wikipedia.org/wiki/Cat", "--json"]
        )

        assert result.exit_code == 0
        assert fake_fetch.call_args.args[0] == "Cat"

    def test_fetch_url_without_article_exits_1(self, cli_runner, fake_fetch):
        result = cli_runner.invoke(app, ["fetch", "https://en.wikipedia.org/wiki/"])

        assert result.exit_code == 1
        assert "No article title given" in result.output
        fake_fetch.assert_not_called()

    def test_fetch_not_found_exits_1(self, cli_runner, fake_fetch):
        result = cli_runner.invoke(app, ["fetch", "Nope"])

        assert result.exit_code == 1
        assert "Page not found" in result.output

    def test_fetch_network_error_exits_1(self, cli_runner):
        with patch(
            "wiki_explorer.core.wiki_client.WikiClient.fetch",
            side_effect=NetworkError("Failed to fetch from Wikipedia"),
        ):
            result = cli_runner.invoke(app, ["fetch", "Cat"])

        assert result.exit_code == 1
        assert "Failed to fetch from Wikipedia" in result.output

    def test_explore_json(self, cli_runner, fake_fetch):
        result = cli_runner.invoke(
            app,
            ["explore", "Cat", "--expand", "Felidae", "--ticks", "50", "--json"],
        )

        assert result.exit_code == 0
        frame = json.loads(result.output)
        groups = {n["id"]: n["group"] for n in frame["nodes"]}
        assert groups["Cat"] == "main"
        assert groups["Felidae"] == "main"
        assert groups["Lion"] == "sub"
        assert frame["status"]["stats"]["main"] == 2
        assert all(n["x"] is not None for n in frame["nodes"])

    def test_explore_delete(self, cli_runner, fake_fetch):
        result = cli_runner.invoke(
            app,
            ["explore", "Cat", "--expand", "Dog", "--delete", "Dog", "--json"],
        )

        assert result.exit_code == 0
        frame = json.loads(result.output)
        groups = {n["id"]: n["group"] for n in frame["nodes"]}
        assert groups["Dog"] == "sub"
        assert "Wolf" not in groups

    def test_explore_table(self, cli_runner, fake_fetch):
        result = cli_runner.invoke(app, ["explore", "Cat", "--ticks", "10"])

        assert result.exit_code == 0
        assert "Felidae" in result.output
        assert "4 nodes" in result.output

    def test_explore_hide_sub(self, cli_runner, fake_fetch):
        result = cli_runner.invoke(
            app, ["explore", "Cat", "--hide-sub", "--ticks", "5", "--json"]
        )

        frame = json.loads(result.output)
        assert [n["id"] for n in frame["nodes"]] == ["Cat"]

    def test_explore_nothing_found_exits_1(self, cli_runner, fake_fetch):
        result = cli_runner.invoke(app, ["explore", "Nope", "--ticks", "0"])

        assert result.exit_code == 1
        assert "WIKI PAGE NOT FOUND" in result.output

    def test_explore_reports_partial_failures(self, cli_runner, fake_fetch):
        result = cli_runner.invoke(
            app, ["explore", "Cat", "--expand", "Ghost", "--ticks", "0"]
        )

        assert result.exit_code == 0
        assert "Ghost: not in graph" in result.output

    def test_config_file(self, cli_runner, fake_fetch, tmp_path):
        config_file = tmp_path / "explorer.yaml"
        config_file.write_text("fetch:\n  link_limit: 1\n")

        result = cli_runner.invoke(
            app, ["--config", str(config_file), "explore", "Cat", "--ticks", "0", "--json"]
        )

        assert result.exit_code == 0
        frame = json.loads(result.output)
        assert frame["status"]["stats"]["nodes"] == 2

    def test_invalid_config_exits_1(self, cli_runner, tmp_path):
        config_file = tmp_path / "explorer.yaml"
        config_file.write_text("forces:\n  gravity: 1\n")

        result = cli_runner.invoke(app, ["--config", str(config_file), "fetch", "Cat"])

        assert result.exit_code == 1
        assert "Invalid settings" in result.output

    def test_env_file_loaded(self, cli_runner, fake_fetch, tmp_path, monkeypatch):
        # Registered so teardown removes whatever the .env file sets
        monkeypatch.setenv("WIKI_EXPLORER_LINK_LIMIT", "5")
        (tmp_path / ".env").write_text("WIKI_EXPLORER_LINK_LIMIT=1\n")

        result = cli_runner.invoke(app, ["fetch", "Cat", "--json"])

        assert result.exit_code == 0
        assert fake_fetch.call_args.args[1] == 1


def test_make_batch_children_are_sub_nodes():
    assert all(not c.is_main for c in make_batch("Cat", ["Dog"]).children)
