"""Tests for the command-line interface."""

import json

import pytest
from click.testing import CliRunner

from minimax_mcp import __version__
from minimax_mcp.cli.main import cli
from minimax_mcp.mcp.session import MCPTimeoutError
from minimax_mcp.validation.config import ENV_VARS, config_paths


class FakeSession:
    instances = []
    result = {"content": [{"type": "text", "text": "Result text"}]}
    error = None

    def __init__(self, config):
        self.config = config
        self.calls = []
        self.disconnected = False
        FakeSession.instances.append(self)

    def web_search(self, query, num_results=None, recency_days=None):
        self.calls.append(("web_search", query, num_results, recency_days))
        if self.error:
            raise self.error
        return self.result

    def understand_image(self, image_path, prompt=None):
        self.calls.append(("understand_image", image_path, prompt))
        return self.result

    def disconnect(self):
        self.disconnected = True


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    for env_var in ENV_VARS.values():
        monkeypatch.delenv(env_var, raising=False)
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.chdir(tmp_path)
    FakeSession.instances = []
    FakeSession.error = None
    FakeSession.result = {"content": [{"type": "text", "text": "Result text"}]}


@pytest.fixture
def run():
    runner = CliRunner()

    def invoke(*args):
        return runner.invoke(cli, list(args), obj={"session_factory": FakeSession})

    return invoke


class TestInfoCommands:
    def test_version(self, run):
        result = run("--version")
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_help_lists_commands(self, run):
        """Test that help lists commands and environment variables."""
        result = run("--help")

        assert result.exit_code == 0
        for command in ("search", "understand", "config", "init"):
            assert command in result.output
        assert "MINIMAX_API_KEY" in result.output

    def test_config_redacts_key(self, run, monkeypatch):
        """Test that the config command hides the API key."""
        monkeypatch.setenv("MINIMAX_API_KEY", "super-secret")

        result = run("config")

        assert result.exit_code == 0
        assert "***REDACTED***" in result.output
        assert "super-secret" not in result.output

    def test_config_from_explicit_file(self, run, tmp_path):
        """Test that --config selects the config file."""
        path = tmp_path / "custom.json"
        path.write_text(json.dumps({"maxLines": 42}), encoding="utf-8")

        result = run("--config", str(path), "config")

        assert result.exit_code == 0
        assert '"maxLines": 42' in result.output

    def test_init_creates_config(self, run):
        """Test that init writes the default config file."""
        result = run("init")

        assert result.exit_code == 0
        assert config_paths()[1].exists()


class TestSearch:
    def test_requires_api_key(self, run):
        """Test that search without a key fails before starting a session."""
        result = run("search", "test")

        assert result.exit_code == 1
        assert "MiniMax API key is required" in result.output
        assert "MiniMax MCP error" not in result.output
        assert FakeSession.instances == []

    def test_search(self, run, monkeypatch):
        """Test search options reach the session."""
        monkeypatch.setenv("MINIMAX_API_KEY", "k")

        result = run("search", "rust", "async", "--num-results", "3", "--recency-days", "7")

        assert result.exit_code == 0
        assert "Result text" in result.output
        session = FakeSession.instances[0]
        assert session.calls == [("web_search", "rust async", 3, 7)]
        assert session.disconnected

    def test_num_results_out_of_range(self, run, monkeypatch):
        """Test that click rejects out-of-range result counts."""
        monkeypatch.setenv("MINIMAX_API_KEY", "k")

        result = run("search", "rust", "--num-results", "11")

        assert result.exit_code == 2
        assert FakeSession.instances == []

    def test_session_error(self, run, monkeypatch):
        """Test that session failures are reported with the MCP error prefix."""
        monkeypatch.setenv("MINIMAX_API_KEY", "k")
        FakeSession.error = MCPTimeoutError("MCP request timeout after 60000ms")

        result = run("search", "rust")

        assert result.exit_code == 1
        assert "MiniMax MCP error: MCP request timeout after 60000ms" in result.output
        assert FakeSession.instances[0].disconnected

    def test_truncated_output_reports_file(self, run, monkeypatch):
        """Test that truncated output points at the saved file."""
        monkeypatch.setenv("MINIMAX_API_KEY", "k")
        monkeypatch.setenv("MINIMAX_MCP_MAX_LINES", "2")
        FakeSession.result = {"content": [{"type": "text", "text": "a\nb\nc\nd"}]}

        result = run("search", "rust")

        assert result.exit_code == 0
        assert "Output truncated" in result.output
        assert "Full output saved to" in result.output

    def test_tool_error_sets_exit_code(self, run, monkeypatch):
        """Test that a tool-reported error exits with status 1."""
        monkeypatch.setenv("MINIMAX_API_KEY", "k")
        FakeSession.result = {"content": [{"type": "text", "text": "quota exceeded"}], "isError": True}

        result = run("search", "rust")

        assert result.exit_code == 1
        assert "quota exceeded" in result.output


class TestUnderstand:
    def test_understand_with_prompt(self, run, monkeypatch):
        """Test understand with a custom prompt."""
        monkeypatch.setenv("MINIMAX_API_KEY", "k")

        result = run("understand", "./chart.png", "--prompt", "What trends?")

        assert result.exit_code == 0
        assert FakeSession.instances[0].calls == [("understand_image", "./chart.png", "What trends?")]

    def test_image_alias(self, run, monkeypatch):
        """Test the image alias for understand."""
        monkeypatch.setenv("MINIMAX_API_KEY", "k")

        result = run("image", "./shot.png")

        assert result.exit_code == 0
        assert FakeSession.instances[0].calls == [("understand_image", "./shot.png", None)]
