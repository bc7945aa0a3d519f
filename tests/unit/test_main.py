"""Unit tests for the command line entry point."""

import os

import pytest

from autosplit import main as cli

ENV_NAMES = (
    "AUTOSPLIT_DEPLOYER",
    "AUTOSPLIT_DB_PATH",
    "AUTOSPLIT_EVENT_LOG",
    "AUTOSPLIT_VOTING_WINDOW_MS",
    "AUTOSPLIT_NATIVE_SYMBOL",
    "AUTOSPLIT_TOKENS",
    "AUTOSPLIT_PORT",
)


@pytest.fixture
def launched(monkeypatch):
    for name in ENV_NAMES:
        monkeypatch.delenv(name, raising=False)
    calls = []
    monkeypatch.setattr(cli.uvicorn, "run", lambda app, **kwargs: calls.append((app, kwargs)))
    return calls


@pytest.mark.unit
class TestMain:
    """Tests for flag handling before uvicorn starts."""

    def test_requires_deployer(self, launched):
        assert cli.main([]) == 2
        assert launched == []

    def test_flags_exported_to_environment(self, launched):
        code = cli.main(
            [
                "--deployer",
                "AU1deployer",
                "--db-path",
                ":memory:",
                "--voting-window-ms",
                "60000",
                "--port",
                "5001",
                "--token",
                "tok-a:AU1alice",
                "--token",
                "tok-b:AU1bob",
            ]
        )
        assert code == 0
        assert os.environ["AUTOSPLIT_DEPLOYER"] == "AU1deployer"
        assert os.environ["AUTOSPLIT_DB_PATH"] == ":memory:"
        assert os.environ["AUTOSPLIT_VOTING_WINDOW_MS"] == "60000"
        assert os.environ["AUTOSPLIT_TOKENS"] == "tok-a:AU1alice,tok-b:AU1bob"

        app, kwargs = launched[0]
        assert app == "autosplit.service.app:create_app_from_env"
        assert kwargs["factory"] is True
        assert kwargs["port"] == 5001

    def test_malformed_token_rejected(self, launched):
        assert cli.main(["--deployer", "AU1deployer", "--token", "no-wallet"]) == 2
        assert launched == []
