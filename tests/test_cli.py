"""Tests for the speak-proxy command line."""
from __future__ import annotations

import json

import pytest

from conftest import MP3_BYTES, ProviderStub
from speak_proxy import cli
from speak_proxy.services.gateway import SynthesisGateway


@pytest.fixture
def stub_provider(monkeypatch):
    """Route `say` through a stubbed provider."""
    stub = ProviderStub()
    monkeypatch.setattr(cli, "SynthesisGateway", lambda config: SynthesisGateway(config, transport=stub.transport()))
    return stub


class TestSay:
    """speak-proxy say."""

    def test_dry_run(self, capsys):
        code = cli.main(["say", "Привет", "--dry-run"])
        assert code == 0
        assert "DRY_RUN_OK" in capsys.readouterr().out

    def test_dry_run_json(self, capsys):
        code = cli.main(["say", "Привет", "--speed", "3", "--voice", "robot", "--dry-run", "--json"])
        assert code == 0

        first_line = capsys.readouterr().out.splitlines()[0]
        payload = json.loads(first_line)
        assert payload["dry_run"] is True
        assert payload["request"]["speed"] == 1.5
        assert payload["request"]["voice"] == "alena"
        assert payload["request"]["text"] == "Привет"

    def test_blank_text_fails(self, capsys):
        code = cli.main(["say", "   ", "--json"])
        assert code == 1
        assert json.loads(capsys.readouterr().out)["error"] == "No text provided"

    def test_writes_mp3(self, tmp_path, capsys, stub_provider):
        out = tmp_path / "sub" / "hello.mp3"
        code = cli.main(["say", "Привет", "--voice", "jane", "--out", str(out)])

        assert code == 0
        assert out.read_bytes() == MP3_BYTES
        assert stub_provider.forms[0]["voice"] == "jane"
        assert "CLI_OK" in capsys.readouterr().out

    def test_provider_error(self, tmp_path, monkeypatch, capsys):
        stub = ProviderStub(status_code=401, content=b"Unknown api key")
        monkeypatch.setattr(cli, "SynthesisGateway", lambda config: SynthesisGateway(config, transport=stub.transport()))

        out = tmp_path / "out.mp3"
        code = cli.main(["say", "Привет", "--out", str(out), "--json"])

        assert code == 1
        assert not out.exists()
        payload = json.loads(capsys.readouterr().out)
        assert payload == {"ok": False, "error": "Unknown api key", "provider_status": 401}


class TestArgs:
    """Argument parsing."""

    def test_help_exits_zero(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            cli.main(["--help"])
        assert exc_info.value.code == 0
        assert "speak-proxy CLI" in capsys.readouterr().out

    def test_command_required(self):
        with pytest.raises(SystemExit) as exc_info:
            cli.main([])
        assert exc_info.value.code == 2

    def test_serve_uses_settings(self, monkeypatch):
        import uvicorn

        calls = []
        monkeypatch.setattr(uvicorn, "run", lambda app, **kwargs: calls.append((app, kwargs)))
        monkeypatch.setenv("PORT", "8123")

        assert cli.main(["serve", "--host", "127.0.0.1"]) == 0
        app, kwargs = calls[0]
        assert app == "speak_proxy.main:app"
        assert kwargs["host"] == "127.0.0.1"
        assert kwargs["port"] == 8123
