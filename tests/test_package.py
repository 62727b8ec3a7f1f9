"""Tests for pyproject.toml and package layout."""
from __future__ import annotations

from pathlib import Path

import pytest

ROOT = Path(__file__).parent.parent


class TestPackage:
    """The package imports cleanly."""

    def test_version_defined(self):
        import speak_proxy
        assert isinstance(speak_proxy.__version__, str)
        assert speak_proxy.__version__

    def test_modules_importable(self):
        from speak_proxy import cli, main
        from speak_proxy.api import dependencies, routes, schemas
        from speak_proxy.core import config, metrics
        from speak_proxy.services import gateway, normalizer, rate_limiter, request_log, speak_service

        for module in (cli, main, dependencies, routes, schemas, config, metrics,
                       gateway, normalizer, rate_limiter, request_log, speak_service):
            assert module is not None

    def test_asgi_app(self):
        from fastapi import FastAPI
        from speak_proxy.main import app
        assert isinstance(app, FastAPI)
        paths = {route.path for route in app.routes}
        assert {"/speak", "/health", "/metrics"} <= paths


class TestPyprojectToml:
    """pyproject.toml configuration."""

    def test_dependencies(self):
        tomllib = pytest.importorskip("tomllib")
        data = tomllib.loads((ROOT / "pyproject.toml").read_text(encoding="utf-8"))

        assert data["project"]["name"] == "speak-proxy"
        dep_names = [d.split(">=")[0].split("[")[0] for d in data["project"]["dependencies"]]
        for name in ("fastapi", "uvicorn", "pydantic", "httpx", "pyyaml", "prometheus-client"):
            assert name in dep_names
        assert data["project"]["scripts"]["speak-proxy"] == "speak_proxy.cli:main"
