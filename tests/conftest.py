from __future__ import annotations

import functools

import pytest

from pushserve import PushServer, Settings
from pushserve.logging import StandardLoggingConfig
from pushserve.testclient import TestClient
from tests.payloads import INDEX_HTML, SCRIPTS_JS, STYLES_CSS

SETTINGS_ENVIRONMENT = ("HOST", "PORT", "SSL_KEY", "SSL_CERT", "ROOT_DIR", "LOGGING_LEVEL", "DEBUG")


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    for name in SETTINGS_ENVIRONMENT:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def site(tmp_path):
    (tmp_path / "index.html").write_bytes(INDEX_HTML)
    static = tmp_path / "static"
    static.mkdir()
    (static / "styles.css").write_bytes(STYLES_CSS)
    (static / "scripts.js").write_bytes(SCRIPTS_JS)
    return tmp_path


@pytest.fixture
def settings(site):
    return Settings(root_dir=str(site))


@pytest.fixture
def app(settings):
    return PushServer(settings=settings, logging_config=StandardLoggingConfig(level="DEBUG"))


@pytest.fixture
def test_client_factory(anyio_backend_name, anyio_backend_options):
    return functools.partial(
        TestClient,
        backend=anyio_backend_name,
        backend_options=anyio_backend_options,
    )


@pytest.fixture
def client(app, test_client_factory):
    with test_client_factory(app) as client:
        yield client
