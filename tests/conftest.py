from __future__ import annotations

from importlib import resources
from pathlib import Path
from typing import Callable

import httpx
import pytest
from typer.testing import CliRunner

from hawkular_datasource.adapters.tsdb.hawkular import HawkularClient, HawkularExecutor
from hawkular_datasource.cli.main import app
from hawkular_datasource.config import DataSourceSettings


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture(scope="session")
def catalogue_file() -> Path:
    datasources_pkg = "hawkular_datasource.resources.datasources"
    with resources.as_file(resources.files(datasources_pkg) / "default.yaml") as ref:
        return Path(ref)


@pytest.fixture(autouse=True)
def isolate_secrets(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("HAWKULAR_SECRETS_PATH", raising=False)


@pytest.fixture
def settings() -> DataSourceSettings:
    return DataSourceSettings.from_mapping(
        {
            "name": "hawkular-test",
            "url": "http://hawkular.test:8080/hawkular/metrics",
            "basicAuth": True,
            "basicAuthUser": "jdoe",
            "basicAuthPassword": "secret",
            "jsonData": {"tenant": "acme"},
        }
    )


@pytest.fixture
def make_executor(settings) -> Callable[..., HawkularExecutor]:
    def _make(handler, *, datasource: DataSourceSettings | None = None) -> HawkularExecutor:
        resolved = datasource or settings
        client = HawkularClient(resolved, transport=httpx.MockTransport(handler))
        return HawkularExecutor(settings=resolved, client=client)

    return _make


@pytest.fixture()
def cli_runner() -> CliRunner:
    return CliRunner()


@pytest.fixture()
def cli_app():
    return app
