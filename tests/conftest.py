"""Fixtures compartidas de la suite de keel."""

from __future__ import annotations

from pathlib import Path
from types import MappingProxyType

import pytest

from keel.core.plugins.registry import PluginRegistry
from keel.core.remote.gateway import RemoteGateway
from keel.core.runtime.context import ExecutionContext
from keel.core.spec.store import load
from tests.helpers.fakes import (
    FakeAddon,
    FakeFramework,
    FakePipeline,
    FakeRunner,
    FakeServer,
    seed_database,
    write_config,
)

# ---------------------------------------------------------------------------
# Estado de los plugins falsos
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_fakes():
    FakePipeline.fail_build = False
    FakePipeline.fail_rollout = False
    FakePipeline.reach = {}
    FakePipeline.calls = []
    FakeFramework.data_store = True
    FakeFramework.pending = True
    FakeFramework.fail_status = False
    FakeFramework.fail_backup = False
    FakeFramework.fail_migrate = False
    FakeFramework.fail_restore = False
    FakeFramework.discard_error = None
    FakeFramework.calls = []
    FakeFramework.database = seed_database()
    FakeFramework.backups = {}
    FakeAddon.catalog = []
    yield


# ---------------------------------------------------------------------------
# Contexto y gateway
# ---------------------------------------------------------------------------


@pytest.fixture
def context(tmp_path: Path) -> ExecutionContext:
    """Contexto aislado: sin CI, sin claves SSH, sin variables de entorno."""
    return ExecutionContext(
        local_os="ubuntu",
        ssh_key_dir=tmp_path / "ssh",
        environ=MappingProxyType({}),
    )


@pytest.fixture
def runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def gateway(context: ExecutionContext, runner: FakeRunner) -> RemoteGateway:
    return RemoteGateway(context, runner=runner)


# ---------------------------------------------------------------------------
# Repos
# ---------------------------------------------------------------------------


@pytest.fixture
def api_config() -> dict:
    return {
        "name": "api",
        "ssl_email": "ops@example.com",
        "dev": {"domain": "api.localhost", "port": 3000},
        "staging": {"domain": "api.staging.acme.io", "host": "10.0.0.5", "port": 3001},
        "prod": {"domain": "api.acme.io", "host": "10.0.0.9", "port": 3001},
    }


@pytest.fixture
def api_repo(tmp_path: Path, api_config: dict) -> Path:
    return write_config(tmp_path / "api", api_config)


@pytest.fixture
def api_spec(api_repo: Path):
    return load(api_repo)


@pytest.fixture
def fake_registry() -> PluginRegistry:
    registry = PluginRegistry()
    for plugin_cls in (FakeServer, FakePipeline, FakeFramework, FakeAddon):
        registry.register(plugin_cls)
    return registry.freeze()
