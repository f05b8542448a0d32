"""Tests de los secret stores."""

from __future__ import annotations

from pathlib import Path
from types import MappingProxyType

import pytest
import requests

from keel.core.errors import ConfigInvalid, KeelError, SecretMissing
from keel.core.runtime.context import ExecutionContext
from keel.core.spec.store import parse
from keeltool.secrets import EnvFileSecretStore, GitHubSecretStore, store_for
from tests.helpers.fakes import FakeRunner


class FakeResponse:
    def __init__(self, status_code: int, payload=None, text: str = "") -> None:
        self.status_code = status_code
        self._payload = payload
        self.text = text

    def json(self):
        return self._payload


class FakeSession:
    """Devuelve una respuesta por página; registra los GET."""

    def __init__(self, pages=None, status_code: int = 200, raises=None) -> None:
        self.pages = pages or [[]]
        self.status_code = status_code
        self.raises = raises
        self.requests = []

    def get(self, url, headers=None, params=None, timeout=None):
        self.requests.append((url, headers, params))
        if self.raises:
            raise self.raises
        if self.status_code != 200:
            return FakeResponse(self.status_code, text="Bad credentials")
        page = params["page"] - 1
        names = self.pages[page] if page < len(self.pages) else []
        return FakeResponse(200, {"secrets": [{"name": n} for n in names]})


class TestEnvFileStore:
    def test_missing_file_reports_all_missing(self, tmp_path: Path) -> None:
        store = EnvFileSecretStore(tmp_path / "secrets.env")
        assert not store.exists()
        assert store.check_secrets(["A"]).missing == ["A"]

    def test_upload_then_check(self, tmp_path: Path) -> None:
        store = EnvFileSecretStore(tmp_path / ".keel" / "secrets.env")
        assert store.upload_secret("PROD_SSH", "clave")
        check = store.check_secrets(["PROD_SSH", "API_KEY"])
        assert check.present == ["PROD_SSH"]
        assert check.missing == ["API_KEY"]

    def test_empty_value_counts_as_missing(self, tmp_path: Path) -> None:
        path = tmp_path / "secrets.env"
        path.write_text("API_KEY=\n")
        assert EnvFileSecretStore(path).check_secrets(["API_KEY"]).missing == ["API_KEY"]

    def test_rejects_invalid_names(self, tmp_path: Path) -> None:
        assert not EnvFileSecretStore(tmp_path / "s.env").upload_secret("bad-name", "x")

    def test_require_raises_secret_missing(self, tmp_path: Path) -> None:
        with pytest.raises(SecretMissing, match="API_KEY") as excinfo:
            EnvFileSecretStore(tmp_path / "s.env").require(["API_KEY"])
        assert excinfo.value.store == "env-file"


class TestGitHubStore:
    def test_lists_names_across_pages(self) -> None:
        session = FakeSession(pages=[[f"S{i}" for i in range(100)], ["PROD_SSH"]])
        store = GitHubSecretStore("acme/api", "tkn", session=session)
        check = store.check_secrets(["PROD_SSH", "STAGING_SSH"])
        assert check.present == ["PROD_SSH"]
        assert check.missing == ["STAGING_SSH"]
        assert len(session.requests) == 2
        url, headers, _ = session.requests[0]
        assert url == "https://api.github.com/repos/acme/api/actions/secrets"
        assert headers["Authorization"] == "Bearer tkn"

    def test_api_error_raises(self) -> None:
        store = GitHubSecretStore("acme/api", "tkn", session=FakeSession(status_code=401))
        with pytest.raises(KeelError, match="401"):
            store.check_secrets(["X"])

    def test_connection_error_raises(self) -> None:
        session = FakeSession(raises=requests.exceptions.ConnectionError())
        with pytest.raises(KeelError, match="conexión"):
            GitHubSecretStore("acme/api", "tkn", session=session).list_names()

    def test_exists_requires_token(self) -> None:
        assert not GitHubSecretStore("acme/api", None, session=FakeSession()).exists()

    def test_upload_uses_gh_cli(self) -> None:
        runner = FakeRunner()
        store = GitHubSecretStore("acme/api", "tkn", session=FakeSession(), runner=runner)
        assert store.upload_secret("PROD_SSH", "clave")
        argv, kwargs = runner.calls[-1]
        assert argv == ["gh", "secret", "set", "PROD_SSH", "--repo", "acme/api"]
        assert kwargs["input"] == "clave"

    def test_upload_without_gh(self) -> None:
        runner = FakeRunner().on("acme/api", raises=FileNotFoundError("gh"))
        store = GitHubSecretStore("acme/api", "tkn", session=FakeSession(), runner=runner)
        assert not store.upload_secret("PROD_SSH", "clave")


class TestStoreFor:
    def test_env_file_by_default(self, tmp_path: Path, context) -> None:
        store = store_for(parse({"name": "api", "prod": {"domain": "api.io"}}), tmp_path, context)
        assert isinstance(store, EnvFileSecretStore)
        assert store.path == tmp_path / ".keel" / "secrets.env"

    def test_github_uses_token_from_context(self, tmp_path: Path) -> None:
        context = ExecutionContext(environ=MappingProxyType({"GITHUB_TOKEN": "tkn"}))
        spec = parse({"name": "api", "prod": {"domain": "api.io"}, "git_repo": "acme/api", "secrets": {"store": "github"}})
        store = store_for(spec, tmp_path, context)
        assert isinstance(store, GitHubSecretStore)
        assert store.exists()

    def test_unknown_store(self, tmp_path: Path, context) -> None:
        with pytest.raises(ConfigInvalid, match="vault"):
            store_for(parse({"name": "api", "prod": {"domain": "api.io"}, "secrets": {"store": "vault"}}), tmp_path, context)
