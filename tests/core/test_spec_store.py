"""Tests del loader de EnvironmentSpec y del mapeo de etapas."""

from __future__ import annotations

from pathlib import Path

import pytest

from keel.core.errors import ConfigInvalid, ConfigMissing, ConfigPlaceholder
from keel.core.spec.models import is_placeholder
from keel.core.spec.stages import Stage, environments_for_stage, stage_of
from keel.core.spec.store import find_placeholders, load, load_many, parse, resolve_config_path
from tests.helpers.fakes import write_config


class TestLoad:
    def test_loads_top_level_environments(self, api_spec) -> None:
        assert api_spec.name == "api"
        assert list(api_spec.environments) == ["dev", "staging", "prod"]
        assert api_spec.environment("prod").domain == "api.acme.io"
        assert api_spec.ssl_email == "ops@example.com"

    def test_root_dir_points_at_checkout(self, api_repo: Path, api_spec) -> None:
        assert api_spec.root_dir == api_repo
        assert api_spec.source_path == api_repo / "keel.yml"

    def test_environments_mapping_form(self, tmp_path: Path) -> None:
        root = write_config(tmp_path, {
            "name": "web",
            "environments": {"staging": {"domain": "web.staging.acme.io"}},
        })
        spec = load(root)
        assert list(spec.environments) == ["staging"]

    def test_missing_config(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigMissing, match="keel.yml"):
            load(tmp_path)

    def test_alternate_candidate(self, tmp_path: Path) -> None:
        write_config(tmp_path, {"name": "x", "prod": {"domain": "x.io"}}, filename="stack.yml")
        assert load(tmp_path).name == "x"
        assert resolve_config_path(tmp_path) == tmp_path / "stack.yml"

    def test_canonical_path_when_absent(self, tmp_path: Path) -> None:
        assert resolve_config_path(tmp_path) == tmp_path / "keel.yml"

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        (tmp_path / "keel.yml").write_text("name: [unclosed\n")
        with pytest.raises(ConfigInvalid, match="YAML"):
            load(tmp_path)

    def test_requires_name(self, tmp_path: Path) -> None:
        write_config(tmp_path, {"prod": {"domain": "x.io"}})
        with pytest.raises(ConfigInvalid, match="name"):
            load(tmp_path)

    def test_requires_some_domain(self, tmp_path: Path) -> None:
        write_config(tmp_path, {"name": "x", "prod": {"port": 3000}})
        with pytest.raises(ConfigInvalid, match="domain"):
            load(tmp_path)

    def test_invalid_port(self, tmp_path: Path) -> None:
        write_config(tmp_path, {"name": "x", "prod": {"domain": "x.io", "port": -1}})
        with pytest.raises(ConfigInvalid, match="prod"):
            load(tmp_path)

    def test_load_many_preserves_order(self, tmp_path: Path) -> None:
        a = write_config(tmp_path / "a", {"name": "a", "prod": {"domain": "a.io"}})
        b = write_config(tmp_path / "b", {"name": "b", "prod": {"domain": "b.io"}})
        assert [s.name for s in load_many([b, a])] == ["b", "a"]


class TestNormalization:
    def test_defaults(self) -> None:
        spec = parse({"name": "x", "prod": {"domain": "x.io"}})
        env = spec.environment("prod")
        assert env.health_check == "/health"
        assert env.depends_on == []
        assert env.port is None
        assert env.ssh_host == "x.io"

    def test_health_check_gets_leading_slash(self) -> None:
        spec = parse({"name": "x", "prod": {"domain": "x.io", "health_check": "status"}})
        assert spec.environment("prod").health_check == "/status"

    def test_depends_on_string_becomes_list(self) -> None:
        spec = parse({"name": "x", "prod": {"domain": "x.io", "depends_on": "postgres"}})
        assert spec.environment("prod").depends_on == ["postgres"]

    def test_legacy_camel_case_keys(self) -> None:
        spec = parse({"name": "x", "prod": {"domain": "x.io", "healthCheck": "/ping", "envFile": ".env.p"}})
        env = spec.environment("prod")
        assert env.health_check == "/ping"
        assert env.env_file == ".env.p"

    def test_unknown_environment(self) -> None:
        spec = parse({"name": "x", "prod": {"domain": "x.io"}})
        with pytest.raises(ConfigInvalid, match="staging"):
            spec.environment("staging")

    def test_scalar_top_level_keys_are_extras(self) -> None:
        spec = parse({"name": "x", "prisma_schema": "db/schema.prisma", "prod": {"domain": "x.io"}})
        assert spec.extras == {"prisma_schema": "db/schema.prisma"}

    def test_global_blocks_are_not_environments(self) -> None:
        spec = parse({
            "name": "x",
            "aws": {"region": "us-east-1", "access_key_id": "AKIA"},
            "ansible": {"vault_path": "vault.yml"},
            "prod": {"domain": "x.io"},
        })
        assert list(spec.environments) == ["prod"]
        assert spec.extras["aws"] == {"region": "us-east-1", "access_key_id": "AKIA"}
        assert "ansible" in spec.extras

    def test_github_repo_alias(self) -> None:
        spec = parse({"name": "x", "github_repo": "acme/x", "prod": {"domain": "x.io"}})
        assert spec.git_repo == "acme/x"
        assert "github_repo" not in spec.environments

    @pytest.mark.parametrize("env_name", ["eu-prod", "Prod", "prod eu"])
    def test_environment_names_never_contain_separator(self, env_name: str) -> None:
        with pytest.raises(ConfigInvalid, match="environment"):
            parse({"name": "shop", env_name: {"domain": "a.io"}})

    @pytest.mark.parametrize("repo_name", ["Shop", "shop.eu", "-shop"])
    def test_repo_names_are_lowercase_slugs(self, repo_name: str) -> None:
        with pytest.raises(ConfigInvalid, match="repo"):
            parse({"name": repo_name, "prod": {"domain": "a.io"}})

    def test_spec_is_immutable(self) -> None:
        spec = parse({"name": "x", "prod": {"domain": "x.io"}})
        with pytest.raises(Exception):
            spec.name = "y"


class TestPlaceholders:
    def test_is_placeholder(self) -> None:
        assert is_placeholder("EXAMPLE-api.com")
        assert is_placeholder("example-api.com")
        assert not is_placeholder("api.example.com")
        assert not is_placeholder(3000)

    def test_find_placeholders_paths(self) -> None:
        data = {"a": {"b": "EXAMPLE-x"}, "c": ["ok", "EXAMPLE-y"]}
        assert find_placeholders(data) == ["a.b", "c[1]"]

    def test_rejected_by_default(self) -> None:
        data = {"name": "x", "prod": {"domain": "EXAMPLE-x.io"}}
        with pytest.raises(ConfigPlaceholder, match="prod.domain"):
            parse(data)

    def test_allowed_for_scan(self) -> None:
        data = {"name": "x", "prod": {"domain": "EXAMPLE-x.io"}, "staging": {"domain": "s.x.io"}}
        spec = parse(data, allow_placeholders=True)
        assert spec.environment("prod").has_placeholder_domain
        assert not spec.environment("prod").routable
        assert list(spec.routable_environments()) == ["staging"]


class TestStages:
    @pytest.mark.parametrize(
        "name, stage",
        [
            ("dev", Stage.DEV),
            ("secrets", Stage.SECRETS),
            ("prod", Stage.PROD),
            ("production", Stage.PROD),
            ("prod_eu", Stage.PROD),
            ("staging", Stage.STAGING),
            ("stage_2", Stage.STAGING),
            ("qa", Stage.STAGING),
        ],
    )
    def test_stage_of(self, name: str, stage: Stage) -> None:
        assert stage_of(name) == stage

    def test_parse_rejects_unknown(self) -> None:
        with pytest.raises(ValueError, match="válidas"):
            Stage.parse("qa")

    def test_environments_for_stage(self, api_spec) -> None:
        names = [name for name, _ in environments_for_stage(api_spec, Stage.PROD)]
        assert names == ["prod"]
