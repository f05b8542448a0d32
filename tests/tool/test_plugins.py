"""Tests de los plugins incluidos (servers, pipeline docker, frameworks y addons)."""

from __future__ import annotations

import json
from pathlib import Path
from types import MappingProxyType

import pytest

from keel.core.errors import ConfigInvalid, RemoteExecError
from keel.core.plugins.contracts import BackupHandle, PluginCategory, Via
from keel.core.remote.gateway import RemoteGateway
from keel.core.remote.target import RemoteTarget
from keel.core.runtime.context import ExecutionContext
from keel.core.spec.stages import Stage
from keel.core.spec.store import load, parse
from keel.core.topology.merger import merge
from keeltool.plugins import (
    ALL_PLUGINS,
    AlembicFramework,
    AwsServer,
    DockerPipeline,
    MacServer,
    PrismaFramework,
    ServerModeAddon,
    UbuntuServer,
    build_registry,
)
from keeltool.plugins.frameworks.alembic import revisions, script_location
from keeltool.plugins.frameworks.prisma import has_pending
from tests.helpers.fakes import write_config

BOX = RemoteTarget(name="10.0.0.9", host="10.0.0.9", user="deploy")


def _context(**environ) -> ExecutionContext:
    return ExecutionContext(environ=MappingProxyType(environ), ssh_key_dir=Path("/nonexistent"))


@pytest.fixture
def registry():
    return build_registry()


@pytest.fixture
def fleet():
    return parse({
        "name": "api",
        "dev": {"domain": "api.localhost"},
        "staging": {"domain": "s.api.io", "server": "mac-mini"},
        "prod": {"domain": "api.io", "region": "us-east-1"},
        "qa": {"domain": "qa.api.io"},
    })


# ---------------------------------------------------------------------------
# Registro
# ---------------------------------------------------------------------------


class TestRegistry:
    def test_registers_every_builtin(self, registry) -> None:
        assert len(registry) == len(ALL_PLUGINS)

    def test_server_resolution(self, registry, fleet, tmp_path: Path) -> None:
        resolve = lambda env: registry.resolve(PluginCategory.SERVER, tmp_path, fleet, env)  # noqa: E731
        assert resolve("staging") is MacServer
        assert resolve("prod") is AwsServer
        assert resolve("qa") is UbuntuServer

    def test_dev_has_no_server(self, registry, fleet, tmp_path: Path) -> None:
        assert registry.resolve_optional(PluginCategory.SERVER, tmp_path, fleet, "dev") is None

    def test_pipeline_and_addons(self, registry, fleet, tmp_path: Path) -> None:
        assert registry.resolve(PluginCategory.PIPELINE, tmp_path, fleet, "prod") is DockerPipeline
        assert registry.resolve_all(PluginCategory.ADDON, tmp_path, fleet) == [ServerModeAddon]

    def test_framework_by_project_files(self, registry, fleet, tmp_path: Path) -> None:
        assert registry.resolve_optional(PluginCategory.FRAMEWORK, tmp_path, fleet) is None
        (tmp_path / "alembic.ini").write_text("[alembic]\nscript_location = migrations\n")
        assert registry.resolve_optional(PluginCategory.FRAMEWORK, tmp_path, fleet) is AlembicFramework

    def test_other_pipeline_disables_docker(self, tmp_path: Path) -> None:
        spec = parse({"name": "api", "pipeline": "kubernetes", "prod": {"domain": "api.io"}})
        assert not DockerPipeline.should_load(tmp_path, spec)


class TestServers:
    def test_target_for_uses_stage_key(self, tmp_path: Path) -> None:
        (tmp_path / "prod_deploy").write_text("k")
        context = ExecutionContext(ssh_key_dir=tmp_path)
        spec = parse({"name": "api", "prod": {"domain": "api.io", "host": "10.0.0.9"}})
        target = UbuntuServer().target_for(spec, "prod", context)
        assert (target.host, target.user, target.key_path) == ("10.0.0.9", "ubuntu", tmp_path / "prod_deploy")

    def test_dev_target_is_local(self, fleet, context) -> None:
        assert UbuntuServer().target_for(fleet, "dev", context).local

    def test_ensure_ready_installs_missing_tools(self, api_spec, runner, context) -> None:
        runner.sequence("command -v docker", [(1, ""), (0, "/usr/bin/docker")])
        UbuntuServer().ensure_ready(RemoteGateway(context, runner=runner), BOX, api_spec)
        assert runner.ran("get.docker.com")
        assert runner.ran("mkdir -p ~/.keel/backups")

    def test_mac_target_finds_homebrew_tools(self, fleet, runner, context) -> None:
        target = MacServer().target_for(fleet, "staging", context)
        assert target.path_prefix == ("/opt/homebrew/bin", "/usr/local/bin")
        MacServer().ensure_ready(RemoteGateway(context, runner=runner), target, fleet)
        assert runner.commands[0] == 'export PATH="/opt/homebrew/bin:/usr/local/bin:$PATH" && command -v brew'
        assert not runner.ran("brew install")

    def test_mac_installs_missing_homebrew(self, fleet, runner, context) -> None:
        runner.sequence("command -v brew", [(1, ""), (0, "/opt/homebrew/bin/brew")])
        target = MacServer().target_for(fleet, "staging", context)
        MacServer().ensure_ready(RemoteGateway(context, runner=runner), target, fleet)
        assert runner.ran("Homebrew/install/HEAD/install.sh")

    def test_missing_package_manager_fails(self, api_spec, runner, context) -> None:
        runner.on("command -v apt", returncode=1)
        with pytest.raises(RemoteExecError, match="apt"):
            UbuntuServer().ensure_ready(RemoteGateway(context, runner=runner), BOX, api_spec)
        assert not runner.ran("get.docker.com")

    def test_undeploy_removes_the_container(self, gateway, runner) -> None:
        UbuntuServer().undeploy(gateway, BOX, "api-prod")
        assert runner.commands == ["docker compose -f ~/.keel/docker-compose.yml rm -s -f api-prod"]

    def test_server_fixes_are_os_tagged(self, gateway) -> None:
        fixes = MacServer().fixes(gateway)
        assert {f.os for f in fixes} == {"mac"}
        assert "mac-docker-stopped-staging" in {f.id for f in fixes}

    def test_aws_cli_fix_only_for_aws_stages(self, fleet, gateway, runner, tmp_path: Path) -> None:
        runner.on("command -v aws", returncode=1)
        fixes = {f.id: f for f in AwsServer().fixes(gateway)}
        assert fixes["aws-cli-missing-prod"].scan(fleet, tmp_path)
        assert not fixes["aws-cli-missing-staging"].scan(fleet, tmp_path)


# ---------------------------------------------------------------------------
# Pipeline docker
# ---------------------------------------------------------------------------


class TestDockerReachability:
    pipeline = DockerPipeline()

    def test_dev_is_local(self, api_spec) -> None:
        assert self.pipeline.can_reach(Stage.DEV, api_spec, _context()).via == Via.LOCAL

    def test_on_target_host_is_local(self, api_spec) -> None:
        context = ExecutionContext(on_target_hosts=frozenset({"10.0.0.9"}), ssh_key_dir=Path("/nonexistent"))
        assert self.pipeline.can_reach(Stage.PROD, api_spec, context).via == Via.LOCAL

    def test_ssh_secret_reaches_by_ssh(self, api_spec) -> None:
        assert self.pipeline.can_reach(Stage.PROD, api_spec, _context(PROD_SSH="k")).via == Via.SSH

    def test_cloud_credentials_reach_by_api(self, fleet) -> None:
        assert self.pipeline.can_reach(Stage.PROD, fleet, _context(AWS_PROFILE="ops")).via == Via.API

    def test_ci_reaches_by_workflow(self, api_spec) -> None:
        context = ExecutionContext(ci=True, ssh_key_dir=Path("/nonexistent"))
        assert self.pipeline.can_reach(Stage.STAGING, api_spec, context).via == Via.WORKFLOW

    def test_without_credentials_is_unreachable(self, api_spec) -> None:
        reach = self.pipeline.can_reach(Stage.PROD, api_spec, _context())
        assert not reach.reachable
        assert "prod_deploy" in reach.reason

    def test_secrets_stage(self, api_spec) -> None:
        assert self.pipeline.can_reach(Stage.SECRETS, api_spec, _context()).via == Via.LOCAL
        github = parse({"name": "api", "git_repo": "acme/api", "secrets": {"store": "github"},
                        "prod": {"domain": "api.io"}})
        assert not self.pipeline.can_reach(Stage.SECRETS, github, _context()).reachable
        assert self.pipeline.can_reach(Stage.SECRETS, github, _context(GITHUB_TOKEN="t")).via == Via.API


class TestDockerPipeline:
    def test_required_secrets(self) -> None:
        spec = parse({
            "name": "api",
            "secrets": {"required": ["API_KEY", "PROD_SSH"]},
            "staging": {"domain": "EXAMPLE-staging.io"},
            "prod": {"domain": "api.io"},
        }, allow_placeholders=True)
        assert DockerPipeline().required_secrets(spec) == ["PROD_SSH", "API_KEY"]

    def test_build_targets_server_arch(self, gateway, runner, api_spec) -> None:
        artifact = DockerPipeline().build(gateway, BOX, api_spec, "prod", "linux/arm64")
        assert artifact.image == "api:prod"
        assert runner.commands[-1] == (
            "docker build --platform linux/arm64 -t api:prod "
            "-f ~/.keel/repos/api/Dockerfile ~/.keel/repos/api"
        )
        assert runner.calls[-1][1]["timeout"] == 1800

    def test_build_uses_environment_dockerfile(self, gateway, runner, api_repo: Path, api_config) -> None:
        api_config["prod"]["dockerfile"] = "docker/prod.Dockerfile"
        write_config(api_repo, api_config)
        (api_repo / "docker").mkdir()
        (api_repo / "docker" / "prod.Dockerfile").write_text("FROM node:20\n")
        DockerPipeline().build(gateway, BOX, load(api_repo), "prod", "linux/amd64")
        assert "-f ~/.keel/repos/api/docker/prod.Dockerfile" in runner.commands[-1]

    def test_rollout_replaces_only_the_service(self, gateway, runner, api_spec) -> None:
        service = merge([api_spec]).service("api", "prod")
        outputs = {"docker-compose.yml": "services: {}\n", "nginx/nginx.conf": "events {}\n"}
        DockerPipeline().rollout(gateway, BOX, api_spec, service, outputs)
        assert runner.commands == [
            "mkdir -p ~/.keel && cat > ~/.keel/docker-compose.yml",
            "mkdir -p ~/.keel/nginx && cat > ~/.keel/nginx/nginx.conf",
            "docker compose -f ~/.keel/docker-compose.yml up -d --no-deps api-prod",
            "docker compose -f ~/.keel/docker-compose.yml up -d nginx",
            "docker compose -f ~/.keel/docker-compose.yml exec -T nginx nginx -s reload",
        ]

    def test_reload_rewrites_routing_without_touching_services(self, gateway, runner) -> None:
        DockerPipeline().reload(gateway, BOX, {"docker-compose.yml": "services: {}\n"})
        assert runner.commands == [
            "mkdir -p ~/.keel && cat > ~/.keel/docker-compose.yml",
            "docker compose -f ~/.keel/docker-compose.yml up -d nginx",
            "docker compose -f ~/.keel/docker-compose.yml exec -T nginx nginx -s reload",
        ]

    def test_fix_catalog_ids_are_unique(self, gateway) -> None:
        ids = [f.id for f in DockerPipeline().fixes(gateway)]
        assert len(ids) == len(set(ids))
        assert "missing-env-file-prod" in ids


# ---------------------------------------------------------------------------
# Frameworks
# ---------------------------------------------------------------------------


@pytest.fixture
def with_database(api_repo: Path) -> Path:
    (api_repo / ".env.prod").write_text("DATABASE_URL=postgres://app:pw@db:5432/app\n")
    return api_repo


class TestPostgresBackup:
    def test_data_store_from_env_file(self, api_spec, api_repo: Path) -> None:
        assert not PrismaFramework().has_data_store(api_spec, "prod", api_repo)
        (api_repo / ".env.prod").write_text("DATABASE_URL=postgres://db/app\n")
        assert PrismaFramework().has_data_store(api_spec, "prod", api_repo)

    def test_backup_dumps_full_database(self, gateway, runner, api_spec, with_database) -> None:
        handle = PrismaFramework().backup(gateway, BOX, api_spec, "prod")
        assert handle.path.startswith("~/.keel/backups/api-prod-")
        assert handle.source == "postgres://app:pw@db:5432/app"
        assert f"pg_dump --no-owner postgres://app:pw@db:5432/app > {handle.path}" in runner.commands[-1]

    def test_backup_without_database_url(self, gateway, api_spec) -> None:
        with pytest.raises(ConfigInvalid, match="DATABASE_URL"):
            PrismaFramework().backup(gateway, BOX, api_spec, "prod")

    def test_restore_resets_schema_then_loads(self, gateway, runner) -> None:
        handle = BackupHandle(path="~/.keel/backups/api.sql", target="10.0.0.9", created_at="t", source="postgres://db/app")
        PrismaFramework().restore(gateway, BOX, handle)
        command = runner.commands[-1]
        assert command.index("DROP SCHEMA") < command.index("-f ~/.keel/backups/api.sql")

    def test_restore_requires_source(self, gateway) -> None:
        handle = BackupHandle(path="~/.keel/backups/api.sql", target="10.0.0.9", created_at="t")
        with pytest.raises(ConfigInvalid):
            AlembicFramework().restore(gateway, BOX, handle)

    def test_discard_removes_file(self, gateway, runner) -> None:
        handle = BackupHandle(path="~/.keel/backups/api.sql", target="10.0.0.9", created_at="t")
        PrismaFramework().discard_backup(gateway, BOX, handle)
        assert runner.ran("~/.keel/backups/api.sql")


class TestPrisma:
    @pytest.mark.parametrize(
        "package, expected",
        [
            ({"dependencies": {"@prisma/client": "^5"}}, True),
            ({"devDependencies": {"prisma": "^5"}}, True),
            ({"dependencies": {"@trpc/server": "^10"}}, True),
            ({"dependencies": {"express": "^4"}}, False),
        ],
    )
    def test_should_load(self, tmp_path: Path, fleet, package: dict, expected: bool) -> None:
        (tmp_path / "package.json").write_text(json.dumps(package))
        assert PrismaFramework.should_load(tmp_path, fleet) is expected

    def test_broken_package_json(self, tmp_path: Path, fleet) -> None:
        (tmp_path / "package.json").write_text("{nope")
        assert not PrismaFramework.should_load(tmp_path, fleet)

    def test_pending_from_nonzero_status(self, gateway, runner, api_spec) -> None:
        runner.on("prisma migrate status", returncode=1,
                  stderr="Following migration have not yet been applied:\n20240101_init\n")
        assert PrismaFramework().pending_migrations(gateway, BOX, api_spec, "prod")

    def test_pending_listed_on_stdout(self, gateway, runner, api_spec) -> None:
        runner.on("prisma migrate status", returncode=1, stdout="Following migration have not yet been applied:\n",
                  stderr="npm notice\n")
        assert PrismaFramework().pending_migrations(gateway, BOX, api_spec, "prod")

    @pytest.mark.parametrize(
        "returncode,stderr",
        [
            (1, "Error: P1001: Can't reach database server at `db:5432`\n"),
            (127, "bash: npx: command not found\n"),
            (1, "Error: Prisma schema validation failed\n"),
        ],
    )
    def test_status_errors_are_not_read_as_up_to_date(
        self, gateway, runner, api_spec, returncode: int, stderr: str
    ) -> None:
        runner.on("prisma migrate status", returncode=returncode, stderr=stderr)
        with pytest.raises(RemoteExecError) as excinfo:
            PrismaFramework().pending_migrations(gateway, BOX, api_spec, "prod")
        assert excinfo.value.returncode == returncode

    def test_up_to_date(self, gateway, runner, api_spec) -> None:
        runner.on("prisma migrate status", stdout="Database schema is up to date!\n")
        assert not PrismaFramework().pending_migrations(gateway, BOX, api_spec, "prod")
        assert not has_pending("Database schema is up to date!")

    def test_migrate_loads_environment_file(self, gateway, runner, api_spec) -> None:
        PrismaFramework().migrate(gateway, BOX, api_spec, "prod")
        command = runner.commands[-1]
        assert command.startswith("cd ~/.keel/repos/api && set -a && [ -f .env.prod ]")
        assert command.endswith("npx prisma migrate deploy")

    def test_missing_env_file_copies_example(self, gateway, api_spec, api_repo: Path) -> None:
        (api_repo / ".env.example").write_text("DATABASE_URL=\n")
        fix = {f.id: f for f in PrismaFramework().fixes(gateway)}["missing-env-file"]
        assert fix.scan(api_spec, api_repo)
        assert fix.fix(api_spec, api_repo)
        assert (api_repo / ".env").read_text() == "DATABASE_URL=\n"


class TestAlembic:
    def test_revisions(self) -> None:
        assert revisions("ae1027a6acf (head)\nINFO  [alembic] Context impl\n") == {"ae1027a6acf"}

    def test_pending_when_head_differs(self, gateway, runner, api_spec) -> None:
        runner.on("alembic current", stdout="1975ea83b712\n")
        runner.on("alembic heads", stdout="ae1027a6acf (head)\n")
        assert AlembicFramework().pending_migrations(gateway, BOX, api_spec, "prod")

    def test_up_to_date(self, gateway, runner, api_spec) -> None:
        runner.on("alembic current", stdout="ae1027a6acf (head)\n")
        runner.on("alembic heads", stdout="ae1027a6acf (head)\n")
        assert not AlembicFramework().pending_migrations(gateway, BOX, api_spec, "prod")

    def test_versions_dir_fix(self, gateway, api_spec, tmp_path: Path) -> None:
        (tmp_path / "alembic.ini").write_text("[alembic]\nscript_location = %(here)s/migrations\n")
        assert script_location(tmp_path) == tmp_path / "migrations"
        fix = AlembicFramework().fixes(gateway)[0]
        assert fix.scan(api_spec, tmp_path)
        assert fix.fix(api_spec, tmp_path)
        assert (tmp_path / "migrations" / "versions").is_dir()


class TestServerMode:
    def test_only_for_mac_servers(self, fleet, api_spec, tmp_path: Path) -> None:
        assert ServerModeAddon.should_load(tmp_path, fleet)
        assert not ServerModeAddon.should_load(tmp_path, api_spec)

    def test_detects_sleep_on_mac_targets(self, fleet, gateway, runner, tmp_path: Path) -> None:
        runner.on("pmset -g", returncode=1)
        fixes = {f.id: f for f in ServerModeAddon().fixes(gateway)}
        assert fixes["macos-sleep-enabled-staging"].os == "mac"
        assert fixes["macos-sleep-enabled-staging"].scan(fleet, tmp_path)
        assert not fixes["macos-sleep-enabled-prod"].scan(fleet, tmp_path)
