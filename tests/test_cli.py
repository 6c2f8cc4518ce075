import pytest
from click.testing import CliRunner

from cloudrun_kit.cli import main


_BASE_ENV = {
    "PROJECT_ID": "test-project",
    "SERVICE_NAME": "api-demo",
    "BUILD_MODE": "source",
    "DRY_RUN": "",
    "NON_INTERACTIVE": "",
    "DEBUG": "",
}


@pytest.fixture
def cli() -> CliRunner:
    return CliRunner()


def test_dry_run_non_interactive_deploy(cli: CliRunner, tmp_path) -> None:
    result = cli.invoke(main, ["-C", str(tmp_path), "--dry-run", "--non-interactive", "deploy"], env=_BASE_ENV)

    assert result.exit_code == 0, result.output
    assert "[DRY-RUN] gcloud run deploy api-demo --source=." in result.output
    assert "# Deploy summary" in result.output
    assert not (tmp_path / ".cloudrun_deploy_api-demo.conf").exists()


def test_env_flags_enable_dry_run(cli: CliRunner, tmp_path) -> None:
    env = dict(_BASE_ENV, DRY_RUN="true", NON_INTERACTIVE="true")

    result = cli.invoke(main, ["-C", str(tmp_path), "deploy"], env=env)

    assert result.exit_code == 0, result.output
    assert "[DRY-RUN] gcloud run deploy" in result.output


def test_deploy_without_service_name_exits_1(cli: CliRunner, tmp_path) -> None:
    env = dict(_BASE_ENV, SERVICE_NAME="")

    result = cli.invoke(main, ["-C", str(tmp_path), "--dry-run", "--non-interactive", "deploy"], env=env)

    assert result.exit_code == 1
    assert "[ERROR]" in result.output


def test_plan_prints_command_without_deploying(cli: CliRunner, tmp_path) -> None:
    result = cli.invoke(main, ["-C", str(tmp_path), "plan"], env=_BASE_ENV)

    assert result.exit_code == 0, result.output
    assert "# Deploy plan" in result.output
    assert "gcloud run deploy api-demo --source=." in result.output
    assert "[DRY-RUN] gcloud run deploy" not in result.output


def test_env_file_is_loaded_from_chdir(cli: CliRunner, tmp_path) -> None:
    (tmp_path / ".env.cloudrun").write_text("MEMORY=2Gi\n", encoding="utf-8")

    result = cli.invoke(main, ["-C", str(tmp_path), "plan"], env=dict(_BASE_ENV, MEMORY=""))

    assert result.exit_code == 0, result.output
    assert "--memory=2Gi" in result.output


def test_helpers_validate_name(cli: CliRunner) -> None:
    ok = cli.invoke(main, ["helpers", "validate-name", "api-demo"])
    bad = cli.invoke(main, ["helpers", "validate-name", "Api_Demo"])

    assert ok.exit_code == 0
    assert bad.exit_code == 1
    assert "[ERROR]" in bad.output
    assert "최대 63자" in bad.output


def test_helpers_estimate_cost(cli: CliRunner) -> None:
    result = cli.invoke(main, ["helpers", "estimate-cost", "1000000", "200", "512", "1"])

    assert result.exit_code == 0
    assert "Estimated monthly cost: $5.45" in result.output


def test_helpers_generate_name(cli: CliRunner) -> None:
    result = cli.invoke(main, ["helpers", "generate-name", "--prefix", "api"])

    assert result.exit_code == 0
    assert result.output.startswith("api-")


def test_helpers_dry_run_traces_gcloud(cli: CliRunner) -> None:
    result = cli.invoke(
        main,
        ["--dry-run", "helpers", "cleanup", "svc", "--project", "test-project", "--region", "us-central1"],
        env=_BASE_ENV,
    )

    assert result.exit_code == 0, result.output
    assert "[DRY-RUN] gcloud run revisions list --service=svc" in result.output


def test_helpers_cloudsql_connection(cli: CliRunner) -> None:
    result = cli.invoke(
        main,
        ["--dry-run", "helpers", "cloudsql-connection", "db", "--project", "test-project", "--region", "us-east1"],
        env=_BASE_ENV,
    )

    assert result.exit_code == 0, result.output
    assert result.output.strip().endswith("test-project:us-east1:db")


def test_helpers_restore_missing_file(cli: CliRunner, tmp_path) -> None:
    result = cli.invoke(
        main,
        ["-C", str(tmp_path), "--dry-run", "helpers", "restore", "nope.yaml", "--project", "p", "--region", "r"],
        env=_BASE_ENV,
    )

    assert result.exit_code == 1
    assert "백업 파일" in result.output


def test_plan_docker_mode_leaves_no_files_and_no_traces(cli: CliRunner, tmp_path) -> None:
    env = dict(_BASE_ENV, BUILD_MODE="docker", APP_RUNTIME="python")

    result = cli.invoke(main, ["-C", str(tmp_path), "plan"], env=env)

    assert result.exit_code == 0, result.output
    assert "- dockerfile: ./Dockerfile" in result.output
    assert "[DRY-RUN] gcloud" not in result.output
    assert list(tmp_path.iterdir()) == []


def test_dry_run_deploy_does_not_generate_dockerfile(cli: CliRunner, tmp_path) -> None:
    env = dict(_BASE_ENV, BUILD_MODE="docker", APP_RUNTIME="nodejs")

    result = cli.invoke(main, ["-C", str(tmp_path), "--dry-run", "--non-interactive", "deploy"], env=env)

    assert result.exit_code == 0, result.output
    assert "[DRY-RUN] docker build" in result.output
    assert not (tmp_path / "Dockerfile").exists()


def test_validation_error_goes_through_logger(cli: CliRunner, monkeypatch: pytest.MonkeyPatch) -> None:
    from cloudrun_kit import cli as cli_module

    logged = []
    monkeypatch.setattr(cli_module.logger, "error", lambda msg, *args: logged.append(msg % args))

    result = cli.invoke(main, ["helpers", "validate-name", "Api_Demo"])

    assert result.exit_code == 1
    assert len(logged) == 1
    assert "Api_Demo" in logged[0]


def test_secret_check_without_credentials_is_not_fatal(cli: CliRunner, monkeypatch: pytest.MonkeyPatch) -> None:
    from google.auth.exceptions import DefaultCredentialsError

    from cloudrun_kit import gcp_secrets

    def no_credentials(*args, **kwargs):  # noqa: ANN002, ANN003, ANN202
        raise DefaultCredentialsError("no application default credentials")

    monkeypatch.setattr(gcp_secrets.secretmanager, "SecretManagerServiceClient", no_credentials)

    result = cli.invoke(main, ["helpers", "secret-check", "db-password", "--project", "p"], env=_BASE_ENV)

    assert result.exit_code == 0, result.output
    assert "- Secrets: 확인 불가 (db-password)" in result.output


def test_helpers_quotas_lists_services(cli: CliRunner) -> None:
    result = cli.invoke(main, ["--dry-run", "helpers", "quotas", "--project", "test-project"], env=_BASE_ENV)

    assert result.exit_code == 0, result.output
    assert "[DRY-RUN] gcloud run services list --project=test-project" in result.output
