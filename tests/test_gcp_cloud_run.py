from dataclasses import replace
from datetime import datetime

import pytest

from cloudrun_kit import gcp_cloud_run as gcr
from cloudrun_kit.config import DeploymentConfig
from cloudrun_kit.errors import ValidationError

from conftest import FakeRunner


def _cfg(**overrides) -> DeploymentConfig:  # noqa: ANN003
    values = dict(
        service_name="api-demo",
        region="us-central1",
        project_id="test-project",
        image_url="us-central1-docker.pkg.dev/test-project/cloud-run-apps/api-demo:latest",
    )
    values.update(overrides)
    return DeploymentConfig(**values)


def _flag_tokens(args, flag: str):  # noqa: ANN001, ANN202
    return [a for a in args if a == flag or a.startswith(flag + "=")]


_STRING_FIELDS = [
    ("service_account", "--service-account", "runner@test-project.iam.gserviceaccount.com"),
    ("revision_tag", "--tag", "blue"),
    ("revision_suffix", "--revision-suffix", "v2"),
    ("cloudsql_instances", "--add-cloudsql-instances", "test-project:us-central1:db"),
    ("vpc_connector", "--vpc-connector", "my-connector"),
]


@pytest.mark.parametrize("field_name, flag, value", _STRING_FIELDS)
def test_optional_flag_included_only_when_set(field_name: str, flag: str, value: str) -> None:
    unset = gcr.build_deploy_args(_cfg())
    assert _flag_tokens(unset, flag) == []

    blank = gcr.build_deploy_args(_cfg(**{field_name: "   "}))
    assert _flag_tokens(blank, flag) == []

    args = gcr.build_deploy_args(_cfg(**{field_name: value}))
    assert _flag_tokens(args, flag) == [f"{flag}={value}"]


@pytest.mark.parametrize(
    "field_name, flag",
    [("labels", "--labels"), ("annotations", "--annotations"), ("env_vars", "--set-env-vars"),
     ("secrets", "--set-secrets")],
)
def test_mapping_flags_included_only_when_non_empty(field_name: str, flag: str) -> None:
    assert _flag_tokens(gcr.build_deploy_args(_cfg()), flag) == []

    args = gcr.build_deploy_args(_cfg(**{field_name: {"a": "1", "b": "2"}}))
    assert _flag_tokens(args, flag) == [f"{flag}=a=1,b=2"]


def test_no_traffic_is_a_bare_flag() -> None:
    assert "--no-traffic" not in gcr.build_deploy_args(_cfg())
    assert gcr.build_deploy_args(_cfg(no_traffic=True)).count("--no-traffic") == 1


@pytest.mark.parametrize("from_source", [True, False])
def test_exactly_one_of_image_or_source(from_source: bool) -> None:
    args = gcr.build_deploy_args(_cfg(build_from_source=from_source, source_path="./app"))

    image = _flag_tokens(args, "--image")
    source = _flag_tokens(args, "--source")
    assert len(image) + len(source) == 1
    if from_source:
        assert source == ["--source=./app"]
    else:
        assert image[0].startswith("--image=us-central1-docker.pkg.dev/")


def test_image_mode_without_image_is_rejected() -> None:
    with pytest.raises(ValidationError):
        gcr.build_deploy_args(_cfg(image_url=""))


def test_api_demo_scenario() -> None:
    cfg = _cfg(
        memory="512Mi",
        cpu="1",
        min_instances=0,
        max_instances=10,
        allow_unauthenticated=True,
        env_vars={"LOG_LEVEL": "info"},
    )

    args = gcr.build_deploy_args(cfg)
    command = gcr.render_command(args)

    assert args[:3] == ["run", "deploy", "api-demo"]
    for token in ("--memory=512Mi", "--cpu=1", "--min-instances=0", "--max-instances=10",
                  "--set-env-vars=LOG_LEVEL=info", "--allow-unauthenticated"):
        assert token in args
    assert "--no-allow-unauthenticated" not in args
    for flag in ("--service-account", "--labels", "--annotations", "--tag", "--set-secrets"):
        assert flag not in command
    assert command.startswith("gcloud run deploy api-demo ")


def test_join_mapping_escapes_commas() -> None:
    assert gcr.join_mapping({"A": "1", "B": "2"}) == "A=1,B=2"
    assert gcr.join_mapping({"HOSTS": "a,b", "X": "1"}) == "^@^HOSTS=a,b@X=1"
    assert gcr.join_mapping({"HOSTS": "a,b", "MAIL": "me@x"}) == "^#^HOSTS=a,b#MAIL=me@x"


def test_render_command_quotes_values_with_spaces() -> None:
    cfg = _cfg(labels={"team": "core"}, env_vars={"GREETING": "hello world"})

    command = gcr.render_command(gcr.build_deploy_args(cfg))

    assert "'--set-env-vars=GREETING=hello world'" in command


def test_wait_for_service_times_out_without_raising(runner) -> None:  # noqa: ANN001
    runner.respond("gcloud", "run", "services", "describe", stdout="Unknown\n")
    now = [0.0]
    sleeps = []

    def fake_sleep(seconds: float) -> None:
        sleeps.append(seconds)
        now[0] += seconds

    ready = gcr.wait_for_service(
        runner, "api-demo", "us-central1", "test-project",
        timeout=12, interval=5, sleep=fake_sleep, clock=lambda: now[0],
    )

    assert ready is False
    assert sleeps == [5, 5, 5]


def test_wait_for_service_returns_when_ready(runner) -> None:  # noqa: ANN001
    runner.respond("gcloud", "run", "services", "describe", stdout="True\n")

    ready = gcr.wait_for_service(runner, "api-demo", "us-central1", "test-project",
                                 sleep=lambda s: None, clock=lambda: 0.0)

    assert ready is True


def test_wait_for_service_dry_run_issues_one_query(dry_runner) -> None:  # noqa: ANN001
    assert gcr.wait_for_service(dry_runner, "api-demo", "us-central1", "test-project") is True
    assert len(dry_runner.calls) == 1


def test_revisions_to_delete_keeps_newest() -> None:
    revisions = ["svc-00005", "svc-00004", "svc-00003", "svc-00002"]

    assert gcr.revisions_to_delete(revisions, 2) == ["svc-00003", "svc-00002"]
    assert gcr.revisions_to_delete(revisions, 10) == []
    with pytest.raises(ValidationError):
        gcr.revisions_to_delete(revisions, -1)


def test_cleanup_old_revisions_deletes_beyond_keep(runner) -> None:  # noqa: ANN001
    runner.respond("gcloud", "run", "revisions", "list", stdout="svc-3\nsvc-2\nsvc-1\n")

    deleted = gcr.cleanup_old_revisions(runner, "svc", "us-central1", "test-project", keep=1)

    assert deleted == ["svc-2", "svc-1"]
    assert [c[4] for c in runner.commands("gcloud", "run", "revisions", "delete")] == ["svc-2", "svc-1"]


def test_rollback_sends_all_traffic_to_revision(runner) -> None:  # noqa: ANN001
    gcr.rollback(runner, "svc", "svc-00002-abc", "us-central1", "test-project")

    (cmd,) = runner.commands("gcloud", "run", "services", "update-traffic")
    assert "--to-revisions=svc-00002-abc=100" in cmd


def test_make_private_tolerates_missing_binding(runner) -> None:  # noqa: ANN001
    runner.respond("gcloud", "run", "services", "remove-iam-policy-binding", returncode=1)

    gcr.make_private(runner, "svc", "us-central1", "test-project")

    assert runner.commands("gcloud", "run", "services", "remove-iam-policy-binding")


def test_compare_revisions_extracts_container_spec(runner) -> None:  # noqa: ANN001
    runner.respond(
        "gcloud", "run", "revisions", "describe", "svc-1",
        stdout='{"spec": {"containers": [{"image": "img:1"}]}}',
    )
    runner.respond(
        "gcloud", "run", "revisions", "describe", "svc-2",
        stdout='{"spec": {"containers": [{"image": "img:2"}]}}',
    )

    left, right = gcr.compare_revisions(runner, "svc-1", "svc-2", "us-central1", "test-project")

    assert left == {"image": "img:1"}
    assert right == {"image": "img:2"}


def test_backup_service_config_writes_timestamped_file(runner, tmp_path) -> None:  # noqa: ANN001
    runner.respond("gcloud", "run", "services", "describe", stdout="apiVersion: serving.knative.dev/v1\n")

    path = gcr.backup_service_config(
        runner, "svc", "us-central1", "test-project",
        backup_dir=str(tmp_path / "backups"), now=datetime(2024, 1, 2, 3, 4, 5),
    )

    assert path.endswith("svc_20240102_030405.yaml")
    with open(path, encoding="utf-8") as f:
        assert f.read().startswith("apiVersion")


def test_backup_service_config_dry_run_creates_nothing(dry_runner, tmp_path) -> None:  # noqa: ANN001
    backup_dir = tmp_path / "backups"

    path = gcr.backup_service_config(dry_runner, "svc", "us-central1", "test-project", backup_dir=str(backup_dir))

    assert path.startswith(str(backup_dir))
    assert not backup_dir.exists()


def test_restore_service_config_requires_existing_file(runner, tmp_path) -> None:  # noqa: ANN001
    with pytest.raises(ValidationError):
        gcr.restore_service_config(runner, str(tmp_path / "missing.yaml"), "us-central1", "test-project")
    assert runner.calls == []


def test_test_endpoint_compares_status_code(runner) -> None:  # noqa: ANN001
    runner.respond("curl", stdout="503")
    assert gcr.test_endpoint(runner, "https://svc.a.run.app") is False

    runner.respond("curl", stdout="200")
    assert gcr.test_endpoint(runner, "https://svc.a.run.app") is True


def test_generate_service_name_is_valid() -> None:
    from cloudrun_kit.validation import validate_service_name

    name = gcr.generate_service_name("api")

    assert name.startswith("api-")
    assert validate_service_name(name) == name


def test_deploy_service_runs_synthesized_command(runner) -> None:  # noqa: ANN001
    cfg = replace(_cfg(), build_from_source=True)

    gcr.deploy_service(runner, cfg)

    assert runner.calls == [["gcloud", *gcr.build_deploy_args(cfg)]]


@pytest.mark.parametrize("tools, expected", [(("ab", "hey"), "ab"), (("hey",), "hey")])
def test_load_test_uses_first_available_tool(tools, expected: str) -> None:  # noqa: ANN001
    runner = FakeRunner(tools=tools)

    assert gcr.load_test(runner, "https://svc.a.run.app", requests=50, concurrency=5) is True
    assert runner.calls == [[expected, "-n", "50", "-c", "5", "https://svc.a.run.app"]]


def test_load_test_without_tool_only_reports() -> None:
    runner = FakeRunner(tools=())

    assert gcr.load_test(runner, "https://svc.a.run.app") is False
    assert runner.calls == []


def test_show_quotas_lists_services_of_project(runner) -> None:  # noqa: ANN001
    gcr.show_quotas(runner, "test-project")

    (cmd,) = runner.commands("gcloud", "run", "services", "list")
    assert "--project=test-project" in cmd
    assert cmd[-1].startswith("--format=table(")
