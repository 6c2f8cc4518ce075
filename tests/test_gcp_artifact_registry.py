from cloudrun_kit import gcp_artifact_registry as ar
from cloudrun_kit.prompts import Prompter


def test_image_urls() -> None:
    assert ar.artifact_image_url("us-central1", "test-project", "apps", "backend") == (
        "us-central1-docker.pkg.dev/test-project/apps/backend:latest"
    )
    assert ar.gcr_image_url("test-project", "backend", tag="v1") == "gcr.io/test-project/backend:v1"


def test_build_and_push_call_docker(runner) -> None:  # noqa: ANN001
    image = "us-central1-docker.pkg.dev/test-project/apps/backend:latest"

    ar.build_image(runner, image, "./docker/Dockerfile", "./app", {"NODE_ENV": "production"})
    ar.push_image(runner, image)

    # docker build + docker push 두 번 호출되는지 확인
    assert runner.calls == [
        ["docker", "build", "-t", image, "-f", "./docker/Dockerfile", "--build-arg", "NODE_ENV=production", "./app"],
        ["docker", "push", image],
    ]


def test_existing_repository_is_reused(runner) -> None:  # noqa: ANN001
    assert ar.ensure_repository(runner, Prompter(non_interactive=True), "apps", "us-central1", "test-project")
    assert not runner.commands("gcloud", "artifacts", "repositories", "create")


def test_missing_repository_is_created_after_confirmation(runner) -> None:  # noqa: ANN001
    runner.respond("gcloud", "artifacts", "repositories", "describe", returncode=1)

    ready = ar.ensure_repository(runner, Prompter(non_interactive=True), "apps", "us-central1", "test-project")

    assert ready
    (create,) = runner.commands("gcloud", "artifacts", "repositories", "create")
    assert "--repository-format=docker" in create
    assert "--location=us-central1" in create


def test_configure_docker_auth_host(runner) -> None:  # noqa: ANN001
    ar.configure_docker_auth(runner, "asia-northeast3")
    ar.configure_docker_auth(runner, None)

    hosts = [c[3] for c in runner.commands("gcloud", "auth", "configure-docker")]
    assert hosts == ["asia-northeast3-docker.pkg.dev", "gcr.io"]
