import os
import stat

import pytest

from cloudrun_kit import templates


_BASIC = {
    "service_name": "api-demo",
    "region": "us-central1",
    "image_url": "us-central1-docker.pkg.dev/test-project/apps/api-demo",
}


def test_every_template_asset_is_packaged() -> None:
    for template_id, files in templates.TEMPLATES.items():
        for tf in files:
            assert templates._read_asset(tf.asset), template_id


def test_emit_is_idempotent(tmp_path) -> None:
    first = templates.emit("cloudbuild-basic", _BASIC, str(tmp_path))
    content = first[0].read_bytes()

    second = templates.emit("cloudbuild-basic", _BASIC, str(tmp_path))

    assert first == second == [tmp_path / "cloudbuild.yaml"]
    assert second[0].read_bytes() == content


def test_substitutions_are_applied_and_shell_syntax_kept(tmp_path) -> None:
    (path,) = templates.emit("cloudbuild-basic", _BASIC, str(tmp_path))
    text = path.read_text(encoding="utf-8")

    assert "@@{" not in text
    assert "'--region=us-central1'" in text
    assert "us-central1-docker.pkg.dev/test-project/apps/api-demo:$SHORT_SHA" in text


def test_modified_file_is_not_overwritten_without_confirmation(tmp_path) -> None:
    target = tmp_path / "cloudbuild.yaml"
    target.write_text("# hand edited\n", encoding="utf-8")
    asked = []

    written = templates.emit(
        "cloudbuild-basic", _BASIC, str(tmp_path), confirm_overwrite=lambda p: asked.append(p) or False
    )

    assert written == []
    assert asked == [target]
    assert target.read_text(encoding="utf-8") == "# hand edited\n"


def test_overwrite_when_confirmed_or_forced(tmp_path) -> None:
    target = tmp_path / "cloudbuild.yaml"
    target.write_text("# hand edited\n", encoding="utf-8")

    assert templates.emit("cloudbuild-basic", _BASIC, str(tmp_path), confirm_overwrite=lambda p: True) == [target]

    target.write_text("# hand edited again\n", encoding="utf-8")
    assert templates.emit("cloudbuild-basic", _BASIC, str(tmp_path), overwrite=True) == [target]
    assert "api-demo" in target.read_text(encoding="utf-8")


def test_dry_run_renders_but_writes_nothing(tmp_path) -> None:
    assert templates.emit("deployment-files", {"project_id": "p", "service_name": "api-demo", "region": "us-central1"},
                          str(tmp_path), dry_run=True) == []
    assert os.listdir(tmp_path) == []

    with pytest.raises(ValueError):
        templates.emit("cloudbuild-basic", {"service_name": "api-demo"}, str(tmp_path), dry_run=True)


def test_missing_substitution_raises_and_writes_nothing(tmp_path) -> None:
    with pytest.raises(ValueError):
        templates.emit("cloudbuild-basic", {"service_name": "api-demo"}, str(tmp_path))

    assert os.listdir(tmp_path) == []


def test_unknown_template_id(tmp_path) -> None:
    with pytest.raises(ValueError):
        templates.emit("cloudbuild-fancy", {}, str(tmp_path))


def test_deployment_files_marks_script_executable(tmp_path) -> None:
    written = templates.emit(
        "deployment-files",
        {"project_id": "test-project", "region": "us-central1", "service_name": "api-demo"},
        str(tmp_path),
    )

    assert {p.name for p in written} == {".env.example", ".gcloudignore", "deploy.sh"}
    assert os.stat(tmp_path / "deploy.sh").st_mode & stat.S_IXUSR


def test_github_actions_creates_workflow_directory(tmp_path) -> None:
    (path,) = templates.emit("github-actions", {"service_name": "api-demo", "region": "us-central1"}, str(tmp_path))

    assert path == tmp_path / ".github" / "workflows" / "deploy-to-cloudrun.yml"
    assert "${{" in path.read_text(encoding="utf-8")


@pytest.mark.parametrize("runtime", templates.RUNTIMES)
def test_dockerfiles_use_port(runtime: str) -> None:
    assert templates.placeholders(f"dockerfile-{runtime}") == {"port"}


def test_placeholders_for_basic_cloudbuild() -> None:
    assert templates.placeholders("cloudbuild-basic") == {"service_name", "image_url", "region"}
