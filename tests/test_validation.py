import pytest

from cloudrun_kit import validation
from cloudrun_kit.errors import ValidationError


@pytest.mark.parametrize(
    "name",
    [
        "Api-demo",  # 대문자
        "a" * 64,  # 64자
        "1service",  # 숫자로 시작
        "-service",
        "my_service",
        "",
    ],
)
def test_invalid_service_names_are_rejected(name: str) -> None:
    with pytest.raises(ValidationError) as excinfo:
        validation.validate_service_name(name)

    assert "최대 63자" in excinfo.value.explanation


@pytest.mark.parametrize("name", ["api-demo", "a", "a" * 63, "svc-01"])
def test_valid_service_names(name: str) -> None:
    assert validation.validate_service_name(name) == name


@pytest.mark.parametrize("value", ["512Mi", "1Gi", "128Mi"])
def test_validate_memory_accepts_units(value: str) -> None:
    assert validation.validate_memory(value) == value


@pytest.mark.parametrize("value", ["512", "1GB", "Mi"])
def test_validate_memory_rejects(value: str) -> None:
    with pytest.raises(ValidationError):
        validation.validate_memory(value)


def test_validate_cpu() -> None:
    assert validation.validate_cpu("2") == "2"
    assert validation.validate_cpu("1000m") == "1000m"
    with pytest.raises(ValidationError):
        validation.validate_cpu("two")


def test_validate_int_range() -> None:
    assert validation.validate_int_range("80", "concurrency", 1, 1000) == 80
    with pytest.raises(ValidationError):
        validation.validate_int_range("0", "concurrency", 1, 1000)
    with pytest.raises(ValidationError):
        validation.validate_int_range("abc", "concurrency", 1, 1000)


def test_parse_env_var_splits_on_first_equals() -> None:
    assert validation.parse_env_var("DATABASE_URL=postgres://u:p@h/db?x=1") == (
        "DATABASE_URL",
        "postgres://u:p@h/db?x=1",
    )
    with pytest.raises(ValidationError):
        validation.parse_env_var("NO_EQUALS")
    with pytest.raises(ValidationError):
        validation.parse_env_var("1BAD=x")


def test_parse_secret_mount_defaults_version() -> None:
    assert validation.parse_secret_mount("DB_PASSWORD=db-password") == ("DB_PASSWORD", "db-password:latest")
    assert validation.parse_secret_mount("/secrets/key=api-key:3") == ("/secrets/key", "api-key:3")
    with pytest.raises(ValidationError):
        validation.parse_secret_mount("DB_PASSWORD=db-password:beta")


def test_parse_pair_list_skips_blank_entries() -> None:
    assert validation.parse_pair_list("team=core, env=dev,") == {"team": "core", "env": "dev"}
    assert validation.parse_pair_list("") == {}
    with pytest.raises(ValidationError):
        validation.parse_pair_list("Team=core")


def test_validate_cloudsql_connection() -> None:
    assert validation.validate_cloudsql_connection("p:us-central1:db") == "p:us-central1:db"
    with pytest.raises(ValidationError):
        validation.validate_cloudsql_connection("p:db")


def test_parse_traffic_split() -> None:
    assert validation.parse_traffic_split("svc-1=90,svc-2=10") == {"svc-1": 90, "svc-2": 10}
    with pytest.raises(ValidationError):
        validation.parse_traffic_split("svc-1=90,svc-2=20")
    with pytest.raises(ValidationError):
        validation.parse_traffic_split("")


def test_validate_freshness() -> None:
    assert validation.validate_freshness("30m") == "30m"
    with pytest.raises(ValidationError):
        validation.validate_freshness("yesterday")
