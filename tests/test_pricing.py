import pytest

from cloudrun_kit.pricing import estimate_cost


def test_estimate_cost_components() -> None:
    # 100만 요청 x 200ms = 200,000 초
    estimate = estimate_cost(1_000_000, 200, 512, 1)

    assert estimate.requests == pytest.approx(0.4)
    assert estimate.cpu == pytest.approx(4.8)
    assert estimate.memory == pytest.approx(0.25)
    assert estimate.total == pytest.approx(5.45)


def test_estimate_cost_lines_are_rounded() -> None:
    lines = estimate_cost(1_000_000, 200, 512, 1).lines()

    assert lines[0] == "Estimated monthly cost: $5.45"
    assert "  CPU: $4.80" in lines


def test_zero_requests_cost_nothing() -> None:
    assert estimate_cost(0, 100, 256, 1).total == 0
