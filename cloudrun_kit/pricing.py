"""
pricing
-------

Cloud Run 월 비용 대략 추정. 무료 사용량은 반영하지 않는다.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List


REQUEST_COST = 0.0000004  # 요청 1건
CPU_SECOND_COST = 0.000024  # vCPU-초
GIB_SECOND_COST = 0.0000025  # GiB-초


@dataclass(frozen=True)
class CostEstimate:
    requests: float
    cpu: float
    memory: float

    @property
    def total(self) -> float:
        return self.requests + self.cpu + self.memory

    def lines(self) -> List[str]:
        return [
            f"Estimated monthly cost: ${self.total:.2f}",
            f"  Requests: ${self.requests:.2f}",
            f"  CPU: ${self.cpu:.2f}",
            f"  Memory: ${self.memory:.2f}",
        ]


def estimate_cost(requests_per_month: int, avg_duration_ms: float, memory_mb: float, cpu: float) -> CostEstimate:
    seconds = requests_per_month * (avg_duration_ms / 1000)
    return CostEstimate(
        requests=requests_per_month * REQUEST_COST,
        cpu=seconds * cpu * CPU_SECOND_COST,
        memory=seconds * (memory_mb / 1024) * GIB_SECOND_COST,
    )
