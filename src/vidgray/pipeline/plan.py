"""采样计划：由封顶时长与采样率推导出的时间戳序列。"""

from __future__ import annotations

from dataclasses import dataclass
import math
from typing import Iterator, List

from vidgray.core.config import SamplingConfig

# 浮点乘积先做舍入，避免 0.3 * 10 = 3.0000000000000004 这类误差多出一帧
_ROUND_DIGITS = 9


@dataclass(frozen=True, slots=True)
class SamplePlan:
    """封顶时长与采样率；时间戳按 index / rate 计算，不做累加。"""

    duration: float
    rate_hz: float

    @classmethod
    def for_duration(cls, source_duration: float, sampling: SamplingConfig) -> "SamplePlan":
        if math.isnan(source_duration) or source_duration < 0:
            source_duration = 0.0
        capped = min(source_duration, sampling.cap_seconds)
        return cls(duration=capped, rate_hz=sampling.rate_hz)

    @property
    def interval(self) -> float:
        return 1.0 / self.rate_hz

    @property
    def total_samples(self) -> int:
        return max(int(math.ceil(round(self.duration * self.rate_hz, _ROUND_DIGITS))), 0)

    def timestamps(self) -> Iterator[float]:
        for index in range(self.total_samples):
            yield index / self.rate_hz

    def as_list(self) -> List[float]:
        return list(self.timestamps())
