# src/atlas_assets/core/pipeline/retry.py
"""
Política de retry de invocações de Step.

A política governa apenas a reexecução após uma **falha levantada** pela
computação. Declínios deliberados de output, erros de I/O e erros de
configuração nunca são reexecutados.

Cálculo do atraso (retry_number começa em 1):
    - constant    → delay
    - exponential → delay * 2 ** (retry_number - 1)
    - jitter symmetric → soma um deslocamento uniforme em [-delay, +delay],
      truncado em zero
    - max_delay (opcional) limita o valor final
"""

from __future__ import annotations

import random
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional


class Backoff(str, Enum):
    CONSTANT = "constant"
    EXPONENTIAL = "exponential"


class Jitter(str, Enum):
    NONE = "none"
    SYMMETRIC = "symmetric"


@dataclass(frozen=True)
class RetryPolicy:
    """Política declarativa de retry anexável a um Step."""

    max_retries: int = 0
    delay: float = 0.0
    backoff: Backoff = Backoff.CONSTANT
    jitter: Jitter = Jitter.NONE
    max_delay: Optional[float] = None

    def __post_init__(self) -> None:
        if not isinstance(self.max_retries, int) or isinstance(self.max_retries, bool) or self.max_retries < 0:
            raise ValueError("RetryPolicy.max_retries must be an int >= 0")
        if not isinstance(self.delay, (int, float)) or self.delay < 0:
            raise ValueError("RetryPolicy.delay must be a number >= 0")
        if self.max_delay is not None and self.max_delay < 0:
            raise ValueError("RetryPolicy.max_delay must be >= 0")
        object.__setattr__(self, "backoff", Backoff(self.backoff))
        object.__setattr__(self, "jitter", Jitter(self.jitter))

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    def allows_retry(self, attempts_done: int) -> bool:
        """True se, após `attempts_done` tentativas, ainda cabe um retry."""
        return attempts_done <= self.max_retries

    def delay_for(self, retry_number: int, rng: Optional[random.Random] = None) -> float:
        if retry_number < 1:
            raise ValueError("retry_number starts at 1")

        if self.backoff is Backoff.EXPONENTIAL:
            value = float(self.delay) * (2 ** (retry_number - 1))
        else:
            value = float(self.delay)

        if self.jitter is Jitter.SYMMETRIC and self.delay > 0:
            r = (rng or random).random()
            value = value + (2.0 * r - 1.0) * float(self.delay)

        if self.max_delay is not None:
            value = min(value, float(self.max_delay))
        return max(0.0, value)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RetryPolicy":
        allowed = {"max_retries", "delay", "backoff", "jitter", "max_delay"}
        unknown = sorted(set(data) - allowed)
        if unknown:
            raise ValueError(f"Unknown retry policy fields: {unknown}")
        return cls(**data)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "max_retries": self.max_retries,
            "delay": self.delay,
            "backoff": self.backoff.value,
            "jitter": self.jitter.value,
            "max_delay": self.max_delay,
        }


NO_RETRY = RetryPolicy()
