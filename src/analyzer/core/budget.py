"""Token usage and cost accounting for upstream model calls."""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Dict, Iterator, Optional, Tuple

from analyzer.errors import BudgetExceeded


logger = logging.getLogger(__name__)

# USD per 1M tokens: (input, output)
PRICE_TABLE: Dict[str, Tuple[float, float]] = {
    "gpt-5-mini": (0.25, 2.00),
    "gpt-4o-mini": (0.15, 0.60),
    "gpt-4o": (2.50, 10.00),
    "deepseek-chat": (0.27, 1.10),
}
DEFAULT_RATES: Tuple[float, float] = (0.25, 2.00)


class BudgetTracker:
    """Running token/cost totals checked against a fixed monetary ceiling.

    Usage is recorded from executor threads during bulk runs, hence the lock.
    Admission via ``can_perform_operation`` is advisory; ``reserve`` is the
    atomic variant that holds the estimate until the block exits.
    """

    def __init__(
        self,
        model: str,
        ceiling: float = 5.0,
        *,
        input_price_per_m: Optional[float] = None,
        output_price_per_m: Optional[float] = None,
    ) -> None:
        self.model = model
        self.ceiling = float(ceiling)
        input_rate, output_rate = PRICE_TABLE.get(model, DEFAULT_RATES)
        # configured prices win over the table
        self.input_rate = float(input_price_per_m) if input_price_per_m is not None else input_rate
        self.output_rate = float(output_price_per_m) if output_price_per_m is not None else output_rate
        self._lock = threading.RLock()
        self._prompt_tokens = 0
        self._completion_tokens = 0
        self._cost = 0.0
        self._reserved = 0.0

    @property
    def blended_rate(self) -> float:
        # input/output split is unknown before the call
        return (self.input_rate + self.output_rate) / 2.0

    @property
    def estimated_cost(self) -> float:
        with self._lock:
            return self._cost

    def estimate(self, estimated_tokens: int) -> float:
        return max(0, int(estimated_tokens or 0)) * self.blended_rate / 1_000_000

    def record_usage(self, prompt_tokens: Optional[int], completion_tokens: Optional[int]) -> None:
        p = max(0, int(prompt_tokens or 0))
        c = max(0, int(completion_tokens or 0))
        with self._lock:
            self._prompt_tokens += p
            self._completion_tokens += c
            self._cost += (p * self.input_rate + c * self.output_rate) / 1_000_000
            total = self._cost
        logger.debug("Token usage - prompt: %d, completion: %d, total cost: $%.6f", p, c, total)

    def can_perform_operation(self, estimated_tokens: int) -> bool:
        prospective = self.estimate(estimated_tokens)
        with self._lock:
            return self._cost + self._reserved + prospective <= self.ceiling

    @contextmanager
    def reserve(self, estimated_tokens: int) -> Iterator[float]:
        """Hold ``estimated_tokens`` worth of budget for the duration of the block.

        Raises BudgetExceeded when the reservation does not fit. Actual usage is
        still recorded through ``record_usage`` while the block runs; the held
        amount is released on exit either way.
        """
        amount = self.estimate(estimated_tokens)
        with self._lock:
            if self._cost + self._reserved + amount > self.ceiling:
                current = self._cost
                logger.warning(
                    "AI budget exceeded: current $%.6f + estimate $%.6f > limit $%.2f",
                    current, amount, self.ceiling,
                )
                raise BudgetExceeded("AI budget exceeded. Cannot perform this operation.", current, self.ceiling)
            self._reserved += amount
        try:
            yield amount
        finally:
            with self._lock:
                self._reserved = max(0.0, self._reserved - amount)

    def get_usage_stats(self) -> dict:
        with self._lock:
            return {
                "token_usage": {
                    "prompt": self._prompt_tokens,
                    "completion": self._completion_tokens,
                    "total": self._prompt_tokens + self._completion_tokens,
                },
                "estimated_cost": self._cost,
                "remaining_budget": self.ceiling - self._cost,
            }
