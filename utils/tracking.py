"""Token, cost and time tracking utilities."""

import time
from dataclasses import dataclass, field
from typing import Any


# OpenAI chat pricing per million tokens (input, output), approximate
OPENAI_PRICING: dict[str, tuple[float, float]] = {
    "gpt-3.5-turbo": (0.50, 1.50),
    "gpt-4o-mini": (0.15, 0.60),
    "gpt-4o": (2.50, 10.0),
}

# Default pricing (gpt-3.5-turbo)
DEFAULT_PRICING = (0.50, 1.50)


def get_model_pricing(model: str) -> tuple[float, float]:
    """Get pricing for a model. Returns (input_price_per_mtok, output_price_per_mtok)."""
    return OPENAI_PRICING.get(model, DEFAULT_PRICING)


@dataclass
class CostTracker:
    """Tracks API costs and token usage across generation calls."""

    total_input_tokens: int = 0
    total_output_tokens: int = 0
    api_calls: int = 0
    total_cost_dollars: float = 0.0

    model_stats: dict[str, dict[str, Any]] = field(default_factory=dict)

    def add_usage(self, input_tokens: int, output_tokens: int, model: str) -> float:
        """Record token usage from an API call and return its cost in dollars."""
        input_price, output_price = get_model_pricing(model)
        call_cost = (
            (input_tokens / 1_000_000) * input_price +
            (output_tokens / 1_000_000) * output_price
        )

        self.total_input_tokens += input_tokens
        self.total_output_tokens += output_tokens
        self.api_calls += 1
        self.total_cost_dollars += call_cost

        stats = self.model_stats.setdefault(
            model, {"input": 0, "output": 0, "calls": 0, "cost": 0.0}
        )
        stats["input"] += input_tokens
        stats["output"] += output_tokens
        stats["calls"] += 1
        stats["cost"] += call_cost

        return call_cost

    def get_summary(self) -> dict[str, str]:
        """Get a summary dictionary for display."""
        models_str = ", ".join(self.model_stats) if self.model_stats else "None"
        return {
            "Models Used": models_str,
            "API Calls": str(self.api_calls),
            "Input Tokens": f"{self.total_input_tokens:,}",
            "Output Tokens": f"{self.total_output_tokens:,}",
            "Total Cost": f"${self.total_cost_dollars:.4f}",
        }


class Timer:
    """Context manager for timing operations."""

    def __init__(self, name: str = "Operation"):
        self.name = name
        self.start_time: float | None = None
        self.end_time: float | None = None

    def __enter__(self) -> "Timer":
        self.start_time = time.time()
        return self

    def __exit__(self, *args: Any) -> None:
        self.end_time = time.time()

    @property
    def elapsed(self) -> float:
        """Get elapsed time in seconds."""
        if self.start_time is None:
            return 0.0
        end = self.end_time or time.time()
        return end - self.start_time

    @property
    def elapsed_str(self) -> str:
        seconds = self.elapsed
        if seconds < 60:
            return f"{seconds:.1f}s"
        minutes = int(seconds // 60)
        return f"{minutes}m {seconds % 60:.0f}s"
