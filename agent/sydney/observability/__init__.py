from .cost import calculate_cost
from .metrics import extract_metrics
from .tracing import configure_tracing, get_run_config

__all__ = [
    "calculate_cost",
    "configure_tracing",
    "extract_metrics",
    "get_run_config",
]
