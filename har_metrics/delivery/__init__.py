from .metrics_client import MetricsClient

__all__ = ["MetricsClient"]
