from .options import MetricsOptions
from .settings import Settings

__all__ = ["MetricsOptions", "Settings"]
