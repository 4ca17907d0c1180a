import os
from typing import List, Optional
from urllib.parse import urlparse

from dotenv import load_dotenv

from har_metrics.config.options import MetricsOptions
from har_metrics.exceptions import ConfigurationError

# Load .env file variables into environment
load_dotenv(verbose=True)

DEFAULT_METRICS_API_URL = "https://metrics.readme.io"


def _split_list(value: Optional[str]) -> Optional[List[str]]:
    if value is None:
        return None
    return [item.strip() for item in value.split(",") if item.strip()]


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


class Settings:
    """Configuration settings loaded from environment variables."""

    # --- Collector Settings ---
    def get_readme_api_key(self) -> Optional[str]:
        """Returns the key used to authenticate with the metrics collector, if set."""
        return os.getenv("README_API_KEY")

    def require_readme_api_key(self) -> str:
        api_key = self.get_readme_api_key()
        if not api_key:
            raise ConfigurationError("README_API_KEY environment variable is not set.", option="README_API_KEY")
        return api_key

    def get_metrics_api_url(self) -> str:
        """Returns the base URL of the metrics collector."""
        url = os.getenv("METRICS_API_URL", DEFAULT_METRICS_API_URL)
        parsed = urlparse(url)
        if not all([parsed.scheme, parsed.netloc]):
            raise ValueError(f"Invalid METRICS_API_URL format: {url}")
        return url.rstrip("/")

    def get_base_log_url(self) -> Optional[str]:
        """Returns the base URL used to build x-documentation-url headers, if set."""
        url = os.getenv("METRICS_BASE_LOG_URL")
        return url.rstrip("/") if url else None

    def get_buffer_length(self) -> int:
        """Returns how many log entries are buffered before they are sent."""
        try:
            buffer_length = int(os.getenv("METRICS_BUFFER_LENGTH", "1"))
        except ValueError:
            raise ValueError("METRICS_BUFFER_LENGTH environment variable must be an integer.")
        if buffer_length < 1:
            raise ValueError("METRICS_BUFFER_LENGTH environment variable must be at least 1.")
        return buffer_length

    def get_timeout(self) -> float:
        """Returns the collector request timeout in seconds."""
        try:
            return float(os.getenv("METRICS_TIMEOUT", "3"))
        except ValueError:
            raise ValueError("METRICS_TIMEOUT environment variable must be a number.")

    def fire_and_forget(self) -> bool:
        return _parse_bool(os.getenv("METRICS_FIRE_AND_FORGET", "true"))

    def development_mode(self) -> bool:
        return _parse_bool(os.getenv("METRICS_DEVELOPMENT", "false"))

    # --- Redaction Settings ---
    def get_denylist(self) -> Optional[List[str]]:
        return _split_list(os.getenv("METRICS_DENYLIST"))

    def get_allowlist(self) -> Optional[List[str]]:
        return _split_list(os.getenv("METRICS_ALLOWLIST"))

    def get_blacklist(self) -> Optional[List[str]]:
        """Deprecated spelling of METRICS_DENYLIST."""
        return _split_list(os.getenv("METRICS_BLACKLIST"))

    def get_whitelist(self) -> Optional[List[str]]:
        """Deprecated spelling of METRICS_ALLOWLIST."""
        return _split_list(os.getenv("METRICS_WHITELIST"))

    def get_metrics_options(self) -> MetricsOptions:
        """Collects the per-request logging options from the environment."""
        return MetricsOptions(
            denylist=self.get_denylist(),
            allowlist=self.get_allowlist(),
            blacklist=self.get_blacklist(),
            whitelist=self.get_whitelist(),
            development=self.development_mode(),
            fire_and_forget=self.fire_and_forget(),
        )

    # --- Logging Settings ---
    def get_log_level(self, default: str = "INFO") -> str:
        """Gets the configured log level, defaulting if not set."""
        return os.getenv("LOG_LEVEL", default).upper()
