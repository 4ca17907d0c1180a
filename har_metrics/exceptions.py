# har_metrics exceptions


class MetricsError(Exception):
    """Base exception for all har_metrics errors."""

    pass


class ConfigurationError(MetricsError, ValueError):
    """Exception raised when required configuration (such as the group API key) is missing or invalid."""

    def __init__(self, *args, option: str | None = None, detail: str | None = None):
        super().__init__(*args)
        self.option = option
        # Use the first arg as detail if detail kwarg is not provided and args exist
        self.detail = detail or (args[0] if args else None)


class FilterConfigError(ConfigurationError):
    """Exception raised when an allow-list or deny-list contains entries that are not strings."""

    pass


class BodyDecodeError(MetricsError):
    """Exception raised when a body does not match the grammar of its declared content type.

    The body classifier always recovers from this by falling back to the text form.
    """

    def __init__(self, mime_type: str, reason: str):
        self.mime_type = mime_type
        self.reason = reason
        super().__init__(f"Could not decode {mime_type} body: {reason}")


class ContentDecodingError(MetricsError, ValueError):
    """Exception raised when a Content-Encoding is unsupported or the content is corrupt."""

    pass


class DeliveryError(MetricsError):
    """Exception raised when the metrics collector rejects a batch of log entries."""

    def __init__(self, detail: str, status_code: int | None = None):
        self.detail = detail
        self.status_code = status_code
        super().__init__(detail)
