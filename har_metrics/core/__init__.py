from .capture import CapturedRequest, CapturedResponse

__all__ = ["CapturedRequest", "CapturedResponse"]
