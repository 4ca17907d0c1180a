from typing import List, Optional, Tuple

from pydantic import BaseModel, Field


class CapturedRequest(BaseModel):
    """A buffered HTTP request, independent of the web framework it came from."""

    method: str = Field()
    url: Optional[str] = Field(default=None)
    scheme: str = Field(default="http")
    host: Optional[str] = Field(default=None)
    path: str = Field(default="/")
    query_string: str = Field(default="")
    http_version: str = Field(default="1.1")
    headers: List[Tuple[str, str]] = Field(default_factory=list)
    body: bytes = Field(default=b"")
    # False while the body may still carry its Content-Encoding (gzip, br, ...)
    body_is_decoded: bool = Field(default=False)
    client_address: Optional[str] = Field(default=None)

    def header(self, name: str) -> Optional[str]:
        """Case-insensitive lookup of the first header with the given name."""
        lowered = name.lower()
        for key, value in self.headers:
            if key.lower() == lowered:
                return value
        return None

    @property
    def full_url(self) -> str:
        """The absolute URL, rebuilt from scheme, host, path and query when not supplied."""
        if self.url:
            return self.url
        host = self.host or self.header("host") or "localhost"
        url = f"{self.scheme}://{host}{self.path}"
        if self.query_string:
            url = f"{url}?{self.query_string}"
        return url


class CapturedResponse(BaseModel):
    """A buffered HTTP response, independent of the web framework it came from."""

    status_code: int = Field()
    status_text: Optional[str] = Field(default=None)
    headers: List[Tuple[str, str]] = Field(default_factory=list)
    body: bytes = Field(default=b"")
    body_is_decoded: bool = Field(default=False)

    def header(self, name: str) -> Optional[str]:
        lowered = name.lower()
        for key, value in self.headers:
            if key.lower() == lowered:
                return value
        return None
