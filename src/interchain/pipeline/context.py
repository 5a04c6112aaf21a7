"""Context dataclass for interceptor chain execution.

One Context describes one attempt of a logical request as it moves through
the outgoing chain, the transport and the incoming chain.
"""

from __future__ import annotations

import json
import uuid
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import httpx

if TYPE_CHECKING:
    from collections.abc import Mapping


def new_id() -> str:
    """Mint an opaque unique identifier."""
    return uuid.uuid4().hex


@dataclass
class Response:
    """Transport-independent view of a received response.

    Attributes:
        status: Status code
        reason: Reason phrase
        headers: Response headers (lowercase keys)
        content: Raw body
        encoding: Encoding used by ``text``
    """

    status: int = 200
    reason: str = ""
    headers: dict[str, str] = field(default_factory=dict)
    content: bytes = b""
    encoding: str = "utf-8"

    @classmethod
    def from_httpx(cls, response: httpx.Response) -> Response:
        """Create a Response from an httpx response.

        Args:
            response: Response returned by an httpx client

        Returns:
            Response with the status, headers and body copied over
        """
        return cls(
            status=response.status_code,
            reason=response.reason_phrase,
            headers={k.lower(): v for k, v in response.headers.items()},
            content=response.content,
            encoding=response.encoding or "utf-8",
        )

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    @property
    def text(self) -> str:
        return self.content.decode(self.encoding, errors="replace")

    def json(self) -> Any:
        return json.loads(self.text)

    def get_header(self, name: str, default: str = "") -> str:
        """Get header value (case-insensitive)."""
        return self.headers.get(name.lower(), default)


@dataclass
class Context:
    """Typed context for interceptor chain execution.

    Interceptors mutate the context in place or return a replacement; the
    chain always continues with whatever the last interceptor returned.

    Attributes:
        method: Request method (e.g. "GET")
        uri: Target URI
        headers: Request headers
        meta: Free-form per-request metadata, never shared between requests
        payload: Request body (str, bytes, or JSON-serializable object)
        encoding: Encoding applied to str payloads
        response: Response received for this attempt
        error: Failure of this attempt, if any
        id: Unique id of this attempt
        request_id: Id shared by every attempt of the same logical request
        attempt: Zero-based attempt number
    """

    method: str = "GET"
    uri: httpx.URL = field(default_factory=lambda: httpx.URL(""))
    headers: dict[str, str | None] = field(default_factory=dict)
    meta: dict[str, Any] = field(default_factory=dict)
    payload: Any = None
    encoding: str = "utf-8"
    response: Response | None = None
    error: BaseException | None = None
    id: str = field(default_factory=new_id)
    request_id: str = ""
    attempt: int = 0

    def __post_init__(self) -> None:
        self.method = self.method.upper()
        if not isinstance(self.uri, httpx.URL):
            self.uri = httpx.URL(self.uri)
        if not self.request_id:
            self.request_id = self.id

    @classmethod
    def for_request(
        cls,
        method: str,
        uri: httpx.URL | str,
        *,
        headers: Mapping[str, str | None] | None = None,
        meta: Mapping[str, Any] | None = None,
        payload: Any = None,
        encoding: str = "utf-8",
        request_id: str = "",
        attempt: int = 0,
    ) -> Context:
        """Create a fresh Context for one attempt.

        Headers and meta are copied so that interceptors never mutate the
        mappings they came from.

        Args:
            method: Request method
            uri: Target URI
            headers: Default headers to copy
            meta: Request metadata to copy
            payload: Request body
            encoding: Encoding for str payloads
            request_id: Logical request id (defaults to the new attempt id)
            attempt: Zero-based attempt number

        Returns:
            New Context with a fresh id
        """
        return cls(
            method=method,
            uri=httpx.URL(uri) if not isinstance(uri, httpx.URL) else uri,
            headers=dict(headers or {}),
            meta=dict(meta or {}),
            payload=payload,
            encoding=encoding,
            request_id=request_id,
            attempt=attempt,
        )

    def get_header(self, name: str, default: str | None = "") -> str | None:
        """Get request header value (case-insensitive).

        Args:
            name: Header name (case-insensitive)
            default: Default value if not found

        Returns:
            Header value or default
        """
        name_lower = name.lower()
        for key, value in self.headers.items():
            if key.lower() == name_lower:
                return value
        return default

    def has_header(self, name: str) -> bool:
        name_lower = name.lower()
        return any(key.lower() == name_lower for key in self.headers)

    def encoded_payload(self) -> bytes | None:
        """Encode the payload for the wire.

        Returns:
            None for no payload, bytes as-is, str encoded with ``encoding``,
            anything else serialized as JSON
        """
        if self.payload is None:
            return None
        if isinstance(self.payload, bytes):
            return self.payload
        if isinstance(self.payload, str):
            return self.payload.encode(self.encoding)
        return json.dumps(self.payload).encode(self.encoding)

    @property
    def retryable(self) -> bool:
        """Check if the caller opted this request into retries."""
        return bool(self.meta.get("retryable", False))

    @retryable.setter
    def retryable(self, value: bool) -> None:
        self.meta["retryable"] = value
