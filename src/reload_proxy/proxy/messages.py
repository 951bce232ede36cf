"""Buffered request/response descriptions passed through the proxy.

Headers are ``CIMultiDict`` instances built from the raw header pairs seen
on the wire: repeated names stay repeated, in order, with their original
case.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from multidict import CIMultiDict


def headers_from_raw(raw_headers: Iterable[tuple[bytes, bytes]]) -> CIMultiDict[str]:
    """Decode raw ``(name, value)`` byte pairs without merging repeats."""
    return CIMultiDict(
        (name.decode("latin-1"), value.decode("latin-1")) for name, value in raw_headers
    )


@dataclass(frozen=True, slots=True)
class ProxyRequest:
    """An inbound request, fully buffered, as it will be sent upstream.

    Attributes:
        method: HTTP method.
        path: Raw path including the query string.
        headers: Request headers, authorization included.
        body: Complete request body; kept so retries can resend it.

    """

    method: str
    path: str
    headers: CIMultiDict[str]
    body: bytes


@dataclass(frozen=True, slots=True)
class UpstreamResponse:
    """A complete upstream response.

    Attributes:
        status: HTTP status code.
        reason: Reason phrase sent by the upstream.
        headers: Response headers.
        body: Complete (still encoded) response body.

    """

    status: int
    reason: str | None
    headers: CIMultiDict[str]
    body: bytes
