"""Response rewriting — appends the reload script to HTML responses.

Only responses whose ``Content-Type`` essence is exactly ``text/html`` are
touched.  For those, CSP headers are rewritten to allow the script,
``Content-Length`` grows by the script's length, and the script bytes are
appended to the very end of the body.  Everything else passes through
unchanged, except the hop-by-hop headers of the upstream connection.
"""

from __future__ import annotations

from dataclasses import replace
from typing import TYPE_CHECKING

from multidict import CIMultiDict

from reload_proxy.proxy.csp import CSP_HEADERS, rewrite_csp

if TYPE_CHECKING:
    from collections.abc import Mapping

    from aiohttp import web

    from reload_proxy.livereload.script import InjectedScript
    from reload_proxy.proxy.messages import UpstreamResponse


_HTML = "text/html"
_CSP_NAMES = frozenset(name.lower() for name in CSP_HEADERS)

# Hop-by-hop headers describe the upstream connection, not this one; the
# body is also re-framed after buffering.
_HOP_BY_HOP_HEADERS = frozenset({"connection", "keep-alive", "transfer-encoding"})

# Statuses that never carry a body (besides every 1xx).
_BODYLESS_STATUSES = frozenset({204, 304})


def mime_essence(content_type: str) -> str:
    """``type/subtype`` of a Content-Type value, lowercased, parameters dropped."""
    return content_type.split(";", 1)[0].strip().lower()


def is_html(headers: Mapping[str, str]) -> bool:
    """Whether *headers* declare an HTML body."""
    content_type = headers.get("Content-Type")
    if not content_type:
        return False
    return mime_essence(content_type) == _HTML


def body_allowed(method: str, status: int) -> bool:
    """Whether a response to *method* with *status* may carry body bytes."""
    if method.upper() == "HEAD":
        return False
    return not (100 <= status < 200 or status in _BODYLESS_STATUSES)


class ResponseRewriter:
    """Applies script injection to upstream responses.

    Args:
        script: The reload script and its fingerprint.

    """

    __slots__ = ("_script",)

    def __init__(self, script: InjectedScript) -> None:
        self._script = script

    @property
    def script(self) -> InjectedScript:
        return self._script

    def rewrite(self, upstream: UpstreamResponse) -> UpstreamResponse:
        """Return the response to send downstream.

        Non-HTML responses are returned as is (the same object).

        """
        if not is_html(upstream.headers):
            return upstream

        headers: CIMultiDict[str] = CIMultiDict()
        for name, value in upstream.headers.items():
            lowered = name.lower()
            if lowered in _CSP_NAMES:
                value = rewrite_csp(value, self._script.fingerprint)
            elif lowered == "content-length":
                value = self._grow_content_length(value)
            headers.add(name, value)

        return replace(upstream, headers=headers, body=upstream.body + self._script.content)

    def _grow_content_length(self, value: str) -> str:
        try:
            length = int(value.strip())
        except ValueError:
            return value
        return str(length + len(self._script))

    async def send(
        self,
        request: web.BaseRequest,
        downstream: web.StreamResponse,
        upstream: UpstreamResponse,
    ) -> UpstreamResponse:
        """Write the rewritten *upstream* response to *downstream* and end it.

        *downstream* must not be prepared yet.  Returns what was sent.
        Responses to HEAD and 1xx, 204 or 304 responses get headers only;
        a HEAD response keeps the Content-Length a GET would have.

        """
        outgoing = self.rewrite(upstream)

        downstream.set_status(outgoing.status, outgoing.reason)
        for name, value in outgoing.headers.items():
            if name.lower() in _HOP_BY_HOP_HEADERS:
                continue
            downstream.headers.add(name, value)

        await downstream.prepare(request)
        if outgoing.body and body_allowed(request.method, outgoing.status):
            await downstream.write(outgoing.body)
        await downstream.write_eof()
        return outgoing
