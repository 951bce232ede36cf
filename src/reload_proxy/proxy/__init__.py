"""Proxy layer — forwarding, response rewriting and CSP handling.

Forwards requests to the upstream, retries refused connections, and
appends the reload script to HTML responses without breaking their
Content-Length or Content-Security-Policy.
"""

from reload_proxy.proxy.csp import CSP_HEADERS, rewrite_csp
from reload_proxy.proxy.forward import (
    ForwardingProxy,
    RetryPolicy,
    RetryState,
    create_proxy_app,
    is_connection_refused,
    read_request,
)
from reload_proxy.proxy.messages import ProxyRequest, UpstreamResponse, headers_from_raw
from reload_proxy.proxy.rewriter import ResponseRewriter, body_allowed, is_html, mime_essence

__all__ = [
    "CSP_HEADERS",
    "ForwardingProxy",
    "ProxyRequest",
    "ResponseRewriter",
    "RetryPolicy",
    "RetryState",
    "UpstreamResponse",
    "body_allowed",
    "create_proxy_app",
    "headers_from_raw",
    "is_connection_refused",
    "is_html",
    "mime_essence",
    "read_request",
    "rewrite_csp",
]
